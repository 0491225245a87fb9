#
#  machkit | libkit
#  log.py
#
#  Leveled logging for the decoder and the CLI.
#
#  Every line is prefixed with its level and the call site (module, line, class and function) that emitted it.
#
#  This file is part of machkit. machkit is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#

from enum import Enum
import sys
import inspect
import os

from libkit.structs import Struct


class LogLevel(Enum):
    NONE = -1
    ERROR = 0
    WARN = 1
    INFO = 2
    DEBUG = 3
    DEBUG_MORE = 4
    # per-field struct dumps; only useful when piped to a file
    DEBUG_TOO_MUCH = 5


def print_err(msg):
    print(msg, file=sys.stderr)


def _call_site(frame: inspect.FrameInfo) -> str:
    owner = frame.frame.f_locals.get('self')
    if owner is not None:
        owner = type(owner).__name__
    elif 'cls' in frame.frame.f_locals:
        owner = frame.frame.f_locals['cls'].__name__

    module = os.path.splitext(os.path.basename(frame.filename))[0]
    function = f'{owner}:{frame.function}' if owner else frame.function
    return f'machkit.{module}:L#{frame.lineno}:{function}()'


class log:
    """
    Leveled logger with swappable output sinks.

    LOG_FUNC receives DEBUG/INFO lines, LOG_ERR receives WARN/ERROR lines. Both can be replaced
        (e.g. by tests capturing output, or by a viewer redirecting it into a panel).
    """

    LOG_LEVEL = LogLevel.ERROR
    # Should be a function name, without ()
    LOG_FUNC = print
    LOG_ERR = print_err

    @staticmethod
    def _emit(level: LogLevel, tag: str, msg, to_err: bool):
        if log.LOG_LEVEL.value < level.value:
            return
        if isinstance(msg, Struct):
            msg = str(msg)
        # [0] is _emit, [1] the level method, [2] whoever called it
        site = _call_site(inspect.stack()[2])
        sink = log.LOG_ERR if to_err else log.LOG_FUNC
        sink(f'{tag} - {site} - {msg}')

    @staticmethod
    def debug(msg=""):
        log._emit(LogLevel.DEBUG, 'DEBUG', msg, False)

    @staticmethod
    def debug_more(msg=""):
        log._emit(LogLevel.DEBUG_MORE, 'DEBUG-2', msg, False)

    @staticmethod
    def debug_tm(msg=""):
        log._emit(LogLevel.DEBUG_TOO_MUCH, 'DEBUG-3', msg, False)

    @staticmethod
    def info(msg=""):
        log._emit(LogLevel.INFO, 'INFO', msg, False)

    @staticmethod
    def warn(msg=""):
        log._emit(LogLevel.WARN, 'WARN', msg, True)

    @staticmethod
    def error(msg=""):
        log._emit(LogLevel.ERROR, 'ERROR', msg, True)
