#
#  machkit | machkit
#  util.py
#
#  This file contains miscellaneous utilities used around machkit
#
#  This file is part of machkit. machkit is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
import concurrent.futures
import os
import re
import shutil
import sys
from typing import List, Dict

from importlib.metadata import version as _dist_version, PackageNotFoundError

from pygments import highlight
from pygments.formatters.terminal import TerminalFormatter
from pygments.lexers.data import JsonLexer

from libkit.log import log

try:
    MACHKIT_VERSION = _dist_version('machkit')
except PackageNotFoundError:
    MACHKIT_VERSION = '1.0.0'

THREAD_COUNT = max((os.cpu_count() or 2) - 1, 1)


def get_terminal_size():
    # os.get_terminal_size fails when piped; we fall back to shutil's default then, so greps get one line per row
    try:
        return os.get_terminal_size()
    except OSError:
        return shutil.get_terminal_size()


class ignore:
    # Don't log recoverable decode problems (unknown load commands, unresolved symbols).
    #  They are still recorded on BinaryObject.warnings.
    MALFORMED = False


class opts:
    DISABLE_COLOR = False
    # Width of one __stubs / __symbol_stub entry, used to synthesize dynamic symbol addresses
    STUB_ENTRY_SIZE = 6
    # CPUType -> stub width, overrides STUB_ENTRY_SIZE for that architecture
    STUB_ENTRY_SIZES: Dict = {}
    # Decode the slices of a fat binary on a thread pool
    PARALLEL_SLICES = False


class QueueItem:
    def __init__(self, func=None, *args):
        self.args = list(args)
        self.func = func


class Queue:
    """
    Runs a batch of calls, optionally on a thread pool, and keeps their results in submission order.

    Exceptions raised by an item propagate out of go(); with multithread on, the first failing item (in
        submission order) wins.
    """

    def __init__(self, multithread=False):
        self.items: List[QueueItem] = []
        self.returns: List = []
        self.multithread = multithread

    def add(self, func, *args):
        self.items.append(QueueItem(func, *args))

    def go(self):
        if self.multithread and len(self.items) > 1:
            with concurrent.futures.ThreadPoolExecutor(max_workers=min(THREAD_COUNT, len(self.items))) as executor:
                futures = [executor.submit(item.func, *item.args) for item in self.items]
            self.returns = [f.result() for f in futures]
        else:
            self.returns = [item.func(*item.args) for item in self.items]
        return self.returns


def highlight_json(text):
    if opts.DISABLE_COLOR:
        return text
    return highlight(text, JsonLexer(), TerminalFormatter())


def report_malformed(msg):
    """
    Log a recoverable decode problem unless ignore.MALFORMED is set
    """
    if not ignore.MALFORMED:
        log.warn(msg)


class Table:
    """
    ASCII Table Renderer

    .titles = a list of titles for each column
    .rows is a list of lists, one string per column, e.g. self.rows.append(['col1thing', 'col2thing'])

    Columns are sized to their widest cell; the last column is clipped to screen_width.
    """

    def __init__(self, column_pad=2):
        self.titles = []
        self.rows = []
        self.column_pad = column_pad

    def column_widths(self):
        widths = [len(title) for title in self.titles]
        for row in self.rows:
            for index, col in enumerate(row):
                widths[index] = max(widths[index], len(strip_ansi(col)))
        return [w + self.column_pad for w in widths]

    def _render_row(self, cols, widths, screen_width):
        line = ' ' + ''.join(col + ' ' * (widths[i] - len(strip_ansi(col))) for i, col in enumerate(cols))
        if len(strip_ansi(line)) > screen_width:
            line = strip_ansi(line)[:screen_width]
        return line.rstrip()

    def fetch_all(self, screen_width):
        """
        Render the whole table for a screen width

        :param screen_width:
        :return:
        """
        if not self.titles:
            return ''

        bold = '' if opts.DISABLE_COLOR else '\33[1m'
        reset = '' if opts.DISABLE_COLOR else '\33[0m'

        widths = self.column_widths()
        lines = [bold + self._render_row(self.titles, widths, screen_width) + reset]
        for row in self.rows:
            lines.append(self._render_row(row, widths, screen_width))
        return '\n'.join(lines) + '\n'


ansi_escape = re.compile(r'(?:\x1B[@-_]|[\x80-\x9F])[0-?]*[ -/]*[@-~]')


def strip_ansi(msg):
    return ansi_escape.sub('', msg)


def machkit_print(msg, file=None):
    file = file or sys.stdout
    if file.isatty():
        print(msg, file=file)
    else:
        print(strip_ansi(msg), file=file)
