#
#  machkit | machkit
#  exceptions.py
#
#  Custom Exceptions for internal (and occasionally external) usage
#
#  Only the exception classes are fatal to a decode. Recoverable problems are recorded as DecodeWarning
#   entries on the BinaryObject being built.
#
#  This file is part of machkit. machkit is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
from enum import Enum


class MachODecodeException(Exception):
    """
    Base class for every failure that aborts a parse() call
    """


class TruncatedInputException(MachODecodeException):
    """
    A fixed-width or counted read ran past the end of the input
    """

    def __init__(self, offset: int, requested: int, available: int):
        super().__init__(f'Read of {requested} bytes at {hex(offset)} ran past end of input '
                         f'({available} bytes available)')
        self.offset = offset
        self.requested = requested
        self.available = available


class MalformedLoadCommandException(MachODecodeException):
    """
    A load command is too short to hold its own header, so the command list can't be walked any further
    """

    def __init__(self, offset: int, cmdsize: int):
        super().__init__(f'Load command at {hex(offset)} claims {cmdsize} bytes, less than its 8 byte header')
        self.offset = offset
        self.cmdsize = cmdsize


class UnsupportedMagicException(MachODecodeException):
    """
    The input's leading magic matches none of the recognized container formats
    """

    def __init__(self, magic=None):
        if magic is None:
            super().__init__('Input too short to hold a magic number')
        else:
            super().__init__(f'Bad Magic: {hex(magic)}')
        self.magic = magic


class DecodeWarningType(Enum):
    UNRECOGNIZED_LOAD_COMMAND = 0
    UNRESOLVED_SYMBOL_REFERENCE = 1
    MALFORMED_LOAD_COMMAND = 2


class DecodeWarning:
    """
    A recoverable problem found while decoding one slice.
    """

    def __init__(self, kind: DecodeWarningType, message: str, offset: int = 0):
        self.kind = kind
        self.message = message
        self.offset = offset

    def __eq__(self, other):
        if not isinstance(other, DecodeWarning):
            return False
        return (self.kind, self.message, self.offset) == (other.kind, other.message, other.offset)

    def __repr__(self):
        return f'DecodeWarning({self.kind.name}, {self.message!r}, offset={hex(self.offset)})'

    def serialize(self):
        return {
            'kind': self.kind.name,
            'message': self.message,
            'offset': self.offset
        }
