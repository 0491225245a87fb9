#
#  machkit | machkit
#  machkit.py
#
#  Outward facing API
#
#  Some of these functions are only one line long, but the point is to standardize an outward facing API that allows
#   internals to be refactored without breaking others' scripts.
#
#  This file is part of machkit. machkit is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#

from typing import List, Union, BinaryIO, Optional, Type

from libkit.log import log
from machkit.exceptions import UnsupportedMagicException
from machkit.format import Format
from machkit.macho import MachO, read_magic
from machkit.model import BinaryObject

# Decoders tried in order by detect_format(); the first whose detect() accepts the input wins.
FORMATS: List[Type[Format]] = [MachO]


def detect_format(fp: Union[BinaryIO, bytes, bytearray, memoryview]) -> Optional[Type[Format]]:
    """
    Find the decoder for a file

    :param fp: File opened with 'rb', or bytes-like. File position is preserved.
    :return: The Format subclass that accepts `fp`, or None
    """
    for file_format in FORMATS:
        if file_format.detect(fp):
            log.debug(f'Detected {file_format.name}')
            return file_format
    return None


def load_binary_objects(fp: Union[BinaryIO, bytes, bytearray, memoryview], parallel=None,
                        use_mmaped_io=True) -> List[BinaryObject]:
    """
    Take a bare file (or bytes) and decode every architecture slice in it.

    File should be opened with 'rb'

    :param fp: BinaryIO object or bytes-like
    :param parallel: Decode the slices of a universal binary concurrently. Defaults to opts.PARALLEL_SLICES
    :param use_mmaped_io: Should a real file be mmaped rather than read into memory? Only disable if your system
                            doesn't support it
    :return: List of BinaryObjects, one per slice
    :raises UnsupportedMagicException: No registered format accepts the input
    :raises TruncatedInputException: The input ended before a complete structure could be read
    """
    file_format = detect_format(fp)
    if file_format is None:
        try:
            magic = read_magic(fp)
        except (OSError, ValueError, AttributeError):
            magic = None
        log.error(f'Unsupported file; magic {hex(magic) if magic is not None else "unreadable"}')
        raise UnsupportedMagicException(magic)

    return file_format.parse(fp, parallel=parallel, use_mmaped_io=use_mmaped_io)


def load_binary_object(fp: Union[BinaryIO, bytes, bytearray, memoryview], slice_index=0, parallel=None,
                       use_mmaped_io=True) -> BinaryObject:
    """
    Decode a file and return one of its slices

    :param fp: BinaryIO object or bytes-like
    :param slice_index: For universal binaries, which slice should be returned?
    :param parallel: See load_binary_objects
    :param use_mmaped_io: See load_binary_objects
    :return:
    """
    return load_binary_objects(fp, parallel=parallel, use_mmaped_io=use_mmaped_io)[slice_index]


def detect(fp) -> bool:
    return MachO.detect(fp)


def parse(fp, parallel=None) -> List[BinaryObject]:
    return MachO.parse(fp, parallel=parallel)
