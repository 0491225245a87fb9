#
#  machkit | machkit
#  macho.py
#
#  Mach-O container decoding: magic detection and fan-out of universal ("fat") binaries into slices.
#
#  This file is part of machkit. machkit is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#

from typing import List, Tuple, Union, BinaryIO

from libkit.log import log
from machkit_macho import FAT_MAGICS, SINGLE_ARCH_MAGICS, fat_header, fat_arch
from machkit.exceptions import UnsupportedMagicException
from machkit.format import Format
from machkit.loader import SliceLoader
from machkit.model import BinaryObject
from machkit.reader import Reader
from machkit.util import opts, Queue


def read_magic(fp) -> Union[int, None]:
    """
    First four bytes of `fp` as a little-endian int, or None if there aren't four.

    File objects are left at the position they were in.
    """
    if isinstance(fp, (bytes, bytearray, memoryview)):
        head = bytes(fp[:4])
    else:
        position = fp.tell()
        try:
            fp.seek(0)
            head = fp.read(4)
        finally:
            fp.seek(position)

    if len(head) < 4:
        return None
    return int.from_bytes(head, 'little')


class MachO(Format):
    """
    Mach-O executables, libraries and objects, thin or universal.
    """

    name = 'Mach-O'

    @classmethod
    def detect(cls, fp) -> bool:
        try:
            magic = read_magic(fp)
        except (OSError, ValueError, AttributeError) as ex:
            log.debug(f'Could not read magic: {ex}')
            return False
        return magic is not None and (magic in SINGLE_ARCH_MAGICS or magic in FAT_MAGICS)

    @classmethod
    def parse(cls, fp: Union[BinaryIO, bytes, bytearray, memoryview], parallel=None,
              use_mmaped_io=True) -> List[BinaryObject]:
        """
        Decode every slice in `fp`.

        :param fp: File opened with 'rb', or bytes-like
        :param parallel: Decode fat slices on a thread pool; defaults to opts.PARALLEL_SLICES
        :param use_mmaped_io: Map real files instead of reading them into memory
        :return: One BinaryObject per slice, in directory order
        :raises TruncatedInputException: A read ran past the end of the input. Nothing is returned.
        :raises MalformedLoadCommandException: A load command is shorter than its own header
        :raises UnsupportedMagicException: The input (or one of its slices) isn't a Mach-O
        """
        reader = Reader.from_file(fp, use_mmaped_io=use_mmaped_io)
        try:
            return cls.decode(reader, parallel=parallel)
        finally:
            reader.close()

    @classmethod
    def decode(cls, reader: Reader, parallel=None) -> List[BinaryObject]:
        if parallel is None:
            parallel = opts.PARALLEL_SLICES

        if reader.size < 4:
            log.error('Input too short to hold a magic number')
            raise UnsupportedMagicException()

        reader.seek(0)
        reader.set_little_endian(True)
        magic = reader.read_uint32()

        if magic in FAT_MAGICS:
            regions = cls.read_fat_directory(reader)
        elif magic in SINGLE_ARCH_MAGICS:
            regions = [(0, reader.size)]
        else:
            log.error(f'Bad Magic: {hex(magic)}')
            raise UnsupportedMagicException(magic)

        queue = Queue(multithread=parallel)
        for offset, size in regions:
            # each slice gets its own reader position/byte order, over the same buffer
            queue.add(cls.load_slice, reader.clone() if parallel else reader, offset, size)

        return queue.go()

    @staticmethod
    def read_fat_directory(reader: Reader) -> List[Tuple[int, int]]:
        """
        (offset, size) of every slice listed in the fat header. The per-arch cpu fields are ignored.
        """
        reader.set_little_endian(False)
        reader.seek(0)
        header: fat_header = reader.read_struct(fat_header)
        log.info(f'Universal binary with {header.nfat_archs} slices')

        regions = []
        for _ in range(header.nfat_archs):
            arch: fat_arch = reader.read_struct(fat_arch)
            log.debug_more(arch)
            regions.append((arch.offset, arch.size))
        return regions

    @staticmethod
    def load_slice(reader: Reader, offset: int, size: int) -> BinaryObject:
        return SliceLoader(reader, offset, size).load()
