#
#  machkit | machkit
#  reader.py
#
#  Positionable, endian-switchable reader over an immutable byte buffer.
#
#  This file is part of machkit. machkit is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
import os
from io import BytesIO
from typing import Union, BinaryIO

from libkit.log import log
from libkit.structs import Struct
from machkit.exceptions import TruncatedInputException

mmap = None


class SliceContext:
    """
    Width and byte order of one architecture slice.

    Fixed by the slice's magic and passed to every width-sensitive read in that slice.
    """

    def __init__(self, bits: int, byte_order: str):
        assert bits in (32, 64)
        assert byte_order in ('little', 'big')
        self.bits = bits
        self.byte_order = byte_order

    @property
    def is64(self) -> bool:
        return self.bits == 64

    @property
    def ptr_size(self) -> int:
        return self.bits // 8

    def __eq__(self, other):
        return isinstance(other, SliceContext) and (self.bits, self.byte_order) == (other.bits, other.byte_order)

    def __repr__(self):
        return f'SliceContext({self.bits}, {self.byte_order!r})'


class Reader:
    """
    Every read either returns exactly the requested number of bytes or raises TruncatedInputException;
        the position is left untouched by a failed read.

    Readers never write to their buffer, so several readers (see `clone()`) can share one buffer.
    """

    def __init__(self, data: Union[bytes, bytearray, memoryview], byte_order="little", name=''):
        self.data = data
        self.size = len(data)
        self.position = 0
        self.byte_order = byte_order
        self.name = name
        self._mapping = None

    @classmethod
    def from_file(cls, fp: Union[BinaryIO, BytesIO, bytes, bytearray, memoryview], use_mmaped_io=True) -> 'Reader':
        """
        Wrap a file object or a bytes-like object.

        Real files are mmaped read-only where the platform allows it, everything else is read into memory.

        :param fp: File opened with 'rb', or bytes-like
        :param use_mmaped_io: Try mmap for real files
        :return: Reader positioned at 0, little-endian
        """
        if isinstance(fp, (bytes, bytearray, memoryview)):
            return cls(bytes(fp))

        name = os.path.basename(fp.name) if isinstance(getattr(fp, 'name', None), str) else ''

        if isinstance(fp, BytesIO):
            use_mmaped_io = False

        if use_mmaped_io:
            try:
                global mmap
                import mmap
                mapping = mmap.mmap(fp.fileno(), 0, access=mmap.ACCESS_READ)
                reader = cls(mapping, name=name)
                reader._mapping = mapping
                return reader
            except (AttributeError, OSError, ValueError) as ex:
                # empty files, pipes and file-likes without a descriptor can't be mapped
                log.debug(f'mmap unavailable ({ex}), reading file into memory')

        fp.seek(0)
        return cls(fp.read(), name=name)

    def clone(self) -> 'Reader':
        """
        New reader over the same buffer with its own position and byte order.
        """
        reader = Reader(self.data, self.byte_order, self.name)
        return reader

    def close(self):
        if self._mapping is not None:
            self._mapping.close()
            self._mapping = None

    def set_little_endian(self, little_endian: bool):
        self.byte_order = 'little' if little_endian else 'big'

    def seek(self, offset: int):
        if offset < 0:
            raise TruncatedInputException(offset, 0, self.size)
        self.position = offset

    def tell(self) -> int:
        return self.position

    def read(self, count: int) -> bytes:
        if count < 0:
            raise TruncatedInputException(self.position, count, max(self.size - self.position, 0))
        if count == 0:
            # an empty read can't run out of input, wherever the position is
            return b''
        end = self.position + count
        if end > self.size:
            raise TruncatedInputException(self.position, count, max(self.size - self.position, 0))
        data = bytes(self.data[self.position:end])
        self.position = end
        return data

    def read_int(self, count: int, byte_order=None) -> int:
        return int.from_bytes(self.read(count), byte_order or self.byte_order)

    def read_uint8(self) -> int:
        return self.read_int(1)

    def read_uint16(self) -> int:
        return self.read_int(2)

    def read_uint32(self) -> int:
        return self.read_int(4)

    def read_uint64(self) -> int:
        return self.read_int(8)

    def read_uintptr(self, ctx: SliceContext) -> int:
        return self.read_int(ctx.ptr_size, ctx.byte_order)

    def read_struct(self, struct_type, ctx: SliceContext = None):
        """
        Unpack `struct_type` at the current position and advance past it.

        :param struct_type: Struct subclass
        :param ctx: Slice whose width/byte order apply; the reader's own byte order and 64 bit width otherwise
        :return: struct_type instance with .off set to its file offset
        """
        byte_order = ctx.byte_order if ctx else self.byte_order
        ptr_size = ctx.ptr_size if ctx else 8

        offset = self.position
        data = self.read(struct_type.size(ptr_size=ptr_size))

        struct = Struct.create_with_bytes(struct_type, data, byte_order, ptr_size)
        struct.off = offset

        log.debug_tm(struct)
        return struct

    def read_cstr(self, offset: int, limit: int) -> str:
        """
        String at `offset`, cut at the first NUL or after `limit` bytes, whichever comes first.
        """
        self.seek(offset)
        data = self.read(limit)
        return data.split(b'\x00', 1)[0].decode('utf-8', errors='replace')
