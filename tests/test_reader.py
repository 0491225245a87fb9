#
#  machkit | tests
#  test_reader.py
#
#
#
#  This file is part of machkit. machkit is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
import os
import sys
import tempfile
import unittest
from io import BytesIO

scriptdir = os.path.dirname(os.path.realpath(__file__))
sys.path.insert(0, f'{scriptdir}/../src')

from machkit.exceptions import TruncatedInputException
from machkit.reader import Reader, SliceContext
from machkit_macho import symtab_entry, load_command


class ReaderTestCase(unittest.TestCase):
    def test_fixed_width_reads(self):
        reader = Reader(bytes.fromhex('0102030405060708' '090a0b0c0d0e0f10'))
        self.assertEqual(0x01, reader.read_uint8())
        self.assertEqual(0x0302, reader.read_uint16())
        reader.seek(0)
        self.assertEqual(0x04030201, reader.read_uint32())
        self.assertEqual(0x0c0b0a0908070605, reader.read_uint64())
        self.assertEqual(12, reader.tell())

    def test_switch_endianness(self):
        reader = Reader(bytes.fromhex('cafebabe'))
        self.assertEqual(0xBEBAFECA, reader.read_uint32())
        reader.set_little_endian(False)
        reader.seek(0)
        self.assertEqual(0xCAFEBABE, reader.read_uint32())

    def test_short_read_raises_and_keeps_position(self):
        reader = Reader(b'\x01\x02\x03')
        reader.seek(1)
        with self.assertRaises(TruncatedInputException) as context:
            reader.read_uint32()
        self.assertEqual(1, context.exception.offset)
        self.assertEqual(4, context.exception.requested)
        self.assertEqual(2, context.exception.available)
        self.assertEqual(1, reader.tell())
        self.assertEqual(0x0302, reader.read_uint16())

    def test_seek_past_end_fails_on_read(self):
        reader = Reader(b'\x00' * 4)
        reader.seek(100)
        with self.assertRaises(TruncatedInputException):
            reader.read(1)
        with self.assertRaises(TruncatedInputException):
            reader.seek(-1)

    def test_zero_length_read_anywhere(self):
        reader = Reader(b'\x00' * 4)
        reader.seek(4)
        self.assertEqual(b'', reader.read(0))
        reader.seek(0x100000)
        self.assertEqual(b'', reader.read(0))
        self.assertEqual(0x100000, reader.tell())
        with self.assertRaises(TruncatedInputException):
            reader.read(1)

    def test_read_uintptr(self):
        reader = Reader(bytes.fromhex('0000000100000002'))
        self.assertEqual(1, reader.read_uintptr(SliceContext(32, 'big')))
        reader.seek(0)
        self.assertEqual(0x0200000001000000, reader.read_uintptr(SliceContext(64, 'little')))

    def test_read_struct_uses_context(self):
        raw = (5).to_bytes(4, 'big') + b'\x0f\x01' + (7).to_bytes(2, 'big') + (0x1234).to_bytes(4, 'big')
        reader = Reader(b'\xff' * 4 + raw)
        reader.seek(4)
        entry = reader.read_struct(symtab_entry, SliceContext(32, 'big'))
        self.assertEqual(5, entry.str_index)
        self.assertEqual(7, entry.desc)
        self.assertEqual(0x1234, entry.value)
        self.assertEqual(4, entry.off)
        self.assertEqual(16, reader.tell())

        reader.seek(4)
        with self.assertRaises(TruncatedInputException):
            reader.read_struct(symtab_entry, SliceContext(64, 'big'))

    def test_read_struct_default_byte_order(self):
        reader = Reader((0x19).to_bytes(4, 'little') + (72).to_bytes(4, 'little'))
        cmd = reader.read_struct(load_command)
        self.assertEqual(0x19, cmd.cmd)
        self.assertEqual(72, cmd.cmdsize)

    def test_read_cstr(self):
        reader = Reader(b'xx/usr/lib/libSystem.B.dylib\x00\x00\x00\x00abc')
        self.assertEqual('/usr/lib/libSystem.B.dylib', reader.read_cstr(2, 30))
        self.assertEqual('/usr', reader.read_cstr(2, 4))
        with self.assertRaises(TruncatedInputException):
            reader.read_cstr(34, 8)

    def test_clone_has_own_position(self):
        reader = Reader(b'\x01\x00\x00\x00\x02\x00\x00\x00')
        reader.read_uint32()
        clone = reader.clone()
        self.assertEqual(0, clone.tell())
        clone.set_little_endian(False)
        self.assertEqual(0x01000000, clone.read_uint32())
        self.assertEqual(2, reader.read_uint32())

    def test_from_file_sources(self):
        data = b'\xcf\xfa\xed\xfe' + b'\x00' * 12

        self.assertEqual(data, bytes(Reader.from_file(data).data))
        self.assertEqual(data, bytes(Reader.from_file(bytearray(data)).data))
        self.assertEqual(data, bytes(Reader.from_file(memoryview(data)).data))

        fp = BytesIO(data)
        fp.seek(3)
        reader = Reader.from_file(fp)
        self.assertEqual(len(data), reader.size)
        self.assertEqual(0xFEEDFACF, reader.read_uint32())

    def test_from_real_file(self):
        data = b'\xce\xfa\xed\xfe' + bytes(range(60))
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, 'thin')
            with open(path, 'wb') as out:
                out.write(data)

            for use_mmaped_io in (True, False):
                with open(path, 'rb') as fp:
                    reader = Reader.from_file(fp, use_mmaped_io=use_mmaped_io)
                    self.assertEqual('thin', reader.name)
                    self.assertEqual(len(data), reader.size)
                    self.assertEqual(0xFEEDFACE, reader.read_uint32())
                    reader.seek(60)
                    self.assertEqual(bytes(range(56, 60)), reader.read(4))
                    reader.close()

    def test_from_empty_file(self):
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, 'empty')
            open(path, 'wb').close()
            with open(path, 'rb') as fp:
                reader = Reader.from_file(fp)
            self.assertEqual(0, reader.size)
            with self.assertRaises(TruncatedInputException):
                reader.read_uint32()


class SliceContextTestCase(unittest.TestCase):
    def test_widths(self):
        self.assertEqual(4, SliceContext(32, 'little').ptr_size)
        self.assertEqual(8, SliceContext(64, 'big').ptr_size)
        self.assertTrue(SliceContext(64, 'big').is64)
        self.assertEqual(SliceContext(32, 'big'), SliceContext(32, 'big'))
        self.assertNotEqual(SliceContext(32, 'big'), SliceContext(32, 'little'))


if __name__ == '__main__':
    unittest.main()
