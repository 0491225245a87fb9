#
#  machkit | tests
#  test_structs.py
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
import unittest

scriptdir = os.path.dirname(os.path.realpath(__file__))
sys.path.insert(0, f'{scriptdir}/../src')

from libkit.structs import *
from machkit_macho import mach_header, segment_command, section, symtab_entry, dylib, dylib_command, \
    data_in_code_command, fat_arch, LOAD_COMMAND


class signed_test(Struct):
    FIELDS = {
        'a': int16_t,
        'b': uint16_t,
        'name': char_t[8],
        'blob': bytes_t[4]
    }

    def __init__(self, byte_order="little"):
        super().__init__(byte_order=byte_order)
        self.a = 0
        self.b = 0
        self.name = ''
        self.blob = b''


class StructTestCase(unittest.TestCase):
    def test_sizes_follow_pointer_width(self):
        self.assertEqual(28, mach_header.size(ptr_size=4))
        self.assertEqual(32, mach_header.size(ptr_size=8))
        self.assertEqual(56, segment_command.size(ptr_size=4))
        self.assertEqual(72, segment_command.size(ptr_size=8))
        self.assertEqual(68, section.size(ptr_size=4))
        self.assertEqual(80, section.size(ptr_size=8))
        self.assertEqual(12, symtab_entry.size(ptr_size=4))
        self.assertEqual(16, symtab_entry.size(ptr_size=8))
        self.assertEqual(16, data_in_code_command.size())
        self.assertEqual(20, fat_arch.size())

    def test_size_cache_is_per_width(self):
        # asking for one width first must not poison the other
        self.assertEqual(68, section.size(ptr_size=4))
        self.assertEqual(80, section.size(ptr_size=8))
        self.assertEqual(68, section.size(ptr_size=4))

    def test_unpack_both_byte_orders(self):
        raw = bytes.fromhex('01000000' '02000000')
        little = Struct.create_with_bytes(fat_arch, raw + bytes(12), 'little')
        big = Struct.create_with_bytes(fat_arch, raw + bytes(12), 'big')
        self.assertEqual(1, little.cpu_type)
        self.assertEqual(2, little.cpu_subtype)
        self.assertEqual(0x01000000, big.cpu_type)
        self.assertEqual(0x02000000, big.cpu_subtype)

    def test_pointer_fields(self):
        values = [1, 0xf, 2, 3, 0x100000f30]
        entry = Struct.create_with_values(symtab_entry, values, 'little', ptr_size=8)
        self.assertEqual(16, len(entry.raw))
        unpacked = Struct.create_with_bytes(symtab_entry, entry.raw, 'little', ptr_size=8)
        self.assertEqual(0x100000f30, unpacked.value)

        entry32 = Struct.create_with_values(symtab_entry, [1, 0xf, 2, 3, 0x1f30], 'big', ptr_size=4)
        self.assertEqual(12, len(entry32.raw))
        self.assertEqual(b'\x00\x00\x1f\x30', entry32.raw[8:])

    def test_signed_strings_and_bytes(self):
        raw = (-2).to_bytes(2, 'little', signed=True) + (0xfffe).to_bytes(2, 'little') + b'abc\x00junk' + b'\xde\xad\xbe\xef'
        item = Struct.create_with_bytes(signed_test, raw)
        self.assertEqual(-2, item.a)
        self.assertEqual(0xfffe, item.b)
        self.assertEqual('abc', item.name)
        self.assertEqual(b'\xde\xad\xbe\xef', item.blob)

        packed = Struct.create_with_values(signed_test, [-2, 0xfffe, 'abc', b'\xde\xad\xbe\xef']).raw
        self.assertEqual(raw[:4], packed[:4])
        self.assertEqual(b'abc\x00\x00\x00\x00\x00', packed[4:12])

    def test_nested_struct(self):
        lib = Struct.create_with_values(dylib, [24, 2, 0x10203, 0x10000], 'big')
        cmd = Struct.create_with_values(dylib_command, [LOAD_COMMAND.LOAD_DYLIB, 48, lib], 'big')
        self.assertEqual(24, len(cmd.raw))

        unpacked = Struct.create_with_bytes(dylib_command, cmd.raw, 'big')
        self.assertEqual(LOAD_COMMAND.LOAD_DYLIB, unpacked.cmd)
        self.assertEqual(0x10203, unpacked.dylib.current_version)
        self.assertEqual(unpacked, cmd)

    def test_serialize(self):
        item = Struct.create_with_values(signed_test, [1, 2, 'x', b'\x01\x02\x03\x04'])
        self.assertEqual({'type': 'signed_test', 'a': 1, 'b': 2, 'name': 'x', 'blob': '01020304'}, item.serialize())

    def test_bare_struct_refused(self):
        with self.assertRaises(AssertionError):
            Struct()


if __name__ == '__main__':
    unittest.main()
