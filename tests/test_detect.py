#
#  machkit | tests
#  test_detect.py
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
from io import BytesIO

scriptdir = os.path.dirname(os.path.realpath(__file__))
sys.path.insert(0, f'{scriptdir}/../src')

import machkit
from machkit.macho import MachO

RECOGNIZED = [0xFEEDFACE, 0xFEEDFACF, 0xECAFDEEF, 0xFCAFDEEF, 0xCAFEBABE, 0xBEBAFECA]


def magic(value: int) -> bytes:
    return value.to_bytes(4, 'little')


class DetectTestCase(unittest.TestCase):
    def test_recognized_magics(self):
        for value in RECOGNIZED:
            with self.subTest(magic=hex(value)):
                self.assertTrue(MachO.detect(magic(value)))
                self.assertTrue(MachO.detect(BytesIO(magic(value))))

    def test_other_magics(self):
        others = [0, 0xFFFFFFFF, 0xDEADBEEF, 0x464C457F, 0xCEFAEDFE, 0xCFFAEDFE, 0xFEEDFACD, 0xCAFEBABF]
        for value in others:
            with self.subTest(magic=hex(value)):
                self.assertFalse(MachO.detect(magic(value)))

    def test_short_input(self):
        for length in range(4):
            with self.subTest(length=length):
                self.assertFalse(MachO.detect(magic(0xFEEDFACF)[:length]))
                self.assertFalse(MachO.detect(BytesIO(magic(0xFEEDFACF)[:length])))

    def test_only_first_four_bytes_matter(self):
        self.assertTrue(MachO.detect(magic(0xFEEDFACF) + b'\x00' * 100))
        self.assertFalse(MachO.detect(b'\x00' + magic(0xFEEDFACF)))

    def test_position_restored(self):
        fp = BytesIO(magic(0xCAFEBABE) + b'\x00' * 8)
        fp.seek(6)
        self.assertTrue(MachO.detect(fp))
        self.assertEqual(6, fp.tell())

    def test_unreadable_stream(self):
        fp = BytesIO(magic(0xFEEDFACF))
        fp.close()
        self.assertFalse(MachO.detect(fp))

    def test_detect_format(self):
        self.assertIs(MachO, machkit.detect_format(magic(0xFEEDFACE)))
        self.assertIsNone(machkit.detect_format(b'\x7fELF'))
        self.assertTrue(machkit.detect(magic(0xBEBAFECA)))


if __name__ == '__main__':
    unittest.main()
