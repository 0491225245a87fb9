#
#  machkit | tests
#  test_cli.py
#
#
#
#  This file is part of machkit. machkit is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
import json
import os
import sys
import tempfile
import unittest
from contextlib import redirect_stdout, redirect_stderr
from io import StringIO

scriptdir = os.path.dirname(os.path.realpath(__file__))
sys.path.insert(0, f'{scriptdir}/../src')

from builder import SliceBuilder, build_fat

from libkit.log import log
from machkit.machkit_script import main
from machkit.util import opts, ignore
from machkit_macho import CPUType, LOAD_COMMAND


def sample_slice() -> bytes:
    builder = SliceBuilder()
    builder.add_segment('__TEXT', [('__TEXT', '__text', 0x100000f00, b'\x90' * 8),
                                   ('__TEXT', '__stubs', 0x1000, b'\xcc' * 12)])
    builder.add_dylib('/usr/lib/libSystem.B.dylib', current_version=0x04C80403)
    builder.add_dylib('/usr/lib/libobjc.A.dylib', cmd=LOAD_COMMAND.LOAD_WEAK_DYLIB)
    builder.add_uuid(bytes.fromhex('a1b2c3d4e5f60718293a4b5c6d7e8f90'))
    builder.add_symtab([(0, 0x100000f00), (6, 0)], b'_main\x00_puts\x00')
    builder.add_dysymtab([1, 0])
    return builder.build()


class CLITestCase(unittest.TestCase):
    def setUp(self):
        self.directory = tempfile.TemporaryDirectory()
        self.thin = self.write('thin', sample_slice())
        ppc = SliceBuilder(bits=32, byte_order='big', cpu_type=CPUType.POWERPC, cpu_subtype=0)
        self.fat = self.write('fat', build_fat([sample_slice(), ppc.build()])[0])

        self.old_level = log.LOG_LEVEL
        self.old_opts = (opts.DISABLE_COLOR, opts.PARALLEL_SLICES, opts.STUB_ENTRY_SIZE)

    def tearDown(self):
        self.directory.cleanup()
        log.LOG_LEVEL = self.old_level
        opts.DISABLE_COLOR, opts.PARALLEL_SLICES, opts.STUB_ENTRY_SIZE = self.old_opts
        ignore.MALFORMED = False

    def write(self, name, data):
        path = os.path.join(self.directory.name, name)
        with open(path, 'wb') as out:
            out.write(data)
        return path

    def run_main(self, *argv):
        out, err = StringIO(), StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            status = main(list(argv))
        return status, out.getvalue(), err.getvalue()

    def test_info(self):
        status, out, _ = self.run_main('--no-color', 'info', self.thin)
        self.assertEqual(0, status)
        self.assertIn('Slice 0: X86_64', out)
        self.assertIn('A1B2C3D4-E5F6-0718-293A-4B5C6D7E8F90', out)
        self.assertIn('EXECUTE', out)

    def test_tables(self):
        _, out, _ = self.run_main('--no-color', 'sections', self.thin)
        self.assertIn('Symbol Stubs', out)
        self.assertIn('0x100000f00', out)

        _, out, _ = self.run_main('--no-color', 'symbols', self.thin)
        self.assertIn('_main', out)
        self.assertIn('_puts', out)

        _, out, _ = self.run_main('--no-color', 'libs', self.thin)
        self.assertIn('/usr/lib/libSystem.B.dylib', out)
        self.assertIn('1224.4.3', out)
        self.assertIn('LOAD_WEAK_DYLIB', out)

    def test_dynsyms_and_stub_size(self):
        _, out, _ = self.run_main('--no-color', 'dynsyms', self.thin)
        self.assertIn('0x1006', out)

        _, out, _ = self.run_main('--no-color', '--stub-size', '8', 'dynsyms', self.thin)
        self.assertIn('0x1008', out)

    def test_json(self):
        status, out, _ = self.run_main('--json', '--no-color', 'dynsyms', self.thin)
        self.assertEqual(0, status)
        items = json.loads(out)
        self.assertEqual(1, len(items))
        self.assertEqual(0, items[0]['slice'])
        self.assertEqual(['_puts', '_main'], [s['name'] for s in items[0]['dynamic_symbols']])
        self.assertEqual([0x1000, 0x1006], [s['value'] for s in items[0]['dynamic_symbols']])

        _, out, _ = self.run_main('--no-color', 'json', self.fat)
        items = json.loads(out)
        self.assertEqual(['X86_64', 'POWERPC'], [item['cpu_type'] for item in items])
        self.assertEqual(32, items[1]['bits'])
        self.assertEqual('big', items[1]['byte_order'])

    def test_slice_selection(self):
        status, out, _ = self.run_main('--no-color', 'info', '--slice', '1', self.fat)
        self.assertEqual(0, status)
        self.assertIn('Slice 1: POWERPC', out)
        self.assertNotIn('Slice 0', out)

        status, _, err = self.run_main('info', '--slice', '5', self.fat)
        self.assertEqual(1, status)
        self.assertIn('2 slices', err)

    def test_parallel(self):
        _, sequential, _ = self.run_main('--no-color', 'json', self.fat)
        _, parallel, _ = self.run_main('--no-color', '--parallel', 'json', self.fat)
        self.assertEqual(json.loads(sequential), json.loads(parallel))

    def test_bad_input(self):
        elf = self.write('elf', b'\x7fELF' + b'\x00' * 60)
        status, out, err = self.run_main('info', elf)
        self.assertEqual(1, status)
        self.assertEqual('', out)
        self.assertIn('0x464c457f', err)

        truncated = self.write('truncated', sample_slice()[:100])
        status, _, err = self.run_main('info', truncated)
        self.assertEqual(1, status)
        self.assertIn('ran past end of input', err)

        status, _, err = self.run_main('info', os.path.join(self.directory.name, 'missing'))
        self.assertEqual(1, status)
        self.assertIn('machkit:', err)

    def test_version(self):
        with redirect_stdout(StringIO()) as out:
            with self.assertRaises(SystemExit) as context:
                main(['--version'])
        self.assertEqual(0, context.exception.code)
        self.assertIn('machkit v', out.getvalue())


if __name__ == '__main__':
    unittest.main()
