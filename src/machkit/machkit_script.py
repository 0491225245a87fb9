#
#  machkit | machkit
#  machkit_script.py
#
#  Command line front end, installed as the `machkit` console script
#
#  This file is part of machkit. machkit is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
import argparse
import json
import sys
from typing import List, Tuple

from libkit.log import log, LogLevel, print_err
from machkit.exceptions import MachODecodeException
from machkit.machkit import load_binary_objects
from machkit.model import BinaryObject
from machkit.util import MACHKIT_VERSION, ignore, opts, Table, get_terminal_size, highlight_json, machkit_print

LOG_LEVELS = [LogLevel.ERROR, LogLevel.WARN, LogLevel.INFO, LogLevel.DEBUG, LogLevel.DEBUG_MORE,
              LogLevel.DEBUG_TOO_MUCH]


def _slice_title(index: int, binary: BinaryObject) -> str:
    return f'Slice {index}: {binary.cpu_type.name} ({binary.cpu_subtype.name}), {binary.bits} bit ' \
           f'{binary.byte_order} endian, offset {hex(binary.offset)}'


def _table(titles: List[str], rows: List[List[str]]) -> str:
    table = Table()
    table.titles = titles
    table.rows = rows
    return table.fetch_all(get_terminal_size().columns)


def render_info(binary: BinaryObject) -> str:
    def _version(v):
        return '.'.join(str(i) for i in v) if v else '-'

    rows = [
        ['File Type', binary.file_type.name],
        ['CPU', f'{binary.cpu_type.name} / {binary.cpu_subtype.name}'],
        ['Width', f'{binary.bits} bit'],
        ['Byte Order', binary.byte_order],
        ['Flags', ' '.join(flag.name for flag in binary.flags) or '-'],
        ['UUID', binary.uuid or '-'],
        ['Install Name', binary.id_library.path if binary.id_library else '-'],
        ['Dynamic Linker', binary.dylinker or '-'],
        ['Minimum OS', _version(binary.minos)],
        ['SDK', _version(binary.sdk_version)],
        ['Source Version', _version(binary.source_version)],
        ['Entry Offset', hex(binary.entry_offset) if binary.entry_offset is not None else '-'],
        ['Sections', str(len(binary.sections))],
        ['Symbols', str(len(binary.symbol_table))],
        ['Dynamic Symbols', str(len(binary.dynamic_symbol_table))],
        ['Warnings', str(len(binary.warnings))],
    ]
    return _table(['Property', 'Value'], rows)


def render_sections(binary: BinaryObject) -> str:
    rows = [[section.type.name, section.label, hex(section.address), hex(section.size), hex(section.offset)]
            for section in binary.sections]
    return _table(['Type', 'Label', 'Address', 'Size', 'File Offset'], rows)


def render_symbols(binary: BinaryObject) -> str:
    rows = [[hex(symbol.value), symbol.name, hex(symbol.index)] for symbol in binary.symbol_table]
    return _table(['Value', 'Name', 'String Index'], rows)


def render_dynsyms(binary: BinaryObject) -> str:
    rows = [[hex(symbol.value), symbol.name, str(symbol.index)] for symbol in binary.dynamic_symbol_table]
    return _table(['Stub Address', 'Name', 'Symbol Index'], rows)


def render_libs(binary: BinaryObject) -> str:
    rows = [[library.path, library.kind.name, '.'.join(str(i) for i in library.current_version)]
            for library in binary.linked_libraries]
    return _table(['Path', 'Kind', 'Version'], rows)


# command -> (table renderer, serialized key for --json)
COMMANDS = {
    'info': (render_info, None),
    'sections': (render_sections, 'sections'),
    'symbols': (render_symbols, 'symbols'),
    'dynsyms': (render_dynsyms, 'dynamic_symbols'),
    'libs': (render_libs, 'linked_libraries'),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='machkit', description='Inspect Mach-O and universal binaries.')
    parser.add_argument('--version', action='version', version=f'machkit v{MACHKIT_VERSION}')
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='Increase log verbosity (repeat for more)')
    parser.add_argument('--json', action='store_true', help='Print JSON instead of tables')
    parser.add_argument('--no-color', action='store_true', help='Disable ANSI colors')
    parser.add_argument('--quiet', action='store_true', help="Don't log recoverable decode problems")
    parser.add_argument('--parallel', action='store_true', help='Decode universal binary slices concurrently')
    parser.add_argument('--stub-size', type=int, default=None, help='Symbol stub entry width in bytes')

    subparsers = parser.add_subparsers(dest='command', metavar='command')
    subparsers.required = True

    helps = {
        'info': 'Header and load command summary',
        'sections': 'Registered sections',
        'symbols': 'Symbol table',
        'dynsyms': 'Dynamic (indirect) symbols with their stub addresses',
        'libs': 'Linked libraries',
        'json': 'Everything, as JSON',
    }
    for name, help_text in helps.items():
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument('filename', help='Mach-O or universal binary')
        sub.add_argument('--slice', type=int, default=None, help='Only show this slice')

    return parser


def apply_options(args):
    log.LOG_LEVEL = LOG_LEVELS[min(args.verbose, len(LOG_LEVELS) - 1)]
    if args.no_color:
        opts.DISABLE_COLOR = True
    if args.quiet:
        ignore.MALFORMED = True
    if args.parallel:
        opts.PARALLEL_SLICES = True
    if args.stub_size is not None:
        opts.STUB_ENTRY_SIZE = args.stub_size


def render(command: str, indexed: List[Tuple[int, BinaryObject]], as_json: bool) -> str:
    if command == 'json' or as_json:
        key = None if command == 'json' else COMMANDS[command][1]
        items = []
        for index, binary in indexed:
            data = binary.serialize()
            items.append(data if key is None else {'slice': index, key: data[key]})
        return highlight_json(json.dumps(items, indent=4))

    renderer = COMMANDS[command][0]
    out = []
    for index, binary in indexed:
        out.append(_slice_title(index, binary))
        out.append(renderer(binary))
    return '\n'.join(out)


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    apply_options(args)

    try:
        with open(args.filename, 'rb') as fp:
            binaries = load_binary_objects(fp)
    except OSError as ex:
        print_err(f'machkit: {ex}')
        return 1
    except MachODecodeException as ex:
        print_err(f'machkit: {args.filename}: {ex}')
        return 1

    indexed = list(enumerate(binaries))
    if args.slice is not None:
        if not 0 <= args.slice < len(binaries):
            print_err(f'machkit: {args.filename} has {len(binaries)} slices')
            return 1
        indexed = [indexed[args.slice]]

    machkit_print(render(args.command, indexed, args.json))
    return 0


if __name__ == '__main__':
    sys.exit(main())
