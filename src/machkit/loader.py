#
#  machkit | machkit
#  loader.py
#
#  Decoding of one architecture slice.
#
#  Loading happens in two passes. describe() walks the header and the load commands and reads the raw symbol
#   tables, producing a SliceLayout in which every Section is known by offset and size only. materialize()
#   then reads the section bytes and cross-links the symbol tables, producing the finished BinaryObject.
#
#  This file is part of machkit. machkit is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
from typing import List, Optional, Dict
from uuid import UUID

from libkit.log import log
from machkit_macho import *
from machkit.exceptions import MalformedLoadCommandException, UnsupportedMagicException, DecodeWarning, \
    DecodeWarningType
from machkit.model import BinaryObject, Section, SectionType, SymbolEntry, LinkedLibrary, unpack_os_version, \
    unpack_source_version
from machkit.reader import Reader, SliceContext
from machkit.util import opts, report_malformed

# (segment name, section name) -> (type, label). Sections not listed here are read past and dropped.
SECTION_WHITELIST = {
    ('__TEXT', '__text'): (SectionType.TEXT, 'Program'),
    ('__TEXT', '__symbol_stub'): (SectionType.SYMBOL_STUBS, 'Symbol Stubs'),
    ('__TEXT', '__stubs'): (SectionType.SYMBOL_STUBS, 'Symbol Stubs'),
    ('__TEXT', '__cstring'): (SectionType.CSTRING, 'C-Strings'),
    ('__TEXT', '__objc_methname'): (SectionType.CSTRING, 'ObjC Method Names'),
}

# Size of the indirect symbol table entries
INDIRECT_SYMBOL_SIZE = 4


def decode_cpu_type(value: int) -> CPUType:
    try:
        return CPUType(value)
    except ValueError:
        return CPUType.UNKNOWN


def decode_cpu_subtype(cpu_type: CPUType, value: int):
    family = CPU_SUBTYPES.get(cpu_type)
    if family is None:
        return CPUSubTypeUnknown.UNKNOWN
    try:
        return family(value & ~CPU_SUBTYPE_MASK)
    except ValueError:
        return CPUSubTypeUnknown.UNKNOWN


def decode_file_type(value: int) -> MH_FILETYPE:
    try:
        return MH_FILETYPE(value)
    except ValueError:
        return MH_FILETYPE.UNK


def decode_flags(value: int) -> List[MH_FLAGS]:
    return [flag for flag in MH_FLAGS if value & flag]


def stub_entry_size(cpu_type: CPUType) -> int:
    return opts.STUB_ENTRY_SIZES.get(cpu_type, opts.STUB_ENTRY_SIZE)


class SliceLayout:
    """
    Result of the first loading pass over a slice.

    Sections have no data yet, primary symbols have no names and dynamic symbols are raw indices.
    `metadata` maps BinaryObject attribute names to the values decoded from informational load commands.
    """

    def __init__(self, ctx: SliceContext, offset: int, size: int, header: mach_header):
        self.ctx = ctx
        self.offset = offset
        self.size = size
        self.header = header

        self.cpu_type = decode_cpu_type(header.cpu_type)
        self.cpu_subtype = decode_cpu_subtype(self.cpu_type, header.cpu_subtype)
        self.file_type = decode_file_type(header.filetype)
        self.flags = decode_flags(header.flags)

        self.sections: List[Section] = []
        self.symtab: Optional[symtab_command] = None
        self.dysymtab: Optional[dysymtab_command] = None
        self.symbols: List[SymbolEntry] = []
        self.dynamic_symbols: List[SymbolEntry] = []

        self.metadata: Dict = {
            'linked_libraries': [],
            'dyld_environment': [],
            'rpaths': [],
        }
        self.warnings: List[DecodeWarning] = []

    def add_section(self, section: Section):
        log.debug(f'Registered {section}')
        self.sections.append(section)

    def warn(self, kind: DecodeWarningType, message: str, offset: int = 0):
        report_malformed(message)
        self.warnings.append(DecodeWarning(kind, message, offset))


class SliceLoader:
    """
    Decodes the slice that starts at `offset` in `reader`.

    `size` comes from the fat directory and is informational only; nothing is bounds-checked against it.
    The reader is shared with nothing else while loading, callers wanting concurrency pass a clone.
    """

    def __init__(self, reader: Reader, offset: int = 0, size: int = 0):
        self.reader = reader
        self.offset = offset
        self.size = size

        self._dispatch = {
            LOAD_COMMAND.SEGMENT: self._load_segment,
            LOAD_COMMAND.SEGMENT_64: self._load_segment,
            LOAD_COMMAND.SYMTAB: self._load_symtab,
            LOAD_COMMAND.DYSYMTAB: self._load_dysymtab,
            LOAD_COMMAND.LOAD_DYLIB: self._load_dylib,
            LOAD_COMMAND.ID_DYLIB: self._load_dylib,
            LOAD_COMMAND.LOAD_WEAK_DYLIB: self._load_dylib,
            LOAD_COMMAND.LOAD_DYLINKER: self._load_dylinker,
            LOAD_COMMAND.DYLD_ENVIRONMENT: self._load_dylinker,
            LOAD_COMMAND.UUID: self._load_uuid,
            LOAD_COMMAND.RPATH: self._load_rpath,
            LOAD_COMMAND.VERSION_MIN_MACOSX: self._load_version_min,
            LOAD_COMMAND.SOURCE_VERSION: self._load_source_version,
            LOAD_COMMAND.MAIN: self._load_main,
            LOAD_COMMAND.FUNCTION_STARTS: self._load_linkedit_data,
            LOAD_COMMAND.CODE_SIGNATURE: self._load_linkedit_data,
            LOAD_COMMAND.SEGMENT_SPLIT_INFO: self._load_linkedit_data,
            LOAD_COMMAND.DYLIB_CODE_SIGN_DRS: self._load_linkedit_data,
            LOAD_COMMAND.DYLD_INFO: self._load_consumed,
            LOAD_COMMAND.DYLD_INFO_ONLY: self._load_consumed,
            LOAD_COMMAND.DATA_IN_CODE: self._load_consumed,
            LOAD_COMMAND.THREAD: self._load_thread,
            LOAD_COMMAND.UNIXTHREAD: self._load_thread,
        }

    def load(self) -> BinaryObject:
        return self.materialize(self.describe())

    def describe(self) -> SliceLayout:
        """
        First pass: header, load commands, raw symbol and indirect symbol tables.

        :return: SliceLayout with every Section registered but not yet loaded
        """
        reader = self.reader

        reader.seek(self.offset)
        reader.set_little_endian(True)
        magic = reader.read_uint32()
        if magic not in SINGLE_ARCH_MAGICS:
            raise UnsupportedMagicException(magic)

        bits, byte_order = SINGLE_ARCH_MAGICS[magic]
        ctx = SliceContext(bits, byte_order)
        reader.set_little_endian(byte_order == 'little')

        reader.seek(self.offset)
        header = reader.read_struct(mach_header, ctx)
        header.magic = magic

        layout = SliceLayout(ctx, self.offset, self.size, header)
        log.info(f'Loading {bits} bit {byte_order} endian slice at {hex(self.offset)}: {layout.cpu_type.name} '
                 f'{layout.file_type.name}, {header.loadcnt} load commands')

        cmd_start = reader.tell()
        for _ in range(header.loadcnt):
            reader.seek(cmd_start)
            lc = reader.read_struct(load_command, ctx)
            if lc.cmdsize < load_command.size():
                # a command can't be shorter than its own header; the loop would never advance
                raise MalformedLoadCommandException(cmd_start, lc.cmdsize)

            handler = self._dispatch.get(lc.cmd)
            if handler is None:
                self._unrecognized(layout, lc)
            else:
                reader.seek(cmd_start)
                cmd = reader.read_struct(LOAD_COMMAND_MAP[lc.cmd], ctx)
                log.debug(f'{LOAD_COMMAND(lc.cmd).name} at {hex(cmd_start)}')
                handler(layout, cmd)

            cmd_start += lc.cmdsize

        self._read_symbol_tables(layout)

        return layout

    def materialize(self, layout: SliceLayout) -> BinaryObject:
        """
        Second pass: load every registered Section's bytes, then name the primary symbols from the string table and
            the dynamic symbols from the primary symbols.

        `layout` isn't modified, so it can be materialized more than once.

        :param layout: Output of describe()
        :return: Finished BinaryObject
        """
        reader = self.reader
        reader.set_little_endian(layout.ctx.byte_order == 'little')

        binary = BinaryObject(layout.ctx.bits, layout.ctx.byte_order, layout.offset, layout.size)
        binary.cpu_type = layout.cpu_type
        binary.cpu_subtype = layout.cpu_subtype
        binary.cpu_type_raw = layout.header.cpu_type
        binary.cpu_subtype_raw = layout.header.cpu_subtype
        binary.file_type = layout.file_type
        binary.flags = list(layout.flags)

        for key, value in layout.metadata.items():
            setattr(binary, key, list(value) if isinstance(value, list) else value)

        warnings = list(layout.warnings)

        for section in layout.sections:
            reader.seek(section.offset)
            binary.add_section(section.with_data(reader.read(section.size)))

        for symbol in layout.symbols:
            binary.symbol_table.add_symbol(SymbolEntry(symbol.index, symbol.value, '', symbol.type, symbol.sect,
                                                       symbol.desc))
        for symbol in layout.dynamic_symbols:
            binary.dynamic_symbol_table.add_symbol(SymbolEntry(symbol.index))

        string_table = binary.get_section(SectionType.STRING_TABLE)
        if string_table and len(binary.symbol_table) > 0:
            self._resolve_strings(binary, string_table, warnings)

        stubs = binary.get_section(SectionType.SYMBOL_STUBS)
        if stubs and len(binary.symbol_table) > 0:
            self._resolve_dynamic_symbols(binary, stubs, warnings)

        binary.warnings = warnings
        log.info(f'Loaded {binary}: {len(binary.sections)} sections, {len(binary.symbol_table)} symbols, '
                 f'{len(binary.dynamic_symbol_table)} dynamic symbols')
        return binary

    # Resolution

    @staticmethod
    def _resolve_strings(binary: BinaryObject, string_table: Section, warnings: List[DecodeWarning]):
        data = string_table.data
        for symbol in binary.symbol_table:
            if symbol.index >= len(data):
                message = f'Symbol string index {hex(symbol.index)} is past the end of the string table ' \
                          f'({hex(len(data))} bytes)'
                report_malformed(message)
                warnings.append(DecodeWarning(DecodeWarningType.UNRESOLVED_SYMBOL_REFERENCE, message,
                                              string_table.offset + symbol.index))
                continue
            end = data.find(b'\x00', symbol.index)
            if end == -1:
                end = len(data)
            symbol.name = data[symbol.index:end].decode('utf-8', errors='replace')

    @staticmethod
    def _resolve_dynamic_symbols(binary: BinaryObject, stubs: Section, warnings: List[DecodeWarning]):
        symbols = binary.symbol_table
        entry_size = stub_entry_size(binary.cpu_type)
        for position, symbol in enumerate(binary.dynamic_symbol_table):
            if 0 <= symbol.index < len(symbols):
                symbol.name = symbols[symbol.index].name
                symbol.value = stubs.address + position * entry_size
            else:
                message = f'Dynamic symbol {position} refers to symbol {hex(symbol.index)}, ' \
                          f'outside the {len(symbols)} entry symbol table'
                report_malformed(message)
                warnings.append(DecodeWarning(DecodeWarningType.UNRESOLVED_SYMBOL_REFERENCE, message))

    # Symbol tables

    def _read_symbol_tables(self, layout: SliceLayout):
        reader = self.reader
        ctx = layout.ctx

        if layout.symtab is not None and layout.symtab.nsyms > 0:
            symoff = layout.symtab.symoff
            reader.seek(self.offset + symoff)
            for _ in range(layout.symtab.nsyms):
                entry = reader.read_struct(symtab_entry, ctx)
                layout.symbols.append(SymbolEntry(entry.str_index, entry.value, '', entry.type, entry.sect_index,
                                                  entry.desc))
            size = layout.symtab.nsyms * symtab_entry.size(ptr_size=ctx.ptr_size)
            layout.add_section(Section(SectionType.SYMBOL_TABLE, 'Symbol Table', symoff, size, self.offset + symoff))
            log.debug(f'Read {len(layout.symbols)} symbols')

        if layout.dysymtab is not None and layout.dysymtab.nindirectsyms > 0:
            indirsymoff = layout.dysymtab.indirectsymoff
            reader.seek(self.offset + indirsymoff)
            for _ in range(layout.dysymtab.nindirectsyms):
                layout.dynamic_symbols.append(SymbolEntry(reader.read_int(INDIRECT_SYMBOL_SIZE, ctx.byte_order)))
            size = layout.dysymtab.nindirectsyms * INDIRECT_SYMBOL_SIZE
            layout.add_section(Section(SectionType.DYNAMIC_SYMBOL_TABLE, 'Dynamic Symbol Table', indirsymoff, size,
                                       self.offset + indirsymoff))
            log.debug(f'Read {len(layout.dynamic_symbols)} indirect symbols')

    # Load command handlers

    def _unrecognized(self, layout: SliceLayout, lc: load_command):
        try:
            name = f'LC_{LOAD_COMMAND(lc.cmd).name}'
        except ValueError:
            name = hex(lc.cmd)
        layout.warn(DecodeWarningType.UNRECOGNIZED_LOAD_COMMAND,
                    f'Skipping unrecognized load command {name} ({lc.cmdsize} bytes)', lc.off)

    def _load_consumed(self, layout: SliceLayout, cmd):
        log.debug_more(cmd)

    def _load_segment(self, layout: SliceLayout, cmd: segment_command):
        log.debug(f'Segment {cmd.segname}: {cmd.nsects} sections')
        for _ in range(cmd.nsects):
            sect = self.reader.read_struct(section, layout.ctx)
            whitelisted = SECTION_WHITELIST.get((sect.segname, sect.sectname))
            if whitelisted is None:
                log.debug_more(f'Dropping section {sect.segname},{sect.sectname}')
                continue
            section_type, label = whitelisted
            layout.add_section(Section(section_type, label, sect.addr, sect.size, self.offset + sect.offset))

    def _load_symtab(self, layout: SliceLayout, cmd: symtab_command):
        layout.symtab = cmd
        layout.add_section(Section(SectionType.STRING_TABLE, 'String Table', cmd.stroff, cmd.strsize,
                                   self.offset + cmd.stroff))

    def _load_dysymtab(self, layout: SliceLayout, cmd: dysymtab_command):
        layout.dysymtab = cmd

    def _load_dylib(self, layout: SliceLayout, cmd: dylib_command):
        path = self._read_lc_str(layout, cmd, cmd.dylib.name)
        library = LinkedLibrary(path, LOAD_COMMAND(cmd.cmd), cmd.dylib.timestamp, cmd.dylib.current_version,
                                cmd.dylib.compatibility_version)
        if cmd.cmd == LOAD_COMMAND.ID_DYLIB:
            layout.metadata['id_library'] = library
        else:
            layout.metadata['linked_libraries'].append(library)
        log.debug(f'{library}')

    def _load_dylinker(self, layout: SliceLayout, cmd: dylinker_command):
        path = self._read_lc_str(layout, cmd, cmd.name)
        if cmd.cmd == LOAD_COMMAND.LOAD_DYLINKER:
            layout.metadata['dylinker'] = path
        else:
            layout.metadata['dyld_environment'].append(path)

    def _load_rpath(self, layout: SliceLayout, cmd: rpath_command):
        layout.metadata['rpaths'].append(self._read_lc_str(layout, cmd, cmd.path))

    def _load_uuid(self, layout: SliceLayout, cmd: uuid_command):
        layout.metadata['uuid'] = str(UUID(bytes=cmd.uuid)).upper()

    def _load_version_min(self, layout: SliceLayout, cmd: version_min_command):
        layout.metadata['minos'] = unpack_os_version(cmd.version)
        layout.metadata['sdk_version'] = unpack_os_version(cmd.sdk)

    def _load_source_version(self, layout: SliceLayout, cmd: source_version_command):
        layout.metadata['source_version'] = unpack_source_version(cmd.version)

    def _load_main(self, layout: SliceLayout, cmd: entry_point_command):
        layout.metadata['entry_offset'] = cmd.entryoff
        layout.metadata['stack_size'] = cmd.stacksize

    def _load_linkedit_data(self, layout: SliceLayout, cmd: linkedit_data_command):
        if cmd.cmd == LOAD_COMMAND.FUNCTION_STARTS:
            layout.add_section(Section(SectionType.FUNCTION_STARTS, 'Function Starts', cmd.dataoff, cmd.datasize,
                                       self.offset + cmd.dataoff))
        elif cmd.cmd == LOAD_COMMAND.CODE_SIGNATURE:
            layout.add_section(Section(SectionType.CODE_SIGNATURE, 'Code Signature', cmd.dataoff, cmd.datasize,
                                       self.offset + cmd.dataoff))

    def _load_thread(self, layout: SliceLayout, cmd: thread_command):
        # state is `count` 32-bit words, not flavor * count bytes
        header_size = thread_command.size()
        available = max(cmd.cmdsize - header_size, 0) // 4
        count = cmd.count
        if count > available:
            layout.warn(DecodeWarningType.MALFORMED_LOAD_COMMAND,
                        f'Thread state claims {count} words but the command only holds {available}', cmd.off)
            count = available
        layout.metadata['thread_state'] = [self.reader.read_int(4, layout.ctx.byte_order) for _ in range(count)]

    def _read_lc_str(self, layout: SliceLayout, cmd, str_offset: int) -> str:
        """
        Read the string embedded in a load command, `str_offset` bytes from the command's start.
        """
        if str_offset > cmd.cmdsize:
            layout.warn(DecodeWarningType.MALFORMED_LOAD_COMMAND,
                        f'String offset {hex(str_offset)} lies outside its {cmd.cmdsize} byte load command', cmd.off)
            return ''
        return self.reader.read_cstr(cmd.off + str_offset, cmd.cmdsize - str_offset)
