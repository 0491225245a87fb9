#
#  machkit | machkit
#  model.py
#
#  Decoded representation of one architecture slice: sections, symbol tables and header metadata.
#
#  This file is part of machkit. machkit is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
from collections import namedtuple
from enum import Enum, IntEnum
from typing import List, Dict, Optional, Tuple

from machkit_macho import CPUType, CPUSubTypeUnknown, MH_FILETYPE, MH_FLAGS
from machkit.exceptions import DecodeWarning

os_version = namedtuple("os_version", ["x", "y", "z"])


def unpack_os_version(value: int) -> os_version:
    """ X.Y.Z packed as xxxx.yy.zz nibbles """
    return os_version(x=(value >> 16) & 0xFFFF, y=(value >> 8) & 0xFF, z=value & 0xFF)


def unpack_source_version(value: int) -> Tuple[int, int, int, int, int]:
    """ A.B.C.D.E packed as a24.b10.c10.d10.e10 """
    return ((value >> 40) & 0xFFFFFF, (value >> 30) & 0x3FF, (value >> 20) & 0x3FF,
            (value >> 10) & 0x3FF, value & 0x3FF)


class SectionType(Enum):
    TEXT = 0
    SYMBOL_STUBS = 1
    CSTRING = 2
    STRING_TABLE = 3
    SYMBOL_TABLE = 4
    DYNAMIC_SYMBOL_TABLE = 5
    FUNCTION_STARTS = 6
    CODE_SIGNATURE = 7


class Section:
    """
    A typed byte range of the input.

    `offset` is relative to the start of the whole input, so sections of a fat slice already include the
        slice's offset. `data` stays empty until the materialize pass fills it.
    """

    def __init__(self, type: SectionType, label: str, address: int, size: int, offset: int, data: bytes = b''):
        self.type = type
        self.label = label
        self.address = address
        self.size = size
        self.offset = offset
        self.data = data

    def with_data(self, data: bytes) -> 'Section':
        return Section(self.type, self.label, self.address, self.size, self.offset, data)

    def __eq__(self, other):
        if not isinstance(other, Section):
            return False
        return (self.type, self.label, self.address, self.size, self.offset, self.data) == \
               (other.type, other.label, other.address, other.size, other.offset, other.data)

    def __repr__(self):
        return f'Section({self.type.name}, {self.label!r}, address={hex(self.address)}, size={hex(self.size)}, ' \
               f'offset={hex(self.offset)})'

    def serialize(self):
        return {
            'type': self.type.name,
            'label': self.label,
            'address': self.address,
            'size': self.size,
            'offset': self.offset
        }


class SymbolEntry:
    """
    One symbol.

    Primary entries come straight from the nlist table; `index` is their string-table offset.
    Dynamic entries come from the indirect symbol table; `index` is a position in the primary table, and
        `name`/`value` stay empty until resolution gives them the primary symbol's name and a stub address.
    """

    def __init__(self, index=0, value=0, name='', type=0, sect=0, desc=0):
        self.index = index
        self.value = value
        self.name = name
        self.type = type
        self.sect = sect
        self.desc = desc

    @property
    def address(self) -> int:
        return self.value

    def __eq__(self, other):
        if not isinstance(other, SymbolEntry):
            return False
        return (self.index, self.value, self.name, self.type, self.sect, self.desc) == \
               (other.index, other.value, other.name, other.type, other.sect, other.desc)

    def __repr__(self):
        return f'SymbolEntry({self.name!r}, index={self.index}, value={hex(self.value)})'

    def serialize(self):
        return {
            'name': self.name,
            'index': self.index,
            'value': self.value,
            'type': self.type,
            'sect': self.sect,
            'desc': self.desc
        }


class SymbolTable:
    """
    Ordered symbol entries in input order. Duplicates are kept.
    """

    def __init__(self, symbols: List[SymbolEntry] = None):
        self.table: List[SymbolEntry] = list(symbols) if symbols else []

    def add_symbol(self, symbol: SymbolEntry):
        self.table.append(symbol)

    def lookup(self, name: str) -> Optional[SymbolEntry]:
        for symbol in self.table:
            if symbol.name == name:
                return symbol
        return None

    def __len__(self):
        return len(self.table)

    def __iter__(self):
        return iter(self.table)

    def __getitem__(self, item):
        return self.table[item]

    def __bool__(self):
        return len(self.table) > 0

    def __eq__(self, other):
        return isinstance(other, SymbolTable) and self.table == other.table

    def serialize(self):
        return [symbol.serialize() for symbol in self.table]


class LinkedLibrary:
    """
    A dylib named by LC_LOAD_DYLIB, LC_LOAD_WEAK_DYLIB or LC_ID_DYLIB. Only the declared path is recorded.
    """

    def __init__(self, path: str, kind: IntEnum, timestamp=0, current_version=0, compatibility_version=0):
        self.path = path
        self.kind = kind
        self.timestamp = timestamp
        self.current_version = unpack_os_version(current_version)
        self.compatibility_version = unpack_os_version(compatibility_version)

    @property
    def weak(self) -> bool:
        return self.kind.name == 'LOAD_WEAK_DYLIB'

    def __eq__(self, other):
        return isinstance(other, LinkedLibrary) and self.serialize() == other.serialize()

    def __repr__(self):
        return f'LinkedLibrary({self.path!r}, {self.kind.name})'

    def serialize(self):
        return {
            'path': self.path,
            'kind': self.kind.name,
            'timestamp': self.timestamp,
            'current_version': '.'.join(str(i) for i in self.current_version),
            'compatibility_version': '.'.join(str(i) for i in self.compatibility_version)
        }


class BinaryObject:
    """
    One decoded architecture slice.

    bits and byte_order are fixed at construction from the slice's magic. Everything else is filled in by
        the slice loader before the object is handed out; callers should treat it as read-only.
    """

    def __init__(self, bits: int, byte_order: str, offset: int = 0, size: int = 0):
        self._bits = bits
        self._byte_order = byte_order

        self.offset = offset
        self.size = size

        self.cpu_type: IntEnum = CPUType.UNKNOWN
        self.cpu_subtype: IntEnum = CPUSubTypeUnknown.UNKNOWN
        self.cpu_type_raw = 0
        self.cpu_subtype_raw = 0
        self.file_type: MH_FILETYPE = MH_FILETYPE.UNK
        self.flags: List[MH_FLAGS] = []

        self._sections: List[Section] = []
        self._sections_by_type: Dict[SectionType, List[Section]] = {}

        self.symbol_table = SymbolTable()
        self.dynamic_symbol_table = SymbolTable()

        self.uuid: Optional[str] = None
        self.linked_libraries: List[LinkedLibrary] = []
        self.id_library: Optional[LinkedLibrary] = None
        self.dylinker: Optional[str] = None
        self.dyld_environment: List[str] = []
        self.rpaths: List[str] = []
        self.minos: Optional[os_version] = None
        self.sdk_version: Optional[os_version] = None
        self.source_version: Optional[Tuple[int, int, int, int, int]] = None
        self.entry_offset: Optional[int] = None
        self.stack_size = 0
        self.thread_state: List[int] = []

        self.warnings: List[DecodeWarning] = []

    @property
    def bits(self) -> int:
        return self._bits

    @property
    def byte_order(self) -> str:
        return self._byte_order

    @property
    def is64(self) -> bool:
        return self._bits == 64

    @property
    def little_endian(self) -> bool:
        return self._byte_order == 'little'

    @property
    def sections(self) -> Tuple[Section, ...]:
        return tuple(self._sections)

    def add_section(self, section: Section):
        self._sections.append(section)
        self._sections_by_type.setdefault(section.type, []).append(section)

    def get_section(self, section_type: SectionType) -> Optional[Section]:
        """
        First registered section of `section_type`, or None
        """
        sections = self._sections_by_type.get(section_type)
        return sections[0] if sections else None

    def get_sections(self, section_type: SectionType) -> List[Section]:
        return list(self._sections_by_type.get(section_type, []))

    def __eq__(self, other):
        if not isinstance(other, BinaryObject):
            return False
        return self.serialize(include_data=True) == other.serialize(include_data=True)

    def __repr__(self):
        return f'BinaryObject({self.cpu_type.name}, {self.bits} bit, {self.byte_order}, {self.file_type.name})'

    def serialize(self, include_data=False):
        sections = []
        for section in self._sections:
            item = section.serialize()
            if include_data:
                item['data'] = section.data.hex()
            sections.append(item)

        return {
            'bits': self.bits,
            'byte_order': self.byte_order,
            'offset': self.offset,
            'size': self.size,
            'cpu_type': self.cpu_type.name,
            'cpu_subtype': self.cpu_subtype.name,
            'file_type': self.file_type.name,
            'flags': [flag.name for flag in self.flags],
            'uuid': self.uuid,
            'sections': sections,
            'symbols': self.symbol_table.serialize(),
            'dynamic_symbols': self.dynamic_symbol_table.serialize(),
            'linked_libraries': [library.serialize() for library in self.linked_libraries],
            'id_library': self.id_library.serialize() if self.id_library else None,
            'dylinker': self.dylinker,
            'dyld_environment': list(self.dyld_environment),
            'rpaths': list(self.rpaths),
            'minos': '.'.join(str(i) for i in self.minos) if self.minos else None,
            'sdk_version': '.'.join(str(i) for i in self.sdk_version) if self.sdk_version else None,
            'source_version': '.'.join(str(i) for i in self.source_version) if self.source_version else None,
            'entry_offset': self.entry_offset,
            'thread_state': list(self.thread_state),
            'stack_size': self.stack_size,
            'warnings': [warning.serialize() for warning in self.warnings]
        }
