#
#  machkit | machkit_macho
#  structs.py
#
#  the __init__ defs here are unnecessary and only required for IDEs to recognize and autocomplete
#   the struct attributes
#
#  Records whose layout differs between 32 and 64 bit slices only in pointer-width fields are declared once,
#   with `uintptr_t` / `pad_for_64_bit_only`, and unpacked with the slice's ptr_size.
#
#  This file is part of machkit. machkit is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#
from libkit.structs import *
from machkit_macho.mach_header import LOAD_COMMAND


class fat_header(Struct):
    """
    First 8 Bytes of a FAT MachO File

    Attributes:
        self.magic: FAT MachO Magic

        self.nfat_archs: Number of Fat Arch entries after these bytes
    """
    FIELDS = {
        'magic': uint32_t,
        'nfat_archs': uint32_t
    }

    def __init__(self, byte_order="big"):
        super().__init__(byte_order=byte_order)
        self.magic = 0
        self.nfat_archs = 0


class fat_arch(Struct):
    """
    Struct representing a slice in a FAT MachO

    cpu_type/cpu_subtype here are informational only; each slice's own header is authoritative.
    """
    FIELDS = {
        'cpu_type': uint32_t,
        'cpu_subtype': uint32_t,
        'offset': uint32_t,
        'size': uint32_t,
        'align': uint32_t
    }

    def __init__(self, byte_order="big"):
        super().__init__(byte_order=byte_order)
        self.cpu_type = 0
        self.cpu_subtype = 0
        self.offset = 0
        self.size = 0
        self.align = 0


class mach_header(Struct):
    """
    mach_header / mach_header_64. The trailing reserved word only exists in 64 bit slices.
    """
    FIELDS = {
        'magic': uint32_t,
        'cpu_type': int32_t,
        'cpu_subtype': uint32_t,
        'filetype': uint32_t,
        'loadcnt': uint32_t,
        'loadsize': uint32_t,
        'flags': uint32_t,
        'reserved': pad_for_64_bit_only(4)
    }

    def __init__(self, byte_order="little"):
        super().__init__(byte_order=byte_order)
        self.magic = 0
        self.cpu_type = 0
        self.cpu_subtype = 0
        self.filetype = 0
        self.loadcnt = 0
        self.loadsize = 0
        self.flags = 0
        self.reserved = 0


class load_command(Struct):
    FIELDS = {
        'cmd': uint32_t,
        'cmdsize': uint32_t
    }

    def __init__(self, byte_order="little"):
        super().__init__(byte_order=byte_order)
        self.cmd = 0
        self.cmdsize = 0


class segment_command(Struct):
    """
    LC_SEGMENT / LC_SEGMENT_64
    """
    FIELDS = {
        'cmd': uint32_t,
        'cmdsize': uint32_t,
        'segname': char_t[16],
        'vmaddr': uintptr_t,
        'vmsize': uintptr_t,
        'fileoff': uintptr_t,
        'filesize': uintptr_t,
        'maxprot': uint32_t,
        'initprot': uint32_t,
        'nsects': uint32_t,
        'flags': uint32_t
    }

    def __init__(self, byte_order="little"):
        super().__init__(byte_order=byte_order)
        self.cmd = 0
        self.cmdsize = 0
        self.segname = ''
        self.vmaddr = 0
        self.vmsize = 0
        self.fileoff = 0
        self.filesize = 0
        self.maxprot = 0
        self.initprot = 0
        self.nsects = 0
        self.flags = 0


class section(Struct):
    """
    section / section_64
    """
    FIELDS = {
        'sectname': char_t[16],
        'segname': char_t[16],
        'addr': uintptr_t,
        'size': uintptr_t,
        'offset': uint32_t,
        'align': uint32_t,
        'reloff': uint32_t,
        'nreloc': uint32_t,
        'flags': uint32_t,
        'reserved1': uint32_t,
        'reserved2': uint32_t,
        'reserved3': pad_for_64_bit_only(4)
    }

    def __init__(self, byte_order="little"):
        super().__init__(byte_order=byte_order)
        self.sectname = ''
        self.segname = ''
        self.addr = 0
        self.size = 0
        self.offset = 0
        self.align = 0
        self.reloff = 0
        self.nreloc = 0
        self.flags = 0
        self.reserved1 = 0
        self.reserved2 = 0
        self.reserved3 = 0


class symtab_command(Struct):
    FIELDS = {
        'cmd': uint32_t,
        'cmdsize': uint32_t,
        'symoff': uint32_t,
        'nsyms': uint32_t,
        'stroff': uint32_t,
        'strsize': uint32_t
    }

    def __init__(self, byte_order="little"):
        super().__init__(byte_order=byte_order)
        self.cmd = 0
        self.cmdsize = 0
        self.symoff = 0
        self.nsyms = 0
        self.stroff = 0
        self.strsize = 0


class dysymtab_command(Struct):
    FIELDS = {
        'cmd': uint32_t,
        'cmdsize': uint32_t,
        'ilocalsym': uint32_t,
        'nlocalsym': uint32_t,
        'iextdefsym': uint32_t,
        'nextdefsym': uint32_t,
        'iundefsym': uint32_t,
        'nundefsym': uint32_t,
        'tocoff': uint32_t,
        'ntoc': uint32_t,
        'modtaboff': uint32_t,
        'nmodtab': uint32_t,
        'extrefsymoff': uint32_t,
        'nextrefsyms': uint32_t,
        'indirectsymoff': uint32_t,
        'nindirectsyms': uint32_t,
        'extreloff': uint32_t,
        'nextrel': uint32_t,
        'locreloff': uint32_t,
        'nlocrel': uint32_t
    }

    def __init__(self, byte_order="little"):
        super().__init__(byte_order=byte_order)
        self.cmd = 0
        self.cmdsize = 0
        self.ilocalsym = 0
        self.nlocalsym = 0
        self.iextdefsym = 0
        self.nextdefsym = 0
        self.iundefsym = 0
        self.nundefsym = 0
        self.tocoff = 0
        self.ntoc = 0
        self.modtaboff = 0
        self.nmodtab = 0
        self.extrefsymoff = 0
        self.nextrefsyms = 0
        self.indirectsymoff = 0
        self.nindirectsyms = 0
        self.extreloff = 0
        self.nextrel = 0
        self.locreloff = 0
        self.nlocrel = 0


class dylib(Struct):
    FIELDS = {
        'name': uint32_t,
        'timestamp': uint32_t,
        'current_version': uint32_t,
        'compatibility_version': uint32_t
    }

    def __init__(self, byte_order="little"):
        super().__init__(byte_order=byte_order)
        self.name = 0
        self.timestamp = 0
        self.current_version = 0
        self.compatibility_version = 0


class dylib_command(Struct):
    FIELDS = {
        'cmd': uint32_t,
        'cmdsize': uint32_t,
        'dylib': dylib
    }

    def __init__(self, byte_order="little"):
        super().__init__(byte_order=byte_order)
        self.cmd = 0
        self.cmdsize = 0
        self.dylib = None


class dylinker_command(Struct):
    """
    LC_LOAD_DYLINKER / LC_ID_DYLINKER / LC_DYLD_ENVIRONMENT
    """
    FIELDS = {
        'cmd': uint32_t,
        'cmdsize': uint32_t,
        'name': uint32_t
    }

    def __init__(self, byte_order="little"):
        super().__init__(byte_order=byte_order)
        self.cmd = 0
        self.cmdsize = 0
        self.name = 0


class rpath_command(Struct):
    FIELDS = {
        'cmd': uint32_t,
        'cmdsize': uint32_t,
        'path': uint32_t
    }

    def __init__(self, byte_order="little"):
        super().__init__(byte_order=byte_order)
        self.cmd = 0
        self.cmdsize = 0
        self.path = 0


class uuid_command(Struct):
    FIELDS = {
        'cmd': uint32_t,
        'cmdsize': uint32_t,
        'uuid': bytes_t[16]
    }

    def __init__(self, byte_order="little"):
        super().__init__(byte_order=byte_order)
        self.cmd = 0
        self.cmdsize = 0
        self.uuid = b''


class version_min_command(Struct):
    FIELDS = {
        'cmd': uint32_t,
        'cmdsize': uint32_t,
        'version': uint32_t,
        'sdk': uint32_t
    }

    def __init__(self, byte_order="little"):
        super().__init__(byte_order=byte_order)
        self.cmd = 0
        self.cmdsize = 0
        self.version = 0
        self.sdk = 0


class source_version_command(Struct):
    FIELDS = {
        'cmd': uint32_t,
        'cmdsize': uint32_t,
        'version': uint64_t
    }

    def __init__(self, byte_order="little"):
        super().__init__(byte_order=byte_order)
        self.cmd = 0
        self.cmdsize = 0
        self.version = 0


class entry_point_command(Struct):
    FIELDS = {
        'cmd': uint32_t,
        'cmdsize': uint32_t,
        'entryoff': uint64_t,
        'stacksize': uint64_t
    }

    def __init__(self, byte_order="little"):
        super().__init__(byte_order=byte_order)
        self.cmd = 0
        self.cmdsize = 0
        self.entryoff = 0
        self.stacksize = 0


class linkedit_data_command(Struct):
    FIELDS = {
        'cmd': uint32_t,
        'cmdsize': uint32_t,
        'dataoff': uint32_t,
        'datasize': uint32_t
    }

    def __init__(self, byte_order="little"):
        super().__init__(byte_order=byte_order)
        self.cmd = 0
        self.cmdsize = 0
        self.dataoff = 0
        self.datasize = 0


class data_in_code_command(Struct):
    FIELDS = {
        'cmd': uint32_t,
        'cmdsize': uint32_t,
        'offset': uint32_t,
        'length': uint16_t,
        'kind': uint16_t
    }

    def __init__(self, byte_order="little"):
        super().__init__(byte_order=byte_order)
        self.cmd = 0
        self.cmdsize = 0
        self.offset = 0
        self.length = 0
        self.kind = 0


class dyld_info_command(Struct):
    FIELDS = {
        'cmd': uint32_t,
        'cmdsize': uint32_t,
        'rebase_off': uint32_t,
        'rebase_size': uint32_t,
        'bind_off': uint32_t,
        'bind_size': uint32_t,
        'weak_bind_off': uint32_t,
        'weak_bind_size': uint32_t,
        'lazy_bind_off': uint32_t,
        'lazy_bind_size': uint32_t,
        'export_off': uint32_t,
        'export_size': uint32_t
    }

    def __init__(self, byte_order="little"):
        super().__init__(byte_order=byte_order)
        self.cmd = 0
        self.cmdsize = 0
        self.rebase_off = 0
        self.rebase_size = 0
        self.bind_off = 0
        self.bind_size = 0
        self.weak_bind_off = 0
        self.weak_bind_size = 0
        self.lazy_bind_off = 0
        self.lazy_bind_size = 0
        self.export_off = 0
        self.export_size = 0


class thread_command(Struct):
    """
    LC_THREAD / LC_UNIXTHREAD header; `count` 32 bit words of register state follow.
    """
    FIELDS = {
        'cmd': uint32_t,
        'cmdsize': uint32_t,
        'flavor': uint32_t,
        'count': uint32_t
    }

    def __init__(self, byte_order="little"):
        super().__init__(byte_order=byte_order)
        self.cmd = 0
        self.cmdsize = 0
        self.flavor = 0
        self.count = 0


class symtab_entry(Struct):
    """
    nlist / nlist_64
    """
    FIELDS = {
        'str_index': uint32_t,
        'type': uint8_t,
        'sect_index': uint8_t,
        'desc': uint16_t,
        'value': uintptr_t
    }

    def __init__(self, byte_order="little"):
        super().__init__(byte_order=byte_order)
        self.str_index = 0
        self.type = 0
        self.sect_index = 0
        self.desc = 0
        self.value = 0


LOAD_COMMAND_MAP = {
    LOAD_COMMAND.SEGMENT: segment_command,
    LOAD_COMMAND.SEGMENT_64: segment_command,
    LOAD_COMMAND.SYMTAB: symtab_command,
    LOAD_COMMAND.THREAD: thread_command,
    LOAD_COMMAND.UNIXTHREAD: thread_command,
    LOAD_COMMAND.DYSYMTAB: dysymtab_command,
    LOAD_COMMAND.LOAD_DYLIB: dylib_command,
    LOAD_COMMAND.ID_DYLIB: dylib_command,
    LOAD_COMMAND.LOAD_WEAK_DYLIB: dylib_command,
    LOAD_COMMAND.LOAD_DYLINKER: dylinker_command,
    LOAD_COMMAND.DYLD_ENVIRONMENT: dylinker_command,
    LOAD_COMMAND.UUID: uuid_command,
    LOAD_COMMAND.RPATH: rpath_command,
    LOAD_COMMAND.CODE_SIGNATURE: linkedit_data_command,
    LOAD_COMMAND.SEGMENT_SPLIT_INFO: linkedit_data_command,
    LOAD_COMMAND.DYLD_INFO: dyld_info_command,
    LOAD_COMMAND.DYLD_INFO_ONLY: dyld_info_command,
    LOAD_COMMAND.VERSION_MIN_MACOSX: version_min_command,
    LOAD_COMMAND.FUNCTION_STARTS: linkedit_data_command,
    LOAD_COMMAND.MAIN: entry_point_command,
    LOAD_COMMAND.DATA_IN_CODE: data_in_code_command,
    LOAD_COMMAND.SOURCE_VERSION: source_version_command,
    LOAD_COMMAND.DYLIB_CODE_SIGN_DRS: linkedit_data_command,
}
