#
#  machkit | machkit_macho
#  mach_header.py
#
#  Pythonized representations of the #defines and enums from mach-o/loader.h and mach/machine.h
#
#  This file is part of machkit. machkit is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#

from enum import IntEnum

# All magics are spelled as they read when the first four bytes of the file are loaded little-endian.
MH_MAGIC = 0xFEEDFACE
MH_CIGAM = 0xCEFAEDFE
MH_MAGIC_64 = 0xFEEDFACF
MH_CIGAM_64 = 0xCFFAEDFE
FAT_MAGIC = 0xCAFEBABE
FAT_CIGAM = 0xBEBAFECA

# Big-endian slices are recognized by the nibble-reversed spellings below. The plain byte-swapped
#  MH_CIGAM / MH_CIGAM_64 are kept for reference only and are not accepted.
MH_CIGAM_NIBBLE = 0xECAFDEEF
MH_CIGAM_64_NIBBLE = 0xFCAFDEEF

# magic -> (bits, byte order of everything after it)
SINGLE_ARCH_MAGICS = {
    MH_MAGIC: (32, 'little'),
    MH_MAGIC_64: (64, 'little'),
    MH_CIGAM_NIBBLE: (32, 'big'),
    MH_CIGAM_64_NIBBLE: (64, 'big'),
}

FAT_MAGICS = (FAT_MAGIC, FAT_CIGAM)


class MH_FLAGS(IntEnum):
    NOUNDEFS = 0x1
    INCRLINK = 0x2
    DYLDLINK = 0x4
    BINDATLOAD = 0x8
    PREBOUND = 0x10
    SPLIT_SEGS = 0x20
    LAZY_INIT = 0x40
    TWOLEVEL = 0x80
    FORCE_FLAT = 0x100
    NOMULTIDEFS = 0x200
    NOFIXPREBINDING = 0x400
    PREBINDABLE = 0x800
    ALLMODSBOUND = 0x1000
    SUBSECTIONS_VIA_SYMBOLS = 0x2000
    CANONICAL = 0x4000
    WEAK_DEFINES = 0x8000
    BINDS_TO_WEAK = 0x10000
    ALLOW_STACK_EXECUTION = 0x20000
    ROOT_SAFE = 0x40000
    SETUID_SAFE = 0x80000
    NO_REEXPORTED_DYLIBS = 0x100000
    PIE = 0x200000
    DEAD_STRIPPABLE_DYLIB = 0x400000
    HAS_TLV_DESCRIPTORS = 0x800000
    NO_HEAP_EXECUTION = 0x1000000
    APP_EXTENSION_SAFE = 0x02000000
    NLIST_OUTOFSYNC_WITH_DYLDINFO = 0x04000000
    SIM_SUPPORT = 0x08000000


class MH_FILETYPE(IntEnum):
    UNK = 0
    OBJECT = 0x1
    EXECUTE = 0x2
    FVMLIB = 0x3
    CORE = 0x4
    PRELOAD = 0x5
    DYLIB = 0x6
    DYLINKER = 0x7
    BUNDLE = 0x8
    DYLIB_STUB = 0x9
    DSYM = 0xA
    KEXT_BUNDLE = 0xB


LC_REQ_DYLD = 0x80000000


class LOAD_COMMAND(IntEnum):
    SEGMENT = 0x1
    SYMTAB = 0x2
    SYMSEG = 0x3
    THREAD = 0x4
    UNIXTHREAD = 0x5
    LOADFVMLIB = 0x6
    IDFVMLIB = 0x7
    IDENT = 0x8
    FVMFILE = 0x9
    PREPAGE = 0xA
    DYSYMTAB = 0xB
    LOAD_DYLIB = 0xC
    ID_DYLIB = 0xD
    LOAD_DYLINKER = 0xE
    ID_DYLINKER = 0xF
    PREBOUND_DYLIB = 0x10
    ROUTINES = 0x11
    SUB_FRAMEWORK = 0x12
    SUB_UMBRELLA = 0x13
    SUB_CLIENT = 0x14
    SUB_LIBRARY = 0x15
    TWOLEVEL_HINTS = 0x16
    PREBIND_CKSUM = 0x17
    LOAD_WEAK_DYLIB = 0x18 | LC_REQ_DYLD
    SEGMENT_64 = 0x19
    ROUTINES_64 = 0x1a
    UUID = 0x1b
    RPATH = 0x1C | LC_REQ_DYLD
    CODE_SIGNATURE = 0x1D
    SEGMENT_SPLIT_INFO = 0x1E
    REEXPORT_DYLIB = 0x1F | LC_REQ_DYLD
    LAZY_LOAD_DYLIB = 0x20
    ENCRYPTION_INFO = 0x21
    DYLD_INFO = 0x22
    DYLD_INFO_ONLY = 0x22 | LC_REQ_DYLD
    LOAD_UPWARD_DYLIB = 0x23 | LC_REQ_DYLD
    VERSION_MIN_MACOSX = 0x24
    VERSION_MIN_IPHONEOS = 0x25
    FUNCTION_STARTS = 0x26
    DYLD_ENVIRONMENT = 0x27
    MAIN = 0x28 | LC_REQ_DYLD
    DATA_IN_CODE = 0x29
    SOURCE_VERSION = 0x2A
    DYLIB_CODE_SIGN_DRS = 0x2B
    ENCRYPTION_INFO_64 = 0x2C
    LINKER_OPTION = 0x2D
    LINKER_OPTIMIZATION_HINT = 0x2E
    VERSION_MIN_TVOS = 0x2F
    VERSION_MIN_WATCHOS = 0x30
    NOTE = 0x31
    BUILD_VERSION = 0x32
    DYLD_EXPORTS_TRIE = 0x33 | LC_REQ_DYLD
    DYLD_CHAINED_FIXUPS = 0x34 | LC_REQ_DYLD


CPU_ARCH_MASK = 0xff000000  # Mask for architecture bits
CPU_ARCH_ABI64 = 0x01000000
CPU_SUBTYPE_MASK = 0xff000000  # Mask for feature flags (LIB64, PTRAUTH ABI)


class CPUType(IntEnum):
    UNKNOWN = 0
    ANY = -1
    X86 = 7
    X86_64 = X86 | CPU_ARCH_ABI64
    MC98000 = 10
    HPPA = 11
    ARM = 12
    ARM64 = ARM | CPU_ARCH_ABI64
    SPARC = 14
    I860 = 15
    POWERPC = 18
    POWERPC64 = POWERPC | CPU_ARCH_ABI64


class CPUSubTypeUnknown(IntEnum):
    UNKNOWN = -1


class CPUSubTypeX86(IntEnum):
    I386 = 3
    ALL = 3
    I486 = 4
    I486SX = 4 + (8 << 4)
    PENT = 5
    PENTPRO = 6 + (1 << 4)
    PENTII_M3 = 6 + (3 << 4)
    PENTII_M5 = 6 + (5 << 4)
    CELERON = 7 + (6 << 4)
    CELERON_MOBILE = 7 + (7 << 4)
    PENTIUM_3 = 8
    PENTIUM_3_M = 8 + (1 << 4)
    PENTIUM_3_XEON = 8 + (2 << 4)
    PENTIUM_M = 9
    PENTIUM_4 = 10
    PENTIUM_4_M = 10 + (1 << 4)
    ITANIUM = 11
    ITANIUM_2 = 11 + (1 << 4)
    XEON = 12
    XEON_MP = 12 + (1 << 4)


class CPUSubTypeX86_64(IntEnum):
    ALL = 3
    H = 8


class CPUSubTypeHPPA(IntEnum):
    ALL = 0
    _7100LC = 1


class CPUSubTypeARM(IntEnum):
    ALL = 0
    V4T = 5
    V6 = 6
    V5 = 7
    V5TEJ = 7
    XSCALE = 8
    V7 = 9
    V7F = 10
    V7S = 11
    V7K = 12
    V8 = 13
    V6M = 14
    V7M = 15
    V7EM = 16


class CPUSubTypeARM64(IntEnum):
    ALL = 0
    V8 = 1
    ARM64E = 2


class CPUSubTypeSPARC(IntEnum):
    ALL = 0


class CPUSubTypeI860(IntEnum):
    ALL = 0
    _860 = 1


class CPUSubTypePowerPC(IntEnum):
    ALL = 0
    _601 = 1
    _602 = 2
    _603 = 3
    _603e = 4
    _603ev = 5
    _604 = 6
    _604e = 7
    _620 = 8
    _750 = 9
    _7400 = 10
    _7450 = 11
    _970 = 100


CPU_SUBTYPES = {
    CPUType.X86: CPUSubTypeX86,
    CPUType.X86_64: CPUSubTypeX86_64,
    CPUType.HPPA: CPUSubTypeHPPA,
    CPUType.POWERPC: CPUSubTypePowerPC,
    CPUType.POWERPC64: CPUSubTypePowerPC,
    CPUType.ARM: CPUSubTypeARM,
    CPUType.ARM64: CPUSubTypeARM64,
    CPUType.SPARC: CPUSubTypeSPARC,
    CPUType.I860: CPUSubTypeI860
}
