from machkit_macho.mach_header import *
from machkit_macho.structs import *
