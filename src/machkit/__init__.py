from machkit.machkit import load_binary_objects, load_binary_object, detect_format, detect, parse, FORMATS

from machkit.exceptions import MachODecodeException, TruncatedInputException, UnsupportedMagicException, \
    MalformedLoadCommandException, DecodeWarning, DecodeWarningType
from machkit.format import Format
from machkit.macho import MachO
from machkit.loader import SliceLoader, SliceLayout
from machkit.model import BinaryObject, Section, SectionType, SymbolEntry, SymbolTable, LinkedLibrary
from machkit.reader import Reader, SliceContext
from machkit.util import MACHKIT_VERSION, ignore, opts, Table
from libkit.log import log, LogLevel
