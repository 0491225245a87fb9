#
#  machkit | libkit
#  structs.py
#
#  Custom Struct implementation reflecting behavior of named tuples while also handling behind-the-scenes
#    packing/unpacking
#
#  This file is part of machkit. machkit is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#

# Size calc is hot code, so field types and sizes are packed into a single int.
type_mask = 0xffff0000
size_mask = 0xffff

type_uint = 0
type_sint = 0x10000
type_str = 0x20000
type_bytes = 0x30000

uint8_t = 1
uint16_t = 2
uint32_t = 4
uint64_t = 8

int8_t = type_sint | 1
int16_t = type_sint | 2
int32_t = type_sint | 4
int64_t = type_sint | 8

# char_t[16] / bytes_t[16] give a fixed-length string or raw byte field.
#   For more than 64, pass `(type_str | n)` directly.
char_t = [type_str | i for i in range(65)]
bytes_t = [type_bytes | i for i in range(65)]


class uintptr_t:
    """ Pointer-width unsigned field; 4 bytes in 32-bit slices, 8 bytes in 64-bit ones. """
    pass


class pad_for_64_bit_only:
    """ Sometimes, arm64/x64 variations of structures may differ from 32 bit ones only in variables to pad
        things out for the sake of byte-aligned reads. This allows us to account for that without having to make
        a separate 64 and 32 bit struct.

        This acts as a variable length field, and will have a size of 0 if ptr_size passed to struct code isn't 8
    """
    def __init__(self, size=4):
        self.size = size


def _bytes_to_hex(data) -> str:
    return data.hex()


def _uint_to_int(uint, bits):
    """
    Assume an int was read from binary as an unsigned int,

    decode it as a two's compliment signed integer

    :param uint:
    :param bits:
    :return:
    """
    if (uint & (1 << (bits - 1))) != 0:  # if sign bit is set e.g., 8bit: 128-255
        uint = uint - (1 << bits)  # compute negative value
    return uint  # return positive value as is


def _field_size(value, ptr_size):
    if isinstance(value, int):
        return value & size_mask
    if isinstance(value, pad_for_64_bit_only):
        return value.size if ptr_size == 8 else 0
    if issubclass(value, uintptr_t):
        return ptr_size
    if issubclass(value, Struct):
        return value.size(ptr_size=ptr_size)
    raise AssertionError(f'Bad field type {value}')


# noinspection PyUnresolvedReferences
class Struct:
    """
    Custom namedtuple-esque Struct representation. Can be unpacked from bytes or manually created with existing
        field values

    Subclassed with a `FIELDS` dict mapping field names to sizes.

    Pointer-sized fields are resolved against the `ptr_size` passed at unpack/pack time, so one declaration
        covers both the 32 and 64 bit layout of a record.
    """

    @classmethod
    def size(cls, ptr_size=8):
        cache = cls.__dict__.get('_size_cache')
        if cache is None:
            cache = {}
            setattr(cls, '_size_cache', cache)
        if ptr_size not in cache:
            cache[ptr_size] = sum(_field_size(value, ptr_size) for value in cls.FIELDS.values())
        return cache[ptr_size]

    # noinspection PyProtectedMember
    @staticmethod
    def create_with_bytes(struct_class, raw, byte_order="little", ptr_size=8):
        """
        Unpack a struct from raw bytes

        :param struct_class: Struct subclass
        :param raw: Bytes
        :param ptr_size: 4 or 8, sizes `uintptr_t` and `pad_for_64_bit_only` fields
        :param byte_order: Little/Big Endian Struct Unpacking
        :return: struct_class Instance
        """
        instance: Struct = struct_class(byte_order)
        instance.ptr_size = ptr_size
        current_off = 0
        raw = bytes(raw)

        for field in instance._fields:
            value = instance._field_sizes[field]
            size = _field_size(value, ptr_size)
            data = raw[current_off:current_off + size]
            instance._field_offsets[field] = current_off

            if isinstance(value, int):
                field_type = type_mask & value

                if field_type == type_str:
                    field_value = data.split(b'\x00', 1)[0].decode('utf-8', errors='replace')
                elif field_type == type_bytes:
                    field_value = data
                elif field_type == type_sint:
                    field_value = _uint_to_int(int.from_bytes(data, byte_order), size * 8)
                else:
                    field_value = int.from_bytes(data, byte_order)

            elif isinstance(value, pad_for_64_bit_only) or issubclass(value, uintptr_t):
                field_value = int.from_bytes(data, byte_order)

            else:
                field_value = Struct.create_with_bytes(value, data, byte_order, ptr_size)

            setattr(instance, field, field_value)
            current_off += size

        instance.initialized = True
        return instance

    @staticmethod
    def create_with_values(struct_class, values, byte_order="little", ptr_size=8):
        """
        Pack/Create a struct given field values

        :param byte_order:
        :param struct_class: Struct subclass
        :param values: List of values
        :param ptr_size:
        :return: struct_class Instance
        """

        instance: Struct = struct_class(byte_order)
        instance.ptr_size = ptr_size

        # noinspection PyProtectedMember
        for i, field in enumerate(instance._fields):
            setattr(instance, field, values[i])

        instance.initialized = True
        return instance

    @property
    def raw(self):
        raw = bytearray()
        for field in self._fields:
            value = self._field_sizes[field]
            size = _field_size(value, self.ptr_size)

            field_dat = getattr(self, field)

            if isinstance(field_dat, Struct):
                data = field_dat.raw
            elif isinstance(field_dat, int):
                signed = isinstance(value, int) and (value & type_mask) == type_sint
                data = field_dat.to_bytes(size, byteorder=self.byte_order, signed=signed)
            elif isinstance(field_dat, str):
                data = field_dat.encode('utf-8')[:size]
                data += b'\x00' * (size - len(data))
            else:
                data = bytes(field_dat)[:size]
                data += b'\x00' * (size - len(data))

            raw += data

        return bytes(raw)

    def __eq__(self, other):
        if not isinstance(other, Struct):
            return False
        try:
            for field in self._fields:
                if getattr(self, field) != getattr(other, field):
                    return False
        except AttributeError:
            return False
        return True

    def __ne__(self, other):
        return not self.__eq__(other)

    def __repr__(self):
        return str(self)

    def __str__(self):
        text = f'{self.__class__.__name__}('
        for field in self._fields:
            attr = getattr(self, field)
            if isinstance(attr, int):
                field_item = hex(attr)
            else:
                field_item = attr
            text += f'{field}={field_item}, '
        return text[:-2] + ')'

    def serialize(self):
        struct_dict = {'type': self.__class__.__name__}

        for field in self._fields:
            attr = getattr(self, field)
            if isinstance(attr, (bytes, bytearray)):
                field_item = _bytes_to_hex(attr)
            elif isinstance(attr, Struct):
                field_item = attr.serialize()
            else:
                field_item = attr
            struct_dict[field] = field_item

        return struct_dict

    def __init__(self, byte_order="little"):
        if not hasattr(self.__class__, 'FIELDS'):
            raise AssertionError(
                "Do not use the bare Struct class; it must be implemented in an actual type; Missing FIELDS")

        self.initialized = False

        self._fields = list(self.__class__.FIELDS.keys())
        self._field_sizes = dict(self.__class__.FIELDS)
        self._field_offsets = {}
        self.byte_order = byte_order
        self.ptr_size = 8

        self.off = 0
