"""Table-driven decoding of tagged constant pool entries.

Each Lua release numbers its constant tags differently, so the tag byte is
looked up in :data:`CONSTANT_TAGS` for the active version and the resulting
:class:`TagKind` selects the payload reader.  :func:`constant_tag` performs the
inverse lookup.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Tuple

from .byteops import ByteReader, read_float, read_int, read_number, read_uint
from .exceptions import UnknownConstantTag
from .model import ConstantKind, FormatDescriptor, LuaConstant, LuaVersion

StringLoader = Callable[[ByteReader, FormatDescriptor], bytes]

# Strings up to this length are dumped with the short-string tag (LUAI_MAXSHORTLEN).
MAX_SHORT_STRING = 40


class TagKind(Enum):
    NIL = "nil"
    FALSE = "false"
    TRUE = "true"
    BOOLEAN = "boolean"  # tag followed by a payload byte
    NUMBER = "number"  # lua_Number, integral or float per header
    FLOAT = "float"  # lua_Number at the header width
    INTEGER = "integer"  # lua_Integer at the header width
    FLOAT64 = "float64"
    INT64 = "int64"
    SHORT_STRING = "short_string"
    LONG_STRING = "long_string"


_CLASSIC_TAGS = {
    0x00: TagKind.NIL,
    0x01: TagKind.BOOLEAN,
    0x03: TagKind.NUMBER,
    0x04: TagKind.SHORT_STRING,
}

_LUA53_TAGS = {
    0x00: TagKind.NIL,
    0x01: TagKind.BOOLEAN,
    0x03: TagKind.FLOAT,
    0x13: TagKind.INTEGER,
    0x04: TagKind.SHORT_STRING,
    0x14: TagKind.LONG_STRING,
}

_LUA54_TAGS = {
    0x00: TagKind.NIL,
    0x01: TagKind.FALSE,
    0x11: TagKind.TRUE,
    0x13: TagKind.FLOAT,
    0x03: TagKind.INTEGER,
    0x04: TagKind.SHORT_STRING,
    0x14: TagKind.LONG_STRING,
}

# The remapped family always writes 8-byte numbers, whatever the header says.
_REMAPPED_TAGS = {
    **_LUA54_TAGS,
    0x13: TagKind.FLOAT64,
    0x03: TagKind.INT64,
}

CONSTANT_TAGS: Mapping[LuaVersion, Mapping[int, TagKind]] = MappingProxyType(
    {
        LuaVersion.LUA51: MappingProxyType(_CLASSIC_TAGS),
        LuaVersion.LUA52: MappingProxyType(_CLASSIC_TAGS),
        LuaVersion.LUA53: MappingProxyType(_LUA53_TAGS),
        LuaVersion.LUA54: MappingProxyType(_LUA54_TAGS),
        LuaVersion.LUA54_REMAPPED: MappingProxyType(_REMAPPED_TAGS),
    }
)


def _to_int64(value: int) -> int:
    return value - (1 << 64) if value >= (1 << 63) else value


def _read_nil(reader: ByteReader, fmt: FormatDescriptor, load_string: StringLoader) -> LuaConstant:
    return LuaConstant.nil()


def _read_false(reader: ByteReader, fmt: FormatDescriptor, load_string: StringLoader) -> LuaConstant:
    return LuaConstant.boolean(False)


def _read_true(reader: ByteReader, fmt: FormatDescriptor, load_string: StringLoader) -> LuaConstant:
    return LuaConstant.boolean(True)


def _read_boolean(reader: ByteReader, fmt: FormatDescriptor, load_string: StringLoader) -> LuaConstant:
    return LuaConstant.boolean(reader.read_byte() != 0)


def _read_number(reader: ByteReader, fmt: FormatDescriptor, load_string: StringLoader) -> LuaConstant:
    value = read_number(reader, fmt)
    if fmt.number_integral:
        return LuaConstant.integer(value)
    return LuaConstant.float(value)


def _read_float(reader: ByteReader, fmt: FormatDescriptor, load_string: StringLoader) -> LuaConstant:
    return LuaConstant.float(read_float(reader, fmt.number_size, fmt.byteorder))


def _read_integer(reader: ByteReader, fmt: FormatDescriptor, load_string: StringLoader) -> LuaConstant:
    return LuaConstant.integer(read_int(reader, fmt.integer_size, fmt.byteorder))


def _read_float64(reader: ByteReader, fmt: FormatDescriptor, load_string: StringLoader) -> LuaConstant:
    return LuaConstant.float(read_float(reader, 8, fmt.byteorder))


def _read_int64(reader: ByteReader, fmt: FormatDescriptor, load_string: StringLoader) -> LuaConstant:
    return LuaConstant.integer(_to_int64(read_uint(reader, 8, fmt.byteorder)))


def _read_string(reader: ByteReader, fmt: FormatDescriptor, load_string: StringLoader) -> LuaConstant:
    return LuaConstant.string(load_string(reader, fmt))


_PAYLOAD_READERS: Dict[TagKind, Callable[[ByteReader, FormatDescriptor, StringLoader], LuaConstant]] = {
    TagKind.NIL: _read_nil,
    TagKind.FALSE: _read_false,
    TagKind.TRUE: _read_true,
    TagKind.BOOLEAN: _read_boolean,
    TagKind.NUMBER: _read_number,
    TagKind.FLOAT: _read_float,
    TagKind.INTEGER: _read_integer,
    TagKind.FLOAT64: _read_float64,
    TagKind.INT64: _read_int64,
    TagKind.SHORT_STRING: _read_string,
    TagKind.LONG_STRING: _read_string,
}


def decode_constant(
    reader: ByteReader,
    fmt: FormatDescriptor,
    load_string: StringLoader,
) -> LuaConstant:
    """Decode one tagged constant using the tag table of ``fmt.version``."""

    tag_offset = reader.offset
    tag = reader.read_byte()
    kind = CONSTANT_TAGS[fmt.version].get(tag)
    if kind is None:
        raise UnknownConstantTag(tag, offset=tag_offset)
    return _PAYLOAD_READERS[kind](reader, fmt, load_string)


def _candidate_kinds(constant: LuaConstant) -> Tuple[TagKind, ...]:
    kind = constant.kind
    if kind is ConstantKind.NIL:
        return (TagKind.NIL,)
    if kind is ConstantKind.BOOLEAN:
        return (TagKind.TRUE if constant.value else TagKind.FALSE, TagKind.BOOLEAN)
    if kind is ConstantKind.INTEGER:
        return (TagKind.INTEGER, TagKind.INT64, TagKind.NUMBER)
    if kind is ConstantKind.FLOAT:
        return (TagKind.FLOAT, TagKind.FLOAT64, TagKind.NUMBER)
    if kind is ConstantKind.STRING:
        if len(constant.value) > MAX_SHORT_STRING:
            return (TagKind.LONG_STRING, TagKind.SHORT_STRING)
        return (TagKind.SHORT_STRING,)
    return ()


def constant_tag(version: LuaVersion, constant: LuaConstant) -> int:
    """Return the tag byte ``version`` uses to dump ``constant``."""

    table = CONSTANT_TAGS.get(version)
    if table is None:
        raise ValueError(f"{version.value} has no tagged constant pool")
    by_kind = {kind: tag for tag, kind in table.items()}
    for kind in _candidate_kinds(constant):
        tag = by_kind.get(kind)
        if tag is not None:
            return tag
    raise ValueError(f"{constant.kind.value} constant cannot be tagged for {version.value}")


__all__ = [
    "CONSTANT_TAGS",
    "MAX_SHORT_STRING",
    "StringLoader",
    "TagKind",
    "constant_tag",
    "decode_constant",
]
