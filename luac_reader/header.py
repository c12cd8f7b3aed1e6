"""Header sniffing for Lua and LuaJIT bytecode images.

``decode_header`` reads the signature, dispatches on the version byte to one
of the fixed sub-layouts and returns the :class:`FormatDescriptor` that every
later primitive read of the image relies on.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict

from .byteops import (
    SUPPORTED_WIDTHS,
    ByteReader,
    read_float,
    read_uleb128,
)
from .exceptions import MalformedHeader, UnexpectedEof, UnsupportedVersion, UnsupportedWidth
from .model import FormatDescriptor, LuaVersion

LOG = logging.getLogger(__name__)

LUA_SIGNATURE = b"\x1bLua"
LUAJIT_SIGNATURE = b"\x1bLJ"

# Shared by the 5.2 tail and the 5.3/5.4 ``LUAC_DATA`` block.
LUAC_DATA = b"\x19\x93\r\n\x1a\n"
LUAC_INT = 0x5678
LUAC_NUM = 370.5

BCDUMP_F_BE = 0x01
BCDUMP_F_STRIP = 0x02
BCDUMP_F_FFI = 0x04
BCDUMP_F_FR2 = 0x08
BCDUMP_F_KNOWN = BCDUMP_F_BE | BCDUMP_F_STRIP | BCDUMP_F_FFI | BCDUMP_F_FR2

_LUAJIT_VERSIONS = {1: LuaVersion.LUAJIT1, 2: LuaVersion.LUAJIT2}

# Opcode decoding and remapping assume 32-bit instruction words.
INSTRUCTION_WIDTHS = (4,)

# The remapped 5.4 family stores LUAC_INT and LUAC_NUM as fixed 8-byte little-endian values.
_REMAPPED_CHECK_WIDTH = 8


def _check_width(value: int, offset: int, field: str, allowed=SUPPORTED_WIDTHS) -> int:
    if value not in allowed:
        raise UnsupportedWidth(value, offset=offset, field=field)
    return value


def _check_number_width(value: int, integral: bool, offset: int) -> int:
    allowed = SUPPORTED_WIDTHS if integral else (4, 8)
    return _check_width(value, offset, "lua_Number", allowed)


def _detect_byteorder(raw: bytes, offset: int) -> bool:
    """Return ``True`` when the ``LUAC_INT`` value is stored big endian."""

    if int.from_bytes(raw, "little") == LUAC_INT:
        return False
    if int.from_bytes(raw, "big") == LUAC_INT:
        return True
    raise MalformedHeader("integer check value does not match LUAC_INT", offset=offset)


def _check_luac_num(reader: ByteReader, size: int, byteorder: str) -> None:
    offset = reader.offset
    if read_float(reader, size, byteorder) != LUAC_NUM:
        raise MalformedHeader("float check value does not match LUAC_NUM", offset=offset)


def _check_luac_data(data: bytes, offset: int) -> None:
    if data != LUAC_DATA:
        raise MalformedHeader("corrupted LUAC_DATA block", offset=offset)


def _read_classic_layout(reader: ByteReader, version: LuaVersion) -> FormatDescriptor:
    """5.1 and 5.2: explicit endianness byte followed by four widths."""

    format_version = reader.read_byte()
    endian_offset = reader.offset
    endianness = reader.read_byte()
    if endianness not in (0, 1):
        raise MalformedHeader(f"invalid endianness flag {endianness}", offset=endian_offset)
    width_offset = reader.offset
    int_size, size_t_size, instruction_size, number_size = reader.read_bytes(4)
    integral = bool(reader.read_byte())
    _check_width(int_size, width_offset, "int")
    _check_width(size_t_size, width_offset + 1, "size_t")
    _check_width(instruction_size, width_offset + 2, "Instruction", INSTRUCTION_WIDTHS)
    _check_number_width(number_size, integral, width_offset + 3)
    return FormatDescriptor(
        version=version,
        format_version=format_version,
        big_endian=endianness == 0,
        int_size=int_size,
        size_t_size=size_t_size,
        instruction_size=instruction_size,
        number_size=number_size,
        number_integral=integral,
    )


def _read_lua51(reader: ByteReader) -> FormatDescriptor:
    return _read_classic_layout(reader, LuaVersion.LUA51)


def _read_lua52(reader: ByteReader) -> FormatDescriptor:
    fmt = _read_classic_layout(reader, LuaVersion.LUA52)
    tail_offset = reader.offset
    _check_luac_data(reader.read_bytes(len(LUAC_DATA)), tail_offset)
    return fmt


def _looks_like_remapped(reader: ByteReader) -> bool:
    # Three width bytes, then an 8-byte little-endian LUAC_INT.  Either layout
    # needs at least this many bytes, so a shorter tail is plain truncation.
    needed = 3 + _REMAPPED_CHECK_WIDTH
    if reader.remaining < needed:
        raise UnexpectedEof(needed, reader.remaining, offset=reader.offset)
    marker = reader.peek(_REMAPPED_CHECK_WIDTH, skip=3)
    return int.from_bytes(marker, "little") == LUAC_INT


def _read_lua53(reader: ByteReader) -> FormatDescriptor:
    format_version = reader.read_byte()
    data_offset = reader.offset
    luac_data = reader.read_bytes(len(LUAC_DATA))
    if _looks_like_remapped(reader):
        return _read_remapped(reader, format_version)

    _check_luac_data(luac_data, data_offset)
    width_offset = reader.offset
    int_size, size_t_size, instruction_size, integer_size, number_size = reader.read_bytes(5)
    _check_width(int_size, width_offset, "int")
    _check_width(size_t_size, width_offset + 1, "size_t")
    _check_width(instruction_size, width_offset + 2, "Instruction", INSTRUCTION_WIDTHS)
    _check_width(integer_size, width_offset + 3, "lua_Integer")
    _check_number_width(number_size, False, width_offset + 4)
    check_offset = reader.offset
    big_endian = _detect_byteorder(reader.read_bytes(integer_size), check_offset)
    byteorder = "big" if big_endian else "little"
    _check_luac_num(reader, number_size, byteorder)
    reader.read_byte()  # size of the main closure's upvalue array
    return FormatDescriptor(
        version=LuaVersion.LUA53,
        format_version=format_version,
        big_endian=big_endian,
        int_size=int_size,
        size_t_size=size_t_size,
        instruction_size=instruction_size,
        integer_size=integer_size,
        number_size=number_size,
    )


def _read_remapped(reader: ByteReader, format_version: int) -> FormatDescriptor:
    width_offset = reader.offset
    instruction_size, integer_size, number_size = reader.read_bytes(3)
    _check_width(instruction_size, width_offset, "Instruction", INSTRUCTION_WIDTHS)
    reader.read_bytes(_REMAPPED_CHECK_WIDTH)  # LUAC_INT, already matched
    reader.read_bytes(_REMAPPED_CHECK_WIDTH)  # LUAC_NUM
    reader.read_byte()
    return FormatDescriptor(
        version=LuaVersion.LUA54_REMAPPED,
        format_version=format_version,
        big_endian=False,
        int_size=4,
        size_t_size=8,
        instruction_size=instruction_size,
        integer_size=integer_size,
        number_size=number_size,
        number_integral=False,
    )


def _read_lua54(reader: ByteReader) -> FormatDescriptor:
    format_version = reader.read_byte()
    data_offset = reader.offset
    _check_luac_data(reader.read_bytes(len(LUAC_DATA)), data_offset)
    width_offset = reader.offset
    instruction_size, integer_size, number_size = reader.read_bytes(3)
    _check_width(instruction_size, width_offset, "Instruction", INSTRUCTION_WIDTHS)
    _check_width(integer_size, width_offset + 1, "lua_Integer")
    _check_number_width(number_size, False, width_offset + 2)
    check_offset = reader.offset
    big_endian = _detect_byteorder(reader.read_bytes(integer_size), check_offset)
    byteorder = "big" if big_endian else "little"
    _check_luac_num(reader, number_size, byteorder)
    reader.read_byte()
    return FormatDescriptor(
        version=LuaVersion.LUA54,
        format_version=format_version,
        big_endian=big_endian,
        int_size=4,
        size_t_size=8,
        instruction_size=instruction_size,
        integer_size=integer_size,
        number_size=number_size,
    )


_LUA_LAYOUTS: Dict[int, Callable[[ByteReader], FormatDescriptor]] = {
    0x51: _read_lua51,
    0x52: _read_lua52,
    0x53: _read_lua53,
    0x54: _read_lua54,
}


def _decode_lua_header(reader: ByteReader) -> FormatDescriptor:
    version_offset = reader.offset
    version = reader.read_byte()
    layout = _LUA_LAYOUTS.get(version)
    if layout is None:
        raise UnsupportedVersion(version, offset=version_offset)
    return layout(reader)


def _decode_luajit_header(reader: ByteReader) -> FormatDescriptor:
    version_offset = reader.offset
    dump_version = reader.read_byte()
    version = _LUAJIT_VERSIONS.get(dump_version)
    if version is None:
        raise UnsupportedVersion(dump_version, offset=version_offset, family="LuaJIT")
    flags_offset = reader.offset
    flags = read_uleb128(reader)
    if flags & ~BCDUMP_F_KNOWN:
        raise MalformedHeader(f"unknown LuaJIT dump flags 0x{flags:x}", offset=flags_offset)
    chunk_name = b""
    if not flags & BCDUMP_F_STRIP:
        chunk_name = reader.read_bytes(read_uleb128(reader))
    return FormatDescriptor(
        version=version,
        format_version=dump_version,
        big_endian=bool(flags & BCDUMP_F_BE),
        int_size=4,
        size_t_size=4,
        instruction_size=4,
        integer_size=8,
        number_size=8,
        flags=flags,
        chunk_name=chunk_name,
    )


def decode_header(reader: ByteReader) -> FormatDescriptor:
    """Decode the image header at the reader's position."""

    signature = reader.peek(len(LUA_SIGNATURE))
    if signature == LUA_SIGNATURE:
        reader.read_bytes(len(LUA_SIGNATURE))
        fmt = _decode_lua_header(reader)
    elif signature[: len(LUAJIT_SIGNATURE)] == LUAJIT_SIGNATURE:
        reader.read_bytes(len(LUAJIT_SIGNATURE))
        fmt = _decode_luajit_header(reader)
    elif len(signature) < len(LUA_SIGNATURE) and (
        LUA_SIGNATURE.startswith(signature) or LUAJIT_SIGNATURE.startswith(signature)
    ):
        raise UnexpectedEof(len(LUA_SIGNATURE), len(signature), offset=reader.offset)
    else:
        raise MalformedHeader("missing Lua bytecode signature", offset=reader.offset)
    LOG.debug("header: %s", fmt)
    return fmt


__all__ = [
    "BCDUMP_F_BE",
    "BCDUMP_F_FFI",
    "BCDUMP_F_FR2",
    "BCDUMP_F_STRIP",
    "INSTRUCTION_WIDTHS",
    "LUAC_DATA",
    "LUAC_INT",
    "LUAC_NUM",
    "LUAJIT_SIGNATURE",
    "LUA_SIGNATURE",
    "decode_header",
]
