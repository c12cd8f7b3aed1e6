"""Primitive decoders for packed bytecode fields.

Every helper takes a :class:`ByteReader` and advances it past the bytes it
consumed.  Widths and byte order come from the caller (normally from the
:class:`~luac_reader.model.FormatDescriptor` of the image being decoded), so
the same helpers serve every bytecode family.
"""

from __future__ import annotations

import struct
from typing import Tuple, Union

from .exceptions import IntegerOverflow, UnexpectedEof, UnsupportedWidth
from .model import FormatDescriptor

Buffer = Union[bytes, bytearray, memoryview]

SUPPORTED_WIDTHS = (1, 2, 4, 8)
SIZE_MAX = (1 << 64) - 1
INT_MAX = (1 << 31) - 1
UINT32_MAX = (1 << 32) - 1

_FLOAT_CODES = {4: "f", 8: "d"}


class ByteReader:
    """Bounds-checked cursor over an immutable byte buffer."""

    __slots__ = ("_view", "offset")

    def __init__(self, data: Buffer, offset: int = 0) -> None:
        self._view = memoryview(data)
        self.offset = offset

    def __len__(self) -> int:
        return len(self._view)

    @property
    def remaining(self) -> int:
        return len(self._view) - self.offset

    def at_end(self) -> bool:
        return self.offset >= len(self._view)

    def peek(self, size: int, *, skip: int = 0) -> bytes:
        """Return up to ``size`` bytes starting ``skip`` bytes ahead, without advancing."""

        start = self.offset + skip
        return bytes(self._view[start : start + size])

    def read_bytes(self, size: int) -> bytes:
        available = self.remaining
        if size > available:
            raise UnexpectedEof(size, available, offset=self.offset)
        chunk = self._view[self.offset : self.offset + size]
        self.offset += size
        return bytes(chunk)

    def read_byte(self) -> int:
        if self.offset >= len(self._view):
            raise UnexpectedEof(1, 0, offset=self.offset)
        value = self._view[self.offset]
        self.offset += 1
        return value


def read_uint(reader: ByteReader, size: int, byteorder: str = "little") -> int:
    """Read an unsigned ``size``-byte integer, zero-extended."""

    if size not in SUPPORTED_WIDTHS:
        raise UnsupportedWidth(size, offset=reader.offset, field="integer")
    return int.from_bytes(reader.read_bytes(size), byteorder, signed=False)


def read_int(reader: ByteReader, size: int, byteorder: str = "little") -> int:
    """Read a signed ``size``-byte integer, sign-extended."""

    if size not in SUPPORTED_WIDTHS:
        raise UnsupportedWidth(size, offset=reader.offset, field="integer")
    return int.from_bytes(reader.read_bytes(size), byteorder, signed=True)


def read_float(reader: ByteReader, size: int, byteorder: str = "little") -> float:
    code = _FLOAT_CODES.get(size)
    if code is None:
        raise UnsupportedWidth(size, offset=reader.offset, field="float")
    prefix = ">" if byteorder == "big" else "<"
    return struct.unpack(prefix + code, reader.read_bytes(size))[0]


def read_number(reader: ByteReader, fmt: FormatDescriptor) -> Union[int, float]:
    """Read a ``lua_Number`` as declared by the header (integral or float)."""

    if fmt.number_integral:
        return read_int(reader, fmt.number_size, fmt.byteorder)
    return read_float(reader, fmt.number_size, fmt.byteorder)


def read_sized_string(reader: ByteReader, size: int) -> bytes:
    """Read the payload of a string whose dumped size is ``size``.

    Lua dumps ``len + 1`` so that ``0`` can mean "no string"; both ``0`` and
    ``1`` therefore yield an empty payload.
    """

    if size == 0:
        return b""
    return reader.read_bytes(size - 1)


def load_unsigned(reader: ByteReader, limit: int) -> int:
    """Decode the Lua 5.4 varint: 7 bits per byte, most significant first.

    The high bit marks the *last* byte.  ``limit`` is the largest value the
    field may hold; the accumulator is checked before every shift.
    """

    value = 0
    ceiling = limit >> 7
    while True:
        byte = reader.read_byte()
        if value >= ceiling:
            raise IntegerOverflow(limit, offset=reader.offset - 1)
        value = (value << 7) | (byte & 0x7F)
        if byte & 0x80:
            return value


def load_size(reader: ByteReader) -> int:
    return load_unsigned(reader, SIZE_MAX)


def load_int(reader: ByteReader) -> int:
    return load_unsigned(reader, INT_MAX)


def read_uleb128(reader: ByteReader) -> int:
    """Decode LuaJIT's LEB128 (least significant group first, high bit continues)."""

    start = reader.offset
    byte = reader.read_byte()
    value = byte & 0x7F
    shift = 0
    while byte >= 0x80:
        byte = reader.read_byte()
        shift += 7
        value |= (byte & 0x7F) << shift
        if value > UINT32_MAX:
            raise IntegerOverflow(UINT32_MAX, offset=start)
    return value


def read_uleb128_33(reader: ByteReader) -> Tuple[int, bool]:
    """Decode LuaJIT's 33-bit LEB128 used for numeric constants.

    The low bit of the first byte flags a double (whose high word follows as a
    plain LEB128); the remaining bits start the value.
    """

    start = reader.offset
    first = reader.read_byte()
    is_num = bool(first & 1)
    value = first >> 1
    if value >= 0x40:
        value &= 0x3F
        shift = -1
        while True:
            byte = reader.read_byte()
            shift += 7
            value |= (byte & 0x7F) << shift
            if value > UINT32_MAX:
                raise IntegerOverflow(UINT32_MAX, offset=start)
            if byte < 0x80:
                break
    return value, is_num


def read_cstring(reader: ByteReader) -> bytes:
    """Read a NUL-terminated string and consume the terminator."""

    out = bytearray()
    while True:
        byte = reader.read_byte()
        if byte == 0:
            return bytes(out)
        out.append(byte)


__all__ = [
    "INT_MAX",
    "SIZE_MAX",
    "SUPPORTED_WIDTHS",
    "ByteReader",
    "load_int",
    "load_size",
    "load_unsigned",
    "read_cstring",
    "read_float",
    "read_int",
    "read_number",
    "read_sized_string",
    "read_uint",
    "read_uleb128",
    "read_uleb128_33",
]
