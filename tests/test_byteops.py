import struct

import pytest

from luac_reader.byteops import (
    INT_MAX,
    SIZE_MAX,
    ByteReader,
    load_int,
    load_size,
    read_cstring,
    read_float,
    read_int,
    read_number,
    read_sized_string,
    read_uint,
    read_uleb128,
    read_uleb128_33,
)
from luac_reader.exceptions import IntegerOverflow, UnexpectedEof, UnsupportedWidth
from luac_reader.model import FormatDescriptor, LuaVersion

from fixtures.luac_images import uleb128, uleb128_33, varint


def test_single_byte_varint_with_terminator():
    reader = ByteReader(bytes([0x82]))
    assert load_size(reader) == 2
    assert reader.at_end()


def test_two_byte_varint_accumulates_most_significant_first():
    reader = ByteReader(bytes([0x01, 0x82]))
    assert load_size(reader) == (1 << 7) | 2 == 130
    assert reader.offset == 2


def test_varint_without_terminator_is_truncation():
    with pytest.raises(UnexpectedEof) as excinfo:
        load_size(ByteReader(bytes([0x02])))
    assert excinfo.value.offset == 1


@pytest.mark.parametrize("value", [0, 1, 0x7F, 0x80, 0x3FFF, 0x4000, 123456789, 1 << 28])
def test_varint_chunking_matches_reference_encoder(value):
    encoded = varint(value)
    reader = ByteReader(encoded + b"\xaa")
    assert load_int(reader) == value
    assert reader.offset == len(encoded)
    expected_groups = max(1, (value.bit_length() + 6) // 7)
    assert len(encoded) == expected_groups
    assert encoded[-1] & 0x80
    assert all(byte < 0x80 for byte in encoded[:-1])


def test_int_varint_overflow_is_reported_at_offending_byte():
    # 2**31 needs five groups; the accumulator passes INT_MAX >> 7 before the last shift.
    data = varint(INT_MAX + 1)
    with pytest.raises(IntegerOverflow) as excinfo:
        load_int(ByteReader(data))
    assert excinfo.value.limit == INT_MAX
    assert excinfo.value.offset == len(data) - 1


def test_size_varint_accepts_large_values():
    value = 1 << 50
    assert load_size(ByteReader(varint(value))) == value


def test_size_varint_rejects_runaway_input():
    data = b"\x7f" * 10 + b"\x80"
    with pytest.raises(IntegerOverflow) as excinfo:
        load_size(ByteReader(data))
    assert excinfo.value.limit == SIZE_MAX


@pytest.mark.parametrize("size", [0, 1])
def test_sized_string_zero_and_one_are_empty(size):
    reader = ByteReader(b"xyz")
    assert read_sized_string(reader, size) == b""
    assert reader.offset == 0


def test_sized_string_reads_size_minus_one_bytes():
    reader = ByteReader(b"hello!")
    assert read_sized_string(reader, 6) == b"hello"
    assert reader.remaining == 1


@pytest.mark.parametrize("size", [1, 2, 4, 8])
@pytest.mark.parametrize("byteorder", ["little", "big"])
def test_uint_and_int_widths(size, byteorder):
    raw = b"\xff" + b"\x00" * (size - 1)
    if byteorder == "big":
        raw = raw[::-1]
    assert read_uint(ByteReader(raw), size, byteorder) == 0xFF
    assert read_int(ByteReader(b"\xff" * size), size, byteorder) == -1


@pytest.mark.parametrize("size", [0, 3, 5, 16])
def test_unsupported_widths(size):
    with pytest.raises(UnsupportedWidth) as excinfo:
        read_uint(ByteReader(b"\x00" * 16), size)
    assert excinfo.value.width == size
    with pytest.raises(UnsupportedWidth):
        read_int(ByteReader(b"\x00" * 16), size)


def test_float_widths():
    assert read_float(ByteReader(struct.pack("<f", 1.5)), 4) == 1.5
    assert read_float(ByteReader(struct.pack(">d", -2.25)), 8, "big") == -2.25
    with pytest.raises(UnsupportedWidth):
        read_float(ByteReader(b"\x00" * 2), 2)


def test_read_number_follows_descriptor():
    integral = FormatDescriptor(LuaVersion.LUA51, number_size=4, number_integral=True)
    assert read_number(ByteReader(struct.pack("<i", -7)), integral) == -7
    floating = FormatDescriptor(LuaVersion.LUA51, big_endian=True)
    assert read_number(ByteReader(struct.pack(">d", 0.5)), floating) == 0.5


def test_reads_past_end_raise_unexpected_eof():
    reader = ByteReader(b"\x01\x02\x03")
    reader.read_bytes(2)
    with pytest.raises(UnexpectedEof) as excinfo:
        read_uint(reader, 4)
    assert excinfo.value.offset == 2
    assert excinfo.value.needed == 4
    assert excinfo.value.available == 1


@pytest.mark.parametrize("value", [0, 1, 127, 128, 300, 0xFFFFFFFF])
def test_uleb128(value):
    reader = ByteReader(uleb128(value))
    assert read_uleb128(reader) == value
    assert reader.at_end()


def test_uleb128_is_bounded_to_32_bits():
    with pytest.raises(IntegerOverflow):
        read_uleb128(ByteReader(uleb128(1 << 32)))


@pytest.mark.parametrize("value", [0, 5, 0x3F, 0x40, 1000, 0xFFFFFFFF])
@pytest.mark.parametrize("is_num", [False, True])
def test_uleb128_33(value, is_num):
    reader = ByteReader(uleb128_33(value, is_num))
    assert read_uleb128_33(reader) == (value, is_num)
    assert reader.at_end()


def test_cstring():
    reader = ByteReader(b"abc\x00rest")
    assert read_cstring(reader) == b"abc"
    assert reader.offset == 4
    with pytest.raises(UnexpectedEof):
        read_cstring(ByteReader(b"unterminated"))
