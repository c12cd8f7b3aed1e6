import pytest

from luac_reader import decode
from luac_reader.exceptions import MalformedPrototype
from luac_reader.model import LuaConstant, LuaLocal, LuaVersion, Upvalue

from fixtures.luac_images import (
    classic_header,
    lua51_chunk,
    lua52_chunk,
    lua53_chunk,
    lua53_header,
)


def test_lua51_chunk():
    child = lua51_chunk(name=None, line_defined=3, last_line_defined=5, num_upvalues=1, num_params=2)
    data = classic_header(0x51) + lua51_chunk(
        instructions=[0x00000001, 0x0080001E],
        constants=[None, True, 3.0, b"hello"],
        prototypes=[child],
        line_info=[1, 1],
        locals=[(b"a", 0, 2)],
        upvalue_names=[],
    )
    image = decode(data)
    chunk = image.main_chunk
    assert image.header.version is LuaVersion.LUA51
    assert chunk.name == b"@test.lua"
    assert chunk.is_vararg
    assert chunk.flags == 2
    assert chunk.instructions == (1, 0x0080001E)
    assert chunk.constants == (
        LuaConstant.nil(),
        LuaConstant.boolean(True),
        LuaConstant.float(3.0),
        LuaConstant.string(b"hello"),
    )
    assert chunk.line_info == (1, 1)
    assert chunk.locals == (LuaLocal(b"a", 0, 2),)
    assert chunk.upvalues == ()

    (nested,) = chunk.prototypes
    assert nested.name == b""
    assert nested.num_upvalues == 1
    assert nested.num_params == 2
    assert (nested.line_defined, nested.last_line_defined) == (3, 5)


def test_lua51_big_endian_image():
    data = classic_header(0x51, big_endian=True) + lua51_chunk(
        instructions=[0x0080001E], constants=[b"x"], byteorder="big"
    )
    chunk = decode(data).main_chunk
    assert chunk.instructions == (0x0080001E,)
    assert chunk.constants == (LuaConstant.string(b"x"),)


def test_lua51_strings_drop_the_trailing_nul():
    chunk = decode(classic_header(0x51) + lua51_chunk(constants=[b""])).main_chunk
    assert chunk.constants == (LuaConstant.string(b""),)


def test_lua51_negative_count_is_malformed():
    data = bytearray(classic_header(0x51) + lua51_chunk())
    # instruction count sits after the name, two ints and four bytes
    count_offset = 12 + 8 + len(b"@test.lua\x00") + 8 + 4
    data[count_offset : count_offset + 4] = (-1).to_bytes(4, "little", signed=True)
    with pytest.raises(MalformedPrototype):
        decode(bytes(data))


def test_lua52_chunk_reads_source_from_debug_section():
    child = lua52_chunk(name=None, upvalues=[(0, 0)])
    data = classic_header(0x52) + lua52_chunk(
        name=b"=stdin",
        instructions=[0x0100001F],
        constants=[False, 10.0],
        prototypes=[child],
        upvalues=[(1, 0)],
        line_info=[1],
        upvalue_names=[b"_ENV"],
    )
    chunk = decode(data).main_chunk
    assert chunk.name == b"=stdin"
    assert chunk.constants == (LuaConstant.boolean(False), LuaConstant.float(10.0))
    assert chunk.upvalues == (Upvalue(True, 0),)
    assert chunk.upvalue_names == (b"_ENV",)
    assert chunk.prototypes[0].upvalues == (Upvalue(False, 0),)
    assert chunk.prototypes[0].name == b""


def test_lua53_chunk():
    long_string = b"z" * 300
    child = lua53_chunk(name=None, num_params=1)
    data = lua53_header() + lua53_chunk(
        instructions=[0x00800026],
        constants=[None, True, 2**40, 0.5, b"short", long_string],
        upvalues=[(1, 0)],
        prototypes=[child],
        line_info=[4],
        locals=[(b"i", 0, 1)],
        upvalue_names=[b"_ENV"],
    )
    image = decode(data)
    chunk = image.main_chunk
    assert image.header.version is LuaVersion.LUA53
    assert chunk.constants == (
        LuaConstant.nil(),
        LuaConstant.boolean(True),
        LuaConstant.integer(2**40),
        LuaConstant.float(0.5),
        LuaConstant.string(b"short"),
        LuaConstant.string(long_string),
    )
    assert chunk.upvalues == (Upvalue(True, 0),)
    assert chunk.prototypes[0].num_params == 1
    assert chunk.locals == (LuaLocal(b"i", 0, 1),)
