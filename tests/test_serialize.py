import json

import msgpack
import pytest

from luac_reader import decode
from luac_reader.exceptions import UnexpectedEof, UnsupportedVersion
from luac_reader.serialize import as_dict, error_payload, parse_to_msgpack, to_json, to_msgpack

from fixtures.luac_images import (
    kgc_complex,
    kgc_table,
    lua54_chunk,
    lua54_header,
    luajit_image,
    luajit_proto,
    nested_lua54_chunk,
)


@pytest.fixture
def image():
    child = lua54_chunk(name=None, instructions=[0x46])
    return decode(
        lua54_header()
        + lua54_chunk(
            name=b"@main.lua",
            instructions=[0x51],
            constants=[None, True, -1, 0.5, b"text", b"\xff\x00"],
            upvalues=[(1, 0, 0)],
            prototypes=[child],
            abs_line_info=[(0, 3)],
            locals=[(b"x", 0, 1)],
        )
    )


def test_as_dict_shape(image):
    data = as_dict(image)
    assert data["header"]["version"] == "5.4"
    main = data["main_chunk"]
    assert main["name"] == b"@main.lua"
    assert main["instructions"] == [0x51]
    assert main["constants"][2] == {"kind": "integer", "value": -1}
    assert main["upvalues"] == [{"on_stack": True, "id": 0, "kind": 0}]
    assert main["abs_line_info"] == [[0, 3]]
    assert len(main["prototypes"]) == 1


def test_json_encodes_bytes(image):
    data = json.loads(to_json(image))
    main = data["main_chunk"]
    assert main["name"] == "@main.lua"
    assert main["constants"][4] == {"kind": "string", "value": "text"}
    assert main["constants"][5] == {"kind": "string", "value": {"hex": "ff00"}}
    assert main["locals"] == [{"name": "x", "start_pc": 0, "end_pc": 1}]


def test_json_indent(image):
    assert "\n" in to_json(image, indent=2)
    assert "\n" not in to_json(image)


def test_msgpack_round_trip(image):
    data = msgpack.unpackb(to_msgpack(image), raw=False)
    main = data["main_chunk"]
    assert main["name"] == b"@main.lua"
    assert main["constants"][5]["value"] == b"\xff\x00"
    assert main["prototypes"][0]["instructions"] == [0x46]
    assert data["header"]["chunk_name"] == b""


def test_msgpack_luajit_constants():
    proto = luajit_proto(gc_constants=[kgc_table([1], [(b"k", False)]), kgc_complex(0.5, 2.0)])
    data = msgpack.unpackb(parse_to_msgpack(luajit_image(proto)), raw=False)
    table, complex_value = data["main_chunk"]["constants"]
    assert table["kind"] == "table"
    assert table["value"]["array"] == [{"kind": "integer", "value": 1}]
    assert table["value"]["hash"] == [[{"kind": "string", "value": b"k"}, {"kind": "boolean", "value": False}]]
    assert complex_value == {"kind": "complex", "value": [0.5, 2.0]}


def test_parse_to_msgpack_propagates_errors():
    with pytest.raises(UnexpectedEof):
        parse_to_msgpack(lua54_header()[:-1])


def test_error_payload():
    with pytest.raises(UnsupportedVersion) as excinfo:
        decode(b"\x1bLua\x60")
    payload = error_payload(excinfo.value)
    assert payload["kind"] == "UnsupportedVersion"
    assert payload["offset"] == 4
    assert payload["version"] == 0x60
    assert "0x60" in payload["message"]


def _nesting(main):
    depth = 0
    while main["prototypes"]:
        (main,) = main["prototypes"]
        depth += 1
    return depth


def _seek_key(unpacker, wanted):
    for _ in range(unpacker.read_map_header()):
        if unpacker.unpack() == wanted:
            return
        unpacker.skip()
    raise KeyError(wanted)


def _msgpack_nesting(payload):
    unpacker = msgpack.Unpacker(raw=False)
    unpacker.feed(payload)
    _seek_key(unpacker, "main_chunk")
    depth = 0
    while True:
        _seek_key(unpacker, "prototypes")
        if unpacker.read_array_header() == 0:
            return depth
        depth += 1


def test_deep_images_serialize():
    # Deeper than msgpack's default 511-level packer limit.
    image = decode(lua54_header() + nested_lua54_chunk(260), max_depth=260)
    assert _msgpack_nesting(to_msgpack(image)) == 260
    assert _nesting(json.loads(to_json(image))["main_chunk"]) == 260
    assert _nesting(as_dict(image)["main_chunk"]) == 260


def test_msgpack_matches_packb_for_shallow_images(image):
    assert to_msgpack(image) == msgpack.packb(as_dict(image), use_bin_type=True)
