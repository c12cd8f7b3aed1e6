import pytest

from luac_reader.model import LuaVersion
from luac_reader.vm.opcode_map import (
    OPCODE_GAPS,
    OPCODE_SUBSTITUTIONS,
    remap_instruction,
    remap_opcode,
)
from luac_reader.vm.opnames import OPCODE_NAMES, opcode_name, split_instruction


def test_substituted_opcodes():
    assert remap_opcode(0x0A) == 0
    for raw in range(10):
        assert remap_opcode(raw) == raw + 1


@pytest.mark.parametrize(
    "raw,expected",
    [
        (0x0B, 0x0B),
        (0x0C, 0x0B),
        (0x11, 0x0F),
        (0x38, 0x31),
        (0x66, 0x66 - 20),
        (0x7F, 0x7F - 20),
    ],
)
def test_gap_offsets(raw, expected):
    assert remap_opcode(raw) == expected


def test_gap_table_is_ordered():
    assert list(OPCODE_GAPS) == sorted(OPCODE_GAPS)
    assert len(OPCODE_GAPS) == 20
    assert len(OPCODE_SUBSTITUTIONS) == 11


def test_remap_is_pure():
    first = [remap_opcode(raw) for raw in range(0x80)]
    second = [remap_opcode(raw) for raw in range(0x80)]
    assert first == second


def test_first_gap_value_is_a_fixed_point():
    # 0x0B is outside the substitution domain and not above any gap.
    assert remap_opcode(0x0B) == 0x0B
    assert remap_opcode(remap_opcode(0x0B)) == 0x0B


def test_remap_is_monotonic_outside_substitutions():
    values = [remap_opcode(raw) for raw in range(0x0B, 0x80)]
    assert values == sorted(values)


def test_remap_instruction_keeps_operand_bits():
    operands = 0xDEADBE80
    word = operands | 0x0A
    assert remap_instruction(word) == operands
    assert remap_instruction(operands | 0x0C) == operands | 0x0B


def test_every_remapped_opcode_is_within_the_canonical_set():
    names = OPCODE_NAMES[LuaVersion.LUA54]
    for raw in range(0x66):
        assert 0 <= remap_opcode(raw) < len(names)


def test_opcode_table_sizes():
    assert len(OPCODE_NAMES[LuaVersion.LUA51]) == 38
    assert len(OPCODE_NAMES[LuaVersion.LUA52]) == 40
    assert len(OPCODE_NAMES[LuaVersion.LUA53]) == 47
    assert len(OPCODE_NAMES[LuaVersion.LUA54]) == 83
    assert len(OPCODE_NAMES[LuaVersion.LUAJIT1]) == 93
    assert len(OPCODE_NAMES[LuaVersion.LUAJIT2]) == 97


def test_opcode_name_lookup():
    assert opcode_name(LuaVersion.LUA54, 0) == "MOVE"
    assert opcode_name(LuaVersion.LUA54, 82) == "EXTRAARG"
    assert opcode_name(LuaVersion.LUA51, 30) == "RETURN"
    assert opcode_name(LuaVersion.LUAJIT2, 0x4B) == "RET0"
    assert opcode_name(LuaVersion.LUA51, 0x3F) == "OP_63"


def test_split_lua54_instruction():
    # LOADI A=3 sBx=5
    word = 1 | (3 << 7) | ((5 + 0xFFFF) << 15)
    fields = split_instruction(LuaVersion.LUA54, word)
    assert fields["op"] == 1
    assert fields["a"] == 3
    assert fields["sbx"] == 5


def test_split_lua51_instruction():
    # ADD A=1 B=2 C=3
    word = 12 | (1 << 6) | (3 << 14) | (2 << 23)
    fields = split_instruction(LuaVersion.LUA51, word)
    assert (fields["op"], fields["a"], fields["b"], fields["c"]) == (12, 1, 2, 3)


def test_split_luajit_instruction():
    word = 0x4B | (7 << 8) | (0x1234 << 16)
    fields = split_instruction(LuaVersion.LUAJIT2, word)
    assert (fields["op"], fields["a"], fields["d"]) == (0x4B, 7, 0x1234)
    assert fields["b"] == 0x12
    assert fields["c"] == 0x34
