"""Canonical opcode mnemonics and instruction field layouts per bytecode family."""

from __future__ import annotations

from typing import Dict, Tuple

from ..model import LuaVersion

LUA51_OPCODES: Tuple[str, ...] = (
    "MOVE", "LOADK", "LOADBOOL", "LOADNIL", "GETUPVAL", "GETGLOBAL",
    "GETTABLE", "SETGLOBAL", "SETUPVAL", "SETTABLE", "NEWTABLE", "SELF",
    "ADD", "SUB", "MUL", "DIV", "MOD", "POW", "UNM", "NOT", "LEN", "CONCAT",
    "JMP", "EQ", "LT", "LE", "TEST", "TESTSET", "CALL", "TAILCALL", "RETURN",
    "FORLOOP", "FORPREP", "TFORLOOP", "SETLIST", "CLOSE", "CLOSURE", "VARARG",
)

LUA52_OPCODES: Tuple[str, ...] = (
    "MOVE", "LOADK", "LOADKX", "LOADBOOL", "LOADNIL", "GETUPVAL", "GETTABUP",
    "GETTABLE", "SETTABUP", "SETUPVAL", "SETTABLE", "NEWTABLE", "SELF",
    "ADD", "SUB", "MUL", "DIV", "MOD", "POW", "UNM", "NOT", "LEN", "CONCAT",
    "JMP", "EQ", "LT", "LE", "TEST", "TESTSET", "CALL", "TAILCALL", "RETURN",
    "FORLOOP", "FORPREP", "TFORCALL", "TFORLOOP", "SETLIST", "CLOSURE",
    "VARARG", "EXTRAARG",
)

LUA53_OPCODES: Tuple[str, ...] = (
    "MOVE", "LOADK", "LOADKX", "LOADBOOL", "LOADNIL", "GETUPVAL", "GETTABUP",
    "GETTABLE", "SETTABUP", "SETUPVAL", "SETTABLE", "NEWTABLE", "SELF",
    "ADD", "SUB", "MUL", "MOD", "POW", "DIV", "IDIV", "BAND", "BOR", "BXOR",
    "SHL", "SHR", "UNM", "BNOT", "NOT", "LEN", "CONCAT", "JMP", "EQ", "LT",
    "LE", "TEST", "TESTSET", "CALL", "TAILCALL", "RETURN", "FORLOOP",
    "FORPREP", "TFORCALL", "TFORLOOP", "SETLIST", "CLOSURE", "VARARG",
    "EXTRAARG",
)

LUA54_OPCODES: Tuple[str, ...] = (
    "MOVE", "LOADI", "LOADF", "LOADK", "LOADKX", "LOADFALSE", "LFALSESKIP",
    "LOADTRUE", "LOADNIL", "GETUPVAL", "SETUPVAL", "GETTABUP", "GETTABLE",
    "GETI", "GETFIELD", "SETTABUP", "SETTABLE", "SETI", "SETFIELD",
    "NEWTABLE", "SELF", "ADDI", "ADDK", "SUBK", "MULK", "MODK", "POWK",
    "DIVK", "IDIVK", "BANDK", "BORK", "BXORK", "SHRI", "SHLI", "ADD", "SUB",
    "MUL", "MOD", "POW", "DIV", "IDIV", "BAND", "BOR", "BXOR", "SHL", "SHR",
    "MMBIN", "MMBINI", "MMBINK", "UNM", "BNOT", "NOT", "LEN", "CONCAT",
    "CLOSE", "TBC", "JMP", "EQ", "LT", "LE", "EQK", "EQI", "LTI", "LEI",
    "GTI", "GEI", "TEST", "TESTSET", "CALL", "TAILCALL", "RETURN", "RETURN0",
    "RETURN1", "FORLOOP", "FORPREP", "TFORPREP", "TFORCALL", "TFORLOOP",
    "SETLIST", "CLOSURE", "VARARG", "VARARGPREP", "EXTRAARG",
)

LUAJIT20_OPCODES: Tuple[str, ...] = (
    "ISLT", "ISGE", "ISLE", "ISGT", "ISEQV", "ISNEV", "ISEQS", "ISNES",
    "ISEQN", "ISNEN", "ISEQP", "ISNEP", "ISTC", "ISFC", "IST", "ISF", "MOV",
    "NOT", "UNM", "LEN", "ADDVN", "SUBVN", "MULVN", "DIVVN", "MODVN",
    "ADDNV", "SUBNV", "MULNV", "DIVNV", "MODNV", "ADDVV", "SUBVV", "MULVV",
    "DIVVV", "MODVV", "POW", "CAT", "KSTR", "KCDATA", "KSHORT", "KNUM",
    "KPRI", "KNIL", "UGET", "USETV", "USETS", "USETN", "USETP", "UCLO",
    "FNEW", "TNEW", "TDUP", "GGET", "GSET", "TGETV", "TGETS", "TGETB",
    "TSETV", "TSETS", "TSETB", "TSETM", "CALLM", "CALL", "CALLMT", "CALLT",
    "ITERC", "ITERN", "VARG", "ISNEXT", "RETM", "RET", "RET0", "RET1",
    "FORI", "JFORI", "FORL", "IFORL", "JFORL", "ITERL", "IITERL", "JITERL",
    "LOOP", "ILOOP", "JLOOP", "JMP", "FUNCF", "IFUNCF", "JFUNCF", "FUNCV",
    "IFUNCV", "JFUNCV", "FUNCC", "FUNCCW",
)

LUAJIT21_OPCODES: Tuple[str, ...] = (
    "ISLT", "ISGE", "ISLE", "ISGT", "ISEQV", "ISNEV", "ISEQS", "ISNES",
    "ISEQN", "ISNEN", "ISEQP", "ISNEP", "ISTC", "ISFC", "IST", "ISF",
    "ISTYPE", "ISNUM", "MOV", "NOT", "UNM", "LEN", "ADDVN", "SUBVN", "MULVN",
    "DIVVN", "MODVN", "ADDNV", "SUBNV", "MULNV", "DIVNV", "MODNV", "ADDVV",
    "SUBVV", "MULVV", "DIVVV", "MODVV", "POW", "CAT", "KSTR", "KCDATA",
    "KSHORT", "KNUM", "KPRI", "KNIL", "UGET", "USETV", "USETS", "USETN",
    "USETP", "UCLO", "FNEW", "TNEW", "TDUP", "GGET", "GSET", "TGETV",
    "TGETS", "TGETB", "TGETR", "TSETV", "TSETS", "TSETB", "TSETM", "TSETR",
    "CALLM", "CALL", "CALLMT", "CALLT", "ITERC", "ITERN", "VARG", "ISNEXT",
    "RETM", "RET", "RET0", "RET1", "FORI", "JFORI", "FORL", "IFORL", "JFORL",
    "ITERL", "IITERL", "JITERL", "LOOP", "ILOOP", "JLOOP", "JMP", "FUNCF",
    "IFUNCF", "JFUNCF", "FUNCV", "IFUNCV", "JFUNCV", "FUNCC", "FUNCCW",
)

OPCODE_NAMES: Dict[LuaVersion, Tuple[str, ...]] = {
    LuaVersion.LUA51: LUA51_OPCODES,
    LuaVersion.LUA52: LUA52_OPCODES,
    LuaVersion.LUA53: LUA53_OPCODES,
    LuaVersion.LUA54: LUA54_OPCODES,
    LuaVersion.LUA54_REMAPPED: LUA54_OPCODES,
    LuaVersion.LUAJIT1: LUAJIT20_OPCODES,
    LuaVersion.LUAJIT2: LUAJIT21_OPCODES,
}


def opcode_name(version: LuaVersion, opcode: int) -> str:
    names = OPCODE_NAMES[version]
    if 0 <= opcode < len(names):
        return names[opcode]
    return f"OP_{opcode}"


def split_instruction(version: LuaVersion, word: int) -> Dict[str, int]:
    """Split ``word`` into its opcode and operand fields.

    Every field the encoding can hold is returned; which of them an opcode
    actually uses depends on its operand mode.
    """

    if version.is_luajit:
        return {
            "op": word & 0xFF,
            "a": (word >> 8) & 0xFF,
            "c": (word >> 16) & 0xFF,
            "b": (word >> 24) & 0xFF,
            "d": (word >> 16) & 0xFFFF,
        }
    if version in (LuaVersion.LUA54, LuaVersion.LUA54_REMAPPED):
        bx = (word >> 15) & 0x1FFFF
        return {
            "op": word & 0x7F,
            "a": (word >> 7) & 0xFF,
            "k": (word >> 15) & 0x1,
            "b": (word >> 16) & 0xFF,
            "c": (word >> 24) & 0xFF,
            "bx": bx,
            "sbx": bx - 0xFFFF,
            "sj": ((word >> 7) & 0x1FFFFFF) - 0xFFFFFF,
        }
    bx = (word >> 14) & 0x3FFFF
    return {
        "op": word & 0x3F,
        "a": (word >> 6) & 0xFF,
        "c": (word >> 14) & 0x1FF,
        "b": (word >> 23) & 0x1FF,
        "bx": bx,
        "sbx": bx - 0x1FFFF,
    }


__all__ = [
    "OPCODE_NAMES",
    "opcode_name",
    "split_instruction",
]
