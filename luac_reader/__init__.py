"""Decoder for Lua 5.1-5.4 and LuaJIT bytecode images."""

from __future__ import annotations

from .exceptions import (
    DecodeError,
    IntegerOverflow,
    MalformedHeader,
    MalformedPrototype,
    NestingTooDeep,
    UnexpectedEof,
    UnknownConstantTag,
    UnsupportedVersion,
    UnsupportedWidth,
)
from .model import (
    BytecodeImage,
    Chunk,
    ConstantKind,
    FormatDescriptor,
    LuaConstant,
    LuaLocal,
    LuaTable,
    LuaVersion,
    Upvalue,
)
from .undump import DEFAULT_MAX_DEPTH, decode, decode_file

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_MAX_DEPTH",
    "BytecodeImage",
    "Chunk",
    "ConstantKind",
    "DecodeError",
    "FormatDescriptor",
    "IntegerOverflow",
    "LuaConstant",
    "LuaLocal",
    "LuaTable",
    "LuaVersion",
    "MalformedHeader",
    "MalformedPrototype",
    "NestingTooDeep",
    "UnexpectedEof",
    "UnknownConstantTag",
    "UnsupportedVersion",
    "UnsupportedWidth",
    "Upvalue",
    "decode",
    "decode_file",
]
