"""Data model for decoded bytecode images.

The whole tree is built bottom-up by the chunk decoders and is immutable once
returned: every record is a frozen dataclass and every sequence a tuple.  A
:class:`Chunk` owns its nested prototypes by value, there are no back links.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, Tuple


class LuaVersion(Enum):
    """Closed set of supported bytecode families."""

    LUA51 = "5.1"
    LUA52 = "5.2"
    LUA53 = "5.3"
    LUA54 = "5.4"
    LUA54_REMAPPED = "5.4-remapped"
    LUAJIT1 = "luajit-2.0"
    LUAJIT2 = "luajit-2.1"

    @property
    def is_luajit(self) -> bool:
        return self in (LuaVersion.LUAJIT1, LuaVersion.LUAJIT2)


@dataclass(frozen=True)
class FormatDescriptor:
    """Field widths and numeric representation declared by the header.

    Produced once per input; every primitive read of that input uses these
    parameters.
    """

    version: LuaVersion
    format_version: int = 0
    big_endian: bool = False
    int_size: int = 4
    size_t_size: int = 8
    instruction_size: int = 4
    integer_size: int = 8
    number_size: int = 8
    number_integral: bool = False
    flags: int = 0
    chunk_name: bytes = b""

    @property
    def byteorder(self) -> str:
        return "big" if self.big_endian else "little"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version.value,
            "format_version": self.format_version,
            "big_endian": self.big_endian,
            "int_size": self.int_size,
            "size_t_size": self.size_t_size,
            "instruction_size": self.instruction_size,
            "integer_size": self.integer_size,
            "number_size": self.number_size,
            "number_integral": self.number_integral,
            "flags": self.flags,
            "chunk_name": self.chunk_name,
        }


class ConstantKind(Enum):
    NIL = "nil"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    TABLE = "table"
    PROTO = "proto"
    COMPLEX = "complex"


@dataclass(frozen=True)
class LuaTable:
    """Template table stored in a LuaJIT constant pool."""

    array: Tuple["LuaConstant", ...] = ()
    hash: Tuple[Tuple["LuaConstant", "LuaConstant"], ...] = ()

    def as_dict(self) -> Dict[str, Any]:
        return {
            "array": [item.as_dict() for item in self.array],
            "hash": [[key.as_dict(), value.as_dict()] for key, value in self.hash],
        }


@dataclass(frozen=True)
class LuaConstant:
    """A tagged constant pool entry."""

    kind: ConstantKind
    value: Any = None

    @classmethod
    def nil(cls) -> "LuaConstant":
        return cls(ConstantKind.NIL)

    @classmethod
    def boolean(cls, value: bool) -> "LuaConstant":
        return cls(ConstantKind.BOOLEAN, bool(value))

    @classmethod
    def integer(cls, value: int) -> "LuaConstant":
        return cls(ConstantKind.INTEGER, int(value))

    @classmethod
    def float(cls, value: float) -> "LuaConstant":
        return cls(ConstantKind.FLOAT, value)

    @classmethod
    def string(cls, value: bytes) -> "LuaConstant":
        return cls(ConstantKind.STRING, bytes(value))

    def as_dict(self) -> Dict[str, Any]:
        value = self.value
        if self.kind is ConstantKind.TABLE:
            value = value.as_dict()
        elif self.kind is ConstantKind.COMPLEX:
            value = list(value)
        return {"kind": self.kind.value, "value": value}


@dataclass(frozen=True)
class Upvalue:
    on_stack: bool
    id: int
    kind: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return {"on_stack": self.on_stack, "id": self.id, "kind": self.kind}


@dataclass(frozen=True)
class LuaLocal:
    name: bytes
    start_pc: int
    end_pc: int

    def as_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "start_pc": self.start_pc, "end_pc": self.end_pc}


@dataclass(frozen=True)
class ChunkCounts:
    instructions: int = 0
    constants: int = 0
    upvalues: int = 0
    prototypes: int = 0

    def __add__(self, other: "ChunkCounts") -> "ChunkCounts":
        return ChunkCounts(
            self.instructions + other.instructions,
            self.constants + other.constants,
            self.upvalues + other.upvalues,
            self.prototypes + other.prototypes,
        )


@dataclass(frozen=True)
class Chunk:
    """One decoded function prototype."""

    name: bytes = b""
    line_defined: int = 0
    last_line_defined: int = 0
    num_params: int = 0
    is_vararg: bool = False
    max_stack: int = 0
    num_upvalues: int = 0
    flags: int = 0
    instructions: Tuple[int, ...] = ()
    constants: Tuple[LuaConstant, ...] = ()
    num_constants: Tuple[LuaConstant, ...] = ()
    upvalues: Tuple[Upvalue, ...] = ()
    prototypes: Tuple["Chunk", ...] = ()
    line_info: Tuple[int, ...] = ()
    abs_line_info: Tuple[Tuple[int, int], ...] = ()
    locals: Tuple[LuaLocal, ...] = ()
    upvalue_names: Tuple[bytes, ...] = ()

    def walk(self) -> Iterator["Chunk"]:
        """Yield this chunk and every nested prototype in pre-order."""

        stack = [self]
        while stack:
            chunk = stack.pop()
            yield chunk
            stack.extend(reversed(chunk.prototypes))

    def total_counts(self) -> ChunkCounts:
        total = ChunkCounts()
        for chunk in self.walk():
            total = total + ChunkCounts(
                len(chunk.instructions),
                len(chunk.constants) + len(chunk.num_constants),
                len(chunk.upvalues),
                len(chunk.prototypes),
            )
        return total

    def as_dict(self) -> Dict[str, Any]:
        """Plain-data view of the whole subtree.

        Built bottom-up over :meth:`walk`, so deep nesting needs no recursion.
        """

        built: Dict[int, Dict[str, Any]] = {}
        for chunk in reversed(list(self.walk())):
            data = chunk._fields_dict()
            data["prototypes"] = [built[id(child)] for child in chunk.prototypes]
            built[id(chunk)] = data
        return built[id(self)]

    def _fields_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "line_defined": self.line_defined,
            "last_line_defined": self.last_line_defined,
            "num_params": self.num_params,
            "is_vararg": self.is_vararg,
            "max_stack": self.max_stack,
            "num_upvalues": self.num_upvalues,
            "flags": self.flags,
            "instructions": list(self.instructions),
            "constants": [constant.as_dict() for constant in self.constants],
            "num_constants": [constant.as_dict() for constant in self.num_constants],
            "upvalues": [upvalue.as_dict() for upvalue in self.upvalues],
            "prototypes": [],
            "line_info": list(self.line_info),
            "abs_line_info": [list(pair) for pair in self.abs_line_info],
            "locals": [local.as_dict() for local in self.locals],
            "upvalue_names": list(self.upvalue_names),
        }


@dataclass(frozen=True)
class BytecodeImage:
    """The decode result: one header and the root prototype."""

    header: FormatDescriptor
    main_chunk: Chunk

    def as_dict(self) -> Dict[str, Any]:
        return {"header": self.header.as_dict(), "main_chunk": self.main_chunk.as_dict()}


__all__ = [
    "BytecodeImage",
    "Chunk",
    "ChunkCounts",
    "ConstantKind",
    "FormatDescriptor",
    "LuaConstant",
    "LuaLocal",
    "LuaTable",
    "LuaVersion",
    "Upvalue",
]
