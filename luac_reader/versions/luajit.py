"""Prototype decoder for LuaJIT 2.0/2.1 bytecode dumps.

LuaJIT writes prototypes children-first, each prefixed by its byte length,
and terminates the stream with a zero length.  A parent refers to an
already-decoded child through a ``KGC_CHILD`` constant, which pops the most
recently completed prototype off a stack.  The last prototype left on that
stack is the main chunk.
"""

from __future__ import annotations

import logging
import struct
from typing import Callable, Dict, List, Tuple

from ..byteops import ByteReader, read_cstring, read_uint, read_uleb128, read_uleb128_33
from ..exceptions import MalformedPrototype, UnexpectedEof
from ..header import BCDUMP_F_STRIP
from ..model import (
    Chunk,
    ConstantKind,
    FormatDescriptor,
    LuaConstant,
    LuaLocal,
    LuaTable,
    Upvalue,
)
from .common import DEFAULT_MAX_DEPTH, check_depth

LOG = logging.getLogger(__name__)

# Prototype flags.
PROTO_CHILD = 0x01
PROTO_VARARG = 0x02
PROTO_FFI = 0x04

# Tags of GC constants; tags from KGC_STR upwards carry the string length.
KGC_CHILD = 0
KGC_TAB = 1
KGC_I64 = 2
KGC_U64 = 3
KGC_COMPLEX = 4
KGC_STR = 5

# Tags of template table entries.
KTAB_NIL = 0
KTAB_FALSE = 1
KTAB_TRUE = 2
KTAB_INT = 3
KTAB_NUM = 4
KTAB_STR = 5

UV_LOCAL = 0x8000
UV_IMMUTABLE = 0x4000
UV_INDEX_MASK = 0x3FFF

VARNAME_END = 0
VARNAME_MAX = 7
SPECIAL_VARNAMES: Dict[int, bytes] = {
    1: b"(for index)",
    2: b"(for limit)",
    3: b"(for step)",
    4: b"(for generator)",
    5: b"(for state)",
    6: b"(for control)",
}


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value >= (1 << 31) else value


def _to_int64(value: int) -> int:
    return value - (1 << 64) if value >= (1 << 63) else value


def _bits_to_double(lo: int, hi: int) -> float:
    return struct.unpack("<d", struct.pack("<II", lo, hi))[0]


def _read_double(reader: ByteReader) -> float:
    lo = read_uleb128(reader)
    hi = read_uleb128(reader)
    return _bits_to_double(lo, hi)


def _read_table_item(reader: ByteReader) -> LuaConstant:
    tag = read_uleb128(reader)
    if tag >= KTAB_STR:
        return LuaConstant.string(reader.read_bytes(tag - KTAB_STR))
    if tag == KTAB_INT:
        return LuaConstant.integer(_to_int32(read_uleb128(reader)))
    if tag == KTAB_NUM:
        return LuaConstant.float(_read_double(reader))
    if tag == KTAB_TRUE:
        return LuaConstant.boolean(True)
    if tag == KTAB_FALSE:
        return LuaConstant.boolean(False)
    return LuaConstant.nil()


def _read_table(reader: ByteReader) -> LuaConstant:
    narray = read_uleb128(reader)
    nhash = read_uleb128(reader)
    array = tuple(_read_table_item(reader) for _ in range(narray))
    hash_part = tuple((_read_table_item(reader), _read_table_item(reader)) for _ in range(nhash))
    return LuaConstant(ConstantKind.TABLE, LuaTable(array, hash_part))


def _read_wide_integer(reader: ByteReader) -> int:
    lo = read_uleb128(reader)
    hi = read_uleb128(reader)
    return (hi << 32) | lo


def _read_i64(reader: ByteReader) -> LuaConstant:
    return LuaConstant.integer(_to_int64(_read_wide_integer(reader)))


def _read_u64(reader: ByteReader) -> LuaConstant:
    return LuaConstant.integer(_read_wide_integer(reader))


def _read_complex(reader: ByteReader) -> LuaConstant:
    real = _read_double(reader)
    imag = _read_double(reader)
    return LuaConstant(ConstantKind.COMPLEX, (real, imag))


_KGC_READERS: Dict[int, Callable[[ByteReader], LuaConstant]] = {
    KGC_TAB: _read_table,
    KGC_I64: _read_i64,
    KGC_U64: _read_u64,
    KGC_COMPLEX: _read_complex,
}


def _read_gc_constants(
    reader: ByteReader,
    count: int,
    pending: List[Tuple[Chunk, int]],
) -> Tuple[Tuple[LuaConstant, ...], Tuple[Tuple[Chunk, int], ...]]:
    constants: List[LuaConstant] = []
    children: List[Tuple[Chunk, int]] = []
    for _ in range(count):
        tag_offset = reader.offset
        tag = read_uleb128(reader)
        if tag >= KGC_STR:
            constants.append(LuaConstant.string(reader.read_bytes(tag - KGC_STR)))
        elif tag == KGC_CHILD:
            if not pending:
                raise MalformedPrototype("child reference without a pending prototype", offset=tag_offset)
            constants.append(LuaConstant(ConstantKind.PROTO, len(children)))
            children.append(pending.pop())
        else:
            constants.append(_KGC_READERS[tag](reader))
    return tuple(constants), tuple(children)


def _read_num_constant(reader: ByteReader) -> LuaConstant:
    lo, is_num = read_uleb128_33(reader)
    if is_num:
        hi = read_uleb128(reader)
        return LuaConstant.float(_bits_to_double(lo, hi))
    return LuaConstant.integer(_to_int32(lo))


def _decode_upvalue(raw: int) -> Upvalue:
    kind = 1 if raw & UV_IMMUTABLE else 0
    return Upvalue(bool(raw & UV_LOCAL), raw & UV_INDEX_MASK, kind)


def _line_width(numline: int) -> int:
    if numline < 256:
        return 1
    if numline < 65536:
        return 2
    return 4


def _read_var_info(reader: ByteReader) -> Tuple[LuaLocal, ...]:
    locals_: List[LuaLocal] = []
    last_pc = 0
    while True:
        kind = reader.read_byte()
        if kind == VARNAME_END:
            break
        if kind < VARNAME_MAX:
            name = SPECIAL_VARNAMES[kind]
        else:
            name = bytes([kind]) + read_cstring(reader)
        start_pc = last_pc + read_uleb128(reader)
        end_pc = start_pc + read_uleb128(reader)
        last_pc = start_pc
        locals_.append(LuaLocal(name, start_pc, end_pc))
    return tuple(locals_)


def _read_proto(
    reader: ByteReader,
    fmt: FormatDescriptor,
    pending: List[Tuple[Chunk, int]],
) -> Tuple[Chunk, int]:
    """Decode one prototype record and return it with its subtree height."""

    byteorder = fmt.byteorder
    flags, num_params, frame_size, num_upvalues = reader.read_bytes(4)
    num_gc = read_uleb128(reader)
    num_kn = read_uleb128(reader)
    num_bc = read_uleb128(reader)
    debug_size = first_line = num_lines = 0
    if not fmt.flags & BCDUMP_F_STRIP:
        debug_size = read_uleb128(reader)
        if debug_size:
            first_line = read_uleb128(reader)
            num_lines = read_uleb128(reader)

    instructions = tuple(read_uint(reader, 4, byteorder) for _ in range(num_bc))
    upvalues = tuple(_decode_upvalue(read_uint(reader, 2, byteorder)) for _ in range(num_upvalues))
    constants, children = _read_gc_constants(reader, num_gc, pending)
    num_constants = tuple(_read_num_constant(reader) for _ in range(num_kn))

    line_info: Tuple[int, ...] = ()
    upvalue_names: Tuple[bytes, ...] = ()
    locals_: Tuple[LuaLocal, ...] = ()
    if debug_size:
        width = _line_width(num_lines)
        line_info = tuple(read_uint(reader, width, byteorder) for _ in range(num_bc))
        upvalue_names = tuple(read_cstring(reader) for _ in range(num_upvalues))
        locals_ = _read_var_info(reader)

    LOG.debug("chunk: %r, line: %d-%d", fmt.chunk_name, first_line, first_line + num_lines)
    chunk = Chunk(
        name=fmt.chunk_name,
        line_defined=first_line,
        last_line_defined=first_line + num_lines,
        num_params=num_params,
        is_vararg=bool(flags & PROTO_VARARG),
        max_stack=frame_size,
        num_upvalues=num_upvalues,
        flags=flags,
        instructions=instructions,
        constants=constants,
        num_constants=num_constants,
        upvalues=upvalues,
        prototypes=tuple(child for child, _ in children),
        line_info=line_info,
        locals=locals_,
        upvalue_names=upvalue_names,
    )
    height = max((child_height + 1 for _, child_height in children), default=0)
    return chunk, height


def load_chunk(
    reader: ByteReader,
    fmt: FormatDescriptor,
    *,
    depth: int = 0,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Chunk:
    """Decode the prototype stream and return the main chunk."""

    pending: List[Tuple[Chunk, int]] = []
    while True:
        length = read_uleb128(reader)
        if length == 0:
            break
        start = reader.offset
        if length > reader.remaining:
            raise UnexpectedEof(length, reader.remaining, offset=start)
        chunk, height = _read_proto(reader, fmt, pending)
        consumed = reader.offset - start
        if consumed != length:
            raise MalformedPrototype(
                f"prototype length mismatch: declared {length}, decoded {consumed}",
                offset=start,
            )
        check_depth(reader, depth + height, max_depth)
        pending.append((chunk, height))

    if len(pending) != 1:
        raise MalformedPrototype(
            f"expected one main prototype, {len(pending)} left", offset=reader.offset
        )
    return pending[0][0]


__all__ = ["load_chunk"]
