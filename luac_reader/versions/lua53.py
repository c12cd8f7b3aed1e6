"""Prototype decoder for Lua 5.3 images."""

from __future__ import annotations

import logging
from functools import partial
from typing import Any, Dict, Tuple

from ..byteops import ByteReader, read_sized_string
from ..constants import decode_constant
from ..model import Chunk, FormatDescriptor, LuaLocal, Upvalue
from .common import (
    DEFAULT_MAX_DEPTH,
    PrototypeHead,
    load_prototype_tree,
    read_array,
    read_c_count,
    read_c_int,
    read_instruction,
    read_size_t,
)

LOG = logging.getLogger(__name__)

# A size byte of 0xFF announces a full size_t length.
LONG_SIZE_MARKER = 0xFF


def load_string(reader: ByteReader, fmt: FormatDescriptor) -> bytes:
    size = reader.read_byte()
    if size == LONG_SIZE_MARKER:
        size = read_size_t(reader, fmt)
    return read_sized_string(reader, size)


def _load_upvalue(reader: ByteReader, fmt: FormatDescriptor) -> Upvalue:
    on_stack, index = reader.read_bytes(2)
    return Upvalue(on_stack != 0, index)


def _load_local(reader: ByteReader, fmt: FormatDescriptor) -> LuaLocal:
    name = load_string(reader, fmt)
    return LuaLocal(name, read_c_int(reader, fmt), read_c_int(reader, fmt))


def _read_head(reader: ByteReader, fmt: FormatDescriptor) -> PrototypeHead:
    name = load_string(reader, fmt)
    line_defined = read_c_int(reader, fmt)
    last_line_defined = read_c_int(reader, fmt)
    num_params, vararg, max_stack = reader.read_bytes(3)
    LOG.debug("chunk: %r, line: %d-%d", name, line_defined, last_line_defined)

    instructions = read_array(reader, fmt, read_c_count(reader, fmt), read_instruction)
    constants = read_array(
        reader, fmt, read_c_count(reader, fmt), partial(decode_constant, load_string=load_string)
    )
    upvalues = read_array(reader, fmt, read_c_count(reader, fmt), _load_upvalue)
    fields = dict(
        name=name,
        line_defined=line_defined,
        last_line_defined=last_line_defined,
        num_params=num_params,
        is_vararg=vararg != 0,
        max_stack=max_stack,
        num_upvalues=len(upvalues),
        flags=vararg,
        instructions=instructions,
        constants=constants,
        upvalues=upvalues,
    )
    return fields, read_c_count(reader, fmt)


def _read_tail(
    reader: ByteReader,
    fmt: FormatDescriptor,
    fields: Dict[str, Any],
    prototypes: Tuple[Chunk, ...],
) -> Chunk:
    line_info = read_array(reader, fmt, read_c_count(reader, fmt), read_c_int)
    locals_ = read_array(reader, fmt, read_c_count(reader, fmt), _load_local)
    upvalue_names = read_array(reader, fmt, read_c_count(reader, fmt), load_string)
    return Chunk(
        prototypes=prototypes,
        line_info=line_info,
        locals=locals_,
        upvalue_names=upvalue_names,
        **fields,
    )


def load_chunk(
    reader: ByteReader,
    fmt: FormatDescriptor,
    *,
    depth: int = 0,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Chunk:
    return load_prototype_tree(
        reader, fmt, _read_head, _read_tail, depth=depth, max_depth=max_depth
    )


__all__ = ["LONG_SIZE_MARKER", "load_chunk", "load_string"]
