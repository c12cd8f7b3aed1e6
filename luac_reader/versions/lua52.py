"""Prototype decoder for Lua 5.2 images.

5.2 moved the source name behind the code and constants, into the debug
section that closes each prototype.
"""

from __future__ import annotations

import logging
from functools import partial
from typing import Any, Dict, Tuple

from ..byteops import ByteReader
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
    read_nul_terminated_string,
)

LOG = logging.getLogger(__name__)

load_string = read_nul_terminated_string


def _load_upvalue(reader: ByteReader, fmt: FormatDescriptor) -> Upvalue:
    on_stack, index = reader.read_bytes(2)
    return Upvalue(on_stack != 0, index)


def _load_local(reader: ByteReader, fmt: FormatDescriptor) -> LuaLocal:
    name = load_string(reader, fmt)
    return LuaLocal(name, read_c_int(reader, fmt), read_c_int(reader, fmt))


def _read_head(reader: ByteReader, fmt: FormatDescriptor) -> PrototypeHead:
    line_defined = read_c_int(reader, fmt)
    last_line_defined = read_c_int(reader, fmt)
    num_params, vararg, max_stack = reader.read_bytes(3)

    instructions = read_array(reader, fmt, read_c_count(reader, fmt), read_instruction)
    constants = read_array(
        reader, fmt, read_c_count(reader, fmt), partial(decode_constant, load_string=load_string)
    )
    fields = dict(
        line_defined=line_defined,
        last_line_defined=last_line_defined,
        num_params=num_params,
        is_vararg=vararg != 0,
        max_stack=max_stack,
        flags=vararg,
        instructions=instructions,
        constants=constants,
    )
    return fields, read_c_count(reader, fmt)


def _read_tail(
    reader: ByteReader,
    fmt: FormatDescriptor,
    fields: Dict[str, Any],
    prototypes: Tuple[Chunk, ...],
) -> Chunk:
    upvalues = read_array(reader, fmt, read_c_count(reader, fmt), _load_upvalue)

    name = load_string(reader, fmt)
    LOG.debug("chunk: %r, line: %d-%d", name, fields["line_defined"], fields["last_line_defined"])
    line_info = read_array(reader, fmt, read_c_count(reader, fmt), read_c_int)
    locals_ = read_array(reader, fmt, read_c_count(reader, fmt), _load_local)
    upvalue_names = read_array(reader, fmt, read_c_count(reader, fmt), load_string)

    return Chunk(
        name=name,
        num_upvalues=len(upvalues),
        upvalues=upvalues,
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


__all__ = ["load_chunk", "load_string"]
