"""Prototype decoder for Lua 5.1 images."""

from __future__ import annotations

import logging
from functools import partial
from typing import Any, Dict, Tuple

from ..byteops import ByteReader
from ..constants import decode_constant
from ..model import Chunk, FormatDescriptor, LuaLocal
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


def _load_local(reader: ByteReader, fmt: FormatDescriptor) -> LuaLocal:
    name = load_string(reader, fmt)
    return LuaLocal(name, read_c_int(reader, fmt), read_c_int(reader, fmt))


def _read_head(reader: ByteReader, fmt: FormatDescriptor) -> PrototypeHead:
    name = load_string(reader, fmt)
    line_defined = read_c_int(reader, fmt)
    last_line_defined = read_c_int(reader, fmt)
    num_upvalues, num_params, vararg, max_stack = reader.read_bytes(4)
    LOG.debug("chunk: %r, line: %d-%d", name, line_defined, last_line_defined)

    instructions = read_array(reader, fmt, read_c_count(reader, fmt), read_instruction)
    constants = read_array(
        reader, fmt, read_c_count(reader, fmt), partial(decode_constant, load_string=load_string)
    )
    fields = dict(
        name=name,
        line_defined=line_defined,
        last_line_defined=last_line_defined,
        num_params=num_params,
        is_vararg=vararg != 0,
        max_stack=max_stack,
        num_upvalues=num_upvalues,
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
    """Decode one 5.1 function prototype together with its nested prototypes.

    5.1 has no upvalue descriptors: the declared count is kept in
    ``num_upvalues`` and ``upvalues`` stays empty.
    """

    return load_prototype_tree(
        reader, fmt, _read_head, _read_tail, depth=depth, max_depth=max_depth
    )


__all__ = ["load_chunk", "load_string"]
