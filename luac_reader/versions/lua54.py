"""Prototype decoder for Lua 5.4 and the remapped 5.4 family.

Both share one record layout: every count, line and size is a varint (see
:func:`~luac_reader.byteops.load_unsigned`) and upvalues carry a kind byte.
The remapped family additionally rewrites each instruction's opcode into the
canonical 5.4 numbering as soon as the raw word is read.
"""

from __future__ import annotations

import logging
from functools import partial
from typing import Any, Dict, Tuple

from ..byteops import ByteReader, load_int, load_size, read_sized_string
from ..constants import decode_constant
from ..model import Chunk, FormatDescriptor, LuaLocal, LuaVersion, Upvalue
from ..vm.opcode_map import remap_instruction
from .common import (
    DEFAULT_MAX_DEPTH,
    PrototypeHead,
    load_prototype_tree,
    read_array,
    read_instruction,
)

LOG = logging.getLogger(__name__)


def load_string(reader: ByteReader, fmt: FormatDescriptor) -> bytes:
    return read_sized_string(reader, load_size(reader))


def _read_remapped_instruction(reader: ByteReader, fmt: FormatDescriptor) -> int:
    return remap_instruction(read_instruction(reader, fmt))


def _read_line_byte(reader: ByteReader, fmt: FormatDescriptor) -> int:
    return reader.read_byte()


def _load_upvalue(reader: ByteReader, fmt: FormatDescriptor) -> Upvalue:
    on_stack, index, kind = reader.read_bytes(3)
    return Upvalue(on_stack != 0, index, kind)


def _load_abs_line(reader: ByteReader, fmt: FormatDescriptor):
    return load_int(reader), load_int(reader)


def _load_local(reader: ByteReader, fmt: FormatDescriptor) -> LuaLocal:
    name = load_string(reader, fmt)
    return LuaLocal(name, load_int(reader), load_int(reader))


def _read_head(reader: ByteReader, fmt: FormatDescriptor) -> PrototypeHead:
    name = load_string(reader, fmt)
    line_defined = load_int(reader)
    last_line_defined = load_int(reader)
    num_params, vararg, max_stack = reader.read_bytes(3)
    LOG.debug("chunk: %r, line: %d-%d", name, line_defined, last_line_defined)

    read_code = read_instruction
    if fmt.version is LuaVersion.LUA54_REMAPPED:
        read_code = _read_remapped_instruction

    instructions = read_array(reader, fmt, load_int(reader), read_code)
    constants = read_array(
        reader, fmt, load_int(reader), partial(decode_constant, load_string=load_string)
    )
    upvalues = read_array(reader, fmt, load_int(reader), _load_upvalue)
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
    return fields, load_int(reader)


def _read_tail(
    reader: ByteReader,
    fmt: FormatDescriptor,
    fields: Dict[str, Any],
    prototypes: Tuple[Chunk, ...],
) -> Chunk:
    line_info = read_array(reader, fmt, load_int(reader), _read_line_byte)
    abs_line_info = read_array(reader, fmt, load_int(reader), _load_abs_line)
    locals_ = read_array(reader, fmt, load_int(reader), _load_local)
    upvalue_names = read_array(reader, fmt, load_int(reader), load_string)
    return Chunk(
        prototypes=prototypes,
        line_info=line_info,
        abs_line_info=abs_line_info,
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
