"""Helpers shared by the per-version chunk decoders."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Tuple, TypeVar

from ..byteops import ByteReader, read_int, read_uint
from ..exceptions import MalformedPrototype, NestingTooDeep
from ..model import Chunk, FormatDescriptor

T = TypeVar("T")

# Same bound the reference interpreter applies to nested C calls (LUAI_MAXCCALLS).
DEFAULT_MAX_DEPTH = 200


def check_depth(reader: ByteReader, depth: int, max_depth: int) -> None:
    if depth > max_depth:
        raise NestingTooDeep(max_depth, offset=reader.offset)


PrototypeHead = Tuple[Dict[str, Any], int]
HeadReader = Callable[[ByteReader, FormatDescriptor], PrototypeHead]
TailReader = Callable[[ByteReader, FormatDescriptor, Dict[str, Any], Tuple[Chunk, ...]], Chunk]


@dataclass
class _OpenPrototype:
    fields: Dict[str, Any]
    child_count: int
    children: List[Chunk] = field(default_factory=list)


def load_prototype_tree(
    reader: ByteReader,
    fmt: FormatDescriptor,
    read_head: HeadReader,
    read_tail: TailReader,
    *,
    depth: int = 0,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Chunk:
    """Decode a prototype and everything nested in it, in file order.

    ``read_head`` consumes a record up to and including its child count and
    returns the fields read so far; ``read_tail`` consumes the rest of the
    record once all children are decoded.  Open prototypes are kept on an
    explicit stack, so the nesting a caller can accept is bounded only by
    ``max_depth`` and never by the interpreter's recursion limit.
    """

    check_depth(reader, depth, max_depth)
    stack = [_OpenPrototype(*read_head(reader, fmt))]
    while True:
        top = stack[-1]
        if len(top.children) < top.child_count:
            check_depth(reader, depth + len(stack), max_depth)
            stack.append(_OpenPrototype(*read_head(reader, fmt)))
            continue
        stack.pop()
        chunk = read_tail(reader, fmt, top.fields, tuple(top.children))
        if not stack:
            return chunk
        stack[-1].children.append(chunk)


def read_array(
    reader: ByteReader,
    fmt: FormatDescriptor,
    count: int,
    item: Callable[[ByteReader, FormatDescriptor], T],
) -> Tuple[T, ...]:
    """Decode ``count`` consecutive records with ``item``."""

    return tuple(item(reader, fmt) for _ in range(count))


def read_instruction(reader: ByteReader, fmt: FormatDescriptor) -> int:
    return read_uint(reader, fmt.instruction_size, fmt.byteorder)


def read_c_int(reader: ByteReader, fmt: FormatDescriptor) -> int:
    """Read a C ``int`` at the header's declared width."""

    return read_int(reader, fmt.int_size, fmt.byteorder)


def read_c_count(reader: ByteReader, fmt: FormatDescriptor) -> int:
    """Read an ``int``-wide element count; negative counts are malformed."""

    offset = reader.offset
    count = read_c_int(reader, fmt)
    if count < 0:
        raise MalformedPrototype(f"negative element count {count}", offset=offset)
    return count


def read_size_t(reader: ByteReader, fmt: FormatDescriptor) -> int:
    return read_uint(reader, fmt.size_t_size, fmt.byteorder)


def read_nul_terminated_string(reader: ByteReader, fmt: FormatDescriptor) -> bytes:
    """5.1/5.2 strings: a ``size_t`` length that counts the trailing NUL."""

    size = read_size_t(reader, fmt)
    if size == 0:
        return b""
    return reader.read_bytes(size)[:-1]


__all__ = [
    "DEFAULT_MAX_DEPTH",
    "HeadReader",
    "PrototypeHead",
    "TailReader",
    "check_depth",
    "load_prototype_tree",
    "read_array",
    "read_c_count",
    "read_c_int",
    "read_instruction",
    "read_nul_terminated_string",
    "read_size_t",
]
