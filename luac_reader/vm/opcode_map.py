"""Opcode renumbering for the remapped Lua 5.4 bytecode family.

That family stores instructions with a non-canonical opcode numbering.  A
handful of opcodes are swapped outright (:data:`OPCODE_SUBSTITUTIONS`); every
other value is shifted down by the number of :data:`OPCODE_GAPS` it lies
above, which accounts for extra opcodes the on-disk numbering interleaves with
the canonical 5.4 set.  Both tables are constants of the format and are copied
as-is.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Tuple

OPCODE_MASK = 0x7F

OPCODE_SUBSTITUTIONS: Mapping[int, int] = MappingProxyType(
    {
        0x0A: 0,
        0x00: 1,
        0x01: 2,
        0x02: 3,
        0x03: 4,
        0x04: 5,
        0x05: 6,
        0x06: 7,
        0x07: 8,
        0x08: 9,
        0x09: 10,
    }
)

OPCODE_GAPS: Tuple[int, ...] = (
    0x0B, 0x10, 0x15, 0x17, 0x19, 0x1B, 0x37, 0x3C, 0x3E, 0x45,
    0x4C, 0x4F, 0x52, 0x56, 0x59, 0x5D, 0x5F, 0x61, 0x63, 0x65,
)


def remap_opcode(opcode: int) -> int:
    """Return the canonical 5.4 opcode for an on-disk ``opcode``."""

    value = OPCODE_SUBSTITUTIONS.get(opcode, opcode)
    shift = sum(1 for gap in OPCODE_GAPS if value > gap)
    return value - shift


def remap_instruction(word: int) -> int:
    """Rewrite the low 7 opcode bits of ``word``; operand bits are untouched."""

    opcode = remap_opcode(word & OPCODE_MASK)
    return (word & ~OPCODE_MASK) | (opcode & OPCODE_MASK)


__all__ = [
    "OPCODE_GAPS",
    "OPCODE_MASK",
    "OPCODE_SUBSTITUTIONS",
    "remap_instruction",
    "remap_opcode",
]
