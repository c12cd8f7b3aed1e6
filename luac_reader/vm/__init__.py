"""Instruction-level helpers: opcode renumbering and mnemonic tables."""

from __future__ import annotations

from .opcode_map import OPCODE_GAPS, OPCODE_SUBSTITUTIONS, remap_instruction, remap_opcode
from .opnames import OPCODE_NAMES, opcode_name, split_instruction

__all__ = [
    "OPCODE_GAPS",
    "OPCODE_NAMES",
    "OPCODE_SUBSTITUTIONS",
    "opcode_name",
    "remap_instruction",
    "remap_opcode",
    "split_instruction",
]
