"""Chunk decoders, one module per bytecode family.

:func:`get_chunk_decoder` is the only dispatch point; supporting a new family
means adding a module and one entry to :data:`CHUNK_DECODERS`.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Protocol

from ..byteops import ByteReader
from ..model import Chunk, FormatDescriptor, LuaVersion
from . import lua51, lua52, lua53, lua54, luajit
from .common import DEFAULT_MAX_DEPTH


class ChunkDecoder(Protocol):
    def __call__(
        self,
        reader: ByteReader,
        fmt: FormatDescriptor,
        *,
        depth: int = 0,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> Chunk: ...


CHUNK_DECODERS: Mapping[LuaVersion, ChunkDecoder] = MappingProxyType(
    {
        LuaVersion.LUA51: lua51.load_chunk,
        LuaVersion.LUA52: lua52.load_chunk,
        LuaVersion.LUA53: lua53.load_chunk,
        LuaVersion.LUA54: lua54.load_chunk,
        LuaVersion.LUA54_REMAPPED: lua54.load_chunk,
        LuaVersion.LUAJIT1: luajit.load_chunk,
        LuaVersion.LUAJIT2: luajit.load_chunk,
    }
)


def get_chunk_decoder(version: LuaVersion) -> ChunkDecoder:
    return CHUNK_DECODERS[version]


__all__ = ["CHUNK_DECODERS", "DEFAULT_MAX_DEPTH", "ChunkDecoder", "get_chunk_decoder"]
