"""Top-level entry points: sniff the header, then decode the prototype tree."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from .byteops import Buffer, ByteReader
from .exceptions import MalformedPrototype
from .header import decode_header
from .model import BytecodeImage
from .versions import DEFAULT_MAX_DEPTH, get_chunk_decoder

LOG = logging.getLogger(__name__)


def decode(data: Buffer, *, max_depth: int = DEFAULT_MAX_DEPTH) -> BytecodeImage:
    """Decode a complete bytecode image.

    Raises a :class:`~luac_reader.exceptions.DecodeError` subclass carrying the
    byte offset at which decoding stopped; no partial result is returned.  The
    main prototype must end the input: trailing bytes are malformed.
    """

    reader = ByteReader(data)
    header = decode_header(reader)
    main_chunk = get_chunk_decoder(header.version)(reader, header, max_depth=max_depth)
    if not reader.at_end():
        raise MalformedPrototype(
            f"{reader.remaining} trailing bytes after the main prototype", offset=reader.offset
        )
    LOG.debug("decoded %s image: %d bytes", header.version.value, len(reader))
    return BytecodeImage(header=header, main_chunk=main_chunk)


def decode_file(path: Union[str, Path], *, max_depth: int = DEFAULT_MAX_DEPTH) -> BytecodeImage:
    return decode(Path(path).read_bytes(), max_depth=max_depth)


__all__ = ["DEFAULT_MAX_DEPTH", "decode", "decode_file"]
