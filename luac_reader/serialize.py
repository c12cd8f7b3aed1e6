"""Interchange encodings for decoded images and decode errors."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import msgpack

from .byteops import Buffer
from .exceptions import DecodeError
from .model import BytecodeImage
from .undump import decode


def as_dict(image: BytecodeImage) -> Dict[str, Any]:
    """Plain-data view of ``image``; names and strings stay ``bytes``."""

    return image.as_dict()


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            return {"hex": raw.hex()}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json(image: BytecodeImage, indent: Optional[int] = None) -> str:
    """Encode ``image`` as JSON.

    Byte strings that are valid UTF-8 become JSON strings; anything else is
    written as ``{"hex": "..."}`` so no input byte is lost.
    """

    return json.dumps(as_dict(image), indent=indent, default=_json_default)


def _pack_nested(packer: msgpack.Packer, data: Any) -> bytes:
    # Containers are opened with explicit headers so nesting depth is not
    # bounded by the packer's own recursion limit.
    parts: List[bytes] = []
    pending = [data]
    while pending:
        value = pending.pop()
        if isinstance(value, dict):
            parts.append(packer.pack_map_header(len(value)))
            for key, item in reversed(list(value.items())):
                pending.append(item)
                pending.append(key)
        elif isinstance(value, list):
            parts.append(packer.pack_array_header(len(value)))
            pending.extend(reversed(value))
        else:
            parts.append(packer.pack(value))
    return b"".join(parts)


def to_msgpack(image: BytecodeImage) -> bytes:
    """Encode ``image`` as msgpack; byte strings stay binary."""

    return _pack_nested(msgpack.Packer(use_bin_type=True), as_dict(image))


def error_payload(exc: DecodeError) -> Dict[str, Any]:
    return exc.as_dict()


def parse_to_msgpack(data: Buffer) -> bytes:
    """Decode ``data`` and return the msgpack encoding of the result."""

    return to_msgpack(decode(data))


__all__ = ["as_dict", "error_payload", "parse_to_msgpack", "to_json", "to_msgpack"]
