"""Custom exception hierarchy for the bytecode decoder.

Every error records the byte offset into the original input at which
decoding stopped, plus a stable ``kind`` string that the CLI and serializer
surface unchanged.
"""

from __future__ import annotations

from typing import Any, Dict


class DecodeError(ValueError):
    """Base class for all bytecode decoding errors."""

    kind = "DecodeError"

    def __init__(self, message: str, *, offset: int) -> None:
        super().__init__(f"{message} (at offset {offset})")
        self.message = message
        self.offset = offset

    def as_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "offset": self.offset, "message": self.message}


class MalformedHeader(DecodeError):
    """Raised when the signature bytes are absent or the header is inconsistent."""

    kind = "MalformedHeader"


class UnsupportedVersion(DecodeError):
    """Raised when the header declares a version this decoder does not implement."""

    kind = "UnsupportedVersion"

    def __init__(self, version: int, *, offset: int, family: str = "Lua") -> None:
        super().__init__(f"unsupported {family} version 0x{version:02x}", offset=offset)
        self.version = version

    def as_dict(self) -> Dict[str, Any]:
        data = super().as_dict()
        data["version"] = self.version
        return data


class UnexpectedEof(DecodeError):
    """Raised when fewer bytes remain than a field requires."""

    kind = "UnexpectedEof"

    def __init__(self, needed: int, available: int, *, offset: int) -> None:
        super().__init__(
            f"unexpected end of input: needed {needed} bytes, {available} available",
            offset=offset,
        )
        self.needed = needed
        self.available = available


class IntegerOverflow(DecodeError):
    """Raised when a variable-length integer exceeds its declared bound."""

    kind = "IntegerOverflow"

    def __init__(self, limit: int, *, offset: int) -> None:
        super().__init__(f"integer overflow (limit {limit})", offset=offset)
        self.limit = limit


class UnknownConstantTag(DecodeError):
    """Raised when a constant's tag is outside the set known for the version."""

    kind = "UnknownConstantTag"

    def __init__(self, tag: int, *, offset: int) -> None:
        super().__init__(f"unknown constant tag 0x{tag:02x}", offset=offset)
        self.tag = tag

    def as_dict(self) -> Dict[str, Any]:
        data = super().as_dict()
        data["tag"] = self.tag
        return data


class UnsupportedWidth(DecodeError):
    """Raised when a primitive read is asked for a byte width it cannot handle."""

    kind = "UnsupportedWidth"

    def __init__(self, width: int, *, offset: int, field: str = "field") -> None:
        super().__init__(f"unsupported {field} width {width}", offset=offset)
        self.width = width


class NestingTooDeep(DecodeError):
    """Raised when prototypes nest deeper than the configured maximum."""

    kind = "NestingTooDeep"

    def __init__(self, max_depth: int, *, offset: int) -> None:
        super().__init__(f"prototype nesting exceeds {max_depth} levels", offset=offset)
        self.max_depth = max_depth


class MalformedPrototype(DecodeError):
    """Raised when a prototype record is structurally inconsistent."""

    kind = "MalformedPrototype"


__all__ = [
    "DecodeError",
    "IntegerOverflow",
    "MalformedHeader",
    "MalformedPrototype",
    "NestingTooDeep",
    "UnexpectedEof",
    "UnknownConstantTag",
    "UnsupportedVersion",
    "UnsupportedWidth",
]
