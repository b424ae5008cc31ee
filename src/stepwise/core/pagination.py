"""Opaque pagination cursors.

Cursors cross the trust boundary (clients hand them back verbatim), so
decoding never raises: anything that is not a well-formed cursor of the
expected shape decodes to the start position.

Two shapes are used:

- ``OffsetCursor``: ``{"offset": n}`` for workshop listings and reindex
  batches.
- ``RetrievalCursor``: ``{"sectionIndex": i, "charOffset": c}`` for
  character-budgeted section retrieval.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any


def _encode(data: dict[str, int]) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def _decode(value: str | None) -> dict[str, Any] | None:
    if not value or not value.strip():
        return None
    token = value.strip().replace("+", "-").replace("/", "_")
    token += "=" * (-len(token) % 4)
    try:
        data = json.loads(base64.urlsafe_b64decode(token.encode()))
    except (binascii.Error, ValueError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


def _non_negative_int(value: Any) -> int | None:
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return value


@dataclass(frozen=True, slots=True)
class OffsetCursor:
    """Position in an offset-addressed list."""

    offset: int = 0

    def to_string(self) -> str:
        return _encode({"offset": self.offset})

    @classmethod
    def from_string(cls, value: str | None) -> OffsetCursor:
        """Decode a cursor; invalid input yields offset 0."""
        data = _decode(value)
        if data is None:
            return cls()
        offset = _non_negative_int(data.get("offset"))
        return cls(offset=offset) if offset is not None else cls()


@dataclass(frozen=True, slots=True)
class RetrievalCursor:
    """Position inside an ordered section list."""

    section_index: int = 0
    char_offset: int = 0

    def to_string(self) -> str:
        return _encode({"sectionIndex": self.section_index, "charOffset": self.char_offset})

    @classmethod
    def from_string(cls, value: str | None) -> RetrievalCursor:
        """Decode a cursor; invalid input yields the start position."""
        data = _decode(value)
        if data is None:
            return cls()
        section_index = _non_negative_int(data.get("sectionIndex"))
        char_offset = _non_negative_int(data.get("charOffset"))
        if section_index is None or char_offset is None:
            return cls()
        return cls(section_index=section_index, char_offset=char_offset)
