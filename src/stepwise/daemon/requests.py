"""Request body parsing and validation for the reindex endpoint.

Bodies arrive from shell scripts and CI workflows, so parsing is lenient:
a leading BOM is dropped, JSON strings holding JSON are decoded twice, a
single-quoted JSON wrapper is unwrapped, and form-encoded bodies are
accepted as a last resort.
"""

from __future__ import annotations

import json
import math
import re
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, ValidationError, field_validator
from starlette.datastructures import QueryParams

from stepwise.config.constants import REINDEX_BATCH_MAX_SIZE

_NOT_PARSED = object()
_WORKSHOP_SPLIT_RE = re.compile(r"[\r\n,]+")

INVALID_JSON_DETAIL = "Request body must be valid JSON."

WorkshopSlug = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class ReindexRequest(BaseModel):
    """Validated reindex request body. Unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    workshops: list[WorkshopSlug] | None = None
    cursor: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)] | None = None
    batch_size: int | None = Field(None, alias="batchSize")

    @field_validator("workshops", mode="before")
    @classmethod
    def split_workshop_string(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [w.strip() for w in _WORKSHOP_SPLIT_RE.split(v) if w.strip()]
        return v

    @field_validator("batch_size")
    @classmethod
    def check_batch_size(cls, v: int | None) -> int | None:
        if v is None:
            return v
        if v < 1:
            raise ValueError("batchSize must be at least 1.")
        if v > REINDEX_BATCH_MAX_SIZE:
            raise ValueError(f"batchSize must be at most {REINDEX_BATCH_MAX_SIZE}.")
        return v

    def normalized_workshops(self) -> list[str] | None:
        """Lowercased, deduplicated slugs in first-seen order, or None."""
        if not self.workshops:
            return None
        seen = dict.fromkeys(w.strip().lower() for w in self.workshops if w.strip())
        return list(seen) or None


def validation_details(exc: ValidationError) -> list[str]:
    """One human-readable line per validation issue."""
    details = []
    for err in exc.errors():
        if err["type"] == "value_error" and "error" in err.get("ctx", {}):
            details.append(str(err["ctx"]["error"]))
            continue
        loc = ".".join(str(part) for part in err["loc"])
        details.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return details


def _looks_like_json(value: str) -> bool:
    return value.strip()[:1] in ("{", "[")


def _parse_json(value: str) -> Any:
    try:
        parsed = json.loads(value)
    except ValueError:
        return _NOT_PARSED
    if isinstance(parsed, str) and _looks_like_json(parsed):
        try:
            return json.loads(parsed)
        except ValueError:
            return parsed
    return parsed


def _parse_batch_size(raw: str) -> Any:
    trimmed = raw.strip()
    if not trimmed:
        return None
    try:
        number = float(trimmed)
    except ValueError:
        return trimmed
    if not math.isfinite(number):
        return trimmed
    # "5.0" counts as 5; other fractions are left for validation to reject
    return int(number) if number.is_integer() else number


def _parse_form(value: str) -> Any:
    if "=" not in value and "&" not in value:
        return _NOT_PARSED
    params = QueryParams(value)
    if not list(params.keys()):
        return _NOT_PARSED

    payload = (params.get("payload") or "").strip()
    if payload:
        parsed = _parse_json(payload)
        if parsed is not _NOT_PARSED:
            return parsed

    body: dict[str, Any] = {}
    workshops = [
        w.strip() for w in [*params.getlist("workshops"), *params.getlist("workshops[]")] if w.strip()
    ]
    if len(workshops) == 1:
        body["workshops"] = workshops[0]
    elif workshops:
        body["workshops"] = workshops

    cursor = (params.get("cursor") or "").strip()
    if cursor:
        body["cursor"] = cursor

    batch_size = params.get("batchSize")
    if batch_size is not None:
        parsed_size = _parse_batch_size(batch_size)
        if parsed_size is not None:
            body["batchSize"] = parsed_size

    return body or _NOT_PARSED


def parse_reindex_body(text: str) -> Any:
    """Decode a raw request body into a JSON-like value.

    Returns an empty dict for blank bodies.

    Raises:
        ValueError: The body is neither JSON nor form-encoded.
    """
    if text.startswith("\ufeff"):
        text = text[1:]
    trimmed = text.strip()
    if not trimmed:
        return {}

    parsed = _parse_json(trimmed)
    if parsed is not _NOT_PARSED:
        return parsed

    if len(trimmed) > 1 and trimmed.startswith("'") and trimmed.endswith("'"):
        parsed = _parse_json(trimmed[1:-1].strip())
        if parsed is not _NOT_PARSED:
            return parsed

    parsed = _parse_form(trimmed)
    if parsed is _NOT_PARSED:
        raise ValueError(INVALID_JSON_DETAIL)
    return parsed
