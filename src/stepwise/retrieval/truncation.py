"""Character-budgeted pagination over an ordered section list.

Sections are emitted whole while they fit the remaining budget. The section
that does not fit is cut at the exact character boundary, and the returned
cursor resumes inside it. Concatenating the content of every page therefore
reproduces the full content of every section in order.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any

from stepwise.core.pagination import RetrievalCursor


@dataclass(frozen=True, slots=True)
class RetrievalSection:
    label: str
    kind: str
    content: str
    source_path: str | None = None
    exercise_number: int | None = None
    step_number: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"label": self.label, "kind": self.kind, "content": self.content}
        if self.source_path is not None:
            data["sourcePath"] = self.source_path
        if self.exercise_number is not None:
            data["exerciseNumber"] = self.exercise_number
        if self.step_number is not None:
            data["stepNumber"] = self.step_number
        return data


@dataclass(frozen=True, slots=True)
class TruncationResult:
    sections: list[RetrievalSection]
    truncated: bool
    next_cursor: str | None = None


def clamp_max_chars(requested: float | None, default_max_chars: int, hard_max_chars: int) -> int:
    """Effective character budget for one response.

    Missing, non-finite or non-positive requests fall back to the default
    (itself capped by the hard maximum).
    """
    if hard_max_chars <= 0:
        return 1
    fallback = min(max(default_max_chars, 1), hard_max_chars)
    if requested is None or not math.isfinite(requested) or requested <= 0:
        return fallback
    # Fractions below one floor to zero; treat those as the smallest budget.
    return max(1, min(math.floor(requested), hard_max_chars))


def truncate_sections(
    sections: list[RetrievalSection], max_chars: int, cursor: str | None = None
) -> TruncationResult:
    budget = max(1, int(max_chars))
    position = RetrievalCursor.from_string(cursor)
    if position.section_index >= len(sections) or position.char_offset > len(
        sections[position.section_index].content
    ):
        # Cursor from a different section list.
        position = RetrievalCursor()
    section_index = position.section_index
    char_offset = position.char_offset
    output: list[RetrievalSection] = []
    remaining = budget

    while section_index < len(sections) and remaining > 0:
        section = sections[section_index]
        rest = section.content[char_offset:]
        if len(rest) <= remaining:
            output.append(replace(section, content=rest))
            remaining -= len(rest)
            section_index += 1
            char_offset = 0
            continue

        output.append(replace(section, content=rest[:remaining]))
        char_offset += remaining
        remaining = 0

    truncated = section_index < len(sections) or char_offset > 0
    next_cursor = (
        RetrievalCursor(section_index=section_index, char_offset=char_offset).to_string()
        if truncated
        else None
    )
    return TruncationResult(sections=output, truncated=truncated, next_cursor=next_cursor)
