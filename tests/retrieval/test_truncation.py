"""Tests for character-budgeted section pagination."""

from __future__ import annotations

import math

import pytest

from stepwise.core.pagination import RetrievalCursor
from stepwise.retrieval.truncation import RetrievalSection, clamp_max_chars, truncate_sections


def _sections(*contents: str) -> list[RetrievalSection]:
    return [RetrievalSection(label=f"S{i}", kind="problem-code", content=c) for i, c in enumerate(contents)]


def _pages(sections: list[RetrievalSection], max_chars: int) -> list[list[RetrievalSection]]:
    pages = []
    cursor = None
    while True:
        result = truncate_sections(sections, max_chars, cursor)
        pages.append(result.sections)
        if not result.truncated:
            return pages
        cursor = result.next_cursor


class TestClampMaxChars:
    @pytest.mark.parametrize(
        ("requested", "expected"),
        [
            (None, 1000),
            (0, 1000),
            (-5, 1000),
            (math.nan, 1000),
            (math.inf, 1000),
            (500, 500),
            (500.9, 500),
            (0.5, 1),
            (99_999, 5000),
        ],
    )
    def test_clamp(self, requested: float | None, expected: int) -> None:
        assert clamp_max_chars(requested, 1000, 5000) == expected

    def test_default_capped_by_hard_max(self) -> None:
        assert clamp_max_chars(None, 9000, 5000) == 5000


class TestTruncateSections:
    def test_fits_without_truncation(self) -> None:
        result = truncate_sections(_sections("abc", "def"), 10)

        assert not result.truncated
        assert result.next_cursor is None
        assert [s.content for s in result.sections] == ["abc", "def"]

    def test_cuts_at_exact_boundary(self) -> None:
        result = truncate_sections(_sections("abcdef", "ghij"), 8)

        assert result.truncated
        assert [s.content for s in result.sections] == ["abcdef", "gh"]
        assert RetrievalCursor.from_string(result.next_cursor) == RetrievalCursor(1, 2)

    def test_exact_fit_is_not_truncated(self) -> None:
        result = truncate_sections(_sections("abc", "de"), 5)

        assert not result.truncated

    def test_pages_reproduce_content(self) -> None:
        sections = _sections("a" * 37, "b" * 5, "c" * 61, "", "d" * 12)
        pages = _pages(sections, 16)

        joined = "".join(s.content for page in pages for s in page)
        assert joined == "".join(s.content for s in sections)
        assert all(sum(len(s.content) for s in page) <= 16 for page in pages)

    def test_labels_repeat_on_continued_section(self) -> None:
        pages = _pages(_sections("x" * 25), 10)

        assert [[s.label for s in page] for page in pages] == [["S0"], ["S0"], ["S0"]]

    def test_out_of_range_cursor_restarts(self) -> None:
        sections = _sections("abc")
        stale = RetrievalCursor(section_index=9, char_offset=0).to_string()

        assert truncate_sections(sections, 10, stale).sections[0].content == "abc"

    def test_offset_past_section_end_restarts(self) -> None:
        sections = _sections("abc", "def")
        stale = RetrievalCursor(section_index=0, char_offset=50).to_string()

        assert [s.content for s in truncate_sections(sections, 10, stale).sections] == ["abc", "def"]

    def test_empty_list(self) -> None:
        result = truncate_sections([], 10)

        assert result.sections == []
        assert not result.truncated


class TestRetrievalSectionToDict:
    def test_optional_fields_omitted(self) -> None:
        assert RetrievalSection("L", "diff-hunk", "c").to_dict() == {
            "label": "L",
            "kind": "diff-hunk",
            "content": "c",
        }

    def test_camel_case_keys(self) -> None:
        data = RetrievalSection("L", "problem-code", "c", "src/a.ts", 1, 2).to_dict()
        assert data["sourcePath"] == "src/a.ts"
        assert data["exerciseNumber"] == 1
        assert data["stepNumber"] == 2
