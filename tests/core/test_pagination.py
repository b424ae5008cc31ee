"""Tests for opaque pagination cursors."""

from __future__ import annotations

import base64
import json

import pytest

from stepwise.core.pagination import OffsetCursor, RetrievalCursor


def _raw(data: object) -> str:
    return base64.b64encode(json.dumps(data).encode()).decode()


class TestOffsetCursor:
    def test_round_trip(self) -> None:
        assert OffsetCursor.from_string(OffsetCursor(42).to_string()) == OffsetCursor(42)

    def test_encoding_is_url_safe_without_padding(self) -> None:
        token = OffsetCursor(7).to_string()
        assert "=" not in token
        assert "+" not in token and "/" not in token

    def test_standard_base64_accepted(self) -> None:
        assert OffsetCursor.from_string(_raw({"offset": 3})).offset == 3

    @pytest.mark.parametrize(
        "value",
        [
            None,
            "",
            "   ",
            "!!!not base64!!!",
            _raw([1, 2]),
            _raw({"offset": -1}),
            _raw({"offset": "3"}),
            _raw({"offset": True}),
            _raw({"offset": 1.5}),
        ],
    )
    def test_invalid_decodes_to_start(self, value: str | None) -> None:
        assert OffsetCursor.from_string(value) == OffsetCursor(0)


class TestRetrievalCursor:
    def test_round_trip(self) -> None:
        cursor = RetrievalCursor(section_index=2, char_offset=150)
        assert RetrievalCursor.from_string(cursor.to_string()) == cursor

    def test_wire_field_names(self) -> None:
        token = RetrievalCursor(1, 5).to_string()
        decoded = json.loads(base64.urlsafe_b64decode(token + "=" * (-len(token) % 4)))
        assert decoded == {"sectionIndex": 1, "charOffset": 5}

    def test_missing_field_resets(self) -> None:
        assert RetrievalCursor.from_string(_raw({"sectionIndex": 3})) == RetrievalCursor()

    def test_offset_cursor_is_not_a_retrieval_cursor(self) -> None:
        assert RetrievalCursor.from_string(OffsetCursor(4).to_string()) == RetrievalCursor()
