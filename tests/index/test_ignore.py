"""Tests for index/_internal/ignore.py."""

from __future__ import annotations

import pytest

from stepwise.config.constants import MAX_TEXT_FILE_BYTES
from stepwise.index._internal.ignore import DEFAULT_DIFF_IGNORE, DiffIgnore, is_likely_text_file


class TestIsLikelyTextFile:
    @pytest.mark.parametrize("path", ["src/index.ts", "README.mdx", "styles.css", "Dockerfile"])
    def test_text_files(self, path: str) -> None:
        assert is_likely_text_file(path)

    @pytest.mark.parametrize("path", ["logo.png", "font.woff2", "archive.tar", "IMAGE.JPG"])
    def test_binary_extensions(self, path: str) -> None:
        assert not is_likely_text_file(path)

    def test_oversized_file_is_not_text(self) -> None:
        assert not is_likely_text_file("big.ts", size=MAX_TEXT_FILE_BYTES + 1)

    def test_size_at_limit_is_text(self) -> None:
        assert is_likely_text_file("big.ts", size=MAX_TEXT_FILE_BYTES)

    def test_unknown_short_extension_is_text(self) -> None:
        assert is_likely_text_file("config.ini")

    def test_unknown_long_extension_is_not_text(self) -> None:
        assert not is_likely_text_file("data.sqlite3")


class TestDiffIgnore:
    def test_defaults_always_apply(self) -> None:
        ignore = DiffIgnore()
        assert ignore.patterns == list(DEFAULT_DIFF_IGNORE)
        assert ignore.is_ignored("README.mdx")
        assert ignore.is_ignored("package-lock.json")
        assert not ignore.is_ignored("src/index.ts")

    def test_matching_is_case_insensitive(self) -> None:
        assert DiffIgnore().is_ignored("readme.md")

    def test_from_file_content_skips_comments_and_blanks(self) -> None:
        ignore = DiffIgnore.from_file_content("# generated\n\n*.snap\n  tests/*  \n")
        assert ignore.patterns[len(DEFAULT_DIFF_IGNORE) :] == ["*.snap", "tests/*"]
        assert ignore.is_ignored("__snapshots__/a.snap")
        assert ignore.is_ignored("tests/a.test.ts")
        assert not ignore.is_ignored("src/tests.ts")

    def test_regex_metacharacters_are_literal(self) -> None:
        ignore = DiffIgnore(["file(1).ts"])
        assert ignore.is_ignored("file(1).ts")
        assert not ignore.is_ignored("file1.ts")

    def test_none_content_gives_defaults(self) -> None:
        assert DiffIgnore.from_file_content(None).patterns == list(DEFAULT_DIFF_IGNORE)
