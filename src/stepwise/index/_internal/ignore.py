"""File classification and diff-ignore matching for step trees.

Two filters decide which files of a problem/solution step take part in
diffing:

- ``is_likely_text_file``: size ceiling plus extension allow/deny lists.
- ``DiffIgnore``: default patterns plus the repository's
  ``epicshop/.diffignore``, matched case-insensitively against the path
  relative to the step directory. ``*`` is the only wildcard.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from stepwise.config.constants import MAX_TEXT_FILE_BYTES

__all__ = [
    "DEFAULT_DIFF_IGNORE",
    "DIFFIGNORE_PATH",
    "DiffIgnore",
    "is_likely_text_file",
]

DIFFIGNORE_PATH = "epicshop/.diffignore"

DEFAULT_DIFF_IGNORE: tuple[str, ...] = (
    "README.*",
    "package-lock.json",
    ".DS_Store",
    ".git/*",
)

TEXT_EXTENSIONS = frozenset(
    {
        ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".json", ".md", ".mdx",
        ".txt", ".html", ".css", ".scss", ".sql", ".yaml", ".yml", ".toml",
        ".env", ".sh", ".bat", ".ps1", ".py", ".rb", ".go", ".rs", ".java",
        ".kt", ".swift", ".php", ".graphql",
    }
)  # fmt: skip

BINARY_EXTENSIONS = frozenset(
    {
        ".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".ico", ".pdf",
        ".zip", ".tar", ".gz", ".mp3", ".mp4", ".mov", ".webm", ".woff",
        ".woff2", ".ttf", ".eot",
    }
)  # fmt: skip


def _extension(path: str) -> str:
    dot = path.rfind(".")
    if dot < 0:
        return ""
    return path[dot:].lower()


def is_likely_text_file(path: str, size: int | None = None) -> bool:
    if size is not None and size > MAX_TEXT_FILE_BYTES:
        return False
    extension = _extension(path)
    if not extension:
        return True
    if extension in BINARY_EXTENSIONS:
        return False
    if extension in TEXT_EXTENSIONS:
        return True
    return len(extension) <= 5


def _wildcard_to_regex(pattern: str) -> re.Pattern[str]:
    escaped = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.compile(f"^{escaped}$", re.IGNORECASE)


class DiffIgnore:
    """Compiled diff-ignore patterns for one repository."""

    def __init__(self, patterns: Iterable[str] = ()) -> None:
        self._patterns = [*DEFAULT_DIFF_IGNORE, *patterns]
        self._compiled = [_wildcard_to_regex(p) for p in self._patterns]

    @classmethod
    def from_file_content(cls, content: str | None) -> DiffIgnore:
        """Parse ``.diffignore`` text: one pattern per line, ``#`` comments."""
        patterns = []
        for line in (content or "").split("\n"):
            stripped = line.strip()
            if stripped and not stripped.startswith("#"):
                patterns.append(stripped)
        return cls(patterns)

    @property
    def patterns(self) -> list[str]:
        return list(self._patterns)

    def is_ignored(self, relative_path: str) -> bool:
        return any(regex.match(relative_path) for regex in self._compiled)
