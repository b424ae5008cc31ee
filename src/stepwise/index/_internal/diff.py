"""Line-based diff between a step's problem and solution files.

Lines are aligned by position, not by minimal edit distance: line ``i`` of
the problem file is compared against line ``i`` of the solution file. An
insertion near the top of a file therefore shows every following line as
changed. The output is a learning aid, not a patch.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class FileDiff:
    path: str
    text: str
    summary: str


def _normalize_newlines(content: str) -> str:
    return content.replace("\r\n", "\n")


def summarize_change(path: str, before: str | None, after: str | None) -> str:
    if before is None:
        return f"added {path}"
    if after is None:
        return f"removed {path}"
    return f"modified {path}"


def diff_file(path: str, before: str | None, after: str | None) -> FileDiff | None:
    """Diff one relative path; None when both sides are equal or absent."""
    old_content = _normalize_newlines(before or "")
    new_content = _normalize_newlines(after or "")
    if old_content == new_content:
        return None

    old_lines = old_content.split("\n")
    new_lines = new_content.split("\n")
    lines = [
        f"diff --git a/{path} b/{path}",
        "--- /dev/null" if before is None else f"--- a/{path}",
        "+++ /dev/null" if after is None else f"+++ b/{path}",
    ]
    for index in range(max(len(old_lines), len(new_lines))):
        old_line = old_lines[index] if index < len(old_lines) else None
        new_line = new_lines[index] if index < len(new_lines) else None
        if old_line == new_line:
            lines.append(f" {old_line}")
            continue
        if old_line is not None:
            lines.append(f"-{old_line}")
        if new_line is not None:
            lines.append(f"+{new_line}")

    return FileDiff(path=path, text="\n".join(lines), summary=summarize_change(path, before, after))
