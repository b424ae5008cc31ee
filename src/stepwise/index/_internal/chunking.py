"""Deterministic overlapping text chunker.

Chunk index is part of the vector id, so the same text and parameters must
always produce the same windows in the same order.
"""

from __future__ import annotations

from dataclasses import dataclass

from stepwise.config.constants import CHUNK_MIN_WINDOW


@dataclass(frozen=True, slots=True)
class TextChunk:
    chunk_index: int
    content: str
    start: int
    end: int


def split_into_chunks(
    text: str,
    chunk_size: int = 1600,
    chunk_overlap: int = 180,
) -> list[TextChunk]:
    """Split text into overlapping windows.

    Leading and trailing whitespace is skipped by offset so every chunk is a
    contiguous substring of ``text``. A window ends on the last newline in
    its second half when there is one, otherwise at the hard boundary.

    Args:
        text: Section content.
        chunk_size: Target window length; raised to the minimum window.
        chunk_overlap: Characters shared between consecutive windows;
            clamped below the window length.

    Returns:
        Chunks with zero-based ``chunk_index``. Empty for blank input.
    """
    window = max(chunk_size, CHUNK_MIN_WINDOW)
    overlap = min(max(chunk_overlap, 0), window - 1)

    begin = len(text) - len(text.lstrip())
    finish = len(text.rstrip())
    if begin >= finish:
        return []

    chunks: list[TextChunk] = []
    start = begin
    while start < finish:
        end = min(start + window, finish)
        if end < finish:
            newline = text.rfind("\n", start + window // 2, end)
            if newline > start:
                end = newline + 1
        piece = text[start:end]
        if piece.strip():
            chunks.append(
                TextChunk(chunk_index=len(chunks), content=piece, start=start, end=end)
            )
        if end >= finish:
            break
        start = max(end - overlap, start + 1)
    return chunks
