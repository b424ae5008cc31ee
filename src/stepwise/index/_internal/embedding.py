"""Chunking and vector synchronization for one workshop.

The synchronizer always chunks; it only embeds when both an embedding
provider and a vector index are configured. Embedding problems degrade the
workshop to keyword-only search instead of failing the reindex.

Vector ids are ``{run_id}:{workshop_slug}:{section_order}:{chunk_index}``.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

import structlog

from stepwise.config.constants import EMBEDDING_MAX_INPUT_CHARS
from stepwise.index._internal.chunking import split_into_chunks
from stepwise.index.models import ChunkRecord, SectionRecord
from stepwise.vector.base import EmbeddingProvider, VectorIndex, VectorRecord

log = structlog.get_logger(__name__)

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_EMPTY_PLACEHOLDER = "."


def _round_trip_utf8(value: str) -> str:
    # Surrogate pairs are joined first; only unpaired surrogates become U+FFFD.
    joined = value.encode("utf-16", "surrogatepass").decode("utf-16", "surrogatepass")
    return joined.encode("utf-8", "surrogatepass").decode("utf-8", "replace")


def prepare_embedding_text(content: str | None, max_chars: int = EMBEDDING_MAX_INPUT_CHARS) -> str:
    """Sanitize text for the embedding provider; never returns an empty string.

    Python strings index by code point, so slicing cannot split a surrogate
    pair once the round trip has replaced any unpaired surrogates.
    """
    raw = _CONTROL_CHARS_RE.sub(" ", content or "").strip()
    if not raw:
        return _EMPTY_PLACEHOLDER
    normalized = _round_trip_utf8(raw)
    truncated = normalized[: max(1, max_chars)]
    cleaned = _round_trip_utf8(truncated).strip()
    return cleaned or _EMPTY_PLACEHOLDER


def build_vector_id(run_id: str, workshop_slug: str, section_order: int, chunk_index: int) -> str:
    return f"{run_id}:{workshop_slug}:{section_order}:{chunk_index}"


class EmbeddingSynchronizer:
    """Chunks sections and keeps the vector index in step with them."""

    def __init__(
        self,
        provider: EmbeddingProvider | None = None,
        index: VectorIndex | None = None,
        *,
        chunk_size: int = 1600,
        chunk_overlap: int = 180,
        delete_batch_size: int = 100,
    ) -> None:
        self._provider = provider
        self._index = index
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap
        self._delete_batch_size = max(1, delete_batch_size)

    @property
    def enabled(self) -> bool:
        return self._provider is not None and self._index is not None

    def chunk_sections(self, sections: Sequence[SectionRecord]) -> list[ChunkRecord]:
        chunks: list[ChunkRecord] = []
        for section in sections:
            for chunk in split_into_chunks(section.content, self._chunk_size, self._chunk_overlap):
                chunks.append(
                    ChunkRecord(
                        section_order=section.section_order,
                        chunk_index=chunk.chunk_index,
                        content=chunk.content,
                        exercise_number=section.exercise_number,
                        step_number=section.step_number,
                    )
                )
        return chunks

    async def embed_chunks(
        self, run_id: str, workshop_slug: str, chunks: list[ChunkRecord]
    ) -> list[ChunkRecord]:
        """Embed and upsert chunks, setting ``vector_id`` on success.

        On a provider failure, an index failure or a vector count mismatch the
        chunks are returned without vector ids.
        """
        if not self.enabled or not chunks:
            return chunks
        assert self._provider is not None and self._index is not None

        texts = [prepare_embedding_text(chunk.content) for chunk in chunks]
        try:
            vectors = await self._provider.embed(texts)
        except Exception as exc:
            log.warning(
                "workshop_embedding_failed",
                workshop=workshop_slug,
                run_id=run_id,
                chunk_count=len(chunks),
                error=str(exc),
            )
            return chunks

        if len(vectors) != len(chunks):
            log.warning(
                "embedding_count_mismatch",
                workshop=workshop_slug,
                run_id=run_id,
                expected=len(chunks),
                received=len(vectors),
            )
            return chunks

        vector_ids = [
            build_vector_id(run_id, workshop_slug, chunk.section_order, chunk.chunk_index)
            for chunk in chunks
        ]
        records = [
            VectorRecord(
                id=vector_id,
                values=list(values),
                metadata={
                    "workshop_slug": workshop_slug,
                    "exercise_number": chunk.exercise_number,
                    "step_number": chunk.step_number,
                    "section_order": chunk.section_order,
                    "chunk_index": chunk.chunk_index,
                    "index_run_id": run_id,
                },
            )
            for vector_id, values, chunk in zip(vector_ids, vectors, chunks, strict=True)
        ]
        try:
            await self._index.upsert(records)
        except Exception as exc:
            log.warning(
                "workshop_vector_upsert_failed",
                workshop=workshop_slug,
                run_id=run_id,
                record_count=len(records),
                error=str(exc),
            )
            return chunks

        for chunk, vector_id in zip(chunks, vector_ids, strict=True):
            chunk.vector_id = vector_id
        log.debug("workshop_vectors_upserted", workshop=workshop_slug, count=len(records))
        return chunks

    async def delete_vectors(self, workshop_slug: str, vector_ids: Sequence[str]) -> int:
        """Delete stale vectors in batches; a failed batch does not stop the rest.

        Returns:
            Number of ids in batches that were deleted without error.
        """
        if self._index is None or not vector_ids:
            return 0
        deleted = 0
        ids = list(vector_ids)
        for start in range(0, len(ids), self._delete_batch_size):
            batch = ids[start : start + self._delete_batch_size]
            try:
                await self._index.delete_by_ids(batch)
            except Exception as exc:
                log.warning(
                    "workshop_vector_delete_failed",
                    workshop=workshop_slug,
                    batch_start=start,
                    batch_size=len(batch),
                    error=str(exc),
                )
                continue
            deleted += len(batch)
        return deleted
