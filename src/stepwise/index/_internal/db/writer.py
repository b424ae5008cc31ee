"""Replaces the stored rows of one workshop.

Write contract
--------------
``IndexWriter.replace_workshop`` is a two-phase, non-atomic operation:

1. **Clear**: delete every section, chunk, step, exercise and workshop row
   for the slug (one transaction).
2. **Insert**: write the new rows in fixed-size batches, each batch its own
   transaction.

There is no transaction spanning both phases. If an insert batch fails, the
writer clears the slug again so that readers never see a mix of old and new
rows, then re-raises the original error. If that second clear also fails,
a ``workshop_index_write_cleanup_failed`` warning is logged and the original
error still propagates. After any failure the workshop may be partially
written or empty; callers must treat it as needing a fresh reindex.

Concurrent replacement of the same slug is not guarded against.
"""

from __future__ import annotations

import time
from collections.abc import Iterator, Sequence
from typing import Any

import structlog
from sqlmodel import SQLModel

from stepwise.index._internal.db.database import Database
from stepwise.index.models import (
    ChunkRecord,
    IndexedExercise,
    IndexedSection,
    IndexedSectionChunk,
    IndexedStep,
    IndexedWorkshop,
    WorkshopIndexData,
)

log = structlog.get_logger(__name__)

# Delete order for one workshop scope.
_SCOPE_TABLES: tuple[type[SQLModel], ...] = (
    IndexedSection,
    IndexedSectionChunk,
    IndexedStep,
    IndexedExercise,
    IndexedWorkshop,
)


def _batched(rows: Sequence[dict[str, Any]], size: int) -> Iterator[list[dict[str, Any]]]:
    for start in range(0, len(rows), size):
        yield list(rows[start : start + size])


class IndexWriter:
    """Writes workshop rows to the relational store."""

    def __init__(self, db: Database, batch_size: int = 100) -> None:
        self._db = db
        self._batch_size = max(1, batch_size)

    def clear_workshop(self, workshop_slug: str) -> int:
        """Delete all rows for one slug. Returns rows removed."""
        removed = 0
        with self._db.bulk_writer() as writer:
            for model in _SCOPE_TABLES:
                removed += writer.delete_matching(model, workshop_slug=workshop_slug)
        return removed

    def replace_workshop(
        self,
        run_id: str,
        data: WorkshopIndexData,
        chunks: Sequence[ChunkRecord] = (),
    ) -> None:
        """Clear then insert one workshop's rows. See module docstring."""
        slug = data.workshop.workshop_slug
        self.clear_workshop(slug)
        try:
            self._insert(run_id, data, chunks)
        except Exception as original:
            try:
                self.clear_workshop(slug)
            except Exception as cleanup_error:
                log.warning(
                    "workshop_index_write_cleanup_failed",
                    workshop_slug=slug,
                    original_error=str(original),
                    cleanup_error=str(cleanup_error),
                )
            raise

    def _insert(
        self,
        run_id: str,
        data: WorkshopIndexData,
        chunks: Sequence[ChunkRecord],
    ) -> None:
        slug = data.workshop.workshop_slug
        workshop = data.workshop
        statements: list[tuple[type[SQLModel], list[dict[str, Any]]]] = [
            (
                IndexedWorkshop,
                [
                    {
                        "workshop_slug": slug,
                        "title": workshop.title,
                        "product": workshop.product,
                        "repo_owner": workshop.repo_owner,
                        "repo_name": workshop.repo_name,
                        "default_branch": workshop.default_branch,
                        "source_sha": workshop.source_sha,
                        "exercise_count": workshop.exercise_count,
                        "has_diffs": workshop.has_diffs,
                        "last_indexed_at": time.time(),
                        "index_run_id": run_id,
                    }
                ],
            ),
            (
                IndexedExercise,
                [
                    {
                        "workshop_slug": slug,
                        "exercise_number": e.exercise_number,
                        "title": e.title,
                        "step_count": e.step_count,
                    }
                    for e in data.exercises
                ],
            ),
            (
                IndexedStep,
                [
                    {
                        "workshop_slug": slug,
                        "exercise_number": s.exercise_number,
                        "step_number": s.step_number,
                        "problem_dir": s.problem_dir,
                        "solution_dir": s.solution_dir,
                        "has_diff": s.has_diff,
                    }
                    for s in data.steps
                ],
            ),
            (
                IndexedSection,
                [
                    {
                        "workshop_slug": slug,
                        "exercise_number": s.exercise_number,
                        "step_number": s.step_number,
                        "section_order": s.section_order,
                        "section_kind": s.section_kind.value,
                        "label": s.label,
                        "source_path": s.source_path,
                        "content": s.content,
                        "char_count": len(s.content),
                        "is_diff": s.is_diff,
                        "index_run_id": run_id,
                    }
                    for s in data.sections
                ],
            ),
            (
                IndexedSectionChunk,
                [
                    {
                        "workshop_slug": slug,
                        "exercise_number": c.exercise_number,
                        "step_number": c.step_number,
                        "section_order": c.section_order,
                        "chunk_index": c.chunk_index,
                        "content": c.content,
                        "char_count": len(c.content),
                        "vector_id": c.vector_id,
                        "index_run_id": run_id,
                    }
                    for c in chunks
                ],
            ),
        ]

        batches = 0
        for model, rows in statements:
            for batch in _batched(rows, self._batch_size):
                with self._db.bulk_writer() as writer:
                    writer.insert_many(model, batch)
                batches += 1
        log.debug("workshop_index_written", workshop_slug=slug, run_id=run_id, batches=batches)
