"""Index run bookkeeping: one row per reindex batch."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass

from stepwise.config.constants import INDEX_RUN_ERROR_MAX_CHARS
from stepwise.index._internal.db.database import Database
from stepwise.index.models import IndexRun, IndexRunStatus


@dataclass(slots=True)
class IndexRunCounts:
    workshop_count: int = 0
    exercise_count: int = 0
    step_count: int = 0
    section_count: int = 0
    section_chunk_count: int = 0

    def add(self, other: IndexRunCounts) -> None:
        self.workshop_count += other.workshop_count
        self.exercise_count += other.exercise_count
        self.step_count += other.step_count
        self.section_count += other.section_count
        self.section_chunk_count += other.section_chunk_count


class IndexRunStore:
    """Creates runs and records their single terminal transition."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def create(self) -> str:
        run_id = str(uuid.uuid4())
        with self._db.session() as session:
            session.add(IndexRun(id=run_id, status=IndexRunStatus.RUNNING.value, started_at=time.time()))
            session.commit()
        return run_id

    def get(self, run_id: str) -> IndexRun | None:
        with self._db.session() as session:
            return session.get(IndexRun, run_id)

    def _finish(self, run_id: str, **values: object) -> None:
        # Terminal runs are immutable.
        with self._db.bulk_writer() as writer:
            writer.update_matching(
                IndexRun,
                {"completed_at": time.time(), **values},
                id=run_id,
                status=IndexRunStatus.RUNNING.value,
            )

    def complete(self, run_id: str, counts: IndexRunCounts) -> None:
        self._finish(
            run_id,
            status=IndexRunStatus.COMPLETED.value,
            workshop_count=counts.workshop_count,
            exercise_count=counts.exercise_count,
            step_count=counts.step_count,
            section_count=counts.section_count,
            section_chunk_count=counts.section_chunk_count,
        )

    def fail(self, run_id: str, error_message: str) -> None:
        self._finish(
            run_id,
            status=IndexRunStatus.FAILED.value,
            error_message=error_message[:INDEX_RUN_ERROR_MAX_CHARS],
        )
