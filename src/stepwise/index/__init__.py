"""Index module - workshop indexing engine.

This module provides:
- Section building: exercise/step tree, code snapshots and diffs per workshop
- Chunking and vector synchronization for topic search
- Relational storage with clear-then-insert replacement per workshop

Public API is in `stepwise.index.ops`:
- ReindexCoordinator: Batch orchestration with resumable cursors
- ReindexSummary, ReindexTotals, ChangeCheck: Result types

Internal implementations are in `stepwise.index._internal/`.
"""

from stepwise.index._internal.db import Database, IndexQueries, IndexRunCounts
from stepwise.index.models import (
    IndexedExercise,
    IndexedSection,
    IndexedSectionChunk,
    IndexedStep,
    IndexedWorkshop,
    IndexRun,
    IndexRunStatus,
    SectionKind,
)
from stepwise.index.ops import (
    ChangeCheck,
    ReindexCoordinator,
    ReindexSummary,
    ReindexTotals,
    WorkshopIndexInputError,
    changed_slugs,
)

__all__ = [
    # Public API (ops.py)
    "ReindexCoordinator",
    "ReindexSummary",
    "ReindexTotals",
    "ChangeCheck",
    "WorkshopIndexInputError",
    "changed_slugs",
    # Database
    "Database",
    "IndexQueries",
    "IndexRunCounts",
    # Enums
    "IndexRunStatus",
    "SectionKind",
    # Table models
    "IndexRun",
    "IndexedWorkshop",
    "IndexedExercise",
    "IndexedStep",
    "IndexedSection",
    "IndexedSectionChunk",
]
