"""SQLModel definitions for the workshop index.

Single source of truth for all table schemas. Every row below the run table
belongs to one workshop slug and is replaced as a set by a reindex of that
slug (see ``stepwise.index._internal.db.writer``).

Timestamps are epoch seconds.
"""

from dataclasses import dataclass, field
from enum import StrEnum

from sqlalchemy import Index, UniqueConstraint
from sqlmodel import Field, SQLModel

# ============================================================================
# ENUMS
# ============================================================================


class IndexRunStatus(StrEnum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SectionKind(StrEnum):
    """Kind tag of a stored section, in emission order within a step."""

    WORKSHOP_INSTRUCTIONS = "workshop-instructions"
    WORKSHOP_FINISHED = "workshop-finished"
    EXERCISE_INSTRUCTIONS = "exercise-instructions"
    EXERCISE_FINISHED = "exercise-finished"
    PROBLEM_INSTRUCTIONS = "problem-instructions"
    SOLUTION_INSTRUCTIONS = "solution-instructions"
    PROBLEM_CODE = "problem-code"
    SOLUTION_CODE = "solution-code"
    DIFF_SUMMARY = "diff-summary"
    DIFF_HUNK = "diff-hunk"


# ============================================================================
# TABLES
# ============================================================================


class IndexRun(SQLModel, table=True):
    """One reindex batch. Terminal once completed or failed."""

    __tablename__ = "workshop_index_runs"

    id: str = Field(primary_key=True)
    status: str = Field(default=IndexRunStatus.RUNNING.value, index=True)
    started_at: float
    completed_at: float | None = None
    error_message: str | None = None
    workshop_count: int = 0
    exercise_count: int = 0
    step_count: int = 0
    section_count: int = 0
    section_chunk_count: int = 0


class IndexedWorkshop(SQLModel, table=True):
    __tablename__ = "indexed_workshops"

    workshop_slug: str = Field(primary_key=True)
    title: str
    product: str | None = Field(default=None, index=True)
    repo_owner: str
    repo_name: str
    default_branch: str
    source_sha: str
    exercise_count: int = 0
    has_diffs: bool = False
    last_indexed_at: float = Field(index=True)
    index_run_id: str


class IndexedExercise(SQLModel, table=True):
    __tablename__ = "indexed_exercises"
    __table_args__ = (UniqueConstraint("workshop_slug", "exercise_number"),)

    id: int | None = Field(default=None, primary_key=True)
    workshop_slug: str = Field(index=True)
    exercise_number: int
    title: str
    step_count: int = 0


class IndexedStep(SQLModel, table=True):
    __tablename__ = "indexed_steps"
    __table_args__ = (
        UniqueConstraint("workshop_slug", "exercise_number", "step_number"),
    )

    id: int | None = Field(default=None, primary_key=True)
    workshop_slug: str = Field(index=True)
    exercise_number: int
    step_number: int
    problem_dir: str | None = None
    solution_dir: str | None = None
    has_diff: bool = False


class IndexedSection(SQLModel, table=True):
    """Retrievable content. ``section_order`` is the only pagination key."""

    __tablename__ = "indexed_sections"
    __table_args__ = (
        Index(
            "idx_indexed_sections_scope_order",
            "workshop_slug",
            "exercise_number",
            "step_number",
            "section_order",
            "id",
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    workshop_slug: str
    exercise_number: int | None = None
    step_number: int | None = None
    section_order: int
    section_kind: str
    label: str
    source_path: str | None = None
    content: str
    char_count: int
    is_diff: bool = False
    index_run_id: str


class IndexedSectionChunk(SQLModel, table=True):
    """Embedding-sized slice of a section; ``vector_id`` is set once embedded."""

    __tablename__ = "indexed_section_chunks"
    __table_args__ = (
        Index(
            "idx_indexed_section_chunks_scope",
            "workshop_slug",
            "exercise_number",
            "step_number",
            "section_order",
            "chunk_index",
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    workshop_slug: str
    exercise_number: int | None = None
    step_number: int | None = None
    section_order: int
    chunk_index: int
    content: str
    char_count: int
    vector_id: str | None = Field(default=None, index=True)
    index_run_id: str


# ============================================================================
# NON-TABLE MODELS (builder output, written by the index writer)
# ============================================================================


@dataclass(slots=True)
class WorkshopRecord:
    workshop_slug: str
    title: str
    product: str | None
    repo_owner: str
    repo_name: str
    default_branch: str
    source_sha: str
    exercise_count: int
    has_diffs: bool


@dataclass(slots=True)
class ExerciseRecord:
    exercise_number: int
    title: str
    step_count: int


@dataclass(slots=True)
class StepRecord:
    exercise_number: int
    step_number: int
    problem_dir: str | None
    solution_dir: str | None
    has_diff: bool


@dataclass(slots=True)
class SectionRecord:
    section_order: int
    section_kind: SectionKind
    label: str
    content: str
    exercise_number: int | None = None
    step_number: int | None = None
    source_path: str | None = None
    is_diff: bool = False


@dataclass(slots=True)
class ChunkRecord:
    section_order: int
    chunk_index: int
    content: str
    exercise_number: int | None = None
    step_number: int | None = None
    vector_id: str | None = None


@dataclass(slots=True)
class WorkshopIndexData:
    """Everything one repository contributes to the index."""

    workshop: WorkshopRecord
    exercises: list[ExerciseRecord] = field(default_factory=list)
    steps: list[StepRecord] = field(default_factory=list)
    sections: list[SectionRecord] = field(default_factory=list)
