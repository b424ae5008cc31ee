"""Scoped, character-budgeted retrieval over the workshop index.

Every operation validates the requested scope before loading sections, so
callers get a distinct "unknown" error per granularity and a separate
"no context" error when the scope exists but holds nothing to serve.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import structlog

from stepwise.config.constants import LIST_WORKSHOPS_MAX_LIMIT, RETRIEVAL_MAX_CHARS_HARD
from stepwise.config.models import RetrievalConfig
from stepwise.core.pagination import OffsetCursor
from stepwise.index._internal.db import Database, IndexQueries
from stepwise.index.models import IndexedSection, IndexedWorkshop
from stepwise.retrieval.errors import ContextNotFoundError, ScopeNotFoundError
from stepwise.retrieval.truncation import RetrievalSection, clamp_max_chars, truncate_sections

log = structlog.get_logger(__name__)


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=UTC).isoformat().replace("+00:00", "Z")


def _elapsed_ms(started_at: float) -> int:
    return int((time.monotonic() - started_at) * 1000)


@dataclass(frozen=True, slots=True)
class WorkshopSummary:
    workshop: str
    title: str
    exercise_count: int
    has_diffs: bool
    last_indexed_at: str
    product: str | None = None

    @classmethod
    def from_row(cls, row: IndexedWorkshop) -> WorkshopSummary:
        return cls(
            workshop=row.workshop_slug,
            title=row.title,
            exercise_count=row.exercise_count,
            has_diffs=row.has_diffs,
            last_indexed_at=_iso(row.last_indexed_at),
            product=row.product,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "workshop": self.workshop,
            "title": self.title,
            "exerciseCount": self.exercise_count,
            "hasDiffs": self.has_diffs,
            "lastIndexedAt": self.last_indexed_at,
        }
        if self.product is not None:
            data["product"] = self.product
        return data


@dataclass
class WorkshopList:
    workshops: list[WorkshopSummary] = field(default_factory=list)
    next_cursor: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "workshops": [w.to_dict() for w in self.workshops],
            "nextCursor": self.next_cursor,
        }


@dataclass
class ContextResult:
    """A page of sections for one scope."""

    workshop: str
    exercise_number: int
    sections: list[RetrievalSection]
    truncated: bool
    step_number: int | None = None
    next_cursor: str | None = None

    def to_dict(self, sections_key: str = "sections") -> dict[str, Any]:
        data: dict[str, Any] = {
            "workshop": self.workshop,
            "exerciseNumber": self.exercise_number,
            sections_key: [s.to_dict() for s in self.sections],
            "truncated": self.truncated,
        }
        if self.step_number is not None:
            data["stepNumber"] = self.step_number
        if self.next_cursor is not None:
            data["nextCursor"] = self.next_cursor
        return data


def _to_retrieval_section(row: IndexedSection) -> RetrievalSection:
    return RetrievalSection(
        label=row.label,
        kind=row.section_kind,
        content=row.content,
        source_path=row.source_path,
        exercise_number=row.exercise_number,
        step_number=row.step_number,
    )


def filter_by_focus(sections: list[RetrievalSection], focus: str) -> list[RetrievalSection]:
    """Sections whose label, kind, source path or content contain ``focus``."""
    needle = focus.strip().casefold()
    if not needle:
        return sections
    return [
        s
        for s in sections
        if needle in s.label.casefold()
        or needle in s.kind.casefold()
        or needle in (s.source_path or "").casefold()
        or needle in s.content.casefold()
    ]


def _scope_label(workshop: str, exercise_number: int, step_number: int | None) -> str:
    label = f'workshop "{workshop}" exercise {exercise_number}'
    if step_number is not None:
        label += f" step {step_number}"
    return label


class RetrievalService:
    """Read operations behind the workshop tools."""

    def __init__(self, db: Database, config: RetrievalConfig | None = None) -> None:
        self._queries = IndexQueries(db)
        self._config = config or RetrievalConfig()

    @property
    def queries(self) -> IndexQueries:
        return self._queries

    def _max_chars(self, requested: float | None) -> int:
        return clamp_max_chars(requested, self._config.max_chars_default, RETRIEVAL_MAX_CHARS_HARD)

    def validate_scope(self, workshop: str, exercise_number: int, step_number: int | None) -> None:
        """Raises ScopeNotFoundError for the coarsest missing level."""
        if not self._queries.workshop_exists(workshop):
            raise ScopeNotFoundError.workshop(workshop)
        if not self._queries.exercise_exists(exercise_number, workshop):
            raise ScopeNotFoundError.exercise(exercise_number, workshop)
        if step_number is not None and not self._queries.step_exists(
            exercise_number, step_number, workshop
        ):
            raise ScopeNotFoundError.step(step_number, exercise_number, workshop)

    # =========================================================================
    # Workshops
    # =========================================================================

    def list_workshops(
        self,
        *,
        limit: int | None = None,
        cursor: str | None = None,
        product: str | None = None,
        has_diffs: bool | None = None,
    ) -> WorkshopList:
        """One page of workshops ordered by slug."""
        started_at = time.monotonic()
        page_size = min(max(limit or self._config.list_limit_default, 1), LIST_WORKSHOPS_MAX_LIMIT)
        offset = OffsetCursor.from_string(cursor).offset
        rows = self._queries.list_workshops(
            limit=page_size + 1, offset=offset, product=product, has_diffs=has_diffs
        )
        has_next = len(rows) > page_size
        workshops = [WorkshopSummary.from_row(row) for row in rows[:page_size]]
        next_cursor = OffsetCursor(offset + len(workshops)).to_string() if has_next else None
        log.info(
            "retrieval_list_workshops",
            limit=page_size,
            product=product,
            has_diffs=has_diffs,
            workshop_count=len(workshops),
            has_next_cursor=next_cursor is not None,
            duration_ms=_elapsed_ms(started_at),
        )
        return WorkshopList(workshops=workshops, next_cursor=next_cursor)

    def list_all_workshops(
        self,
        *,
        limit: int | None = None,
        product: str | None = None,
        has_diffs: bool | None = None,
    ) -> WorkshopList:
        """Walk every page and return the whole list (no cursor)."""
        collected: list[WorkshopSummary] = []
        cursor: str | None = None
        while True:
            page = self.list_workshops(
                limit=limit or LIST_WORKSHOPS_MAX_LIMIT,
                cursor=cursor,
                product=product,
                has_diffs=has_diffs,
            )
            collected.extend(page.workshops)
            if page.next_cursor is None:
                return WorkshopList(workshops=collected)
            cursor = page.next_cursor

    # =========================================================================
    # Context
    # =========================================================================

    def retrieve_learning_context(
        self,
        *,
        workshop: str | None = None,
        exercise_number: int | None = None,
        step_number: int | None = None,
        random: bool = False,
        max_chars: float | None = None,
        cursor: str | None = None,
    ) -> ContextResult:
        """Sections for a scope, or for one random indexed exercise."""
        started_at = time.monotonic()
        budget = self._max_chars(max_chars)
        if random:
            scope = self._queries.random_exercise()
            if scope is None:
                raise ContextNotFoundError(
                    "No indexed exercises are available. Run manual reindex first."
                )
            workshop, exercise_number, step_number = scope.workshop_slug, scope.exercise_number, None
        else:
            if workshop is None or exercise_number is None:
                raise ValueError("workshop and exercise_number are required unless random is set")
            self.validate_scope(workshop, exercise_number, step_number)

        rows = self._queries.sections_for_scope(workshop, exercise_number, step_number)
        if not rows:
            raise ContextNotFoundError(
                f'No indexed context found for workshop "{workshop}" exercise {exercise_number}.'
            )

        page = truncate_sections([_to_retrieval_section(r) for r in rows], budget, cursor)
        log.info(
            "retrieval_learning_context",
            workshop=workshop,
            exercise_number=exercise_number,
            step_number=step_number,
            random=random,
            section_count=len(page.sections),
            truncated=page.truncated,
            max_chars=budget,
            duration_ms=_elapsed_ms(started_at),
        )
        return ContextResult(
            workshop=workshop,
            exercise_number=exercise_number,
            step_number=step_number,
            sections=page.sections,
            truncated=page.truncated,
            next_cursor=page.next_cursor,
        )

    def retrieve_diff_context(
        self,
        *,
        workshop: str,
        exercise_number: int,
        step_number: int | None = None,
        focus: str | None = None,
        max_chars: float | None = None,
        cursor: str | None = None,
    ) -> ContextResult:
        """Diff sections for a scope, optionally narrowed by a focus string."""
        started_at = time.monotonic()
        self.validate_scope(workshop, exercise_number, step_number)
        budget = self._max_chars(max_chars)

        sections = [
            _to_retrieval_section(r)
            for r in self._queries.sections_for_scope(
                workshop, exercise_number, step_number, diff_only=True
            )
        ]
        normalized_focus = focus.strip() if focus else ""
        if normalized_focus:
            sections = filter_by_focus(sections, normalized_focus)
        if not sections:
            label = _scope_label(workshop, exercise_number, step_number)
            if normalized_focus:
                raise ContextNotFoundError(
                    f'No diff context matched focus "{normalized_focus}" for {label}.'
                )
            raise ContextNotFoundError(f"No diff context found for {label}.")

        page = truncate_sections(sections, budget, cursor)
        log.info(
            "retrieval_diff_context",
            workshop=workshop,
            exercise_number=exercise_number,
            step_number=step_number,
            focus=normalized_focus or None,
            diff_section_count=len(page.sections),
            truncated=page.truncated,
            max_chars=budget,
            duration_ms=_elapsed_ms(started_at),
        )
        return ContextResult(
            workshop=workshop,
            exercise_number=exercise_number,
            step_number=step_number,
            sections=page.sections,
            truncated=page.truncated,
            next_cursor=page.next_cursor,
        )
