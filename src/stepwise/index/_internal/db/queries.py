"""Read-side queries over the workshop index."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, or_, text
from sqlmodel import col, select

from stepwise.index._internal.db.database import Database
from stepwise.index.models import (
    IndexedExercise,
    IndexedSection,
    IndexedSectionChunk,
    IndexedStep,
    IndexedWorkshop,
)


@dataclass(frozen=True, slots=True)
class ScopeRow:
    workshop_slug: str
    exercise_number: int


@dataclass(frozen=True, slots=True)
class ChunkHit:
    """A chunk (or section excerpt) joined with its parent section's labels."""

    workshop_slug: str
    content: str
    exercise_number: int | None = None
    step_number: int | None = None
    section_order: int | None = None
    section_kind: str | None = None
    label: str | None = None
    source_path: str | None = None
    vector_id: str | None = None


def _like_pattern(query: str) -> str:
    escaped = query.casefold().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class IndexQueries:
    """Typed read access used by retrieval, search and change detection."""

    def __init__(self, db: Database) -> None:
        self._db = db

    # =========================================================================
    # Workshops
    # =========================================================================

    def list_workshops(
        self,
        *,
        limit: int,
        offset: int = 0,
        product: str | None = None,
        has_diffs: bool | None = None,
    ) -> list[IndexedWorkshop]:
        """Up to ``limit`` rows ordered by slug (callers ask for one extra to detect more)."""
        stmt = select(IndexedWorkshop)
        if product:
            stmt = stmt.where(IndexedWorkshop.product == product)
        if has_diffs is not None:
            stmt = stmt.where(IndexedWorkshop.has_diffs == has_diffs)
        stmt = stmt.order_by(col(IndexedWorkshop.workshop_slug)).offset(offset).limit(limit)
        with self._db.session() as session:
            return list(session.exec(stmt).all())

    def last_indexed_shas(self) -> dict[str, str]:
        """Lowercased slug -> stored source sha."""
        stmt = select(IndexedWorkshop.workshop_slug, IndexedWorkshop.source_sha)
        with self._db.session() as session:
            rows = session.exec(stmt).all()
        return {
            slug.strip().lower(): sha.strip()
            for slug, sha in rows
            if slug and sha and sha.strip()
        }

    def workshop_exists(self, workshop_slug: str) -> bool:
        with self._db.session() as session:
            return session.get(IndexedWorkshop, workshop_slug) is not None

    def exercise_exists(self, exercise_number: int, workshop_slug: str | None = None) -> bool:
        stmt = select(IndexedExercise.id).where(IndexedExercise.exercise_number == exercise_number)
        if workshop_slug is not None:
            stmt = stmt.where(IndexedExercise.workshop_slug == workshop_slug)
        with self._db.session() as session:
            return session.exec(stmt.limit(1)).first() is not None

    def step_exists(
        self, exercise_number: int, step_number: int, workshop_slug: str | None = None
    ) -> bool:
        stmt = select(IndexedStep.id).where(
            IndexedStep.exercise_number == exercise_number,
            IndexedStep.step_number == step_number,
        )
        if workshop_slug is not None:
            stmt = stmt.where(IndexedStep.workshop_slug == workshop_slug)
        with self._db.session() as session:
            return session.exec(stmt.limit(1)).first() is not None

    def random_exercise(self) -> ScopeRow | None:
        stmt = (
            select(IndexedExercise.workshop_slug, IndexedExercise.exercise_number)
            .order_by(func.random())
            .limit(1)
        )
        with self._db.session() as session:
            row = session.exec(stmt).first()
        if row is None:
            return None
        return ScopeRow(workshop_slug=row[0], exercise_number=row[1])

    # =========================================================================
    # Sections
    # =========================================================================

    def sections_for_scope(
        self,
        workshop_slug: str,
        exercise_number: int | None = None,
        step_number: int | None = None,
        *,
        diff_only: bool = False,
    ) -> list[IndexedSection]:
        """Sections in stored order; workshop/exercise-level rows are included."""
        stmt = select(IndexedSection).where(IndexedSection.workshop_slug == workshop_slug)
        if exercise_number is not None:
            stmt = stmt.where(
                or_(
                    col(IndexedSection.exercise_number).is_(None),
                    IndexedSection.exercise_number == exercise_number,
                )
            )
        if step_number is not None:
            stmt = stmt.where(
                or_(
                    col(IndexedSection.step_number).is_(None),
                    IndexedSection.step_number == step_number,
                )
            )
        if diff_only:
            stmt = stmt.where(col(IndexedSection.is_diff).is_(True))
        stmt = stmt.order_by(col(IndexedSection.section_order), col(IndexedSection.id))
        with self._db.session() as session:
            return list(session.exec(stmt).all())

    # =========================================================================
    # Chunks
    # =========================================================================

    def stored_vector_ids(self, workshop_slug: str) -> list[str]:
        stmt = (
            select(IndexedSectionChunk.vector_id)
            .where(
                IndexedSectionChunk.workshop_slug == workshop_slug,
                col(IndexedSectionChunk.vector_id).is_not(None),
            )
            .distinct()
        )
        with self._db.session() as session:
            rows = session.exec(stmt).all()
        seen: dict[str, None] = {}
        for vector_id in rows:
            if vector_id and vector_id.strip():
                seen.setdefault(vector_id.strip(), None)
        return list(seen)

    def chunks_by_vector_ids(self, vector_ids: list[str]) -> dict[str, ChunkHit]:
        """Hydrate vector ids to chunk text plus parent section labels."""
        if not vector_ids:
            return {}
        placeholders = ", ".join(f":v{i}" for i in range(len(vector_ids)))
        sql = f"""
            SELECT
                c.vector_id, c.content, c.workshop_slug, c.exercise_number,
                c.step_number, c.section_order, s.section_kind, s.label, s.source_path
            FROM indexed_section_chunks c
            LEFT JOIN indexed_sections s
                ON s.workshop_slug = c.workshop_slug
                AND s.exercise_number IS c.exercise_number
                AND s.step_number IS c.step_number
                AND s.section_order = c.section_order
            WHERE c.vector_id IN ({placeholders})
        """
        params = {f"v{i}": vector_id for i, vector_id in enumerate(vector_ids)}
        with self._db.session() as session:
            rows = session.connection().execute(text(sql), params).all()

        hits: dict[str, ChunkHit] = {}
        for row in rows:
            vector_id = (row[0] or "").strip()
            if not vector_id or vector_id in hits:
                continue
            hits[vector_id] = ChunkHit(
                vector_id=vector_id,
                content=row[1],
                workshop_slug=row[2],
                exercise_number=row[3],
                step_number=row[4],
                section_order=row[5],
                section_kind=row[6],
                label=row[7],
                source_path=row[8],
            )
        return hits

    def _scope_filters(
        self,
        table: Any,
        workshop_slug: str | None,
        exercise_number: int | None,
        step_number: int | None,
    ) -> list[Any]:
        filters: list[Any] = []
        if workshop_slug is not None:
            filters.append(table.workshop_slug == workshop_slug)
        if exercise_number is not None:
            filters.append(table.exercise_number == exercise_number)
        if step_number is not None:
            filters.append(table.step_number == step_number)
        return filters

    def keyword_chunks(
        self,
        query: str,
        *,
        workshop_slug: str | None = None,
        exercise_number: int | None = None,
        step_number: int | None = None,
    ) -> list[ChunkHit]:
        """Chunks whose content contains ``query`` (case-insensitive)."""
        stmt = (
            select(IndexedSectionChunk, IndexedSection)
            .join(
                IndexedSection,
                (IndexedSection.workshop_slug == IndexedSectionChunk.workshop_slug)
                & (IndexedSection.section_order == IndexedSectionChunk.section_order),
                isouter=True,
            )
            .where(
                func.casefold(IndexedSectionChunk.content).like(_like_pattern(query), escape="\\"),
                *self._scope_filters(IndexedSectionChunk, workshop_slug, exercise_number, step_number),
            )
            .order_by(
                col(IndexedSectionChunk.workshop_slug),
                col(IndexedSectionChunk.section_order),
                col(IndexedSectionChunk.chunk_index),
            )
        )
        with self._db.session() as session:
            rows = session.exec(stmt).all()
        return [
            ChunkHit(
                workshop_slug=chunk.workshop_slug,
                content=chunk.content,
                exercise_number=chunk.exercise_number,
                step_number=chunk.step_number,
                section_order=chunk.section_order,
                section_kind=section.section_kind if section else None,
                label=section.label if section else None,
                source_path=section.source_path if section else None,
            )
            for chunk, section in rows
        ]

    def keyword_sections(
        self,
        query: str,
        *,
        workshop_slug: str | None = None,
        exercise_number: int | None = None,
        step_number: int | None = None,
    ) -> list[ChunkHit]:
        """Sections whose content contains ``query`` (case-insensitive)."""
        stmt = (
            select(IndexedSection)
            .where(
                func.casefold(IndexedSection.content).like(_like_pattern(query), escape="\\"),
                *self._scope_filters(IndexedSection, workshop_slug, exercise_number, step_number),
            )
            .order_by(col(IndexedSection.workshop_slug), col(IndexedSection.section_order))
        )
        with self._db.session() as session:
            rows = session.exec(stmt).all()
        return [
            ChunkHit(
                workshop_slug=section.workshop_slug,
                content=section.content,
                exercise_number=section.exercise_number,
                step_number=section.step_number,
                section_order=section.section_order,
                section_kind=section.section_kind,
                label=section.label,
                source_path=section.source_path,
            )
            for section in rows
        ]
