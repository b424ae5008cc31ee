"""High-level orchestration of workshop reindexing.

This module implements the ReindexCoordinator, the entry point for all
indexing operations. One call to ``reindex()`` processes one batch:

    discover -> slice batch at cursor -> (build -> chunk -> embed -> write)
    per repository -> complete run | fail run

Long reindexes are resumed by resubmitting ``ReindexSummary.next_cursor``.
Each batch records its own ``IndexRun``; callers aggregate counts.

Concurrent reindexing of the same workshop slug is not guarded against.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from stepwise.config.constants import (
    NIGHTLY_COMPARE_CONCURRENCY,
    REINDEX_BATCH_MAX_SIZE,
    WORKSHOP_FILTER_MAX_COUNT,
)
from stepwise.config.models import IndexConfig
from stepwise.core.errors import ErrorCode, InternalError, StepwiseError
from stepwise.core.pagination import OffsetCursor
from stepwise.index._internal.db import (
    Database,
    IndexQueries,
    IndexRunCounts,
    IndexRunStore,
    IndexWriter,
)
from stepwise.index._internal.embedding import EmbeddingSynchronizer
from stepwise.index._internal.sections import build_workshop_index
from stepwise.source import BlobCache, BlobReader, GitHubClient, SourceError, WorkshopRepository

log = structlog.get_logger(__name__)


class WorkshopIndexInputError(StepwiseError):
    """Caller supplied an unusable reindex request (unknown or too many slugs)."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(ErrorCode.INDEX_INPUT_INVALID, message, details=details)


@dataclass
class ReindexSummary:
    """Result of one reindex batch."""

    run_id: str
    counts: IndexRunCounts
    workshops: list[str] = field(default_factory=list)
    repository_count: int = 0
    next_cursor: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "runId": self.run_id,
            "workshopCount": self.counts.workshop_count,
            "exerciseCount": self.counts.exercise_count,
            "stepCount": self.counts.step_count,
            "sectionCount": self.counts.section_count,
            "sectionChunkCount": self.counts.section_chunk_count,
            "nextCursor": self.next_cursor,
        }


@dataclass
class ReindexTotals:
    """Aggregate of every batch in a multi-batch reindex."""

    run_ids: list[str] = field(default_factory=list)
    counts: IndexRunCounts = field(default_factory=IndexRunCounts)


@dataclass(frozen=True, slots=True)
class ChangeCheck:
    """Nightly verdict for one repository.

    ``reason`` is one of ``missing-index``, ``content-changed``,
    ``unchanged`` or ``compare-failed``.
    """

    slug: str
    should_index: bool
    reason: str


def normalize_workshop_filter(workshops: Iterable[str] | None) -> list[str] | None:
    """Lowercase, strip and dedupe requested slugs, keeping first-seen order.

    Raises:
        WorkshopIndexInputError: More than the allowed number of slugs.
    """
    if workshops is None:
        return None
    seen: dict[str, None] = {}
    for slug in workshops:
        normalized = slug.strip().lower()
        if normalized:
            seen.setdefault(normalized, None)
    if len(seen) > WORKSHOP_FILTER_MAX_COUNT:
        raise WorkshopIndexInputError(
            f"Too many workshops requested ({len(seen)}); "
            f"at most {WORKSHOP_FILTER_MAX_COUNT} are allowed.",
            requested=len(seen),
        )
    return list(seen) or None


def clamp_batch_size(batch_size: int | None, default: int) -> int:
    requested = batch_size if batch_size is not None else default
    return min(max(requested, 1), REINDEX_BATCH_MAX_SIZE)


class ReindexCoordinator:
    """Drives repository discovery, section building and index writes.

    Usage::

        coordinator = ReindexCoordinator(db, client, config=config.index)
        summary = await coordinator.reindex(workshops=["react-fundamentals"])
        while summary.next_cursor:
            summary = await coordinator.reindex(cursor=summary.next_cursor)
    """

    def __init__(
        self,
        db: Database,
        client: GitHubClient,
        *,
        config: IndexConfig | None = None,
        embedding: EmbeddingSynchronizer | None = None,
    ) -> None:
        self._config = config or IndexConfig()
        self._client = client
        self._queries = IndexQueries(db)
        self._runs = IndexRunStore(db)
        self._writer = IndexWriter(db, batch_size=self._config.write_batch_size)
        self._embedding = embedding or EmbeddingSynchronizer(
            chunk_size=self._config.chunk_size,
            chunk_overlap=self._config.chunk_overlap,
            delete_batch_size=self._config.vector_delete_batch_size,
        )

    @property
    def runs(self) -> IndexRunStore:
        return self._runs

    async def discover(
        self, only_workshops: Sequence[str] | None = None
    ) -> list[WorkshopRepository]:
        """List workshop repositories, optionally restricted to the given slugs.

        Raises:
            WorkshopIndexInputError: A requested slug was not discovered.
        """
        repositories = await self._client.list_workshop_repositories()
        if not only_workshops:
            return repositories

        wanted = set(only_workshops)
        selected = [repo for repo in repositories if repo.name.strip().lower() in wanted]
        found = {repo.name.strip().lower() for repo in selected}
        missing = sorted(wanted - found)
        if missing:
            raise WorkshopIndexInputError(
                f"Unknown workshop repositories requested: {', '.join(missing)}",
                missing=missing,
            )
        return selected

    async def reindex(
        self,
        *,
        workshops: Iterable[str] | None = None,
        cursor: str | None = None,
        batch_size: int | None = None,
    ) -> ReindexSummary:
        """Index one batch of repositories starting at ``cursor``.

        Raises:
            WorkshopIndexInputError: Invalid slug filter.
            SourceError: The source host failed after retries.
        """
        only_workshops = normalize_workshop_filter(workshops)
        size = clamp_batch_size(batch_size, self._config.batch_size)
        offset = OffsetCursor.from_string(cursor).offset

        run_id = self._runs.create()
        counts = IndexRunCounts()
        started_at = time.monotonic()
        log.info(
            "workshop_reindex_start",
            run_id=run_id,
            only_workshops=len(only_workshops or ()),
            offset=offset,
            batch_size=size,
        )

        try:
            repositories = await self.discover(only_workshops)
            batch = repositories[offset : offset + size]
            next_offset = offset + len(batch)
            log.info(
                "workshop_reindex_discovery",
                run_id=run_id,
                repository_count=len(repositories),
                batch_count=len(batch),
            )

            indexed: list[str] = []
            for repo in batch:
                counts.add(await self.index_repository(run_id, repo))
                indexed.append(repo.name)

            self._runs.complete(run_id, counts)
        except Exception as exc:
            self._runs.fail(run_id, str(exc))
            log.error(
                "workshop_reindex_failed",
                run_id=run_id,
                error=str(exc),
                duration_ms=int((time.monotonic() - started_at) * 1000),
            )
            raise

        next_cursor = (
            OffsetCursor(next_offset).to_string() if next_offset < len(repositories) else None
        )
        log.info(
            "workshop_reindex_complete",
            run_id=run_id,
            workshop_count=counts.workshop_count,
            section_count=counts.section_count,
            section_chunk_count=counts.section_chunk_count,
            has_next_cursor=next_cursor is not None,
            duration_ms=int((time.monotonic() - started_at) * 1000),
        )
        return ReindexSummary(
            run_id=run_id,
            counts=counts,
            workshops=indexed,
            repository_count=len(repositories),
            next_cursor=next_cursor,
        )

    async def index_repository(self, run_id: str, repo: WorkshopRepository) -> IndexRunCounts:
        """Rebuild and replace one workshop. Errors propagate to the caller."""
        started_at = time.monotonic()
        tree = await self._client.get_tree(repo)
        reader = BlobReader(self._client, repo, BlobCache())
        data = await build_workshop_index(repo, tree, reader)
        slug = data.workshop.workshop_slug

        stale_ids = self._queries.stored_vector_ids(slug)
        if stale_ids:
            deleted = await self._embedding.delete_vectors(slug, stale_ids)
            log.debug("workshop_stale_vectors_deleted", workshop=slug, requested=len(stale_ids), deleted=deleted)

        chunks = self._embedding.chunk_sections(data.sections)
        chunks = await self._embedding.embed_chunks(run_id, slug, chunks)
        try:
            self._writer.replace_workshop(run_id, data, chunks)
        except Exception:
            # No rows reference this run's vectors once the write rolls back.
            orphan_ids = [chunk.vector_id for chunk in chunks if chunk.vector_id]
            if orphan_ids:
                deleted = await self._embedding.delete_vectors(slug, orphan_ids)
                log.warning(
                    "workshop_orphan_vectors_deleted",
                    run_id=run_id,
                    workshop=slug,
                    requested=len(orphan_ids),
                    deleted=deleted,
                )
            raise

        counts = IndexRunCounts(
            workshop_count=1,
            exercise_count=len(data.exercises),
            step_count=len(data.steps),
            section_count=len(data.sections),
            section_chunk_count=len(chunks),
        )
        log.info(
            "workshop_reindex_repository_complete",
            run_id=run_id,
            repository=repo.name,
            exercise_count=counts.exercise_count,
            step_count=counts.step_count,
            section_count=counts.section_count,
            blob_fetches=reader.cache.misses,
            duration_ms=int((time.monotonic() - started_at) * 1000),
        )
        return counts

    async def reindex_all(
        self,
        *,
        workshops: Iterable[str] | None = None,
        batch_size: int | None = None,
    ) -> ReindexTotals:
        """Resubmit ``next_cursor`` until every batch has been indexed.

        Raises:
            InternalError: The batch loop did not finish within
                ``IndexConfig.max_load_iterations`` batches.
        """
        if workshops is not None:
            workshops = list(workshops)
        totals = ReindexTotals()
        cursor: str | None = None
        for _ in range(self._config.max_load_iterations):
            summary = await self.reindex(workshops=workshops, cursor=cursor, batch_size=batch_size)
            totals.run_ids.append(summary.run_id)
            totals.counts.add(summary.counts)
            cursor = summary.next_cursor
            if cursor is None:
                return totals
        raise InternalError.unexpected(
            "Exceeded maximum pagination iterations while indexing.",
            max_iterations=self._config.max_load_iterations,
        )

    # =========================================================================
    # Change detection
    # =========================================================================

    async def detect_changed_workshops(self) -> list[ChangeCheck]:
        """Compare each repository's head against its stored source sha."""
        last_indexed = self._queries.last_indexed_shas()
        repositories = await self._client.list_workshop_repositories()
        log.info(
            "workshop_nightly_discovery",
            repository_count=len(repositories),
            indexed_workshop_count=len(last_indexed),
        )
        semaphore = asyncio.Semaphore(NIGHTLY_COMPARE_CONCURRENCY)

        async def check(repo: WorkshopRepository) -> ChangeCheck:
            slug = repo.name.strip().lower()
            base_sha = last_indexed.get(slug)
            if base_sha is None:
                log.info("workshop_nightly_check", workshop=slug, result="index", reason="missing-index")
                return ChangeCheck(slug, True, "missing-index")
            async with semaphore:
                try:
                    changed = await self._client.compare_touches_workshop_content(repo, base_sha)
                except SourceError as exc:
                    log.warning("workshop_nightly_check", workshop=slug, error=str(exc))
                    return ChangeCheck(slug, True, "compare-failed")
            reason = "content-changed" if changed else "unchanged"
            log.info(
                "workshop_nightly_check",
                workshop=slug,
                base_sha=base_sha[:7],
                result="index" if changed else "skip",
                reason=reason,
            )
            return ChangeCheck(slug, changed, reason)

        return list(await asyncio.gather(*(check(repo) for repo in repositories)))


def changed_slugs(checks: Iterable[ChangeCheck]) -> list[str]:
    return sorted(check.slug for check in checks if check.should_index)
