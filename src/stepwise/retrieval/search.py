"""Topic search: vector similarity with a keyword fallback.

Filters are validated against the relational store before any vector call,
so an invalid scope is always reported as such. When no embedding provider
or vector index is configured, or the similarity query fails, search falls
back to case-insensitive containment over stored chunks (then sections) and
says so in ``warnings``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Literal

import structlog

from stepwise.config.constants import TOPIC_SEARCH_MAX_LIMIT, TOPIC_SEARCH_MIN_QUERY_CHARS
from stepwise.index._internal.db import IndexQueries
from stepwise.index._internal.db.queries import ChunkHit
from stepwise.index._internal.embedding import prepare_embedding_text
from stepwise.retrieval.errors import ScopeNotFoundError, SearchInputError
from stepwise.vector.base import EmbeddingProvider, MetadataValue, VectorIndex

log = structlog.get_logger(__name__)

DEFAULT_SEARCH_LIMIT = 8
KEYWORD_EXCERPT_CHARS = 1600
KEYWORD_EXCERPT_LEAD = 200

SearchMode = Literal["vector", "keyword"]
KeywordSource = Literal["chunks", "sections"]


@dataclass(frozen=True, slots=True)
class TopicMatch:
    score: float
    workshop: str
    chunk: str
    exercise_number: int | None = None
    step_number: int | None = None
    section_kind: str | None = None
    section_label: str | None = None
    source_path: str | None = None
    vector_id: str | None = None

    @classmethod
    def from_hit(cls, hit: ChunkHit, score: float, chunk: str | None = None) -> TopicMatch:
        return cls(
            score=score,
            workshop=hit.workshop_slug,
            chunk=chunk if chunk is not None else hit.content,
            exercise_number=hit.exercise_number,
            step_number=hit.step_number,
            section_kind=hit.section_kind,
            section_label=hit.label,
            source_path=hit.source_path,
            vector_id=hit.vector_id,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"score": self.score, "workshop": self.workshop}
        optional = {
            "exerciseNumber": self.exercise_number,
            "stepNumber": self.step_number,
            "sectionKind": self.section_kind,
            "sectionLabel": self.section_label,
            "sourcePath": self.source_path,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        data["chunk"] = self.chunk
        data["vectorId"] = self.vector_id
        return data


@dataclass
class TopicSearchResult:
    query: str
    limit: int
    mode: SearchMode
    vector_search_available: bool
    matches: list[TopicMatch] = field(default_factory=list)
    keyword_source: KeywordSource | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "query": self.query,
            "limit": self.limit,
            "mode": self.mode,
            "vectorSearchAvailable": self.vector_search_available,
            "keywordSource": self.keyword_source,
            "matches": [m.to_dict() for m in self.matches],
        }
        if self.warnings:
            data["warnings"] = list(self.warnings)
        return data


def _excerpt(content: str, needle: str) -> str:
    position = content.casefold().find(needle)
    start = max(0, position - KEYWORD_EXCERPT_LEAD) if position > 0 else 0
    return content[start : start + KEYWORD_EXCERPT_CHARS]


class TopicSearch:
    """Hybrid topic search over indexed chunks.

    Pass ``provider`` and ``index`` to enable vector mode; either one missing
    means keyword mode.
    """

    def __init__(
        self,
        queries: IndexQueries,
        provider: EmbeddingProvider | None = None,
        index: VectorIndex | None = None,
        *,
        default_limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> None:
        self._queries = queries
        self._provider = provider
        self._index = index
        self._default_limit = default_limit

    @property
    def vector_configured(self) -> bool:
        return self._provider is not None and self._index is not None

    def _validate(
        self,
        query: str,
        workshop: str | None,
        exercise_number: int | None,
        step_number: int | None,
    ) -> str:
        normalized = query.strip()
        if len(normalized) < TOPIC_SEARCH_MIN_QUERY_CHARS:
            raise SearchInputError(
                f"query must be at least {TOPIC_SEARCH_MIN_QUERY_CHARS} characters for topic search."
            )
        if step_number is not None and exercise_number is None:
            raise SearchInputError(
                "exerciseNumber is required when stepNumber is provided for topic search."
            )
        if workshop and not self._queries.workshop_exists(workshop):
            raise ScopeNotFoundError.workshop(workshop)
        if exercise_number is not None and not self._queries.exercise_exists(
            exercise_number, workshop or None
        ):
            raise ScopeNotFoundError.exercise(exercise_number, workshop or None)
        if (
            step_number is not None
            and exercise_number is not None
            and not self._queries.step_exists(exercise_number, step_number, workshop or None)
        ):
            raise ScopeNotFoundError.step(step_number, exercise_number, workshop or None)
        return normalized

    async def search(
        self,
        query: str,
        *,
        limit: int | None = None,
        workshop: str | None = None,
        exercise_number: int | None = None,
        step_number: int | None = None,
    ) -> TopicSearchResult:
        """Ranked matches for ``query`` within the optional scope.

        Raises:
            SearchInputError: Query too short, or step without exercise.
            ScopeNotFoundError: A scope filter names something not indexed.
        """
        started_at = time.monotonic()
        normalized = self._validate(query, workshop, exercise_number, step_number)
        top_k = min(max(limit or self._default_limit, 1), TOPIC_SEARCH_MAX_LIMIT)
        scope = {
            "workshop_slug": workshop or None,
            "exercise_number": exercise_number,
            "step_number": step_number,
        }

        if not self.vector_configured:
            result = self._keyword_search(
                normalized,
                top_k,
                scope,
                "Vector search is unavailable because no embedding provider and vector index "
                "are configured; results use keyword matching.",
            )
        else:
            try:
                result = await self._vector_search(normalized, top_k, scope)
            except Exception as exc:
                log.warning("topic_vector_search_failed", error=str(exc))
                result = self._keyword_search(
                    normalized,
                    top_k,
                    scope,
                    f"Vector search failed ({exc}); results use keyword matching.",
                )

        log.info(
            "topic_search",
            query_length=len(normalized),
            top_k=top_k,
            mode=result.mode,
            returned=len(result.matches),
            filter={k: v for k, v in scope.items() if v is not None},
            duration_ms=int((time.monotonic() - started_at) * 1000),
        )
        return result

    async def _vector_search(
        self, query: str, top_k: int, scope: dict[str, MetadataValue]
    ) -> TopicSearchResult:
        assert self._provider is not None and self._index is not None
        vectors = await self._provider.embed([prepare_embedding_text(query)])
        if not vectors:
            raise ValueError("Embedding provider did not return a query vector.")
        filter_ = {k: v for k, v in scope.items() if v is not None}
        vector_matches = await self._index.query(vectors[0], top_k=top_k, filter=filter_ or None)

        ids = list(dict.fromkeys(m.id.strip() for m in vector_matches if m.id and m.id.strip()))
        hits = self._queries.chunks_by_vector_ids(ids)

        matches: list[TopicMatch] = []
        seen: set[str] = set()
        for match in vector_matches:
            vector_id = match.id.strip() if match.id else ""
            if not vector_id or vector_id in seen:
                continue
            seen.add(vector_id)
            hit = hits.get(vector_id)
            if hit is None or not hit.content or not hit.workshop_slug:
                continue
            matches.append(TopicMatch.from_hit(hit, float(match.score)))

        return TopicSearchResult(
            query=query,
            limit=top_k,
            mode="vector",
            vector_search_available=True,
            matches=matches,
        )

    def _keyword_search(
        self, query: str, top_k: int, scope: dict[str, Any], warning: str
    ) -> TopicSearchResult:
        needle = query.casefold()
        source: KeywordSource = "chunks"
        hits = self._queries.keyword_chunks(query, **scope)
        if not hits:
            source = "sections"
            hits = self._queries.keyword_sections(query, **scope)

        scored = [(hit.content.casefold().count(needle), hit) for hit in hits]
        # Stable sort keeps stored order among equal scores.
        scored.sort(key=lambda pair: pair[0], reverse=True)
        matches = [
            TopicMatch.from_hit(
                hit,
                float(count),
                chunk=_excerpt(hit.content, needle) if source == "sections" else None,
            )
            for count, hit in scored[:top_k]
        ]
        return TopicSearchResult(
            query=query,
            limit=top_k,
            mode="keyword",
            vector_search_available=False,
            matches=matches,
            keyword_source=source,
            warnings=[warning],
        )
