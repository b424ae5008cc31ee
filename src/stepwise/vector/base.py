"""Service contracts for embeddings and vector storage.

The indexer and topic search only talk to these protocols. Concrete
bindings live in ``stepwise.vector.embedder`` and ``stepwise.vector.local``;
tests substitute in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

MetadataValue = str | int | float | bool | None


class EmbeddingUnavailableError(Exception):
    """The embedding model could not be loaded."""


@dataclass(frozen=True, slots=True)
class VectorRecord:
    id: str
    values: list[float]
    metadata: dict[str, MetadataValue] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class VectorMatch:
    id: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class EmbeddingProvider(Protocol):
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """One vector per input text, in input order."""
        ...


@runtime_checkable
class VectorIndex(Protocol):
    async def upsert(self, records: list[VectorRecord]) -> None: ...

    async def delete_by_ids(self, ids: list[str]) -> None: ...

    async def query(
        self,
        vector: list[float],
        *,
        top_k: int,
        filter: dict[str, MetadataValue] | None = None,
    ) -> list[VectorMatch]:
        """Nearest records by similarity, best first, matching every filter key."""
        ...
