"""Embedding provider and vector index services."""

from stepwise.vector.base import (
    EmbeddingProvider,
    EmbeddingUnavailableError,
    VectorIndex,
    VectorMatch,
    VectorRecord,
)

__all__ = [
    "EmbeddingProvider",
    "EmbeddingUnavailableError",
    "VectorIndex",
    "VectorMatch",
    "VectorRecord",
]
