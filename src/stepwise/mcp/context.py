"""Application context for MCP handlers and HTTP routes.

Single object passed to all tool handlers with access to ops classes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from stepwise.config.models import StepwiseConfig
    from stepwise.index._internal.db import Database
    from stepwise.index._internal.embedding import EmbeddingSynchronizer
    from stepwise.index.ops import ReindexCoordinator
    from stepwise.retrieval.ops import RetrievalService
    from stepwise.retrieval.search import TopicSearch
    from stepwise.source.client import GitHubClient
    from stepwise.vector.base import EmbeddingProvider, VectorIndex

log = structlog.get_logger(__name__)


@dataclass
class AppContext:
    """Context object passed to all MCP tool handlers.

    Provides access to all ops classes and shared state.
    """

    config: StepwiseConfig
    db: Database
    retrieval: RetrievalService
    search: TopicSearch
    embedding: EmbeddingSynchronizer
    provider: EmbeddingProvider | None = None
    vector_index: VectorIndex | None = None

    @classmethod
    def create(
        cls,
        config: StepwiseConfig,
        *,
        provider: EmbeddingProvider | None = None,
        vector_index: VectorIndex | None = None,
    ) -> AppContext:
        """Factory to create context with all ops wired together.

        Args:
            config: Loaded configuration
            provider: Embedding provider override (defaults to fastembed when enabled)
            vector_index: Vector index override (defaults to the local index when enabled)
        """
        from stepwise.index._internal.db import Database
        from stepwise.index._internal.embedding import EmbeddingSynchronizer
        from stepwise.retrieval.ops import RetrievalService
        from stepwise.retrieval.search import TopicSearch

        db = Database(
            config.database.resolved_path,
            max_retries=config.database.max_retries,
            retry_base_delay=config.database.retry_base_delay_sec,
            busy_timeout_ms=config.database.busy_timeout_ms,
        )
        db.create_all()

        if config.vectors.enabled:
            if provider is None:
                from stepwise.vector.embedder import FastEmbedProvider

                provider = FastEmbedProvider(config.vectors.model)
            if vector_index is None:
                from stepwise.vector.local import LocalVectorIndex

                vector_index = LocalVectorIndex(config.vectors.resolved_path)
        else:
            provider = None
            vector_index = None

        embedding = EmbeddingSynchronizer(
            provider,
            vector_index,
            chunk_size=config.index.chunk_size,
            chunk_overlap=config.index.chunk_overlap,
            delete_batch_size=config.index.vector_delete_batch_size,
        )
        retrieval = RetrievalService(db, config.retrieval)
        log.debug(
            "app_context_created",
            db_path=str(db.db_path),
            vectors_enabled=embedding.enabled,
        )
        return cls(
            config=config,
            db=db,
            retrieval=retrieval,
            search=TopicSearch(
                retrieval.queries,
                provider,
                vector_index,
                default_limit=config.retrieval.search_limit_default,
            ),
            embedding=embedding,
            provider=provider,
            vector_index=vector_index,
        )

    def reindex_coordinator(self, client: GitHubClient) -> ReindexCoordinator:
        """Coordinator bound to this context's store and vector services."""
        from stepwise.index.ops import ReindexCoordinator

        return ReindexCoordinator(
            self.db, client, config=self.config.index, embedding=self.embedding
        )

    def close(self) -> None:
        self.db.dispose()
