"""fastembed-backed embedding provider.

Model: BAAI/bge-small-en-v1.5 by default (384-dim, 512-token context).
The ONNX model is loaded lazily on first use and inference runs in a worker
thread so the event loop stays responsive.
"""

from __future__ import annotations

import asyncio
import os
import time
from typing import Any

import structlog

from stepwise.vector.base import EmbeddingUnavailableError

log = structlog.get_logger(__name__)

_EMBED_BATCH_SIZE = 256


class FastEmbedProvider:
    """Local ONNX embedding provider."""

    def __init__(self, model_name: str = "BAAI/bge-small-en-v1.5") -> None:
        self.model_name = model_name
        self._model: Any | None = None
        self._disabled = False

    @property
    def disabled(self) -> bool:
        return self._disabled

    def _ensure_model(self) -> Any:
        """Lazy-load the fastembed TextEmbedding model."""
        if self._model is not None:
            return self._model
        if self._disabled:
            raise EmbeddingUnavailableError(f"Embedding model {self.model_name} is unavailable")

        try:
            from fastembed import TextEmbedding

            threads = max(1, (os.cpu_count() or 4) // 2)
            start = time.monotonic()
            self._model = TextEmbedding(model_name=self.model_name, threads=threads)
            log.info(
                "embedding_model_loaded",
                model=self.model_name,
                threads=threads,
                elapsed_s=round(time.monotonic() - start, 2),
            )
        except Exception as exc:
            log.warning("embedding_model_load_failed", model=self.model_name, exc_info=True)
            self._disabled = True
            raise EmbeddingUnavailableError(
                f"Embedding model {self.model_name} failed to load: {exc}"
            ) from exc
        return self._model

    def _embed_sync(self, texts: list[str]) -> list[list[float]]:
        model = self._ensure_model()
        return [
            [float(x) for x in vector]
            for vector in model.embed(texts, batch_size=_EMBED_BATCH_SIZE)
        ]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        return await asyncio.to_thread(self._embed_sync, texts)
