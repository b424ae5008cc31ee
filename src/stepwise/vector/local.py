"""File-backed vector index using numpy cosine similarity.

Storage layout under the configured directory:
  - vectors.npz    (float32 matrix of unit vectors + id array)
  - metadata.json  (format version, dimension, per-id metadata)

The whole matrix is held in memory; workshop corpora are small enough for
brute-force similarity.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import numpy as np
import structlog

from stepwise.vector.base import MetadataValue, VectorMatch, VectorRecord

log = structlog.get_logger(__name__)

_FORMAT_VERSION = 1


def _normalize(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    return matrix / np.maximum(norms, 1e-10)


class LocalVectorIndex:
    """Vector index persisted as numpy arrays.

    Pass ``path=None`` for a purely in-memory index.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = Path(path) if path is not None else None
        self._ids: list[str] = []
        self._matrix: np.ndarray | None = None
        self._metadata: dict[str, dict[str, MetadataValue]] = {}
        self._lock = asyncio.Lock()
        if self._path is not None:
            self._load()

    def __len__(self) -> int:
        return len(self._ids)

    # ------------------------------------------------------------------
    # VectorIndex protocol
    # ------------------------------------------------------------------

    async def upsert(self, records: list[VectorRecord]) -> None:
        if not records:
            return
        async with self._lock:
            incoming = {record.id: record for record in records}
            self._drop(set(incoming))
            new_matrix = _normalize(
                np.array([record.values for record in incoming.values()], dtype=np.float32)
            )
            if self._matrix is None or self._matrix.shape[0] == 0:
                self._matrix = new_matrix
            else:
                if new_matrix.shape[1] != self._matrix.shape[1]:
                    raise ValueError(
                        f"Vector dimension {new_matrix.shape[1]} does not match "
                        f"index dimension {self._matrix.shape[1]}"
                    )
                self._matrix = np.vstack([self._matrix, new_matrix])
            for record in incoming.values():
                self._ids.append(record.id)
                self._metadata[record.id] = dict(record.metadata)
            self._save()

    async def delete_by_ids(self, ids: list[str]) -> None:
        if not ids:
            return
        async with self._lock:
            if self._drop(set(ids)):
                self._save()

    async def query(
        self,
        vector: list[float],
        *,
        top_k: int,
        filter: dict[str, MetadataValue] | None = None,
    ) -> list[VectorMatch]:
        if self._matrix is None or not self._ids or top_k <= 0:
            return []
        query_vec = _normalize(np.array([vector], dtype=np.float32))[0]
        if query_vec.shape[0] != self._matrix.shape[1]:
            raise ValueError(
                f"Query dimension {query_vec.shape[0]} does not match "
                f"index dimension {self._matrix.shape[1]}"
            )
        scores = self._matrix @ query_vec
        order = np.argsort(-scores, kind="stable")

        matches: list[VectorMatch] = []
        for row in order:
            vector_id = self._ids[int(row)]
            metadata = self._metadata.get(vector_id, {})
            if filter and any(metadata.get(key) != value for key, value in filter.items()):
                continue
            matches.append(VectorMatch(id=vector_id, score=float(scores[row]), metadata=dict(metadata)))
            if len(matches) >= top_k:
                break
        return matches

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _drop(self, ids: set[str]) -> int:
        if self._matrix is None or not ids:
            return 0
        keep = np.array([vector_id not in ids for vector_id in self._ids], dtype=bool)
        removed = int((~keep).sum())
        if removed == 0:
            return 0
        self._matrix = self._matrix[keep]
        self._ids = [vector_id for vector_id in self._ids if vector_id not in ids]
        for vector_id in ids:
            self._metadata.pop(vector_id, None)
        return removed

    def _load(self) -> None:
        assert self._path is not None
        npz_path = self._path / "vectors.npz"
        meta_path = self._path / "metadata.json"
        if not npz_path.exists() or not meta_path.exists():
            return

        with meta_path.open() as f:
            meta: dict[str, Any] = json.load(f)
        if meta.get("version") != _FORMAT_VERSION:
            log.warning("vector_index_version_mismatch", expected=_FORMAT_VERSION, got=meta.get("version"))
            return

        data = np.load(npz_path, allow_pickle=False)
        self._matrix = data["matrix"].astype(np.float32)
        self._ids = [str(vector_id) for vector_id in data["ids"]]
        self._metadata = meta.get("metadata", {})
        log.info("vector_index_loaded", records=len(self._ids), path=str(self._path))

    def _save(self) -> None:
        if self._path is None:
            return
        self._path.mkdir(parents=True, exist_ok=True)
        npz_path = self._path / "vectors.npz"
        meta_path = self._path / "metadata.json"
        matrix = self._matrix if self._matrix is not None else np.zeros((0, 0), dtype=np.float32)
        np.savez_compressed(npz_path, matrix=matrix, ids=np.array(self._ids, dtype="U"))
        meta = {
            "version": _FORMAT_VERSION,
            "dim": int(matrix.shape[1]) if matrix.ndim == 2 else 0,
            "count": len(self._ids),
            "metadata": self._metadata,
        }
        with meta_path.open("w") as f:
            json.dump(meta, f)
