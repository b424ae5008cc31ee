"""Tests for the numpy-backed local vector index."""

from __future__ import annotations

from pathlib import Path

import pytest

from stepwise.vector.base import VectorIndex, VectorRecord
from stepwise.vector.local import LocalVectorIndex


def _records() -> list[VectorRecord]:
    return [
        VectorRecord("a", [1.0, 0.0, 0.0], {"workshop_slug": "demo", "exercise_number": 1}),
        VectorRecord("b", [0.0, 1.0, 0.0], {"workshop_slug": "demo", "exercise_number": 2}),
        VectorRecord("c", [0.7, 0.7, 0.0], {"workshop_slug": "other", "exercise_number": 1}),
    ]


class TestLocalVectorIndex:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(LocalVectorIndex(), VectorIndex)

    @pytest.mark.asyncio
    async def test_query_orders_by_similarity(self) -> None:
        index = LocalVectorIndex()
        await index.upsert(_records())

        matches = await index.query([1.0, 0.1, 0.0], top_k=2)

        assert [m.id for m in matches] == ["a", "c"]
        assert matches[0].score > matches[1].score

    @pytest.mark.asyncio
    async def test_filter_matches_every_key(self) -> None:
        index = LocalVectorIndex()
        await index.upsert(_records())

        matches = await index.query(
            [1.0, 0.0, 0.0], top_k=5, filter={"workshop_slug": "demo", "exercise_number": 2}
        )

        assert [m.id for m in matches] == ["b"]
        assert matches[0].metadata["exercise_number"] == 2

    @pytest.mark.asyncio
    async def test_upsert_replaces_existing_id(self) -> None:
        index = LocalVectorIndex()
        await index.upsert(_records())
        await index.upsert([VectorRecord("a", [0.0, 0.0, 1.0], {"workshop_slug": "demo"})])

        assert len(index) == 3
        matches = await index.query([0.0, 0.0, 1.0], top_k=1)
        assert matches[0].id == "a"

    @pytest.mark.asyncio
    async def test_delete(self) -> None:
        index = LocalVectorIndex()
        await index.upsert(_records())
        await index.delete_by_ids(["a", "missing"])

        assert len(index) == 2
        assert "a" not in [m.id for m in await index.query([1.0, 0.0, 0.0], top_k=5)]

    @pytest.mark.asyncio
    async def test_dimension_mismatch(self) -> None:
        index = LocalVectorIndex()
        await index.upsert(_records())

        with pytest.raises(ValueError, match="dimension"):
            await index.upsert([VectorRecord("d", [1.0, 0.0])])
        with pytest.raises(ValueError, match="dimension"):
            await index.query([1.0, 0.0], top_k=1)

    @pytest.mark.asyncio
    async def test_empty_index_queries(self) -> None:
        assert await LocalVectorIndex().query([1.0], top_k=3) == []

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, temp_dir: Path) -> None:
        path = temp_dir / "vectors"
        index = LocalVectorIndex(path)
        await index.upsert(_records())
        await index.delete_by_ids(["b"])

        reloaded = LocalVectorIndex(path)

        assert len(reloaded) == 2
        matches = await reloaded.query([0.7, 0.7, 0.0], top_k=1)
        assert matches[0].id == "c"
        assert matches[0].metadata == {"workshop_slug": "other", "exercise_number": 1}
