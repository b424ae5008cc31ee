"""Tests for the per-pass blob cache."""

from __future__ import annotations

import base64

import pytest

from stepwise.source.blobs import BlobCache, BlobReader
from stepwise.source.models import BlobPayload, WorkshopRepository

REPO = WorkshopRepository(owner="epicweb-dev", name="demo", default_branch="main")


class CountingClient:
    def __init__(self, payloads: dict[str, BlobPayload]) -> None:
        self.payloads = payloads
        self.calls: list[str] = []

    async def get_blob(self, repo: WorkshopRepository, sha: str) -> BlobPayload:
        self.calls.append(sha)
        return self.payloads[sha]


def _b64(text: str) -> BlobPayload:
    return BlobPayload(encoding="base64", content=base64.b64encode(text.encode()).decode())


class TestBlobPayload:
    def test_decode_base64_with_newlines(self) -> None:
        encoded = base64.b64encode(b"line one\nline two").decode()
        payload = BlobPayload(encoding="base64", content=encoded[:8] + "\n" + encoded[8:])
        assert payload.decode() == "line one\nline two"

    def test_other_encoding_is_none(self) -> None:
        assert BlobPayload(encoding="utf-8", content="x").decode() is None


class TestBlobReader:
    @pytest.mark.asyncio
    async def test_each_sha_fetched_once(self) -> None:
        client = CountingClient({"a": _b64("alpha"), "b": _b64("beta")})
        reader = BlobReader(client, REPO)

        assert await reader.read("a") == "alpha"
        assert await reader.read("a") == "alpha"
        assert await reader.read("b") == "beta"

        assert client.calls == ["a", "b"]
        assert reader.cache.hits == 1
        assert reader.cache.misses == 2

    @pytest.mark.asyncio
    async def test_undecodable_blob_cached_as_none(self) -> None:
        client = CountingClient({"x": BlobPayload(encoding="none", content="")})
        reader = BlobReader(client, REPO)

        assert await reader.read("x") is None
        assert await reader.read("x") is None
        assert client.calls == ["x"]

    @pytest.mark.asyncio
    async def test_shared_cache(self) -> None:
        cache = BlobCache()
        client = CountingClient({"a": _b64("alpha")})
        await BlobReader(client, REPO, cache).read("a")
        await BlobReader(client, REPO, cache).read("a")

        assert client.calls == ["a"]
        assert "a" in cache
        assert len(cache) == 1
