"""Tests for the GitHub client over an httpx mock transport."""

from __future__ import annotations

import base64
from collections.abc import Callable

import httpx
import pytest

from stepwise.config.models import RetryConfig, SourceConfig
from stepwise.source.client import (
    GitHubClient,
    diff_touches_workshop_content,
    is_workshop_content_path,
)
from stepwise.source.errors import RateLimitError, SourceAPIError, SourceError, TruncatedTreeError
from stepwise.source.models import WorkshopRepository

REPO = WorkshopRepository(owner="epicweb-dev", name="demo", default_branch="main")


def _search_item(name: str, archived: bool = False) -> dict:
    return {
        "name": name,
        "default_branch": "main",
        "archived": archived,
        "owner": {"login": "epicweb-dev"},
    }


class Recorder:
    """Collects requests and sleeps made by a client under test."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.handler = handler
        self.requests: list[httpx.Request] = []
        self.sleeps: list[float] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)

    def client(self, **config: object) -> GitHubClient:
        source = SourceConfig(
            retry=RetryConfig(max_attempts=3, base_delay_sec=0.5, max_delay_sec=5.0), **config
        )
        return GitHubClient(source, transport=httpx.MockTransport(self), sleep=self.sleep)


class TestContentHelpers:
    def test_content_paths(self) -> None:
        assert is_workshop_content_path("exercises/01.a/README.mdx")
        assert is_workshop_content_path("extra/notes.md")
        assert not is_workshop_content_path("package.json")

    def test_diff_text(self) -> None:
        assert diff_touches_workshop_content("diff --git a/exercises/x b/exercises/x\n")
        assert diff_touches_workshop_content("intro\ndiff --git a/extra/y b/extra/y")
        assert not diff_touches_workshop_content("diff --git a/README.md b/README.md")


class TestGitHubClient:
    @pytest.mark.asyncio
    async def test_headers_and_token(self) -> None:
        recorder = Recorder(lambda r: httpx.Response(200, json={"items": []}))
        async with recorder.client(token="  secret  ") as client:
            await client.list_workshop_repositories()

        request = recorder.requests[0]
        assert request.headers["Authorization"] == "Bearer secret"
        assert request.headers["X-GitHub-Api-Version"] == "2022-11-28"
        assert "org:epicweb-dev topic:workshop archived:false" in request.url.params["q"]

    @pytest.mark.asyncio
    async def test_search_paginates_and_skips_archived(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            page = int(request.url.params["page"])
            if page == 1:
                return httpx.Response(
                    200, json={"items": [_search_item("zeta"), _search_item("old", archived=True)]}
                )
            return httpx.Response(200, json={"items": [_search_item("alpha")]})

        recorder = Recorder(handler)
        async with recorder.client(search_page_size=2) as client:
            repos = await client.list_workshop_repositories()

        assert [r.name for r in repos] == ["alpha", "zeta"]
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_search_stops_at_max_pages(self) -> None:
        recorder = Recorder(lambda r: httpx.Response(200, json={"items": [_search_item(r.url.params["page"])]}))
        async with recorder.client(search_page_size=1, search_max_pages=3) as client:
            repos = await client.list_workshop_repositories()

        assert [r.name for r in repos] == ["1", "2", "3"]

    @pytest.mark.asyncio
    async def test_truncated_tree(self) -> None:
        recorder = Recorder(lambda r: httpx.Response(200, json={"sha": "t", "truncated": True, "tree": []}))
        async with recorder.client() as client:
            with pytest.raises(TruncatedTreeError, match="demo"):
                await client.get_tree(REPO)

        assert recorder.requests[0].url.path == "/repos/epicweb-dev/demo/git/trees/main"
        assert recorder.requests[0].url.params["recursive"] == "1"

    @pytest.mark.asyncio
    async def test_blob_decodes(self) -> None:
        encoded = base64.b64encode(b"hello").decode()
        recorder = Recorder(
            lambda r: httpx.Response(200, json={"encoding": "base64", "content": encoded})
        )
        async with recorder.client() as client:
            blob = await client.get_blob(REPO, "abc")

        assert blob.decode() == "hello"

    @pytest.mark.asyncio
    async def test_retries_server_errors(self) -> None:
        responses = iter(
            [httpx.Response(502), httpx.Response(500), httpx.Response(200, json={"items": []})]
        )
        recorder = Recorder(lambda r: next(responses))
        async with recorder.client() as client:
            assert await client.list_workshop_repositories() == []

        assert recorder.sleeps == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self) -> None:
        recorder = Recorder(lambda r: httpx.Response(503, text="unavailable"))
        async with recorder.client() as client:
            with pytest.raises(SourceAPIError) as exc_info:
                await client.get_tree(REPO)

        assert exc_info.value.status == 503
        assert exc_info.value.attempts == 3
        assert len(recorder.requests) == 3

    @pytest.mark.asyncio
    async def test_network_errors_retried(self) -> None:
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] == 1:
                raise httpx.ConnectError("boom", request=request)
            return httpx.Response(200, json={"items": []})

        recorder = Recorder(handler)
        async with recorder.client() as client:
            await client.list_workshop_repositories()

        assert recorder.sleeps == [0.5]

    @pytest.mark.asyncio
    async def test_primary_rate_limit_not_retried(self) -> None:
        recorder = Recorder(
            lambda r: httpx.Response(
                403,
                text="API rate limit exceeded",
                headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Limit": "60"},
            )
        )
        async with recorder.client() as client:
            with pytest.raises(RateLimitError) as exc_info:
                await client.list_workshop_repositories()

        assert len(recorder.requests) == 1
        assert "STEPWISE__SOURCE__TOKEN" in str(exc_info.value)
        assert exc_info.value.rate_headers["x-ratelimit-limit"] == "60"

    @pytest.mark.asyncio
    async def test_not_found_not_retried(self) -> None:
        recorder = Recorder(lambda r: httpx.Response(404, text="Not Found"))
        async with recorder.client() as client:
            with pytest.raises(SourceAPIError, match="404"):
                await client.get_blob(REPO, "abc")

        assert recorder.sleeps == []

    @pytest.mark.asyncio
    async def test_malformed_payload(self) -> None:
        recorder = Recorder(lambda r: httpx.Response(200, json={"unexpected": True}))
        async with recorder.client() as client:
            with pytest.raises(SourceError, match="RepoTree"):
                await client.get_tree(REPO)


class TestCompareTouchesWorkshopContent:
    @pytest.mark.asyncio
    async def test_not_ahead(self) -> None:
        recorder = Recorder(lambda r: httpx.Response(200, json={"ahead_by": 0, "files": []}))
        async with recorder.client() as client:
            assert not await client.compare_touches_workshop_content(REPO, "base")

        assert recorder.requests[0].url.path == "/repos/epicweb-dev/demo/compare/base...main"

    @pytest.mark.asyncio
    async def test_file_list(self) -> None:
        recorder = Recorder(
            lambda r: httpx.Response(
                200, json={"ahead_by": 2, "files": [{"filename": "README.md"}]}
            )
        )
        async with recorder.client() as client:
            assert not await client.compare_touches_workshop_content(REPO, "base")

        recorder = Recorder(
            lambda r: httpx.Response(
                200, json={"ahead_by": 2, "files": [{"filename": "exercises/01.a/README.mdx"}]}
            )
        )
        async with recorder.client() as client:
            assert await client.compare_touches_workshop_content(REPO, "base")

    @pytest.mark.asyncio
    async def test_falls_back_to_diff_without_file_list(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.headers["Accept"] == "application/vnd.github.v3.diff":
                return httpx.Response(200, text="diff --git a/extra/a.md b/extra/a.md\n")
            return httpx.Response(200, json={"ahead_by": 1, "files": []})

        recorder = Recorder(handler)
        async with recorder.client() as client:
            assert await client.compare_touches_workshop_content(REPO, "base")

        assert len(recorder.requests) == 2
