"""Async GitHub REST client for workshop repositories.

Every request goes through ``_request``, which applies the retry policy
from ``stepwise.source.retry``. Response bodies are validated into the
models in ``stepwise.source.models`` before they leave this module.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from stepwise.config.constants import COMPARE_MAX_FILES, GITHUB_API_VERSION
from stepwise.config.models import SourceConfig
from stepwise.source.errors import (
    RateLimitError,
    SourceAPIError,
    SourceError,
    TruncatedTreeError,
)
from stepwise.source.models import (
    BlobPayload,
    CompareResult,
    RepoTree,
    SearchPage,
    WorkshopRepository,
)
from stepwise.source.retry import RetryPolicy, decide_retry, is_primary_rate_limit

log = structlog.get_logger(__name__)

JSON_ACCEPT = "application/vnd.github+json"
DIFF_ACCEPT = "application/vnd.github.v3.diff"

_CONTENT_DIFF_RE = re.compile(r"(^|\n)diff --git a/(exercises|extra)/")

M = TypeVar("M", bound=BaseModel)


def is_workshop_content_path(path: str) -> bool:
    return path.startswith("exercises/") or path.startswith("extra/")


def diff_touches_workshop_content(diff_text: str) -> bool:
    return _CONTENT_DIFF_RE.search(diff_text) is not None


class GitHubClient:
    """Source host client.

    Usage::

        async with GitHubClient(config.source) as client:
            repos = await client.list_workshop_repositories()
            tree = await client.get_tree(repos[0])
    """

    def __init__(
        self,
        config: SourceConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._policy = RetryPolicy(
            max_attempts=config.retry.max_attempts,
            base_delay=config.retry.base_delay_sec,
            max_delay=config.retry.max_delay_sec,
        )
        self._sleep = sleep
        headers = {
            "Accept": JSON_ACCEPT,
            "User-Agent": "stepwise-workshop-indexer",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"
        self._http = httpx.AsyncClient(
            base_url=config.api_url,
            headers=headers,
            timeout=config.timeout_sec,
            transport=transport,
        )

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # =========================================================================
    # Transport
    # =========================================================================

    async def _request(
        self,
        path: str,
        *,
        params: dict[str, str] | None = None,
        accept: str = JSON_ACCEPT,
    ) -> httpx.Response:
        attempt = 0
        while True:
            attempt += 1
            try:
                response = await self._http.get(path, params=params, headers={"Accept": accept})
            except httpx.TransportError as exc:
                decision = decide_retry(None, {}, attempt, self._policy)
                if not decision.retry:
                    raise SourceAPIError(None, path, str(exc), attempts=attempt) from exc
                log.warning(
                    "github_retry",
                    path=path,
                    attempt=attempt,
                    delay=decision.delay,
                    reason=decision.reason,
                    error=str(exc),
                )
                await self._sleep(decision.delay)
                continue

            if response.is_success:
                return response

            body = response.text
            decision = decide_retry(
                response.status_code, response.headers, attempt, self._policy, body=body
            )
            if decision.retry:
                log.warning(
                    "github_retry",
                    path=path,
                    status=response.status_code,
                    attempt=attempt,
                    delay=decision.delay,
                    reason=decision.reason,
                )
                await self._sleep(decision.delay)
                continue

            rate_headers = {
                key: value
                for key, value in response.headers.items()
                if key.lower().startswith("x-ratelimit-")
            }
            if is_primary_rate_limit(response.status_code, body):
                raise RateLimitError(path, body, rate_headers)
            raise SourceAPIError(response.status_code, path, body, rate_headers, attempt)

    async def _get_model(
        self,
        path: str,
        model: type[M],
        params: dict[str, str] | None = None,
    ) -> M:
        response = await self._request(path, params=params)
        try:
            return model.model_validate(response.json())
        except (ValidationError, ValueError) as exc:
            raise SourceError(f"Unexpected {model.__name__} payload from {path}: {exc}") from exc

    # =========================================================================
    # Discovery
    # =========================================================================

    async def list_workshop_repositories(self) -> list[WorkshopRepository]:
        """All non-archived workshop repositories of the org, sorted by name."""
        page_size = self._config.search_page_size
        query = f"org:{self._config.org} topic:{self._config.topic} archived:false"
        results: list[WorkshopRepository] = []
        for page in range(1, self._config.search_max_pages + 1):
            payload = await self._get_model(
                "/search/repositories",
                SearchPage,
                params={
                    "q": query,
                    "sort": "updated",
                    "order": "desc",
                    "per_page": str(page_size),
                    "page": str(page),
                },
            )
            page_results = [
                WorkshopRepository.from_search_item(item)
                for item in payload.items
                if not item.archived
            ]
            results.extend(page_results)
            if len(payload.items) < page_size:
                break

        log.debug("github_repositories_listed", org=self._config.org, count=len(results))
        return sorted(results, key=lambda repo: repo.name)

    # =========================================================================
    # Trees and blobs
    # =========================================================================

    async def get_tree(self, repo: WorkshopRepository) -> RepoTree:
        """Full recursive tree of the default branch.

        Raises:
            TruncatedTreeError: The host could not return the whole tree.
        """
        tree = await self._get_model(
            f"/repos/{repo.owner}/{repo.name}/git/trees/{repo.default_branch}",
            RepoTree,
            params={"recursive": "1"},
        )
        if tree.truncated:
            raise TruncatedTreeError(repo.name)
        return tree

    async def get_blob(self, repo: WorkshopRepository, sha: str) -> BlobPayload:
        return await self._get_model(f"/repos/{repo.owner}/{repo.name}/git/blobs/{sha}", BlobPayload)

    # =========================================================================
    # Change detection
    # =========================================================================

    async def compare(self, repo: WorkshopRepository, base_sha: str) -> CompareResult:
        return await self._get_model(
            f"/repos/{repo.owner}/{repo.name}/compare/{base_sha}...{repo.default_branch}",
            CompareResult,
        )

    async def compare_touches_workshop_content(
        self, repo: WorkshopRepository, base_sha: str
    ) -> bool:
        """Whether the default branch changed exercise or extra content since base_sha."""
        result = await self.compare(repo, base_sha)
        if result.ahead_by == 0:
            return False

        filenames = result.filenames()
        if 0 < len(filenames) < COMPARE_MAX_FILES:
            return any(is_workshop_content_path(name) for name in filenames)

        response = await self._request(
            f"/repos/{repo.owner}/{repo.name}/compare/{base_sha}...{repo.default_branch}",
            accept=DIFF_ACCEPT,
        )
        return diff_touches_workshop_content(response.text)
