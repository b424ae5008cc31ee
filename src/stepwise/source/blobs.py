"""Per-pass blob content cache.

A ``BlobCache`` lives for one repository indexing pass. Problem and solution
trees often share identical files, so each blob sha is fetched at most once
per pass. Nothing is shared between passes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from stepwise.source.client import GitHubClient
    from stepwise.source.models import WorkshopRepository

log = structlog.get_logger(__name__)


class BlobCache:
    """Decoded blob contents keyed by sha. ``None`` caches undecodable blobs."""

    def __init__(self) -> None:
        self._entries: dict[str, str | None] = {}
        self.hits = 0
        self.misses = 0

    def __contains__(self, sha: str) -> bool:
        return sha in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, sha: str) -> str | None:
        return self._entries.get(sha)

    def put(self, sha: str, content: str | None) -> None:
        self._entries[sha] = content


class BlobReader:
    """Reads blob text for one repository through a ``BlobCache``."""

    def __init__(
        self,
        client: GitHubClient,
        repo: WorkshopRepository,
        cache: BlobCache | None = None,
    ) -> None:
        self._client = client
        self._repo = repo
        self.cache = cache if cache is not None else BlobCache()

    async def read(self, sha: str) -> str | None:
        if sha in self.cache:
            self.cache.hits += 1
            return self.cache.get(sha)
        self.cache.misses += 1
        payload = await self._client.get_blob(self._repo, sha)
        content = payload.decode()
        if content is None:
            log.debug("blob_not_decodable", repo=self._repo.name, sha=sha, encoding=payload.encoding)
        self.cache.put(sha, content)
        return content
