"""Shared fixtures for stepwise tests.

The fake source client serves an in-memory workshop repository so indexing
runs end to end without the network. Trees are built from a path -> content
mapping; blob shas are content hashes, so identical files share one blob.
"""

from __future__ import annotations

import base64
import hashlib
import math
import re
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
import pytest_asyncio

from stepwise.index._internal.db import Database
from stepwise.source.models import BlobPayload, RepoTree, TreeEntry, WorkshopRepository
from stepwise.vector.base import VectorRecord

DEMO_FILES: dict[str, str] = {
    "package.json": (
        '{"name": "demo", "epicshop": {"title": "Demo Workshop", '
        '"product": {"host": "epicreact.dev"}}}'
    ),
    "exercises/README.mdx": "Welcome to the demo workshop.",
    "exercises/01.basics/README.mdx": "Learn the basics of closures.",
    "exercises/01.basics/01.problem.hello/README.mdx": "Implement the hello function.",
    "exercises/01.basics/01.problem.hello/src/index.ts": "export const x = 1\n",
    "exercises/01.basics/01.problem.hello/package-lock.json": "{}",
    "exercises/01.basics/01.problem.hello/logo.png": "not really a png",
    "exercises/01.basics/01.solution.hello/README.mdx": "The hello function is done.",
    "exercises/01.basics/01.solution.hello/src/index.ts": "export const x = 2\n",
}


def blob_sha(content: str) -> str:
    return hashlib.sha1(content.encode()).hexdigest()


def make_tree(files: dict[str, str], sha: str = "tree-sha-1") -> RepoTree:
    return RepoTree(
        sha=sha,
        tree=[
            TreeEntry(path=path, type="blob", sha=blob_sha(content), size=len(content))
            for path, content in sorted(files.items())
        ],
    )


class FakeSourceClient:
    """In-memory stand-in for GitHubClient."""

    def __init__(self, workshops: dict[str, dict[str, str]] | None = None) -> None:
        self.workshops = dict(workshops or {})
        self.head_shas: dict[str, str] = {}
        self.changed: dict[str, bool] = {}
        self.compare_errors: dict[str, Exception] = {}
        self.blob_requests: list[str] = []
        self.closed = False

    async def __aenter__(self) -> FakeSourceClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.closed = True

    async def list_workshop_repositories(self) -> list[WorkshopRepository]:
        return [
            WorkshopRepository(owner="epicweb-dev", name=name, default_branch="main")
            for name in sorted(self.workshops)
        ]

    async def get_tree(self, repo: WorkshopRepository) -> RepoTree:
        return make_tree(self.workshops[repo.name], sha=self.head_shas.get(repo.name, "tree-sha-1"))

    async def get_blob(self, repo: WorkshopRepository, sha: str) -> BlobPayload:
        self.blob_requests.append(sha)
        for content in self.workshops[repo.name].values():
            if blob_sha(content) == sha:
                encoded = base64.b64encode(content.encode()).decode()
                return BlobPayload(encoding="base64", content=encoded)
        raise KeyError(sha)

    async def compare_touches_workshop_content(
        self, repo: WorkshopRepository, base_sha: str
    ) -> bool:
        _ = base_sha  # unused
        if repo.name in self.compare_errors:
            raise self.compare_errors[repo.name]
        return self.changed.get(repo.name, False)


_WORD_RE = re.compile(r"[a-z0-9]+")


class FakeEmbeddingProvider:
    """Bag-of-words hashing embedder; similar words give similar vectors."""

    def __init__(self, dim: int = 32) -> None:
        self.dim = dim
        self.calls: list[list[str]] = []
        self.fail = False

    def _vector(self, text: str) -> list[float]:
        values = [0.0] * self.dim
        for word in _WORD_RE.findall(text.lower()):
            values[int(hashlib.md5(word.encode()).hexdigest(), 16) % self.dim] += 1.0
        norm = math.sqrt(sum(v * v for v in values)) or 1.0
        return [v / norm for v in values]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail:
            raise RuntimeError("embedding backend unavailable")
        return [self._vector(t) for t in texts]


class RecordingVectorIndex:
    """Vector index double that records calls and can be told to fail."""

    def __init__(self) -> None:
        self.upserts: list[list[VectorRecord]] = []
        self.deletes: list[list[str]] = []
        self.fail_delete_batches: set[int] = set()

    async def upsert(self, records: list[VectorRecord]) -> None:
        self.upserts.append(list(records))

    async def delete_by_ids(self, ids: list[str]) -> None:
        batch = len(self.deletes)
        self.deletes.append(list(ids))
        if batch in self.fail_delete_batches:
            raise RuntimeError("delete failed")

    async def query(self, vector, *, top_k, filter=None):  # noqa: A002
        return []


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory(ignore_cleanup_errors=True) as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_db(temp_dir: Path) -> Generator[Database, None, None]:
    """Create a temporary database with schema."""
    db = Database(temp_dir / "test.db")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def demo_client() -> FakeSourceClient:
    return FakeSourceClient({"demo": dict(DEMO_FILES)})


@pytest_asyncio.fixture
async def indexed_db(temp_db: Database, demo_client: FakeSourceClient) -> Database:
    """Database holding the indexed demo workshop (keyword-only)."""
    from stepwise.index.ops import ReindexCoordinator

    await ReindexCoordinator(temp_db, demo_client).reindex()  # type: ignore[arg-type]
    return temp_db


@pytest.fixture
def source_client_factory() -> type[FakeSourceClient]:
    return FakeSourceClient


@pytest.fixture
def fake_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def recording_index() -> RecordingVectorIndex:
    return RecordingVectorIndex()


@pytest.fixture
def demo_files() -> dict[str, str]:
    return dict(DEMO_FILES)


@pytest.fixture
def tree_factory():  # noqa: ANN201
    return make_tree
