"""Source host access: repository discovery, trees, blobs and compares."""

from stepwise.source.blobs import BlobCache, BlobReader
from stepwise.source.client import GitHubClient
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
    TreeEntry,
    WorkshopRepository,
)
from stepwise.source.retry import RetryDecision, RetryPolicy, decide_retry

__all__ = [
    "BlobCache",
    "BlobPayload",
    "BlobReader",
    "CompareResult",
    "GitHubClient",
    "RateLimitError",
    "RepoTree",
    "RetryDecision",
    "RetryPolicy",
    "SourceAPIError",
    "SourceError",
    "TreeEntry",
    "TruncatedTreeError",
    "WorkshopRepository",
    "decide_retry",
]
