"""Source host error types."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, ClassVar

from stepwise.core.errors import ErrorCode, StepwiseError


class SourceError(StepwiseError):
    """Base error for source host operations."""

    error_code: ClassVar[ErrorCode] = ErrorCode.SOURCE_API_ERROR

    def __init__(self, message: str, *, retryable: bool = False, **details: Any) -> None:
        super().__init__(self.error_code, message, retryable, details)


def _api_message(
    status: int | None, path: str, body: str, rate_headers: Mapping[str, str], attempts: int
) -> str:
    status_text = str(status) if status is not None else "network error"
    message = f"GitHub API {status_text} for {path} after {attempts} attempt(s)"
    if body:
        message += f": {body[:500]}"
    if rate_headers:
        rendered = ", ".join(f"{k}={v}" for k, v in sorted(rate_headers.items()))
        message += f" [{rendered}]"
    return message


class SourceAPIError(SourceError):
    """Non-success response after the retry policy gave up."""

    def __init__(
        self,
        status: int | None,
        path: str,
        body: str = "",
        rate_headers: Mapping[str, str] | None = None,
        attempts: int = 1,
        *,
        hint: str = "",
    ) -> None:
        headers = dict(rate_headers or {})
        super().__init__(
            _api_message(status, path, body, headers, attempts) + hint,
            retryable=status is None or status == 429 or status >= 500,
            status=status,
            path=path,
            attempts=attempts,
        )
        self.status = status
        self.path = path
        self.body = body
        self.rate_headers = headers
        self.attempts = attempts


class RateLimitError(SourceAPIError):
    """Primary rate limit hit without credentials; retrying will not help."""

    error_code = ErrorCode.SOURCE_RATE_LIMITED

    def __init__(
        self,
        path: str,
        body: str = "",
        rate_headers: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            403,
            path,
            body,
            rate_headers,
            hint=". GitHub rate limit exceeded; set STEPWISE__SOURCE__TOKEN "
            "to authenticate requests.",
        )


class TruncatedTreeError(SourceError):
    """Recursive tree listing was cut short by the host."""

    error_code = ErrorCode.SOURCE_TREE_TRUNCATED

    def __init__(self, repo_name: str) -> None:
        super().__init__(
            f"Git tree for {repo_name} was truncated; cannot index safely.", repo=repo_name
        )
        self.repo_name = repo_name
