"""Retry/backoff policy for source host responses.

``decide_retry`` is a pure function of the response status, its headers and
the number of attempts already made. The HTTP client owns sleeping and
re-sending; nothing here touches the network.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass
from email.utils import parsedate_to_datetime


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 4
    base_delay: float = 1.0
    max_delay: float = 30.0


@dataclass(frozen=True, slots=True)
class RetryDecision:
    retry: bool
    delay: float = 0.0
    reason: str = ""


def is_secondary_rate_limit(body: str) -> bool:
    return "secondary rate limit" in body.lower()


def is_primary_rate_limit(status: int | None, body: str) -> bool:
    """403 caused by the per-account quota, not abuse detection."""
    if status != 403:
        return False
    lowered = body.lower()
    return "rate limit" in lowered and not is_secondary_rate_limit(body)


def _lower_keys(headers: Mapping[str, str]) -> dict[str, str]:
    return {key.lower(): value for key, value in headers.items()}


def server_delay(headers: Mapping[str, str], now: float | None = None) -> float | None:
    """Seconds the server asked us to wait, if it said so."""
    now = time.time() if now is None else now
    lowered = _lower_keys(headers)

    retry_after = lowered.get("retry-after", "").strip()
    if retry_after:
        if retry_after.isdigit():
            return float(retry_after)
        try:
            when = parsedate_to_datetime(retry_after)
        except (TypeError, ValueError):
            when = None
        if when is not None:
            return max(0.0, when.timestamp() - now)

    if lowered.get("x-ratelimit-remaining", "").strip() == "0":
        reset = lowered.get("x-ratelimit-reset", "").strip()
        if reset.isdigit():
            return max(0.0, float(reset) - now)
    return None


def decide_retry(
    status: int | None,
    headers: Mapping[str, str],
    attempt: int,
    policy: RetryPolicy,
    *,
    body: str = "",
    now: float | None = None,
) -> RetryDecision:
    """Decide whether to re-send a request and how long to wait first.

    Args:
        status: HTTP status, or None when no response arrived.
        headers: Response headers (any key case).
        attempt: Attempts already made, starting at 1.
        policy: Attempt ceiling and delay bounds.
        body: Response body, inspected for rate-limit wording on 403.
        now: Epoch seconds used for date headers; defaults to the clock.
    """
    if status is None:
        reason = "network"
    elif status == 429:
        reason = "rate_limited"
    elif status >= 500:
        reason = "server_error"
    elif status == 403 and is_secondary_rate_limit(body):
        reason = "secondary_rate_limit"
    else:
        return RetryDecision(retry=False, reason="not_retryable")

    if attempt >= policy.max_attempts:
        return RetryDecision(retry=False, reason="attempts_exhausted")

    delay = server_delay(headers, now) if status is not None else None
    if delay is None:
        delay = policy.base_delay * (2 ** (attempt - 1))
    return RetryDecision(retry=True, delay=min(delay, policy.max_delay), reason=reason)
