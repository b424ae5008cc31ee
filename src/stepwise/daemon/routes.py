"""HTTP routes for the stepwise daemon.

Provides the health endpoint and the authenticated manual reindex endpoint.
"""

from __future__ import annotations

import codecs
import hmac
import importlib.metadata
import re
from collections.abc import Callable
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route

from stepwise.config.constants import ADMIN_REINDEX_PATH
from stepwise.core.errors import StepwiseError
from stepwise.core.logging import clear_request_id, set_request_id
from stepwise.daemon.requests import (
    INVALID_JSON_DETAIL,
    ReindexRequest,
    parse_reindex_body,
    validation_details,
)
from stepwise.index.ops import WorkshopIndexInputError

if TYPE_CHECKING:
    from stepwise.mcp.context import AppContext
    from stepwise.source.client import GitHubClient

log = structlog.get_logger(__name__)

ClientFactory = Callable[[], "GitHubClient"]

_BEARER_RE = re.compile(r"^bearer\s+(.+)$", re.IGNORECASE)
_DIGITS_RE = re.compile(r"^\d+$")


def _get_version() -> str:
    """Get package version from installed metadata."""
    try:
        return importlib.metadata.version("stepwise")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization")
    if not header:
        return None
    match = _BEARER_RE.match(header.strip())
    if not match:
        return None
    return match.group(1).strip() or None


def _content_length(request: Request) -> int | None:
    header = (request.headers.get("content-length") or "").strip()
    return int(header) if _DIGITS_RE.match(header) else None


async def _read_text(request: Request, max_chars: int) -> str | None:
    """Decode the body as it streams in; ``None`` once it passes ``max_chars``."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    parts: list[str] = []
    size = 0
    async for chunk in request.stream():
        part = decoder.decode(chunk)
        size += len(part)
        if size > max_chars:
            return None
        parts.append(part)
    tail = decoder.decode(b"", final=True)
    if size + len(tail) > max_chars:
        return None
    parts.append(tail)
    return "".join(parts)


def _error(status_code: int, error: str, details: list[str] | None = None) -> JSONResponse:
    body: dict[str, object] = {"ok": False, "error": error}
    if details is not None:
        body["details"] = details
    return JSONResponse(body, status_code=status_code)


def _invalid_payload(details: list[str]) -> JSONResponse:
    return _error(400, "Invalid reindex payload.", details)


def create_routes(context: AppContext, client_factory: ClientFactory | None = None) -> list[Route]:
    """Create HTTP routes bound to the application context.

    Args:
        context: Shared application context
        client_factory: Builds a source host client per reindex request
            (defaults to a GitHubClient over the configured source)
    """
    version = _get_version()
    admin = context.config.admin

    def default_client() -> GitHubClient:
        from stepwise.source.client import GitHubClient

        return GitHubClient(context.config.source)

    make_client = client_factory or default_client

    too_large_detail = f"Request body must be at most {admin.max_body_chars} characters."
    too_many_detail = f"workshops must include at most {admin.max_workshops} entries."

    async def health(request: Request) -> JSONResponse:
        """Liveness check."""
        _ = request  # unused
        return JSONResponse({"ok": True, "version": version})

    async def reindex(request: Request) -> Response:
        """Run one reindex batch on behalf of an operator or scheduled job."""
        set_request_id()
        try:
            return await _handle_reindex(request)
        finally:
            clear_request_id()

    async def _handle_reindex(request: Request) -> Response:
        if request.method != "POST":
            return PlainTextResponse("Method not allowed", status_code=405, headers={"Allow": "POST"})

        configured = (admin.token or "").strip()
        if not configured:
            return _error(503, "Reindex admin token is not configured for manual reindexing.")

        token = _bearer_token(request)
        if token is None or not hmac.compare_digest(token.encode(), configured.encode()):
            return _error(401, "Unauthorized")

        length = _content_length(request)
        if length is not None and length > admin.max_body_chars:
            return _error(413, "Reindex payload is too large.", [too_large_detail])

        text = await _read_text(request, admin.max_body_chars)
        if text is None:
            return _error(413, "Reindex payload is too large.", [too_large_detail])

        try:
            raw = parse_reindex_body(text)
        except ValueError:
            return _invalid_payload([INVALID_JSON_DETAIL])

        try:
            body = ReindexRequest.model_validate(raw)
        except ValidationError as e:
            return _invalid_payload(validation_details(e))

        workshops = body.normalized_workshops()
        if workshops is not None and len(workshops) > admin.max_workshops:
            return _invalid_payload([too_many_detail])

        try:
            async with make_client() as client:
                coordinator = context.reindex_coordinator(client)
                summary = await coordinator.reindex(
                    workshops=workshops,
                    cursor=body.cursor,
                    batch_size=body.batch_size,
                )
        except WorkshopIndexInputError as e:
            return _invalid_payload([e.message])
        except Exception as e:
            log.error("workshop_index_route_reindex_failed", error=str(e))
            log.debug("workshop_index_route_reindex_failed_traceback", exc_info=True)
            return _error(500, e.message if isinstance(e, StepwiseError) else str(e))

        return JSONResponse({"ok": True, **summary.to_dict()})

    return [
        Route("/health", health, methods=["GET"]),
        Route(
            ADMIN_REINDEX_PATH,
            reindex,
            methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        ),
    ]
