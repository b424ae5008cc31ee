"""FastMCP server for the workshop tools.

Tool bodies run inside ``run_tool``, which logs ``tool_start`` and
``tool_complete`` events and turns every outcome into a ``ToolResponse``
envelope. Bad parameters and ``MCPError`` are expected and logged as
warnings; anything else is logged as an error with the traceback at DEBUG.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, Field, ValidationError

from stepwise.mcp.errors import MCPError, MCPErrorCode, invalid_params, remediation_text

if TYPE_CHECKING:
    from fastmcp import FastMCP

    from stepwise.config.models import StepwiseConfig
    from stepwise.mcp.context import AppContext

log = structlog.get_logger(__name__)


class ToolResponse(BaseModel):
    """Envelope returned by every tool: ``result`` on success, ``error`` otherwise."""

    result: Any = None
    meta: dict[str, Any] = Field(default_factory=dict)

    success: bool
    error: str | None = None


def _loggable_params(kwargs: dict[str, Any]) -> dict[str, Any]:
    params: dict[str, Any] = {}
    for key, value in kwargs.items():
        if isinstance(value, str) and len(value) > 50:
            params[key] = value[:50] + "..."
        elif isinstance(value, list) and len(value) > 3:
            params[key] = f"[{len(value)} items]"
        elif value is not None:
            params[key] = value
    return params


def _result_counts(result: dict[str, Any]) -> dict[str, Any]:
    summary: dict[str, Any] = {}
    for key in ("workshops", "sections", "diffSections", "matches"):
        if isinstance(result.get(key), list):
            summary[key] = len(result[key])
    for key in ("truncated", "mode"):
        if key in result:
            summary[key] = result[key]
    return summary


def _error_response(error: MCPError) -> dict[str, Any]:
    return ToolResponse(
        success=False,
        result=None,
        error=error.message,
        meta={"error": error.to_dict()},
    ).model_dump()


async def run_tool(
    tool_name: str,
    call: Callable[[], Awaitable[dict[str, Any]]],
    *,
    params: dict[str, Any] | None = None,
    hints: Sequence[str] = (),
) -> dict[str, Any]:
    """Run one tool handler and wrap its outcome in the response envelope."""
    start_time = time.perf_counter()
    log.info("tool_start", tool=tool_name, **_loggable_params(params or {}))

    try:
        result = await call()
    except ValidationError as e:
        message = e.errors()[0]["msg"] if e.errors() else str(e)
        log.warning(
            "tool_validation_error",
            tool=tool_name,
            error=message,
            elapsed_ms=int((time.perf_counter() - start_time) * 1000),
        )
        response = _error_response(invalid_params(tool_name, message, hints))
        response["meta"]["validation_errors"] = [
            {"field": ".".join(str(x) for x in err["loc"]), "message": err["msg"]}
            for err in e.errors()[:5]
        ]
        return response
    except MCPError as e:
        log.warning(
            "tool_error",
            tool=tool_name,
            error_code=e.code.value,
            error=e.message,
            elapsed_ms=int((time.perf_counter() - start_time) * 1000),
        )
        return _error_response(e)
    except Exception as e:
        log.error(
            "tool_internal_error",
            tool=tool_name,
            error=str(e),
            elapsed_ms=int((time.perf_counter() - start_time) * 1000),
        )
        log.debug("tool_internal_error_traceback", tool=tool_name, exc_info=True)
        return _error_response(
            MCPError(MCPErrorCode.INTERNAL_ERROR, str(e), remediation_text(hints), tool=tool_name)
        )

    elapsed_ms = int((time.perf_counter() - start_time) * 1000)
    log.info("tool_complete", tool=tool_name, elapsed_ms=elapsed_ms, **_result_counts(result))
    return ToolResponse(
        success=True,
        result=result,
        meta={"timestamp": int(time.time() * 1000)},
    ).model_dump()


def create_mcp_server(context: AppContext) -> FastMCP:
    """Create FastMCP server with all tools wired to context.

    Args:
        context: AppContext with all ops instances

    Returns:
        Configured FastMCP server ready to run
    """
    from fastmcp import FastMCP

    from stepwise.mcp.resources import register_resources
    from stepwise.mcp.tools import quiz, workshops

    mcp = FastMCP(
        "stepwise",
        instructions=(
            "Workshop knowledge base. Start with list_workshops to find slugs, then "
            "retrieve_learning_context or retrieve_diff_context for a scope, or "
            "search_topic_context to find where a topic is taught. When the learner wants "
            "to be quizzed, call retrieve_quiz_instructions and ask one question at a time."
        ),
    )
    workshops.register_tools(mcp, context)
    quiz.register_tools(mcp)
    register_resources(mcp)
    log.info(
        "mcp_server_created",
        tools=[*workshops.TOOL_NAMES, *quiz.TOOL_NAMES],
        prompts=list(quiz.PROMPT_NAMES),
    )
    return mcp


def run_server(config: StepwiseConfig) -> None:
    """Create and run the MCP server over stdio."""
    from stepwise.core.logging import configure_logging
    from stepwise.mcp.context import AppContext

    configure_logging(config=config.logging)
    context = AppContext.create(config)
    mcp = create_mcp_server(context)
    log.info("mcp_server_running", db_path=str(context.db.db_path))
    try:
        mcp.run()
    finally:
        context.close()
