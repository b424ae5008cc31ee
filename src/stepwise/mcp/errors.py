"""Tool-facing errors.

An ``MCPError`` tells the calling agent what went wrong (``code`` and
``message``) and what to try next (``remediation``, built from the tool's
hint list). Retrieval messages are passed through verbatim.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import StrEnum
from typing import Any

from fastmcp.exceptions import ToolError

from stepwise.retrieval.errors import ContextNotFoundError, RetrievalError, SearchInputError

_PARAMS_HINT = "Double-check required fields and value ranges in the tool schema."


class MCPErrorCode(StrEnum):
    INVALID_PARAMS = "INVALID_PARAMS"
    SEARCH_INPUT_INVALID = "SEARCH_INPUT_INVALID"
    SCOPE_NOT_FOUND = "SCOPE_NOT_FOUND"
    CONTEXT_NOT_FOUND = "CONTEXT_NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class MCPError(ToolError):
    """ToolError with a machine-readable code and next-step hints."""

    def __init__(
        self,
        code: MCPErrorCode,
        message: str,
        remediation: str,
        **context: Any,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.remediation = remediation
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "remediation": self.remediation,
            "context": self.context,
        }


def remediation_text(hints: Sequence[str]) -> str:
    return " ".join(hint for hint in hints if hint)


def from_retrieval_error(exc: RetrievalError, hints: Sequence[str], **context: Any) -> MCPError:
    """Map a retrieval failure onto a tool error code."""
    if isinstance(exc, SearchInputError):
        code = MCPErrorCode.SEARCH_INPUT_INVALID
    elif isinstance(exc, ContextNotFoundError):
        code = MCPErrorCode.CONTEXT_NOT_FOUND
    else:
        code = MCPErrorCode.SCOPE_NOT_FOUND
    return MCPError(code, exc.message, remediation_text(hints), **context)


def invalid_params(tool: str, message: str, hints: Sequence[str] = ()) -> MCPError:
    return MCPError(
        MCPErrorCode.INVALID_PARAMS,
        f"Tool `{tool}`: {message}",
        remediation_text([_PARAMS_HINT, *hints]),
        tool=tool,
    )
