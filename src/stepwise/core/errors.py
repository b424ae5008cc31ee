"""Typed errors shared by the CLI, the HTTP daemon and the MCP tools.

Codes are grouped by area so logs and JSON bodies can be filtered:

- 2xxx configuration
- 3xxx source host (GitHub)
- 4xxx index writes
- 5xxx retrieval and search
- 9xxx internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    SOURCE_API_ERROR = 3001
    SOURCE_RATE_LIMITED = 3002
    SOURCE_TREE_TRUNCATED = 3003

    INDEX_INPUT_INVALID = 4001

    SCOPE_NOT_FOUND = 5001
    CONTEXT_NOT_FOUND = 5002
    SEARCH_INPUT_INVALID = 5003

    INTERNAL_ERROR = 9001


@dataclass(frozen=True, slots=True, eq=False)
class StepwiseError(Exception):
    """Error carrying a code, an operator-facing message and JSON-safe details.

    Instances compare and hash by identity like any other exception. Area
    subclasses take a message plus keyword details and supply their own code.
    """

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "error": self.code.name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.code.name}: {self.message}"


class ConfigError(StepwiseError):
    """A config file or value could not be used."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            ErrorCode.CONFIG_PARSE_ERROR,
            f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            ErrorCode.CONFIG_INVALID_VALUE,
            f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class InternalError(StepwiseError):
    """A loop or invariant inside stepwise broke; not caused by the caller."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(ErrorCode.INTERNAL_ERROR, f"Internal error: {reason}", details=details)
