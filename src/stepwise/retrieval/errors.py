"""Retrieval and search error types.

Messages are surfaced verbatim to tool callers, so they name the scope the
caller asked for.
"""

from __future__ import annotations

from typing import Any, ClassVar

from stepwise.core.errors import ErrorCode, StepwiseError


class RetrievalError(StepwiseError):
    """Base error for retrieval and topic search."""

    error_code: ClassVar[ErrorCode] = ErrorCode.SCOPE_NOT_FOUND

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(self.error_code, message, details=details)


class ScopeNotFoundError(RetrievalError):
    """Workshop, exercise or step does not exist in the index."""

    @classmethod
    def workshop(cls, workshop: str) -> ScopeNotFoundError:
        return cls(f'Unknown workshop "{workshop}".', workshop=workshop)

    @classmethod
    def exercise(cls, exercise_number: int, workshop: str | None = None) -> ScopeNotFoundError:
        if workshop is None:
            return cls(f"Unknown exercise {exercise_number}.")
        return cls(f'Unknown exercise {exercise_number} for workshop "{workshop}".')

    @classmethod
    def step(
        cls, step_number: int, exercise_number: int, workshop: str | None = None
    ) -> ScopeNotFoundError:
        if workshop is None:
            return cls(f"Unknown step {step_number} for exercise {exercise_number}.")
        return cls(
            f'Unknown step {step_number} for workshop "{workshop}" exercise {exercise_number}.'
        )


class ContextNotFoundError(RetrievalError):
    """Scope exists but holds no matching sections."""

    error_code = ErrorCode.CONTEXT_NOT_FOUND


class SearchInputError(RetrievalError):
    """Topic search arguments are unusable."""

    error_code = ErrorCode.SEARCH_INPUT_INVALID
