"""Workshop MCP tools - list, retrieve learning/diff context, topic search.

Tool arguments use the camelCase names agents see in the schema; the
parameter models accept either spelling.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from stepwise.config.constants import LIST_WORKSHOPS_MAX_LIMIT, TOPIC_SEARCH_MAX_LIMIT
from stepwise.mcp.errors import from_retrieval_error
from stepwise.mcp.formatting import format_context, format_topic_search, format_workshops
from stepwise.mcp.server import run_tool
from stepwise.retrieval.errors import RetrievalError

if TYPE_CHECKING:
    from fastmcp import FastMCP

    from stepwise.mcp.context import AppContext

TOOL_NAMES = (
    "list_workshops",
    "retrieve_learning_context",
    "retrieve_diff_context",
    "search_topic_context",
)

LIST_WORKSHOPS_HINTS = ("Try again with a smaller limit or with { all: false }.",)
LEARNING_CONTEXT_HINTS = (
    "Verify the workshop slug with list_workshops.",
    "If this is a truncation issue, pass nextCursor back as cursor.",
)
DIFF_CONTEXT_HINTS = (
    "Verify the workshop slug with list_workshops.",
    "If focus yields no matches, adjust or omit focus.",
)
TOPIC_SEARCH_HINTS = (
    "If query is too short, provide at least 3 characters.",
    "If scoping by stepNumber, also provide exerciseNumber.",
)


# =============================================================================
# Parameter Models
# =============================================================================


class ToolParams(BaseModel):
    """Base for tool parameters: unknown fields rejected, strings trimmed."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, str_strip_whitespace=True)


class ListWorkshopsParams(ToolParams):
    limit: int | None = Field(None, ge=1, le=LIST_WORKSHOPS_MAX_LIMIT)
    all: bool = True
    cursor: str | None = None
    product: str | None = Field(None, min_length=1)
    has_diffs: bool | None = Field(None, alias="hasDiffs")


class RetrieveLearningContextParams(ToolParams):
    workshop: str | None = Field(None, min_length=1)
    exercise_number: int | None = Field(None, gt=0, alias="exerciseNumber")
    step_number: int | None = Field(None, gt=0, alias="stepNumber")
    random: bool = False
    max_chars: int | None = Field(None, gt=0, alias="maxChars")
    cursor: str | None = None

    @model_validator(mode="after")
    def check_scope(self) -> RetrieveLearningContextParams:
        if not self.random and (self.workshop is None or self.exercise_number is None):
            raise ValueError("workshop and exerciseNumber are required unless random is true")
        return self


class RetrieveDiffContextParams(ToolParams):
    workshop: str = Field(..., min_length=1)
    exercise_number: int = Field(..., gt=0, alias="exerciseNumber")
    step_number: int | None = Field(None, gt=0, alias="stepNumber")
    focus: str | None = None
    max_chars: int | None = Field(None, gt=0, alias="maxChars")
    cursor: str | None = None


class SearchTopicContextParams(ToolParams):
    query: str
    limit: int | None = Field(None, ge=1, le=TOPIC_SEARCH_MAX_LIMIT)
    workshop: str | None = Field(None, min_length=1)
    exercise_number: int | None = Field(None, gt=0, alias="exerciseNumber")
    step_number: int | None = Field(None, gt=0, alias="stepNumber")


# =============================================================================
# Handlers
# =============================================================================


async def list_workshops_handler(app_ctx: AppContext, params: ListWorkshopsParams) -> dict[str, Any]:
    service = app_ctx.retrieval
    if params.all:
        result = service.list_all_workshops(
            limit=params.limit, product=params.product, has_diffs=params.has_diffs
        )
    else:
        result = service.list_workshops(
            limit=params.limit,
            cursor=params.cursor,
            product=params.product,
            has_diffs=params.has_diffs,
        )
    data = result.to_dict()
    data["markdown"] = format_workshops(result, paginated=not params.all)
    return data


async def retrieve_learning_context_handler(
    app_ctx: AppContext, params: RetrieveLearningContextParams
) -> dict[str, Any]:
    try:
        result = app_ctx.retrieval.retrieve_learning_context(
            workshop=params.workshop,
            exercise_number=params.exercise_number,
            step_number=params.step_number,
            random=params.random,
            max_chars=params.max_chars,
            cursor=params.cursor,
        )
    except RetrievalError as exc:
        raise from_retrieval_error(exc, LEARNING_CONTEXT_HINTS, workshop=params.workshop) from exc
    data = result.to_dict("sections")
    data["markdown"] = format_context(
        "retrieve_learning_context",
        result,
        diff=False,
        max_chars=params.max_chars,
        random=params.random,
    )
    return data


async def retrieve_diff_context_handler(
    app_ctx: AppContext, params: RetrieveDiffContextParams
) -> dict[str, Any]:
    try:
        result = app_ctx.retrieval.retrieve_diff_context(
            workshop=params.workshop,
            exercise_number=params.exercise_number,
            step_number=params.step_number,
            focus=params.focus,
            max_chars=params.max_chars,
            cursor=params.cursor,
        )
    except RetrievalError as exc:
        raise from_retrieval_error(exc, DIFF_CONTEXT_HINTS, workshop=params.workshop) from exc
    data = result.to_dict("diffSections")
    data["markdown"] = format_context(
        "retrieve_diff_context",
        result,
        diff=True,
        max_chars=params.max_chars,
        focus=params.focus or None,
    )
    return data


async def search_topic_context_handler(
    app_ctx: AppContext, params: SearchTopicContextParams
) -> dict[str, Any]:
    try:
        result = await app_ctx.search.search(
            params.query,
            limit=params.limit,
            workshop=params.workshop,
            exercise_number=params.exercise_number,
            step_number=params.step_number,
        )
    except RetrievalError as exc:
        raise from_retrieval_error(exc, TOPIC_SEARCH_HINTS) from exc
    data = result.to_dict()
    data["markdown"] = format_topic_search(result)
    return data


# =============================================================================
# Tool Registration
# =============================================================================


def _provided(**kwargs: Any) -> dict[str, Any]:
    return {k: v for k, v in kwargs.items() if v is not None}


def register_tools(mcp: FastMCP, app_ctx: AppContext) -> None:
    """Register workshop tools with FastMCP server."""

    @mcp.tool
    async def list_workshops(
        limit: int | None = Field(
            None, description=f"Page size when paginating manually (1-{LIST_WORKSHOPS_MAX_LIMIT})."
        ),
        all: bool | None = Field(
            None,
            description="When true (default), fetches all pages. Set false for one page plus nextCursor.",
        ),
        cursor: str | None = Field(None, description="Pagination cursor from a previous { all: false } call."),
        product: str | None = Field(None, description="Optional product filter (exact match)."),
        hasDiffs: bool | None = Field(  # noqa: N803
            None, description="Optional filter for whether diff context is available."
        ),
    ) -> dict[str, Any]:
        """List indexed workshops with exercise counts, diff availability and last indexed time.

        Use to find valid workshop slugs for the other tools.
        """
        args = _provided(limit=limit, all=all, cursor=cursor, product=product, hasDiffs=hasDiffs)

        async def call() -> dict[str, Any]:
            return await list_workshops_handler(app_ctx, ListWorkshopsParams.model_validate(args))

        return await run_tool("list_workshops", call, params=args, hints=LIST_WORKSHOPS_HINTS)

    @mcp.tool
    async def retrieve_learning_context(
        workshop: str | None = Field(None, description="Workshop slug from list_workshops."),
        exerciseNumber: int | None = Field(None, description="Exercise number within the workshop."),  # noqa: N803
        stepNumber: int | None = Field(None, description="Optional step number within the exercise."),  # noqa: N803
        random: bool | None = Field(None, description="When true, chooses a random indexed exercise scope."),
        maxChars: int | None = Field(  # noqa: N803
            None, description="Soft maximum for returned content size; clamped to the server limit."
        ),
        cursor: str | None = Field(None, description="Continuation cursor from a previous truncated response."),
    ) -> dict[str, Any]:
        """Retrieve instructions, code and diffs for a workshop exercise or step, in order.

        Large scopes are paged: pass nextCursor back as cursor.
        """
        args = _provided(
            workshop=workshop,
            exerciseNumber=exerciseNumber,
            stepNumber=stepNumber,
            random=random,
            maxChars=maxChars,
            cursor=cursor,
        )

        async def call() -> dict[str, Any]:
            params = RetrieveLearningContextParams.model_validate(args)
            return await retrieve_learning_context_handler(app_ctx, params)

        return await run_tool(
            "retrieve_learning_context", call, params=args, hints=LEARNING_CONTEXT_HINTS
        )

    @mcp.tool
    async def retrieve_diff_context(
        workshop: str = Field(..., description="Workshop slug from list_workshops."),
        exerciseNumber: int = Field(..., description="Exercise number within the workshop."),  # noqa: N803
        stepNumber: int | None = Field(None, description="Optional step number within the exercise."),  # noqa: N803
        focus: str | None = Field(
            None, description="Optional case-insensitive filter over diff label/kind/source path/content."
        ),
        maxChars: int | None = Field(  # noqa: N803
            None, description="Soft maximum for returned content size; clamped to the server limit."
        ),
        cursor: str | None = Field(None, description="Continuation cursor from a previous truncated response."),
    ) -> dict[str, Any]:
        """Retrieve diff summaries and hunks between problem and solution for a scope."""
        args = _provided(
            workshop=workshop,
            exerciseNumber=exerciseNumber,
            stepNumber=stepNumber,
            focus=focus,
            maxChars=maxChars,
            cursor=cursor,
        )

        async def call() -> dict[str, Any]:
            params = RetrieveDiffContextParams.model_validate(args)
            return await retrieve_diff_context_handler(app_ctx, params)

        return await run_tool("retrieve_diff_context", call, params=args, hints=DIFF_CONTEXT_HINTS)

    @mcp.tool
    async def search_topic_context(
        query: str = Field(..., description="Topic to search for (at least 3 non-whitespace characters)."),
        limit: int | None = Field(None, description=f"Max matches to return (1-{TOPIC_SEARCH_MAX_LIMIT})."),
        workshop: str | None = Field(None, description="Optional workshop slug filter."),
        exerciseNumber: int | None = Field(None, description="Optional exercise number filter."),  # noqa: N803
        stepNumber: int | None = Field(  # noqa: N803
            None, description="Optional step number filter (requires exerciseNumber)."
        ),
    ) -> dict[str, Any]:
        """Search indexed workshop content to find where a topic is taught.

        Semantic when vectors are configured, keyword matching otherwise.
        """
        args = _provided(
            query=query,
            limit=limit,
            workshop=workshop,
            exerciseNumber=exerciseNumber,
            stepNumber=stepNumber,
        )

        async def call() -> dict[str, Any]:
            params = SearchTopicContextParams.model_validate(args)
            return await search_topic_context_handler(app_ctx, params)

        return await run_tool("search_topic_context", call, params=args, hints=TOPIC_SEARCH_HINTS)
