"""Read-only MCP resources describing the server itself."""

from __future__ import annotations

from typing import TYPE_CHECKING

from stepwise import __version__

if TYPE_CHECKING:
    from fastmcp import FastMCP

SERVER_INFO_URI = "stepwise://server"

TOOL_TITLES = {
    "list_workshops": "List Workshops",
    "retrieve_learning_context": "Retrieve Learning Context",
    "retrieve_diff_context": "Retrieve Diff Context",
    "search_topic_context": "Search Topic Context",
    "retrieve_quiz_instructions": "Retrieve Quiz Instructions",
}


def server_info_markdown() -> str:
    tools = "\n".join(f"- `{name}`: {title}" for name, title in TOOL_TITLES.items())
    return "\n".join(
        [
            "# Stepwise workshop server",
            "",
            f"Version: `{__version__}`",
            "",
            "## Tools",
            tools,
            "",
            "## Quick start",
            "- Call `list_workshops` first, then pick a `workshop` slug.",
            "- Use `retrieve_learning_context` or `retrieve_diff_context` for a scope.",
            "- Use `search_topic_context` to locate where something is taught.",
            "- Call `retrieve_quiz_instructions` before quizzing a learner.",
        ]
    )


def register_resources(mcp: FastMCP) -> None:
    @mcp.resource(
        SERVER_INFO_URI,
        name="server",
        description="Server version, tool list and a quick start guide.",
        mime_type="text/markdown",
    )
    def server_info() -> str:
        return server_info_markdown()
