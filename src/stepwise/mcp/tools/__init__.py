"""MCP tool handlers."""

from stepwise.mcp.tools import quiz, workshops

__all__ = ["quiz", "workshops"]
