"""MCP server exposing workshop retrieval tools."""
