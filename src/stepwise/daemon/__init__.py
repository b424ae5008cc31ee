"""stepwise daemon - HTTP server hosting the MCP endpoint and admin routes."""

from stepwise.daemon.app import create_app, run_daemon

__all__ = ["create_app", "run_daemon"]
