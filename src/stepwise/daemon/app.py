"""Starlette application factory."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.routing import BaseRoute, Mount

from stepwise.daemon.routes import ClientFactory, create_routes

if TYPE_CHECKING:
    from stepwise.config.models import StepwiseConfig
    from stepwise.mcp.context import AppContext

log = structlog.get_logger(__name__)


def create_app(context: AppContext, *, client_factory: ClientFactory | None = None) -> Starlette:
    """Create the Starlette application with the MCP server mounted at /mcp."""
    from stepwise.mcp.server import create_mcp_server

    routes: list[BaseRoute] = list(create_routes(context, client_factory))

    mcp = create_mcp_server(context)
    mcp_app = mcp.http_app(path="/mcp", transport="streamable-http")
    routes.append(Mount("/", app=mcp_app))

    @asynccontextmanager
    async def combined_lifespan(app: Starlette) -> AsyncIterator[None]:
        async with mcp_app.lifespan(app):
            log.info("daemon_started")
            yield
        log.info("daemon_stopped")

    return Starlette(routes=routes, lifespan=combined_lifespan)


def run_daemon(config: StepwiseConfig) -> None:
    """Serve HTTP routes and the MCP endpoint until interrupted."""
    import uvicorn

    from stepwise.core.logging import configure_logging
    from stepwise.mcp.context import AppContext

    configure_logging(config=config.logging)
    context = AppContext.create(config)
    app = create_app(context)
    log.info("daemon_listening", host=config.server.host, port=config.server.port)
    try:
        uvicorn.run(app, host=config.server.host, port=config.server.port, log_level="warning")
    finally:
        context.close()
