"""stepwise serve / mcp commands - run the server."""

from __future__ import annotations

import click

from stepwise.cli.utils import get_console
from stepwise.config.models import StepwiseConfig


@click.command()
@click.option("--host", default=None, help="Override bind address")
@click.option("--port", "-p", type=int, default=None, help="Override server port")
@click.pass_context
def serve_command(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Serve the MCP endpoint and admin routes over HTTP. Runs in foreground."""
    from stepwise.daemon.app import run_daemon

    config: StepwiseConfig = ctx.obj["config"]
    if host is not None:
        config.server.host = host
    if port is not None:
        config.server.port = port

    base_url = f"http://{config.server.host}:{config.server.port}"
    console = get_console()
    console.print(f"  MCP Endpoint:    {base_url}/mcp", style="green")
    console.print(f"  Health Check:    {base_url}/health")
    admin_state = "enabled" if config.admin.token else "disabled (no admin token)"
    console.print(f"  Manual reindex:  {admin_state}", style="dim")

    try:
        run_daemon(config)
    except KeyboardInterrupt:
        click.echo("\nStopped")


@click.command()
@click.pass_context
def mcp_command(ctx: click.Context) -> None:
    """Run the MCP server over stdio."""
    from stepwise.mcp.server import run_server

    run_server(ctx.obj["config"])
