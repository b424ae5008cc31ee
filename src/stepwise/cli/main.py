"""stepwise CLI - stepwise command."""

from pathlib import Path

import click

from stepwise.cli.index import nightly_command, reindex_command
from stepwise.cli.serve import mcp_command, serve_command
from stepwise.cli.utils import load_cli_config
from stepwise.cli.workshops import workshops_command
from stepwise.core.logging import configure_logging


@click.group()
@click.version_option(package_name="stepwise", prog_name="stepwise")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "--config-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Directory containing stepwise.yaml (default: current directory)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_dir: Path | None) -> None:
    """stepwise - Workshop knowledge base for AI coding agents."""
    ctx.ensure_object(dict)
    config = load_cli_config(config_dir)
    if verbose:
        config.logging.level = "DEBUG"
    ctx.obj["verbose"] = verbose
    ctx.obj["config"] = config
    configure_logging(config=config.logging)


cli.add_command(reindex_command, name="reindex")
cli.add_command(nightly_command, name="nightly")
cli.add_command(serve_command, name="serve")
cli.add_command(mcp_command, name="mcp")
cli.add_command(workshops_command, name="workshops")


if __name__ == "__main__":
    cli()
