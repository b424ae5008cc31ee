"""stepwise workshops command - list indexed workshops."""

from __future__ import annotations

import json

import click
from rich.table import Table

from stepwise.cli.utils import get_console
from stepwise.config.models import StepwiseConfig
from stepwise.index._internal.db import Database
from stepwise.retrieval.ops import RetrievalService


@click.command()
@click.option("--product", default=None, help="Only workshops for this product.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def workshops_command(ctx: click.Context, product: str | None, as_json: bool) -> None:
    """List indexed workshops."""
    config: StepwiseConfig = ctx.obj["config"]
    db = Database(config.database.resolved_path, busy_timeout_ms=config.database.busy_timeout_ms)
    try:
        db.create_all()
        result = RetrievalService(db, config.retrieval).list_all_workshops(product=product)
    finally:
        db.dispose()

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if not result.workshops:
        click.echo("No workshops indexed. Run 'stepwise reindex' first.")
        return

    table = Table(title="Indexed workshops")
    table.add_column("Workshop", style="cyan")
    table.add_column("Title")
    table.add_column("Product")
    table.add_column("Exercises", justify="right")
    table.add_column("Diffs")
    table.add_column("Last indexed")
    for w in result.workshops:
        table.add_row(
            w.workshop,
            w.title,
            w.product or "",
            str(w.exercise_count),
            "yes" if w.has_diffs else "no",
            w.last_indexed_at,
        )
    get_console().print(table)
