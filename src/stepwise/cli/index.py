"""stepwise reindex / nightly commands - load workshop content into the index."""

from __future__ import annotations

import time

import click

from stepwise.cli.utils import get_console, parse_workshop_list, run_async
from stepwise.config.constants import REINDEX_BATCH_MAX_SIZE
from stepwise.config.models import StepwiseConfig
from stepwise.core.errors import StepwiseError
from stepwise.index.ops import ChangeCheck, ReindexTotals, changed_slugs
from stepwise.mcp.context import AppContext
from stepwise.source import GitHubClient, SourceError


def _print_totals(
    totals: ReindexTotals,
    *,
    workshops: list[str] | None,
    batch_size: int,
    vectors_enabled: bool,
    duration_sec: float,
) -> None:
    console = get_console()
    counts = totals.counts
    requested = ", ".join(workshops) if workshops else "all discovered workshop repositories"
    console.print("[bold]Workshop content load complete[/bold]")
    console.print(f"  Vectors:             {'enabled' if vectors_enabled else 'disabled'}")
    console.print(f"  Batch size:          {batch_size}")
    console.print(f"  Requested workshops: {requested}")
    console.print(f"  Reindex run ids:     {', '.join(totals.run_ids)}")
    console.print(f"  Workshop count:      {counts.workshop_count}")
    console.print(f"  Exercise count:      {counts.exercise_count}")
    console.print(f"  Step count:          {counts.step_count}")
    console.print(f"  Section count:       {counts.section_count}")
    console.print(f"  Section chunk count: {counts.section_chunk_count}")
    console.print(f"  Duration:            {round(duration_sec)}s")


async def _reindex(
    config: StepwiseConfig, workshops: list[str] | None, batch_size: int
) -> ReindexTotals:
    context = AppContext.create(config)
    try:
        async with GitHubClient(config.source) as client:
            coordinator = context.reindex_coordinator(client)
            return await coordinator.reindex_all(workshops=workshops, batch_size=batch_size)
    finally:
        context.close()


async def _detect(config: StepwiseConfig) -> list[ChangeCheck]:
    context = AppContext.create(config)
    try:
        async with GitHubClient(config.source) as client:
            return await context.reindex_coordinator(client).detect_changed_workshops()
    finally:
        context.close()


def _run_reindex(config: StepwiseConfig, workshops: list[str] | None, batch_size: int) -> None:
    started = time.monotonic()
    try:
        totals = run_async(_reindex(config, workshops, batch_size))
    except StepwiseError as e:
        raise click.ClickException(e.message) from e
    _print_totals(
        totals,
        workshops=workshops,
        batch_size=batch_size,
        vectors_enabled=config.vectors.enabled,
        duration_sec=time.monotonic() - started,
    )


@click.command()
@click.option(
    "--workshops",
    "-w",
    default=None,
    help="Comma or newline separated workshop slugs (default: all discovered).",
)
@click.option(
    "--batch-size",
    "-b",
    type=click.IntRange(1, REINDEX_BATCH_MAX_SIZE),
    default=None,
    help="Repositories per batch.",
)
@click.pass_context
def reindex_command(ctx: click.Context, workshops: str | None, batch_size: int | None) -> None:
    """Index workshop repositories, resubmitting cursors until done."""
    config: StepwiseConfig = ctx.obj["config"]
    _run_reindex(config, parse_workshop_list(workshops), batch_size or config.index.batch_size)


@click.command()
@click.option(
    "--batch-size",
    "-b",
    type=click.IntRange(1, REINDEX_BATCH_MAX_SIZE),
    default=None,
    help="Repositories per batch.",
)
@click.option("--dry-run", is_flag=True, help="Report changed workshops without indexing.")
@click.pass_context
def nightly_command(ctx: click.Context, batch_size: int | None, dry_run: bool) -> None:
    """Reindex only workshops whose content changed since their last index."""
    config: StepwiseConfig = ctx.obj["config"]
    console = get_console()
    started = time.monotonic()
    try:
        checks = run_async(_detect(config))
    except SourceError as e:
        raise click.ClickException(e.message) from e

    to_index = changed_slugs(checks)
    console.print("[bold]Nightly workshop reindex[/bold]")
    console.print(f"  Discovered workshops: {len(checks)}")
    console.print(f"  Skipped workshops:    {len(checks) - len(to_index)}")
    console.print(f"  Workshops to index:   {len(to_index)}")
    console.print(f"  Duration (detect):    {round(time.monotonic() - started)}s")
    if not to_index:
        console.print("No workshop content changes detected.")
        return
    for check in sorted(checks, key=lambda c: c.slug):
        if check.should_index:
            console.print(f"  - {check.slug} ({check.reason})")
    if dry_run:
        return

    _run_reindex(config, to_index, batch_size or config.index.batch_size)
