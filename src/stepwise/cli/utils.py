"""CLI utilities."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import click
from rich.console import Console

from stepwise.config.models import StepwiseConfig
from stepwise.core.errors import ConfigError

T = TypeVar("T")

_console: Console | None = None


def get_console() -> Console:
    """Shared Rich console writing to stdout."""
    global _console
    if _console is None:
        _console = Console(highlight=False)
    return _console


def load_cli_config(config_dir: Path | None) -> StepwiseConfig:
    """Load configuration, surfacing errors as click failures.

    Raises:
        click.ClickException: Configuration could not be parsed or validated.
    """
    from stepwise.config.loader import load_config

    try:
        return load_config(config_dir)
    except ConfigError as e:
        raise click.ClickException(e.message) from e


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


def parse_workshop_list(value: str | None) -> list[str] | None:
    """Split a comma/newline separated workshop list into slugs."""
    if not value:
        return None
    slugs = [part.strip() for part in value.replace("\n", ",").split(",")]
    return [s for s in slugs if s] or None
