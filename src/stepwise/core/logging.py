"""structlog setup for the CLI, the HTTP daemon and the MCP server.

Every record passes through stdlib logging so third-party libraries share the
configured outputs. Each output picks its own renderer (console or JSON),
destination (stderr, stdout or an absolute file path) and minimum level.
Admin reindex requests bind a short request id that is stamped on every
record emitted while the request is handled.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from stepwise.config.models import LoggingConfig, LogOutputConfig

_request_id: ContextVar[str | None] = ContextVar("stepwise_request_id", default=None)

# Loggers that emit one line per HTTP request or MCP message at INFO.
_NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "uvicorn.access",
    "mcp.server.lowlevel.server",
    "fastmcp.server.context.to_client",
)


def get_request_id() -> str | None:
    return _request_id.get()


def set_request_id(request_id: str | None = None) -> str:
    """Bind ``request_id`` (or a fresh 12-hex-char id) to the current context."""
    rid = request_id or uuid4().hex[:12]
    _request_id.set(rid)
    return rid


def clear_request_id() -> None:
    _request_id.set(None)


def _stamp_request_id(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    rid = _request_id.get()
    if rid is not None:
        event_dict.setdefault("request_id", rid)
    return event_dict


def _level(name: str | None, fallback: int) -> int:
    if not name:
        return fallback
    return logging.getLevelNamesMapping().get(name.upper(), fallback)


def _handler_for(output: LogOutputConfig) -> logging.Handler:
    if output.destination == "stderr":
        return logging.StreamHandler(sys.stderr)
    if output.destination == "stdout":
        return logging.StreamHandler(sys.stdout)
    path = Path(output.destination)
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, mode="a", encoding="utf-8")


def _renderer_for(output: LogOutputConfig) -> structlog.types.Processor:
    if output.format == "json":
        return structlog.processors.JSONRenderer()
    stream = sys.stdout if output.destination == "stdout" else sys.stderr
    use_colors = output.destination in ("stderr", "stdout") and stream.isatty()
    return structlog.dev.ConsoleRenderer(colors=use_colors, pad_event_to=0, pad_level=False)


def configure_logging(
    *,
    config: LoggingConfig | None = None,
    json_format: bool = False,
    level: str = "INFO",
) -> None:
    """Install structlog and stdlib handlers. Safe to call repeatedly.

    Args:
        config: Full logging configuration; when given, ``json_format`` and
            ``level`` are ignored.
        json_format: Render the single stderr output as JSON.
        level: Root level for the single stderr output.
    """
    from stepwise.config.models import LoggingConfig, LogOutputConfig

    if config is None:
        config = LoggingConfig(
            level=level.upper(),  # type: ignore[arg-type]
            outputs=[LogOutputConfig(format="json" if json_format else "console")],
        )
    root_level = _level(config.level, logging.INFO)

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
        _stamp_request_id,  # type: ignore[list-item]
    ]
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(root_level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root_level))

    for output in config.outputs:
        handler = _handler_for(output)
        handler.setLevel(_level(output.level, root_level))
        handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=_renderer_for(output),
                foreign_pre_chain=pre_chain,
            )
        )
        root.addHandler(handler)
