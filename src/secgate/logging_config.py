"""Structured logging configuration using structlog."""

import logging
import sys
from contextvars import Token
from typing import Mapping

import structlog


def configure_logging(log_level: str = "info", json_output: bool = False) -> None:
    """Configure structlog for structured logging.

    Args:
        log_level: Logging level string (debug/info/warning/error).
        json_output: If True, output JSON (CI logs). If False, colored console.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    # stderr keeps stdout clean for --json scan output
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Quiet noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def bind_scan_context(
    scan_id: str | None = None,
    repository: str | None = None,
    schedule_id: str | None = None,
) -> Mapping[str, Token]:
    """Bind scan identity to the current async context.

    Returns the context tokens; pass them to :func:`clear_scan_context` to
    restore whatever was bound before (a schedule id bound by the scheduler
    survives the scan it triggered).
    """
    ctx = {}
    if scan_id:
        ctx["scan_id"] = scan_id
    if repository:
        ctx["repository"] = repository
    if schedule_id:
        ctx["schedule_id"] = schedule_id
    return structlog.contextvars.bind_contextvars(**ctx)


def clear_scan_context(tokens: Mapping[str, Token] | None = None) -> None:
    """Undo a :func:`bind_scan_context`, or clear everything without tokens."""
    if tokens is None:
        structlog.contextvars.clear_contextvars()
    else:
        structlog.contextvars.reset_contextvars(**tokens)
