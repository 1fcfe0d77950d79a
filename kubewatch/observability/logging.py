"""Structured logging configuration using structlog.

kubewatch is a library: it never configures logging on import. Until the
application calls ``setup_logging`` (or configures structlog itself),
structlog's defaults apply, which print every level including the
``watch_opened`` / ``watch_closed`` debug events to stdout. Calling
``setup_logging()`` with no arguments applies ``KUBEWATCH_LOG_LEVEL``
(default ``info``), which hides them.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from kubewatch.config import load_config


def setup_logging(level: str | None = None, json_output: bool = True) -> None:
    """Configure structlog output to stderr.

    Args:
        level:       Minimum level to emit (debug, info, warning, error).
                     Defaults to ``load_config().log.level``.
        json_output: Render one JSON object per line when True, otherwise
                     use the human-readable console renderer.

    Raises:
        ValueError: *level* is not a known logging level name.
    """
    if level is None:
        level = load_config().log.level
    try:
        log_level = logging.getLevelNamesMapping()[level.upper()]
    except KeyError:
        raise ValueError(f"Unknown log level {level!r}") from None
    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str, **context: Any) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name and optional extra context."""
    return structlog.get_logger(component=component, **context)  # type: ignore[return-value]
