"""Structured logging configuration using structlog."""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

_RENDERERS = ("json", "console")


def setup_logging(level: str = "info", renderer: str = "json") -> None:
    """Configure structlog for JSON (or human-readable console) output to stderr.

    Exceptions attached with ``exc_info`` are rendered inline so watch
    failures keep their traceback in a single log record.
    """
    if renderer not in _RENDERERS:
        raise ValueError(f"Invalid log renderer: {renderer}. Must be one of {_RENDERERS}")
    log_level = getattr(logging, level.upper(), logging.INFO)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
    ]
    if renderer == "console":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.extend([structlog.processors.format_exc_info, structlog.processors.JSONRenderer()])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str, **context: Any) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name and optional extra context."""
    return structlog.get_logger(component=component, **context)  # type: ignore[return-value]
