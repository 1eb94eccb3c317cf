"""
Structured logging for docship.

Provides a single entry point for configuring structlog, plus helpers for
binding run/stage context so every event emitted while a stage runs carries
the stage name.

Configuration is read from arguments or environment variables:
- DOCSHIP_LOG_LEVEL: DEBUG | INFO | WARNING | ERROR (default: INFO)
- DOCSHIP_LOG_FORMAT: json | console (default: console)

Usage:
    from docship.core.logging import configure_logging, get_logger

    configure_logging(level="DEBUG")
    logger = get_logger(__name__)
    logger.info("stage.started", stage="stage-docs")

Tags:
    logging, structlog, observability, docship
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, Literal

import structlog
from structlog.types import Processor

_configured = False


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | str | None = None,
    format: Literal["json", "console"] | str | None = None,
    force: bool = False,
) -> None:
    """
    Configure structured logging for the application.

    Should be called once at startup (CLI entry). Subsequent calls are no-ops
    unless ``force=True``.

    Args:
        level: Log level (overrides DOCSHIP_LOG_LEVEL env var)
        format: Output format (overrides DOCSHIP_LOG_FORMAT env var)
        force: Reconfigure even if already configured
    """
    global _configured

    if _configured and not force:
        return

    log_level = (level or os.environ.get("DOCSHIP_LOG_LEVEL", "INFO")).upper()
    log_format = (format or os.environ.get("DOCSHIP_LOG_FORMAT", "console")).lower()

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Logs go to stderr so fragment/JSON output on stdout stays clean
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level, logging.INFO),
        force=True,
    )
    logging.getLogger("docship").setLevel(getattr(logging, log_level, logging.INFO))

    _configured = True


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs on this thread."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context."""
    structlog.contextvars.clear_contextvars()


def is_configured() -> bool:
    """Check if logging has been configured."""
    return _configured


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(run_id="abc123", stage="stage-docs"):
            logger.info("stage.started")
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args: Any) -> None:
        unbind_context(*self._context.keys())


__all__ = [
    "LogContext",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "is_configured",
    "unbind_context",
]
