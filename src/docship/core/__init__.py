"""Core primitives shared by every docship stage: errors, logging, hashing."""

from docship.core.errors import (
    ConfigError,
    DocshipError,
    ErrorCategory,
    ErrorContext,
    ExecutionError,
    MissingInputError,
    OrchestrationError,
    PublishConflictError,
    StageFailedError,
)
from docship.core.logging import LogContext, configure_logging, get_logger

__all__ = [
    "ConfigError",
    "DocshipError",
    "ErrorCategory",
    "ErrorContext",
    "ExecutionError",
    "LogContext",
    "MissingInputError",
    "OrchestrationError",
    "PublishConflictError",
    "StageFailedError",
    "configure_logging",
    "get_logger",
]
