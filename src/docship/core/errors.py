"""
Structured error types for docship.

Every failure the orchestrator can report is a ``DocshipError``. Errors carry a
category for routing, a structured context (stage, tool, path, exit code) and
an optional chained cause, so the CLI can tell the operator *which* stage
failed and show the underlying tool's diagnostic output verbatim.

Manifesto:
    - **Typed hierarchy:** one class per failure mode named in the build contract
    - **No retries:** documentation builds are operator-triggered; nothing here
      is marked retryable
    - **Rich context:** stage and tool metadata travel with the error
    - **Error chaining:** the original exception is preserved as ``cause``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                        DocshipError                           │
        │              (category, context, cause)                       │
        ├──────────────────────────────────────────────────────────────┤
        │  ExecutionError       MissingInputError   PublishConflictError│
        │  (EXECUTION)          (INPUT)             (PUBLISH)           │
        │                                                               │
        │  ConfigError          OrchestrationError                      │
        │  (CONFIG)             (ORCHESTRATION)                         │
        │                            │                                  │
        │                       StageFailedError                        │
        │                       (see orchestration.exceptions for       │
        │                        planning errors)                       │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> err = ExecutionError("renderer failed", command=["asciidoctor"], exit_code=2)
    >>> err.exit_code
    2
    >>> err.with_context(stage="render-narrative-html").context.stage
    'render-narrative-html'

Tags:
    error-handling, exception-hierarchy, error-context, docship
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and reporting."""

    EXECUTION = "EXECUTION"  # External tool failed or could not start
    INPUT = "INPUT"  # Required upstream artefact missing
    PUBLISH = "PUBLISH"  # Published destination diverged
    CONFIG = "CONFIG"  # Invalid configuration
    ORCHESTRATION = "ORCHESTRATION"  # Stage graph / scheduling errors
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        stage: Name of the pipeline stage (e.g. ``stage-docs``)
        tool: External tool involved (e.g. ``javadoc``, ``git``)
        path: File or directory the error concerns
        exit_code: Process exit status, when a tool was involved
        metadata: Additional key-value pairs
    """

    stage: str | None = None
    tool: str | None = None
    path: str | None = None
    exit_code: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ["stage", "tool", "path", "exit_code"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class DocshipError(Exception):
    """
    Base exception for all docship errors.

    Subclasses set ``default_category``; callers may override it per instance.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> DocshipError:
        """
        Add context to this error (fluent API).

        Usage:
            raise MissingInputError("fragment missing").with_context(
                stage="render-narrative-html", path=str(path)
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# BUILD ERRORS
# =============================================================================


class ExecutionError(DocshipError):
    """
    An external tool invocation failed.

    Raised when a program cannot be launched or exits with a non-zero status.
    ``stderr`` holds the tool's diagnostic output exactly as it was produced so
    the CLI can print it verbatim.
    """

    default_category = ErrorCategory.EXECUTION

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str] | None = None,
        exit_code: int | None = None,
        stderr: str = "",
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.command = list(command or [])
        self.exit_code = exit_code
        self.stderr = stderr
        if exit_code is not None:
            self.context.exit_code = exit_code
        if self.command and self.context.tool is None:
            self.context.tool = self.command[0]

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["command"] = self.command
        if self.stderr:
            result["stderr"] = self.stderr
        return result


class MissingInputError(DocshipError):
    """A required upstream artefact or fragment is absent when a stage starts."""

    default_category = ErrorCategory.INPUT

    def __init__(self, message: str, *, missing: Sequence[str] = (), **kwargs: Any):
        super().__init__(message, **kwargs)
        self.missing = list(missing)


class PublishConflictError(DocshipError):
    """The published destination has diverged and cannot be merged cleanly."""

    default_category = ErrorCategory.PUBLISH


class ConfigError(DocshipError):
    """Configuration is missing or invalid; raised before any stage runs."""

    default_category = ErrorCategory.CONFIG

    def __init__(self, message: str, *, field_name: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.field_name = field_name


class OrchestrationError(DocshipError):
    """Base class for stage graph and scheduling failures."""

    default_category = ErrorCategory.ORCHESTRATION


class StageFailedError(OrchestrationError):
    """
    A pipeline stage failed; wraps the underlying error.

    ``str()`` names the stage first so operators see where the run aborted.
    """

    def __init__(self, stage: str, cause: BaseException, run_result: Any = None):
        self.stage = stage
        self.run_result = run_result
        super().__init__(f"Stage '{stage}' failed: {cause}", cause=cause)
        self.context.stage = stage


__all__ = [
    "ConfigError",
    "DocshipError",
    "ErrorCategory",
    "ErrorContext",
    "ExecutionError",
    "MissingInputError",
    "OrchestrationError",
    "PublishConflictError",
    "StageFailedError",
]
