"""Stage definitions and per-stage execution records."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from docship.models import BuildContext

StageAction = Callable[[BuildContext], Any]
PathsProvider = Callable[[BuildContext], Iterable[Path]]


class StageStatus(str, Enum):
    """Outcome of a single stage."""

    PENDING = "pending"
    COMPLETED = "completed"
    CACHED = "cached"  # Inputs unchanged, previous output reused
    SKIPPED = "skipped"  # Disabled, or never started after a failure
    FAILED = "failed"

    @property
    def satisfied(self) -> bool:
        """Whether dependents may run after this status."""
        return self in (StageStatus.COMPLETED, StageStatus.CACHED, StageStatus.SKIPPED)


@dataclass(frozen=True)
class Stage:
    """
    A named build target with hand-declared dependencies.

    Attributes:
        name: Target name (``stage-docs``)
        action: Callable receiving the shared :class:`BuildContext`
        depends_on: Names of stages that must complete first
        description: One-line help text
        enabled: Returns False to skip the stage (dependents still run)
        inputs: Paths fingerprinted for caching; ``None`` disables caching
        outputs: Paths the stage owns; must exist for a cache hit
        cache_salt: Extra string mixed into the fingerprint (config values)
    """

    name: str
    action: StageAction
    depends_on: tuple[str, ...] = ()
    description: str = ""
    enabled: Callable[[BuildContext], bool] | None = None
    inputs: PathsProvider | None = None
    outputs: PathsProvider | None = None
    cache_salt: Callable[[BuildContext], str] | None = None

    @property
    def cacheable(self) -> bool:
        return self.inputs is not None and self.outputs is not None

    def is_enabled(self, context: BuildContext) -> bool:
        return self.enabled is None or bool(self.enabled(context))


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class StageResult:
    """Result of executing a single stage."""

    stage: str
    status: StageStatus = StageStatus.PENDING
    started_at: datetime | None = None
    completed_at: datetime | None = None
    output: Any = None
    error: str | None = None
    reason: str | None = None

    def start(self) -> None:
        self.started_at = _utcnow()

    def finish(self, status: StageStatus, *, output: Any = None, error: str | None = None) -> None:
        self.completed_at = _utcnow()
        self.status = status
        self.output = output
        self.error = error

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging/CLI output."""
        return {
            "stage": self.stage,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "error": self.error,
            "reason": self.reason,
        }


@dataclass
class RunResult:
    """Result of one orchestrator run, stages in execution order."""

    run_id: str
    stages: list[StageResult] = field(default_factory=list)

    def get(self, name: str) -> StageResult | None:
        for result in self.stages:
            if result.stage == name:
                return result
        return None

    @property
    def succeeded(self) -> bool:
        return all(r.status is not StageStatus.FAILED for r in self.stages)

    @property
    def failed_stage(self) -> str | None:
        for result in self.stages:
            if result.status is StageStatus.FAILED:
                return result.stage
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "succeeded": self.succeeded,
            "stages": [r.to_dict() for r in self.stages],
        }


__all__ = ["RunResult", "Stage", "StageAction", "StageResult", "StageStatus"]
