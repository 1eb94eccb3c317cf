"""Stage graph orchestration: declaration, planning, caching and execution."""

from docship.orchestration.cache import StageCache
from docship.orchestration.exceptions import (
    CycleDetectedError,
    DependencyError,
    PlanError,
    PlanResolutionError,
    StageFailedError,
    StageNotFoundError,
)
from docship.orchestration.planner import PlanResolver, validate_stages
from docship.orchestration.runner import StageRunner
from docship.orchestration.stage import RunResult, Stage, StageResult, StageStatus

__all__ = [
    "CycleDetectedError",
    "DependencyError",
    "PlanError",
    "PlanResolutionError",
    "PlanResolver",
    "RunResult",
    "Stage",
    "StageCache",
    "StageFailedError",
    "StageNotFoundError",
    "StageResult",
    "StageRunner",
    "StageStatus",
    "validate_stages",
]
