"""Orchestration exceptions: structured error hierarchy.

All orchestration exceptions inherit from ``docship.core.errors.OrchestrationError``
so that callers can catch the entire family with a single ``except`` clause.

Hierarchy::

    OrchestrationError  (from docship.core.errors)
      ├── StageFailedError          ── a stage raised while running
      └── PlanError                 ── base for graph errors
            ├── StageNotFoundError    ── target names an unknown stage
            ├── CycleDetectedError    ── dependency graph has a cycle
            ├── DependencyError       ── stage depends on unknown stages
            └── PlanResolutionError   ── cannot resolve execution order
"""

from docship.core.errors import OrchestrationError, StageFailedError


class PlanError(OrchestrationError):
    """Base exception for stage-graph errors."""

    pass


class StageNotFoundError(PlanError):
    """Raised when a requested target is not a declared stage."""

    def __init__(self, stage_name: str):
        self.stage_name = stage_name
        super().__init__(f"Unknown stage: {stage_name}")


class CycleDetectedError(PlanError):
    """Raised when the dependency graph contains a cycle."""

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        cycle_str = " -> ".join(cycle)
        super().__init__(f"Cycle detected in stage graph: {cycle_str}")


class DependencyError(PlanError):
    """Raised when a stage depends on stages that are not declared."""

    def __init__(self, stage_name: str, missing_deps: list[str]):
        self.stage_name = stage_name
        self.missing_deps = missing_deps
        deps_str = ", ".join(missing_deps)
        super().__init__(f"Stage '{stage_name}' depends on unknown stages: {deps_str}")


class PlanResolutionError(PlanError):
    """Raised when stages cannot be put into an execution order."""

    pass


__all__ = [
    "CycleDetectedError",
    "DependencyError",
    "PlanError",
    "PlanResolutionError",
    "StageFailedError",
    "StageNotFoundError",
]
