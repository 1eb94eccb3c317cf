"""
Plan Resolver - turns a hand-declared stage list into an execution order.

1. Validate every target names a declared stage
2. Select the targets plus their transitive dependencies
3. Validate dependencies reference declared stages
4. Validate the dependency graph is a DAG (no cycles)
5. Topologically sort (stable: declaration order breaks ties)

Pure functions, no execution; the runner consumes the ordered list.
"""

from __future__ import annotations

from collections import defaultdict, deque
from collections.abc import Iterable, Sequence

from docship.core.logging import get_logger
from docship.orchestration.exceptions import (
    CycleDetectedError,
    DependencyError,
    PlanResolutionError,
    StageNotFoundError,
)
from docship.orchestration.stage import Stage

logger = get_logger(__name__)


class PlanResolver:
    """
    Resolves stages into a dependency-respecting order.

    Thread-safe: no mutable state, each resolve() call is independent.

    Example:
        plan = PlanResolver().resolve(stages, targets=["stage-docs"])
        [s.name for s in plan]
        # ['collect', 'generate-fragments', 'render-reference-docs', ...]
    """

    def resolve(
        self,
        stages: Sequence[Stage],
        targets: Iterable[str] | None = None,
    ) -> list[Stage]:
        """
        Resolve the stages needed for ``targets`` (all stages when omitted).

        Raises:
            StageNotFoundError: If a target is not declared
            DependencyError: If a stage depends on an undeclared stage
            CycleDetectedError: If dependencies contain a cycle
        """
        self._validate_unique(stages)
        self._validate_dependencies(stages)
        self._validate_no_cycles(stages)

        selected = self._select(stages, list(targets) if targets is not None else None)
        ordered = self._topological_sort(selected)

        logger.debug(
            "plan_resolver.resolved",
            targets=list(targets) if targets is not None else "all",
            order=[s.name for s in ordered],
        )
        return ordered

    def _validate_unique(self, stages: Sequence[Stage]) -> None:
        names = [s.name for s in stages]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise PlanResolutionError(f"Duplicate stage names: {duplicates}")

    def _validate_dependencies(self, stages: Sequence[Stage]) -> None:
        """Validate all dependencies reference declared stages."""
        names = {s.name for s in stages}
        for stage in stages:
            missing = [dep for dep in stage.depends_on if dep not in names]
            if missing:
                raise DependencyError(stage.name, missing)

    def _validate_no_cycles(self, stages: Sequence[Stage]) -> None:
        """
        Depth-first search with three-color marking.

        GRAY marks nodes on the current path; reaching a GRAY node is a cycle.
        """
        WHITE, GRAY, BLACK = 0, 1, 2

        graph = {s.name: list(s.depends_on) for s in stages}
        color = {s.name: WHITE for s in stages}
        path: list[str] = []

        def dfs(node: str) -> list[str] | None:
            color[node] = GRAY
            path.append(node)

            for neighbor in graph.get(node, []):
                if color[neighbor] == GRAY:
                    cycle_start = path.index(neighbor)
                    return path[cycle_start:] + [neighbor]
                if color[neighbor] == WHITE:
                    result = dfs(neighbor)
                    if result:
                        return result

            color[node] = BLACK
            path.pop()
            return None

        for stage in stages:
            if color[stage.name] == WHITE:
                cycle = dfs(stage.name)
                if cycle:
                    raise CycleDetectedError(cycle)

    def _select(self, stages: Sequence[Stage], targets: list[str] | None) -> list[Stage]:
        """Targets plus transitive dependencies, in declaration order."""
        if targets is None:
            return list(stages)

        stage_map = {s.name: s for s in stages}
        for target in targets:
            if target not in stage_map:
                raise StageNotFoundError(target)

        needed: set[str] = set()
        stack = list(targets)
        while stack:
            name = stack.pop()
            if name in needed:
                continue
            needed.add(name)
            stack.extend(stage_map[name].depends_on)

        return [s for s in stages if s.name in needed]

    def _topological_sort(self, stages: list[Stage]) -> list[Stage]:
        """
        Kahn's algorithm, O(n+m).

        Stable: stages with no ordering constraint keep declaration order.
        """
        graph: dict[str, list[str]] = defaultdict(list)
        in_degree: dict[str, int] = {s.name: 0 for s in stages}
        stage_map = {s.name: s for s in stages}

        for stage in stages:
            for dep in stage.depends_on:
                graph[dep].append(stage.name)
                in_degree[stage.name] += 1

        queue = deque(s.name for s in stages if in_degree[s.name] == 0)
        result: list[Stage] = []

        while queue:
            node = queue.popleft()
            result.append(stage_map[node])
            for neighbor in graph[node]:
                in_degree[neighbor] -= 1
                if in_degree[neighbor] == 0:
                    queue.append(neighbor)

        if len(result) != len(stages):
            done = {r.name for r in result}
            remaining = [s.name for s in stages if s.name not in done]
            raise PlanResolutionError(f"Topological sort incomplete. Remaining: {remaining}")

        return result


def validate_stages(stages: Sequence[Stage]) -> list[str]:
    """
    Validate a stage list without resolving it.

    Returns list of error messages (empty if valid).
    """
    errors = []
    resolver = PlanResolver()
    try:
        resolver._validate_unique(stages)
    except PlanResolutionError as e:
        errors.append(str(e))

    try:
        resolver._validate_dependencies(stages)
    except DependencyError as e:
        errors.append(str(e))
        # Cycle detection needs a closed graph
        return errors

    try:
        resolver._validate_no_cycles(stages)
    except CycleDetectedError as e:
        errors.append(str(e))
    return errors
