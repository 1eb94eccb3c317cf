"""Stage Runner: executes a resolved stage graph.

Stages whose dependencies have all completed are submitted to a
``ThreadPoolExecutor``; the runner then blocks on the set of running futures
until one finishes (a barrier, not polling) and re-evaluates which stages are
ready. Each stage owns its output directory, so no other locking is needed.

The first failure stops further submission. Stages already running are
allowed to finish (external tools are not interrupted mid-invocation), every
stage not yet started is marked skipped, and :class:`StageFailedError` is
raised naming the failed stage.

Example::

    runner = StageRunner(max_workers=4, cache=StageCache(path))
    result = runner.run(stages, context, targets=["stage-docs"])
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any

from docship.core.errors import StageFailedError
from docship.core.logging import LogContext, get_logger
from docship.models import BuildContext
from docship.orchestration.cache import StageCache
from docship.orchestration.planner import PlanResolver
from docship.orchestration.stage import RunResult, Stage, StageResult, StageStatus

logger = get_logger(__name__)


class StageRunner:
    """Runs stages in dependency order, independent stages concurrently."""

    def __init__(
        self,
        *,
        max_workers: int = 4,
        cache: StageCache | None = None,
        resolver: PlanResolver | None = None,
    ):
        self.max_workers = max(1, max_workers)
        self.cache = cache
        self.resolver = resolver or PlanResolver()

    def run(
        self,
        stages: Sequence[Stage],
        context: BuildContext,
        targets: Iterable[str] | None = None,
    ) -> RunResult:
        """
        Execute ``targets`` (and their dependencies) or every stage.

        Returns:
            RunResult with one StageResult per executed stage, in plan order

        Raises:
            StageFailedError: If any stage raised; wraps the original error
            PlanError: If the stage graph is invalid
        """
        plan = self.resolver.resolve(stages, targets)
        results: dict[str, StageResult] = {s.name: StageResult(stage=s.name) for s in plan}
        run_result = RunResult(run_id=context.run_id, stages=[results[s.name] for s in plan])

        pending: dict[str, Stage] = {s.name: s for s in plan}
        running: dict[Future[Any], Stage] = {}
        failure: tuple[str, BaseException] | None = None

        logger.info("runner.start", run_id=context.run_id, plan=[s.name for s in plan])

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="docship") as executor:
            while pending or running:
                if failure is None:
                    for stage in self._ready(pending, results):
                        del pending[stage.name]
                        if self._settle_without_running(stage, context, results[stage.name]):
                            continue
                        results[stage.name].start()
                        running[executor.submit(self._execute, stage, context)] = stage
                        logger.debug("runner.submitted", stage=stage.name, active=len(running))

                if not running:
                    if failure is not None or not pending:
                        break
                    # Only settled-without-running stages were ready; look again
                    if self._ready(pending, results):
                        continue
                    break

                done, _ = wait(running.keys(), return_when=FIRST_COMPLETED)
                for future in done:
                    stage = running.pop(future)
                    result = results[stage.name]
                    try:
                        output = future.result()
                    except Exception as exc:
                        result.finish(StageStatus.FAILED, error=str(exc))
                        logger.error("runner.stage_failed", stage=stage.name, error=str(exc))
                        if failure is None:
                            failure = (stage.name, exc)
                        continue

                    result.finish(StageStatus.COMPLETED, output=output)
                    if self.cache is not None and stage.cacheable:
                        self.cache.record(stage, context)
                    logger.info(
                        "runner.stage_completed",
                        stage=stage.name,
                        duration_seconds=result.duration_seconds,
                    )

        for name in pending:
            results[name].status = StageStatus.SKIPPED
            results[name].reason = "upstream_failed" if failure else "unreachable"

        if failure is not None:
            stage_name, exc = failure
            logger.error("runner.aborted", run_id=context.run_id, stage=stage_name)
            raise StageFailedError(stage_name, exc, run_result=run_result)

        logger.info("runner.completed", run_id=context.run_id, stages=len(plan))
        return run_result

    def _ready(self, pending: dict[str, Stage], results: dict[str, StageResult]) -> list[Stage]:
        """Pending stages whose dependencies are all satisfied, in plan order."""
        return [
            stage
            for stage in pending.values()
            if all(results[dep].status.satisfied for dep in stage.depends_on if dep in results)
        ]

    def _settle_without_running(
        self, stage: Stage, context: BuildContext, result: StageResult
    ) -> bool:
        """Mark disabled stages as skipped and fresh cached stages as cached.

        Disabled stages still satisfy their dependents.
        """
        if not stage.is_enabled(context):
            result.start()
            result.finish(StageStatus.SKIPPED)
            result.reason = "disabled"
            logger.info("runner.stage_disabled", stage=stage.name)
            return True

        if self.cache is not None and self.cache.is_fresh(stage, context):
            result.start()
            result.finish(StageStatus.CACHED)
            result.reason = "inputs_unchanged"
            logger.info("runner.stage_cached", stage=stage.name)
            return True

        return False

    @staticmethod
    def _execute(stage: Stage, context: BuildContext) -> Any:
        with LogContext(run_id=context.run_id, stage=stage.name):
            logger.info("stage.started", description=stage.description)
            return stage.action(context)


__all__ = ["StageRunner"]
