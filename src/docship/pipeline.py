"""The documentation build graph and its entry point.

Stages and their hand-declared dependencies::

    collect ─► generate-fragments ─┬─► render-reference-docs ──┐
                                   ├─► render-narrative-html ──┼─► stage-docs ─► publish-docs
                                   └─► render-narrative-pdf ───┘

The three renderers run concurrently once every fragment exists, so a failing
fragment program stops the build before any renderer starts. Stages read
their inputs from the paths the configuration derives; nothing is handed
from one stage to the next in memory, which lets a cached stage be skipped
without breaking its dependents.

Example::

    config = load_config(Path("docship.yaml"))
    result = run_pipeline(config, targets=[STAGE_DOCS])
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from docship.adapters.base import NarrativeRenderer, PublishTarget, ReferenceDocGenerator
from docship.adapters.narrative import (
    HTML,
    PDF,
    NarrativeRendererAdapter,
    build_attributes,
    included_files,
)
from docship.adapters.reference import ReferenceDocAdapter
from docship.adapters.targets import create_target
from docship.collect import collect_modules, verify_modules
from docship.config import BuildConfig
from docship.core.logging import get_logger
from docship.fragments import FragmentGenerator
from docship.models import BuildContext, FragmentSpec, PublishOutcome, StagedTree
from docship.orchestration import (
    RunResult,
    Stage,
    StageCache,
    StageResult,
    StageRunner,
    StageStatus,
)
from docship.orchestration.cache import CACHE_FILE_NAME
from docship.publish import PublishCoordinator
from docship.staging import StagingAssembler

logger = get_logger(__name__)

COLLECT = "collect"
GENERATE_FRAGMENTS = "generate-fragments"
RENDER_REFERENCE = "render-reference-docs"
RENDER_NARRATIVE_HTML = "render-narrative-html"
RENDER_NARRATIVE_PDF = "render-narrative-pdf"
STAGE_DOCS = "stage-docs"
PUBLISH_DOCS = "publish-docs"

NARRATIVE_VARIANTS = {
    "html": (RENDER_NARRATIVE_HTML,),
    "pdf": (RENDER_NARRATIVE_PDF,),
    "all": (RENDER_NARRATIVE_HTML, RENDER_NARRATIVE_PDF),
}


class PipelineState(str, Enum):
    """How far a run got; each state implies all earlier ones."""

    STARTED = "started"
    COLLECTED = "collected"
    REFERENCE_GENERATED = "reference_generated"
    NARRATIVE_RENDERED = "narrative_rendered"
    STAGED = "staged"
    PUBLISHED = "published"


_MILESTONES: tuple[tuple[PipelineState, tuple[str, ...]], ...] = (
    (PipelineState.COLLECTED, (COLLECT,)),
    (PipelineState.REFERENCE_GENERATED, (RENDER_REFERENCE,)),
    (PipelineState.NARRATIVE_RENDERED, (RENDER_NARRATIVE_HTML, RENDER_NARRATIVE_PDF)),
    (PipelineState.STAGED, (STAGE_DOCS,)),
    (PipelineState.PUBLISHED, (PUBLISH_DOCS,)),
)


def _done(record: StageResult | None) -> bool:
    if record is None:
        return True
    if record.status is StageStatus.SKIPPED:
        return record.reason == "disabled"
    return record.status.satisfied


def reached_state(result: RunResult) -> PipelineState:
    """Last milestone whose stages all ran (or were cached/disabled) in ``result``."""
    state = PipelineState.STARTED
    for milestone, names in _MILESTONES:
        records = [result.get(n) for n in names]
        if records[0] is None or not all(_done(r) for r in records):
            break
        state = milestone
    return state


@dataclass
class Toolchain:
    """The collaborators a build talks to. Tests swap in their own."""

    reference: ReferenceDocGenerator
    narrative: NarrativeRenderer
    fragments: FragmentGenerator = field(default_factory=FragmentGenerator)
    target: PublishTarget | None = None

    @classmethod
    def from_config(cls, config: BuildConfig) -> Toolchain:
        return cls(
            reference=ReferenceDocAdapter(config.reference),
            narrative=NarrativeRendererAdapter(config.narrative),
            fragments=FragmentGenerator(),
        )

    def publish_target(self, config: BuildConfig) -> PublishTarget:
        if self.target is None:
            self.target = create_target(config.publish)
        return self.target


def create_context(config: BuildConfig, run_id: str | None = None) -> BuildContext:
    """Build the immutable context shared by every stage."""
    modules = collect_modules(config)
    fragments = tuple(FragmentSpec.from_config(f) for f in config.fragments)
    return BuildContext(
        config=config,
        modules=modules,
        fragments=fragments,
        doc_version=config.doc_version,
        run_id=run_id or uuid.uuid4().hex[:12],
    )


def reference_title(config: BuildConfig) -> str:
    return config.reference.title or f"{config.project_name} {config.project_version} API"


# ── Stage actions ────────────────────────────────────────────────


def _collect(ctx: BuildContext):
    return verify_modules(ctx.modules)


def build_stages(toolchain: Toolchain) -> list[Stage]:
    """The stage graph, wired to ``toolchain``."""

    def generate_fragments(ctx: BuildContext):
        return toolchain.fragments.generate(ctx.fragments)

    def render_reference(ctx: BuildContext):
        cfg = ctx.config
        return toolchain.reference.generate(
            ctx.modules,
            cfg.reference_output_dir,
            title=reference_title(cfg),
            header=cfg.reference.header,
            link_values=cfg.link_substitutions(),
        )

    def render_narrative(backend: str, output_dir_of):
        def action(ctx: BuildContext):
            cfg = ctx.config
            output_dir = output_dir_of(cfg)
            attributes = build_attributes(cfg, ctx.fragments, output_dir)
            return toolchain.narrative.render(
                backend,
                cfg.narrative.source_dir,
                output_dir,
                attributes,
                required_files=included_files(attributes, cfg.narrative.source_dir),
            )

        return action

    def stage_docs(ctx: BuildContext) -> StagedTree:
        return StagingAssembler(ctx.config).stage()

    def publish_docs(ctx: BuildContext) -> PublishOutcome:
        cfg = ctx.config
        staged = StagingAssembler(cfg).staged_tree()
        coordinator = PublishCoordinator(toolchain.publish_target(cfg), prefix=cfg.publish.prefix)
        message = cfg.publish.commit_message.format(
            project=cfg.project_name, version=ctx.doc_version
        )
        return coordinator.publish(staged, replace_current=cfg.replace_current, message=message)

    return [
        Stage(
            name=COLLECT,
            action=_collect,
            description="Verify module artefacts and sources exist",
        ),
        Stage(
            name=GENERATE_FRAGMENTS,
            action=generate_fragments,
            depends_on=(COLLECT,),
            description="Run auxiliary programs into include fragments",
        ),
        Stage(
            name=RENDER_REFERENCE,
            action=render_reference,
            depends_on=(GENERATE_FRAGMENTS,),
            description="Generate the API reference tree",
            inputs=_reference_inputs,
            outputs=lambda ctx: [ctx.config.reference_output_dir],
            cache_salt=_reference_salt,
        ),
        Stage(
            name=RENDER_NARRATIVE_HTML,
            action=render_narrative(HTML, lambda cfg: cfg.html_output_dir),
            depends_on=(GENERATE_FRAGMENTS,),
            description="Render the user guide as HTML",
            inputs=_narrative_inputs,
            outputs=lambda ctx: [ctx.config.html_output_dir],
            cache_salt=_narrative_salt(HTML, lambda cfg: cfg.html_output_dir),
        ),
        Stage(
            name=RENDER_NARRATIVE_PDF,
            action=render_narrative(PDF, lambda cfg: cfg.pdf_output_dir),
            depends_on=(GENERATE_FRAGMENTS,),
            description="Render the user guide as PDF",
            enabled=lambda ctx: ctx.config.pdf_output_enabled,
            inputs=_narrative_inputs,
            outputs=lambda ctx: [ctx.config.pdf_output_dir],
            cache_salt=_narrative_salt(PDF, lambda cfg: cfg.pdf_output_dir),
        ),
        Stage(
            name=STAGE_DOCS,
            action=stage_docs,
            depends_on=(RENDER_REFERENCE, RENDER_NARRATIVE_HTML, RENDER_NARRATIVE_PDF),
            description="Assemble the version-addressed site tree",
        ),
        Stage(
            name=PUBLISH_DOCS,
            action=publish_docs,
            depends_on=(STAGE_DOCS,),
            description="Merge the staged tree into the published site",
        ),
    ]


# ── Cache fingerprints ───────────────────────────────────────────


def _reference_inputs(ctx: BuildContext) -> list[Path]:
    paths: list[Path] = []
    for module in ctx.documented_modules:
        paths += [module.artifact_path, *module.source_dirs, *module.classpath]
    if ctx.config.reference.stylesheet is not None:
        paths.append(ctx.config.reference.stylesheet)
    return paths


def _reference_salt(ctx: BuildContext) -> str:
    cfg = ctx.config
    return json.dumps(
        {
            "tool": cfg.reference.model_dump(mode="json"),
            "title": reference_title(cfg),
            "links": cfg.link_substitutions(),
            "modules": [m.name for m in ctx.documented_modules],
        },
        sort_keys=True,
    )


def _narrative_inputs(ctx: BuildContext) -> list[Path]:
    cfg = ctx.config
    attributes = build_attributes(cfg, ctx.fragments, cfg.html_output_dir)
    return [cfg.narrative.source_dir, *included_files(attributes, cfg.narrative.source_dir)]


def _narrative_salt(backend: str, output_dir_of):
    def salt(ctx: BuildContext) -> str:
        cfg = ctx.config
        attributes = build_attributes(cfg, ctx.fragments, output_dir_of(cfg))
        return json.dumps(
            {
                "backend": backend,
                "tool": cfg.narrative.model_dump(mode="json"),
                "attributes": attributes,
            },
            sort_keys=True,
        )

    return salt


# ── Entry point ──────────────────────────────────────────────────


def targets_for(names: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(names))


def run_pipeline(
    config: BuildConfig,
    targets: Sequence[str] | None = None,
    *,
    toolchain: Toolchain | None = None,
    use_cache: bool = True,
    run_id: str | None = None,
) -> RunResult:
    """Run ``targets`` (default: the whole build including publish).

    Raises:
        StageFailedError: A stage failed; nothing downstream of it ran.
        PlanError: ``targets`` names an unknown stage.
    """
    toolchain = toolchain or Toolchain.from_config(config)
    context = create_context(config, run_id)
    cache = None
    if use_cache and config.cache_enabled:
        cache = StageCache(config.build_dir / CACHE_FILE_NAME)

    logger.info(
        "pipeline.start",
        run_id=context.run_id,
        project=config.project_name,
        version=config.project_version,
        doc_version=context.doc_version,
        targets=list(targets) if targets else None,
        pdf=config.pdf_output_enabled,
    )
    runner = StageRunner(max_workers=config.max_workers, cache=cache)
    result = runner.run(build_stages(toolchain), context, targets_for(targets) if targets else None)
    logger.info("pipeline.finished", run_id=context.run_id, state=reached_state(result).value)
    return result


__all__ = [
    "COLLECT",
    "GENERATE_FRAGMENTS",
    "NARRATIVE_VARIANTS",
    "PUBLISH_DOCS",
    "RENDER_NARRATIVE_HTML",
    "RENDER_NARRATIVE_PDF",
    "RENDER_REFERENCE",
    "STAGE_DOCS",
    "PipelineState",
    "Toolchain",
    "build_stages",
    "create_context",
    "reached_state",
    "run_pipeline",
]
