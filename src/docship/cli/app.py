"""
Root Typer application for the docship CLI.

Options shared by every command go before the command name::

    docship -c docship.yaml --version 5.4.0 --replace-current build
    docship --json plan stage-docs
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import typer
from typer import Typer

from docship.cli.utils import console, fail, output_json, output_run
from docship.config import BuildConfig, DocshipSettings, load_config
from docship.core.errors import DocshipError, StageFailedError
from docship.core.logging import configure_logging
from docship.orchestration import PlanResolver
from docship.pipeline import (
    GENERATE_FRAGMENTS,
    NARRATIVE_VARIANTS,
    PUBLISH_DOCS,
    RENDER_REFERENCE,
    STAGE_DOCS,
    Toolchain,
    build_stages,
    create_context,
    reached_state,
    run_pipeline,
)

app = Typer(
    name="docship",
    help="docship: build, stage and publish versioned project documentation.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@dataclass
class CliState:
    """Options given before the command name."""

    config_path: Path | None = None
    overrides: dict[str, Any] = field(default_factory=dict)
    as_json: bool = False
    use_cache: bool = True
    settings: DocshipSettings = field(default_factory=DocshipSettings)

    def load(self) -> BuildConfig:
        try:
            return load_config(self.config_path, overrides=self.overrides, settings=self.settings)
        except DocshipError as exc:
            raise fail(exc, as_json=self.as_json) from exc


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Build configuration file (default: docship.yaml)."
    ),
    version: str | None = typer.Option(
        None, "--version", help="Project version to document (overrides the config file)."
    ),
    replace_current: bool = typer.Option(
        False, "--replace-current", help="Also overwrite docs/current when publishing."
    ),
    no_pdf: bool = typer.Option(False, "--no-pdf", help="Skip the PDF rendition."),
    no_cache: bool = typer.Option(False, "--no-cache", help="Re-run every stage."),
    json_out: bool = typer.Option(False, "--json", help="Machine-readable output."),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR."),
    log_format: str | None = typer.Option(None, "--log-format", help="console or json."),
) -> None:
    """docship: documentation build orchestrator."""
    settings = DocshipSettings()
    configure_logging(
        level=log_level or settings.log_level,
        format=log_format or settings.log_format,
        force=True,
    )
    overrides: dict[str, Any] = {"project_version": version}
    if replace_current:
        overrides["replace_current"] = True
    if no_pdf:
        overrides["pdf_enabled"] = False
    ctx.obj = CliState(
        config_path=config,
        overrides=overrides,
        as_json=json_out,
        use_cache=not no_cache,
        settings=settings,
    )


def _run(ctx: typer.Context, targets: Sequence[str]) -> None:
    state: CliState = ctx.obj
    config = state.load()
    try:
        result = run_pipeline(config, targets, use_cache=state.use_cache)
    except StageFailedError as exc:
        if exc.run_result is not None and not state.as_json:
            output_run(exc.run_result, state=reached_state(exc.run_result).value)
        raise fail(exc, as_json=state.as_json) from exc
    except DocshipError as exc:
        raise fail(exc, as_json=state.as_json) from exc
    output_run(result, as_json=state.as_json, state=reached_state(result).value)


# ── Build targets ────────────────────────────────────────────────────────


@app.command("generate-fragments")
def generate_fragments(ctx: typer.Context) -> None:
    """Run the auxiliary programs and capture their output as include fragments."""
    _run(ctx, [GENERATE_FRAGMENTS])


@app.command("render-reference-docs")
def render_reference_docs(ctx: typer.Context) -> None:
    """Generate the API reference tree."""
    _run(ctx, [RENDER_REFERENCE])


@app.command("render-narrative-docs")
def render_narrative_docs(
    ctx: typer.Context,
    variant: str = typer.Option("all", "--variant", help="html, pdf or all."),
) -> None:
    """Render the user guide (HTML, PDF or both)."""
    if variant not in NARRATIVE_VARIANTS:
        console.print(f"[red]Unknown variant:[/red] {variant} (choose html, pdf or all)")
        raise typer.Exit(code=2)
    _run(ctx, list(NARRATIVE_VARIANTS[variant]))


@app.command("stage-docs")
def stage_docs(ctx: typer.Context) -> None:
    """Assemble the version-addressed site tree."""
    _run(ctx, [STAGE_DOCS])


@app.command("publish-docs")
def publish_docs(ctx: typer.Context) -> None:
    """Merge the staged tree into the published site."""
    _run(ctx, [PUBLISH_DOCS])


@app.command("build")
def build(
    ctx: typer.Context,
    skip_publish: bool = typer.Option(False, "--skip-publish", help="Stop after staging."),
) -> None:
    """Run the whole pipeline."""
    _run(ctx, [STAGE_DOCS] if skip_publish else [PUBLISH_DOCS])


@app.command("plan")
def plan(
    ctx: typer.Context,
    targets: list[str] | None = typer.Argument(None, help="Stages to plan for (default: all)."),
) -> None:
    """Show the stages a target runs, in execution order."""
    state: CliState = ctx.obj
    config = state.load()
    stages = build_stages(Toolchain.from_config(config))
    try:
        ordered = PlanResolver().resolve(stages, targets or None)
    except DocshipError as exc:
        raise fail(exc, as_json=state.as_json) from exc

    context = create_context(config)
    rows = [
        {
            "stage": s.name,
            "depends_on": list(s.depends_on),
            "enabled": s.is_enabled(context),
            "description": s.description,
        }
        for s in ordered
    ]
    if state.as_json:
        output_json(rows)
        return

    from rich.table import Table

    table = Table(title=f"Plan ({config.doc_version})")
    table.add_column("#", justify="right")
    table.add_column("Stage")
    table.add_column("Depends on")
    table.add_column("Enabled")
    table.add_column("Description")
    for i, row in enumerate(rows, 1):
        table.add_row(
            str(i),
            row["stage"],
            ", ".join(row["depends_on"]) or "-",
            "yes" if row["enabled"] else "no",
            row["description"],
        )
    console.print(table)


# ── Sub-command registration ─────────────────────────────────────────────

from docship.cli.config import app as config_app  # noqa: E402

app.add_typer(config_app, name="config", help="Configuration inspection.")
