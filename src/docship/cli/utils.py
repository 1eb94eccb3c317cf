"""
CLI utility helpers: output formatting and error reporting.
"""

from __future__ import annotations

import json
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from docship.core.errors import DocshipError, ExecutionError, StageFailedError
from docship.orchestration import RunResult

console = Console()
err_console = Console(stderr=True)

_STATUS_STYLE = {
    "completed": "green",
    "cached": "cyan",
    "skipped": "yellow",
    "failed": "bold red",
    "pending": "dim",
}


# ── Output helpers ───────────────────────────────────────────────────────


def output_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def output_run(result: RunResult, *, as_json: bool = False, state: str | None = None) -> None:
    """Render a run as a table of stages (or JSON)."""
    if as_json:
        payload = result.to_dict()
        if state is not None:
            payload["state"] = state
        output_json(payload)
        return

    table = Table(title=f"Run {result.run_id}", show_lines=False, pad_edge=False)
    table.add_column("Stage")
    table.add_column("Status")
    table.add_column("Seconds", justify="right")
    table.add_column("Note", overflow="fold")
    for record in result.stages:
        style = _STATUS_STYLE.get(record.status.value, "")
        seconds = f"{record.duration_seconds:.2f}" if record.duration_seconds is not None else "-"
        table.add_row(
            record.stage,
            f"[{style}]{record.status.value}[/{style}]" if style else record.status.value,
            seconds,
            record.reason or record.error or "",
        )
    console.print(table)
    if state is not None:
        console.print(f"[bold]State:[/bold] {state}")


def print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}", highlight=False)


# ── Error reporting ──────────────────────────────────────────────────────


def fail(exc: DocshipError, *, as_json: bool = False) -> typer.Exit:
    """Report ``exc`` and return the exit to raise.

    A failed stage is named first; an external tool's stderr follows
    verbatim, unformatted.
    """
    root: BaseException = exc
    if isinstance(exc, StageFailedError) and exc.cause is not None:
        root = exc.cause

    if as_json:
        payload = exc.to_dict()
        if isinstance(root, DocshipError) and root is not exc:
            payload["cause_detail"] = root.to_dict()
        output_json(payload)
        return typer.Exit(code=1)

    label = type(root).__name__
    if isinstance(exc, StageFailedError):
        err_console.print(f"[bold red]Stage failed:[/bold red] {exc.stage}", highlight=False)
    err_console.print(f"[bold red]{label}:[/bold red] ", end="", highlight=False)
    typer.echo(str(root), err=True)
    if isinstance(root, ExecutionError) and root.stderr:
        typer.echo(root.stderr, err=True, nl=not root.stderr.endswith("\n"))
    return typer.Exit(code=1)
