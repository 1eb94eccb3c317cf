"""
CLI: ``docship config``: configuration inspection.
"""

from __future__ import annotations

import typer
from rich.table import Table

from docship.cli.utils import console, output_json, print_dict

app = typer.Typer(no_args_is_help=True)


@app.command("show")
def show_config(
    ctx: typer.Context,
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
) -> None:
    """Show the resolved configuration (file, then environment, then flags)."""
    state = ctx.obj
    config = state.load()

    derived = {
        "doc_version": config.doc_version,
        "is_prerelease": config.is_prerelease,
        "pdf_output_enabled": config.pdf_output_enabled,
        "generated_dir": str(config.generated_dir),
        "reference_output_dir": str(config.reference_output_dir),
        "html_output_dir": str(config.html_output_dir),
        "pdf_output_dir": str(config.pdf_output_dir),
    }

    if format == "json" or state.as_json:
        output_json({"config": config.model_dump(mode="json"), "derived": derived})
        return

    print_dict(derived, title="Derived")

    console.print("\n[bold]Modules:[/bold]")
    table = Table()
    table.add_column("Name")
    table.add_column("Artifact", overflow="fold")
    table.add_column("Aggregate")
    for module in config.modules:
        table.add_row(module.name, str(module.artifact), "yes" if module.aggregate else "")
    console.print(table)

    if config.fragments:
        console.print("\n[bold]Fragments:[/bold]")
        for fragment in config.fragments:
            console.print(f"  • {fragment.name} → {fragment.output}", highlight=False)

    console.print("\n[bold]Settings:[/bold]")
    for key, value in config.model_dump(
        mode="json", exclude={"modules", "fragments", "reference", "narrative", "publish"}
    ).items():
        console.print(f"  {key}: {value}", highlight=False)
    destination = config.publish.repo_uri if config.publish.target == "git" else config.publish.path
    console.print(f"  publish: {config.publish.target} → {destination}", highlight=False)
