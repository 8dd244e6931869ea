# Copyright (c) Syntropy Systems
"""weightbench list command."""
from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from weightbench.cli.common import console, load_declarations_or_exit


def list_operations(
    declarations: Path = typer.Argument(
        ...,
        help="Path to the operation declarations YAML file",
        exists=True,
        dir_okay=False,
    ),
    module: list[str] | None = typer.Option(
        None, "--module", "-m", help="Only list these modules, wildcards allowed"
    ),
    operation: list[str] | None = typer.Option(
        None, "--operation", "-o", help="Only list these operations, wildcards allowed"
    ),
    extra: bool = typer.Option(False, "--extra", help="Include operations marked extra"),
) -> None:
    """List declared operations and their component ranges."""
    decls = load_declarations_or_exit(declarations)
    selected = decls.select(module, operation, include_extra=extra)

    if not selected:
        console.print("[dim]No operations found[/dim]")
        return

    table = Table(title=f"Operations ({decls.sandbox or 'no sandbox'})")
    table.add_column("Module", style="cyan")
    table.add_column("Operation")
    table.add_column("Components")
    table.add_column("Extra", justify="center")

    for spec in selected:
        components = ", ".join(f"{c.name}=[{c.min}, {c.max}]" for c in spec.components)
        table.add_row(
            spec.module,
            spec.name,
            components or "[dim]-[/dim]",
            "yes" if spec.extra else "",
        )

    console.print(table)
    console.print(f"\n[bold]{len(selected)}[/bold] operation(s)")
