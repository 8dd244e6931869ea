# Copyright (c) Syntropy Systems
"""weightbench plan command."""
from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from weightbench.cli.common import console, flag, load_config_or_exit, load_declarations_or_exit
from weightbench.models import format_assignment
from weightbench.planner import SweepPlan


def plan(
    declarations: Path = typer.Argument(
        ...,
        help="Path to the operation declarations YAML file",
        exists=True,
        dir_okay=False,
    ),
    module: list[str] | None = typer.Option(
        None, "--module", "-m", help="Module(s) to plan, wildcards allowed"
    ),
    operation: list[str] | None = typer.Option(
        None, "--operation", "-o", help="Operation(s) to plan, wildcards allowed"
    ),
    steps: int | None = typer.Option(None, "--steps", "-s", min=1),
    repeats: int | None = typer.Option(None, "--repeats", "-r", min=1),
    lowest_range_only: bool = typer.Option(False, "--lowest-range-only"),
    highest_range_only: bool = typer.Option(False, "--highest-range-only"),
    extra: bool = typer.Option(False, "--extra", help="Include operations marked extra"),
    show_points: bool = typer.Option(
        False, "--points", "-p", help="List every distinct assignment"
    ),
    config_file: Path | None = typer.Option(None, "--config", "-c"),
) -> None:
    """Preview the sweep without running anything."""
    config = load_config_or_exit(
        config_file,
        steps=steps,
        repeats=repeats,
        lowest_range_only=flag(lowest_range_only),
        highest_range_only=flag(highest_range_only),
    )
    decls = load_declarations_or_exit(declarations)
    selected = decls.select(module, operation, include_extra=extra)

    if not selected:
        console.print("[yellow]No operations match the selection[/yellow]")
        raise typer.Exit(1)

    trial = config.trial
    table = Table(title=f"Sweep plan (steps={trial.steps}, repeats={trial.repeats})")
    table.add_column("Operation")
    table.add_column("Points", justify="right")
    table.add_column("Trials", justify="right")

    total = 0
    plans = [SweepPlan(spec, trial) for spec in selected]
    for sweep in plans:
        points = sweep.distinct()
        total += len(sweep)
        table.add_row(sweep.spec.key, str(len(points)), str(len(sweep)))

    console.print(table)
    console.print(f"\n[bold]{total} trials[/bold] across {len(selected)} operation(s)")

    if show_points:
        for sweep in plans:
            console.print(f"\n[cyan]{sweep.spec.key}[/cyan]")
            for assignment in sweep.distinct():
                console.print(f"  {format_assignment(assignment)}")
