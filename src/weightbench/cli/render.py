# Copyright (c) Syntropy Systems
"""weightbench render command."""
from __future__ import annotations

from pathlib import Path

import typer
from jinja2 import TemplateError
from pydantic import ValidationError

from weightbench.cli.common import console, load_config_or_exit
from weightbench.errors import RenderingInconsistency
from weightbench.models import TrialConfig
from weightbench.render import ModelRenderer
from weightbench.serialize import read_results


def render(
    results_file: Path = typer.Argument(
        ...,
        help="Results JSON written by 'weightbench run --raw'",
        exists=True,
        dir_okay=False,
    ),
    output: Path = typer.Option(
        ..., "--output", "-O", help="Directory for generated weight files", file_okay=False
    ),
    template: Path | None = typer.Option(
        None, "--template", "-t", help="Custom Jinja2 template", exists=True, dir_okay=False
    ),
    header: Path | None = typer.Option(
        None, "--header", help="File prepended to generated sources", exists=True, dir_okay=False
    ),
    time_scale: int | None = typer.Option(
        None, "--time-scale", min=1, help="Multiplier applied to nanosecond time coefficients"
    ),
    clamp_negative: bool = typer.Option(
        False, "--clamp-negative", help="Render negative coefficients as zero"
    ),
    config_file: Path | None = typer.Option(
        None, "--config", "-c", help="Config file (default: nearest weightbench.yaml)"
    ),
) -> None:
    """Regenerate weight files from saved results without re-benchmarking."""
    config = load_config_or_exit(
        config_file,
        time_scale=time_scale,
        negative_policy="clamp" if clamp_negative else None,
    )

    try:
        bundle = read_results(results_file)
    except (OSError, ValidationError) as e:
        console.print(f"[red]Error reading results:[/red] {e}")
        raise typer.Exit(1) from e

    if not bundle.results:
        console.print("[yellow]No results to render[/yellow]")
        raise typer.Exit(1)

    try:
        renderer = ModelRenderer(
            template=template,
            time_scale=config.time_scale,
            negative_policy="clamp" if config.negative_policy == "clamp" else "keep",
            header=header.read_text() if header else None,
        )
    except (OSError, TemplateError) as e:
        console.print(f"[red]Error loading template:[/red] {e}")
        raise typer.Exit(1) from e

    try:
        paths = renderer.write(output, bundle.results, bundle.trial or TrialConfig())
    except RenderingInconsistency as e:
        console.print(f"[red]Rendering failed:[/red] {e}")
        raise typer.Exit(1) from e

    for path in paths:
        console.print(f"[green]Generated[/green] {path}")
