# Copyright (c) Syntropy Systems
"""weightbench run command."""
from __future__ import annotations

import signal
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from jinja2 import TemplateError
from rich.markup import escape
from rich.table import Table

from weightbench.cli.common import (
    console,
    describe_model,
    flag,
    load_config_or_exit,
    load_declarations_or_exit,
)
from weightbench.errors import DeclarationError, RenderingInconsistency
from weightbench.log import setup_logging
from weightbench.models import Metric, OperationFailure, OperationResult
from weightbench.pool import BenchmarkRun, RunReport, WorkerPool
from weightbench.render import ModelRenderer
from weightbench.serialize import write_results, write_samples_csv

if TYPE_CHECKING:
    from types import FrameType

    from weightbench.models import OperationSpec


def _print_report(report: RunReport) -> None:
    if report.results:
        table = Table(title="Fitted models")
        table.add_column("Operation")
        table.add_column("Samples", justify="right")
        table.add_column("Discarded", justify="right")
        table.add_column("Time (ns)")
        table.add_column("Reads")
        table.add_column("Writes")
        table.add_column("Proof size")

        for result in sorted(report.results, key=lambda r: r.spec.key):
            table.add_row(
                result.spec.key,
                str(result.sample_count),
                str(result.discarded_count),
                describe_model(result.models[Metric.TIME]),
                describe_model(result.models[Metric.READS]),
                describe_model(result.models[Metric.WRITES]),
                describe_model(result.models[Metric.PROOF_SIZE]),
            )
        console.print(table)

    for failure in report.failures:
        console.print(f"[red]Failed ({failure.kind}):[/red] {escape(failure.message)}")

    if report.skipped:
        names = ", ".join(spec.key for spec in report.skipped)
        console.print(f"[yellow]Not run:[/yellow] {names}")


def run(
    declarations: Path = typer.Argument(
        ...,
        help="Path to the operation declarations YAML file",
        exists=True,
        dir_okay=False,
    ),
    module: list[str] | None = typer.Option(
        None, "--module", "-m", help="Module(s) to benchmark, wildcards allowed"
    ),
    operation: list[str] | None = typer.Option(
        None, "--operation", "-o", help="Operation(s) to benchmark, wildcards allowed"
    ),
    steps: int | None = typer.Option(
        None, "--steps", "-s", min=1, help="Points sampled per component range"
    ),
    repeats: int | None = typer.Option(
        None, "--repeats", "-r", min=1, help="Trials per sampled point"
    ),
    lowest_range_only: bool = typer.Option(
        False, "--lowest-range-only", help="Pin other components at their minimum"
    ),
    highest_range_only: bool = typer.Option(
        False, "--highest-range-only", help="Pin other components at their maximum"
    ),
    extra: bool = typer.Option(False, "--extra", help="Include operations marked extra"),
    output: Path | None = typer.Option(
        None, "--output", "-O", help="Directory for generated weight files", file_okay=False
    ),
    raw: Path | None = typer.Option(
        None, "--raw", help="Write fitted results and raw samples as JSON"
    ),
    raw_csv: Path | None = typer.Option(
        None, "--raw-csv", help="Write raw samples as CSV"
    ),
    template: Path | None = typer.Option(
        None, "--template", "-t", help="Custom Jinja2 template", exists=True, dir_okay=False
    ),
    header: Path | None = typer.Option(
        None, "--header", help="File prepended to generated sources", exists=True, dir_okay=False
    ),
    concurrency: int | None = typer.Option(
        None, "--concurrency", "-j", min=1, help="Operations benchmarked in parallel"
    ),
    timeout: float | None = typer.Option(
        None, "--timeout", help="Per-trial timeout in seconds"
    ),
    trim: float | None = typer.Option(
        None, "--trim", help="Fraction of group medians trimmed from each end"
    ),
    max_discard: float | None = typer.Option(
        None, "--max-discard", help="Tolerated fraction of failed trials"
    ),
    clamp_negative: bool = typer.Option(
        False, "--clamp-negative", help="Render negative coefficients as zero"
    ),
    verify: bool = typer.Option(False, "--verify", help="Run verify step after each trial"),
    config_file: Path | None = typer.Option(
        None, "--config", "-c", help="Config file (default: nearest weightbench.yaml)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Benchmark operations and generate weight files.

    Examples:
        weightbench run benchmarks.yaml --steps 20 --repeats 5 -O weights/
        weightbench run benchmarks.yaml -m balances -o 'transfer*' --raw out.json

    """
    _ = setup_logging(verbose)

    config = load_config_or_exit(
        config_file,
        steps=steps,
        repeats=repeats,
        lowest_range_only=flag(lowest_range_only),
        highest_range_only=flag(highest_range_only),
        concurrency=concurrency,
        trial_timeout=timeout,
        trim_fraction=trim,
        max_discard_fraction=max_discard,
        negative_policy="clamp" if clamp_negative else None,
        verify=flag(verify),
    )
    decls = load_declarations_or_exit(declarations)

    selected = decls.select(module, operation, include_extra=extra)
    if not selected:
        console.print("[yellow]No operations match the selection[/yellow]")
        raise typer.Exit(1)

    try:
        factory = decls.sandbox_factory()
    except DeclarationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    # Fail on template problems before spending time benchmarking
    renderer: ModelRenderer | None = None
    if output is not None:
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

    trial = config.trial
    console.print(
        f"[bold]Benchmarking {len(selected)} operation(s)[/bold] "
        f"[dim](steps={trial.steps}, repeats={trial.repeats}, "
        f"workers={min(config.concurrency, len(selected))})[/dim]"
    )

    def on_event(
        event: str,
        spec: OperationSpec,
        detail: OperationResult | OperationFailure | None,
    ) -> None:
        if event == "start":
            console.print(f"[blue]Running[/blue] {spec.key}")
        elif event == "result" and isinstance(detail, OperationResult):
            console.print(
                f"[green]Done[/green] {spec.key} "
                f"[dim]({detail.sample_count} samples, {detail.discarded_count} discarded)[/dim]"
            )

    pool = WorkerPool(
        BenchmarkRun(operations=selected, sandbox_factory=factory, config=config),
        listener=on_event,
    )

    def _signal_handler(signum: int, frame: FrameType | None) -> None:
        console.print("\n[yellow]Cancel requested, finishing current trials...[/yellow]")
        pool.cancel()

    previous = signal.signal(signal.SIGINT, _signal_handler)
    try:
        report = pool.run()
    finally:
        _ = signal.signal(signal.SIGINT, previous)

    _print_report(report)

    if raw is not None:
        write_results(raw, report.results, report.sample_sets, trial)
        console.print(f"[green]Wrote results to {raw}[/green]")
    if raw_csv is not None:
        rows = write_samples_csv(raw_csv, report.sample_sets)
        console.print(f"[green]Wrote {rows} sample(s) to {raw_csv}[/green]")

    if renderer is not None and output is not None and report.results:
        try:
            paths = renderer.write(output, report.results, trial)
        except RenderingInconsistency as e:
            console.print(f"[red]Rendering failed:[/red] {e}")
            raise typer.Exit(1) from e
        for path in paths:
            console.print(f"[green]Generated[/green] {path}")

    if report.cancelled:
        console.print("[yellow]Run cancelled, results are partial[/yellow]")
        raise typer.Exit(1)
    if not report.ok:
        console.print(f"[red]{len(report.failures)} operation(s) failed[/red]")
        raise typer.Exit(1)
