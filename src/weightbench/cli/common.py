# Copyright (c) Syntropy Systems
"""Helpers shared by weightbench commands."""
from __future__ import annotations

from typing import TYPE_CHECKING

import typer
from rich.console import Console

from weightbench.config import load_config
from weightbench.declarations import load_declarations
from weightbench.errors import ConfigError, DeclarationError

if TYPE_CHECKING:
    from pathlib import Path

    from weightbench.config import BenchConfig
    from weightbench.declarations import Declarations
    from weightbench.models import CostModel

console = Console()


def load_config_or_exit(config_file: Path | None, **overrides: object) -> BenchConfig:
    """Load configuration and apply CLI overrides, exiting on bad values."""
    try:
        return load_config(config_file).with_overrides(**overrides)
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(1) from e


def load_declarations_or_exit(path: Path) -> Declarations:
    """Load operation declarations, exiting before any work on failure."""
    try:
        return load_declarations(path)
    except DeclarationError as e:
        console.print(f"[red]Error loading declarations:[/red] {e}")
        raise typer.Exit(1) from e


def describe_model(model: CostModel, precision: int = 1) -> str:
    """Human-readable ``base + slope*c`` form of a fitted model."""
    text = f"{model.base:.{precision}f}"
    for name, slope in model.per_component.items():
        if round(slope, precision) == 0.0:
            continue
        sign = "-" if slope < 0 else "+"
        text += f" {sign} {abs(slope):.{precision}f}*{name}"
    if model.has_negative:
        text += " [yellow](neg)[/yellow]"
    return text


def flag(value: bool) -> bool | None:
    """Map an unset boolean CLI flag to None so config values survive."""
    return True if value else None
