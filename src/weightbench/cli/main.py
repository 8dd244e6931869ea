# Copyright (c) Syntropy Systems
"""Main CLI entry point for weightbench."""

import typer

from weightbench.cli.list_cmd import list_operations
from weightbench.cli.plan import plan
from weightbench.cli.render import render
from weightbench.cli.run import run

app = typer.Typer(
    name="weightbench",
    help=(
        "Benchmark runtime operations and turn the measurements into "
        "linear cost formulas."
    ),
    no_args_is_help=True,
    add_completion=False,
)

# Register commands
_ = app.command()(run)
_ = app.command(name="list")(list_operations)
_ = app.command()(plan)
_ = app.command()(render)


if __name__ == "__main__":
    app()
