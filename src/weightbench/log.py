# Copyright (c) Syntropy Systems
"""Logging setup for the weightbench command line."""
from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "weightbench"


def setup_logging(verbose: bool = False, console: Console | None = None) -> logging.Logger:
    """Route ``weightbench.*`` loggers to a rich handler on stderr.

    Safe to call more than once; the handler is replaced, not duplicated.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    for handler in list(logger.handlers):
        if getattr(handler, "_weightbench", False):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        show_time=verbose,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler._weightbench = True  # type: ignore[attr-defined]  # noqa: SLF001
    logger.addHandler(handler)
    logger.propagate = False
    return logger
