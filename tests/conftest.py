# Copyright (c) Syntropy Systems
"""Pytest fixtures for weightbench tests."""

import os
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from weightbench.models import Component, OperationSpec, TrialConfig
from weightbench.testing import CountingStorage, ManualClock

# Store original cwd at module load time
_original_cwd = Path.cwd()

DEMO_DECLARATIONS = """\
sandbox: weightbench.testing:demo_sandbox
modules:
  demo:
    write_items:
      components:
        - {name: n, min: 0, max: 20}
    read_items:
      components:
        - {name: n, min: 0, max: 20}
    read_write:
      components:
        - {name: r, min: 0, max: 10}
        - {name: w, min: 0, max: 10}
    noop:
      extra: true
"""


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def bench_project(temp_dir: Path) -> Generator[Path, None, None]:
    """Temporary project with demo declarations, cwd set to it."""
    (temp_dir / "benchmarks.yaml").write_text(DEMO_DECLARATIONS)
    os.chdir(temp_dir)

    yield temp_dir

    # Always return to original cwd
    os.chdir(_original_cwd)


@pytest.fixture
def clock() -> ManualClock:
    """Clock that only moves when an operation body advances it."""
    return ManualClock()


@pytest.fixture
def linear_spec() -> OperationSpec:
    """Operation with a single component n in [0, 10]."""
    return OperationSpec(
        module="demo",
        name="linear",
        components=(Component(name="n", min=0, max=10),),
    )


@pytest.fixture
def small_trial() -> TrialConfig:
    """Three points per component, two repeats each."""
    return TrialConfig(steps=3, repeats=2)


def linear_body(clock: ManualClock, base: int = 10, slope: int = 2):
    """Operation body costing ``base + slope * n`` ns and n reads."""

    def body(storage: CountingStorage, assignment: dict[str, int]) -> None:
        n = assignment["n"]
        for i in range(n):
            _ = storage.get(f"key:{i}")
        clock.advance(base + slope * n)

    return body
