# Copyright (c) Syntropy Systems
"""Machine-readable export of fitted results and raw samples."""
from __future__ import annotations

import csv
from typing import TYPE_CHECKING

from weightbench.models import OperationResult, ResultBundle, SampleSet

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from weightbench.models import TrialConfig

CSV_FIELDS = [
    "module",
    "operation",
    "trial",
    "elapsed_time",
    "reads",
    "writes",
    "proof_size",
    "succeeded",
    "error",
]


def build_bundle(
    results: Iterable[OperationResult],
    sample_sets: Iterable[SampleSet] = (),
    trial: TrialConfig | None = None,
) -> ResultBundle:
    """Collect results (and optionally raw samples) in a stable order."""
    ordered = sorted(results, key=lambda r: (r.spec.module, r.spec.name))
    samples = {
        s.spec.key: list(s.samples)
        for s in sorted(sample_sets, key=lambda s: (s.spec.module, s.spec.name))
    }
    return ResultBundle(trial=trial, results=ordered, samples=samples)


def dumps_bundle(bundle: ResultBundle) -> str:
    """Serialize a bundle to JSON text."""
    return bundle.model_dump_json(indent=2) + "\n"


def loads_bundle(text: str) -> ResultBundle:
    """Parse JSON text produced by ``dumps_bundle``."""
    return ResultBundle.model_validate_json(text)


def dumps_results(
    results: Iterable[OperationResult],
    sample_sets: Iterable[SampleSet] = (),
    trial: TrialConfig | None = None,
) -> str:
    """Serialize results to JSON text."""
    return dumps_bundle(build_bundle(results, sample_sets, trial))


def write_results(
    path: Path,
    results: Iterable[OperationResult],
    sample_sets: Iterable[SampleSet] = (),
    trial: TrialConfig | None = None,
) -> None:
    """Write results (and raw samples) as JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    _ = path.write_text(dumps_results(results, sample_sets, trial))


def read_results(path: Path) -> ResultBundle:
    """Read a JSON file written by ``write_results``."""
    return loads_bundle(path.read_text())


def write_samples_csv(path: Path, sample_sets: Iterable[SampleSet]) -> int:
    """Flatten raw samples to CSV, one column per component.

    Returns the number of rows written.
    """
    ordered = sorted(sample_sets, key=lambda s: (s.spec.module, s.spec.name))

    # Collect all component names
    component_keys: set[str] = set()
    for sample_set in ordered:
        component_keys.update(sample_set.spec.component_names)
    fieldnames = CSV_FIELDS + [f"component.{k}" for k in sorted(component_keys)]

    rows = 0
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames, extrasaction="ignore")
        writer.writeheader()
        for sample_set in ordered:
            for index, sample in enumerate(sample_set.samples):
                row: dict[str, str | int | bool | None] = {
                    "module": sample_set.spec.module,
                    "operation": sample_set.spec.name,
                    "trial": index,
                    "elapsed_time": sample.elapsed_time,
                    "reads": sample.reads,
                    "writes": sample.writes,
                    "proof_size": sample.proof_size,
                    "succeeded": sample.succeeded,
                    "error": sample.error,
                }
                for k, v in sample.assignment.items():
                    row[f"component.{k}"] = v
                writer.writerow(row)
                rows += 1
    return rows
