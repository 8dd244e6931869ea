# Copyright (c) Syntropy Systems
"""Tests for JSON and CSV export."""

from __future__ import annotations

import csv
import json
from pathlib import Path

import pytest

from weightbench.analysis import RegressionAnalyzer
from weightbench.models import Metric, RawSample, SampleSet, TrialConfig
from weightbench.serialize import (
    dumps_results,
    loads_bundle,
    read_results,
    write_results,
    write_samples_csv,
)


def collected(spec) -> SampleSet:
    samples = SampleSet(spec=spec)
    for n in (0, 0, 5, 5, 10, 10):
        samples.append(RawSample(assignment={"n": n}, elapsed_time=10 + 2 * n, reads=n))
    samples.append(RawSample.failed({"n": 10}, "TrialTimeout: trial timed out after 1.0s"))
    samples.freeze()
    return samples


class TestJson:
    """Tests for the results bundle."""

    def test_round_trip_is_byte_identical(self, linear_spec) -> None:
        samples = collected(linear_spec)
        result = RegressionAnalyzer().analyze_all(samples)
        trial = TrialConfig(steps=3, repeats=2)

        text = dumps_results([result], [samples], trial)
        bundle = loads_bundle(text)

        assert bundle.results == [result]
        assert bundle.trial == trial
        assert (
            dumps_results(
                bundle.results,
                [SampleSet(spec=linear_spec, samples=bundle.samples[linear_spec.key])],
                bundle.trial,
            )
            == text
        )

    def test_metric_keys_are_names(self, linear_spec) -> None:
        result = RegressionAnalyzer().analyze_all(collected(linear_spec))

        data = json.loads(dumps_results([result]))

        models = data["results"][0]["models"]
        assert sorted(models) == ["proof_size", "reads", "time", "writes"]
        assert models["time"]["per_component"]["n"] == pytest.approx(2.0)
        assert data["format_version"] == 1

    def test_failed_samples_kept(self, linear_spec, temp_dir: Path) -> None:
        samples = collected(linear_spec)
        result = RegressionAnalyzer().analyze_all(samples)
        path = temp_dir / "nested" / "results.json"

        write_results(path, [result], [samples])
        bundle = read_results(path)

        raw = bundle.samples["demo::linear"]
        assert len(raw) == 7
        assert not raw[-1].succeeded
        assert raw[-1].error == "TrialTimeout: trial timed out after 1.0s"
        assert bundle.results[0].models[Metric.READS].per_component["n"] == pytest.approx(1.0)

    def test_results_sorted(self, linear_spec) -> None:
        samples = collected(linear_spec)
        result = RegressionAnalyzer().analyze_all(samples)
        other = result.model_copy(
            update={"spec": linear_spec.model_copy(update={"module": "alpha"})}
        )

        bundle = loads_bundle(dumps_results([result, other]))

        assert [r.spec.module for r in bundle.results] == ["alpha", "demo"]


class TestCsv:
    """Tests for raw sample CSV export."""

    def test_rows_and_columns(self, linear_spec, temp_dir: Path) -> None:
        path = temp_dir / "samples.csv"

        rows = write_samples_csv(path, [collected(linear_spec)])

        assert rows == 7
        with path.open() as f:
            records = list(csv.DictReader(f))
        assert len(records) == 7
        assert records[2]["component.n"] == "5"
        assert records[2]["elapsed_time"] == "20"
        assert records[6]["succeeded"] == "False"
        assert records[6]["error"].startswith("TrialTimeout")
        assert records[0]["error"] == ""
