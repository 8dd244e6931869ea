# Copyright (c) Syntropy Systems
"""Sample collection for one operation at a time."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Protocol

from weightbench.errors import EmptySampleSet, ExcessiveDiscardRate
from weightbench.models import RawSample, SampleSet, format_assignment
from weightbench.planner import SweepPlan

if TYPE_CHECKING:
    from weightbench.models import ComponentAssignment, OperationSpec, TrialConfig

logger = logging.getLogger(__name__)

TrialCallback = Callable[[int, int, RawSample], None]


class TrialExecutor(Protocol):
    def execute(self, spec: OperationSpec, assignment: ComponentAssignment) -> RawSample:
        ...


class SampleCollector:
    """Drives the sweep plan through an executor and gathers samples."""

    def __init__(
        self,
        executor: TrialExecutor,
        max_discard_fraction: float = 0.1,
    ) -> None:
        if not 0.0 <= max_discard_fraction <= 1.0:
            msg = f"max_discard_fraction must be within [0, 1], got {max_discard_fraction}"
            raise ValueError(msg)
        self.executor = executor
        self.max_discard_fraction = max_discard_fraction

    def collect(
        self,
        spec: OperationSpec,
        trial: TrialConfig,
        on_trial: TrialCallback | None = None,
    ) -> SampleSet:
        """Run every planned trial of ``spec`` and return the frozen sample set.

        Raises EmptySampleSet when nothing usable was measured and
        ExcessiveDiscardRate when too many trials failed.
        """
        plan = SweepPlan(spec, trial)
        total = len(plan)
        samples = SampleSet(spec=spec)
        first_failure: ComponentAssignment | None = None

        for index, assignment in plan.trials():
            sample = self.executor.execute(spec, assignment)
            samples.append(sample)
            if not sample.succeeded:
                if first_failure is None:
                    first_failure = sample.assignment
                logger.warning(
                    "%s trial %d failed at %s: %s",
                    spec.key,
                    index,
                    format_assignment(sample.assignment),
                    sample.error,
                )
            if on_trial is not None:
                on_trial(index, total, sample)

        samples.freeze()
        self._check(samples, first_failure)
        return samples

    def _check(self, samples: SampleSet, first_failure: ComponentAssignment | None) -> None:
        spec = samples.spec
        if len(samples) == 0:
            raise EmptySampleSet(spec.module, spec.name, "no trials were executed")
        discarded = samples.discarded_count
        fraction = discarded / len(samples)
        if fraction > self.max_discard_fraction:
            raise ExcessiveDiscardRate(
                spec.module,
                spec.name,
                (
                    f"{discarded}/{len(samples)} trials failed "
                    f"({fraction:.0%} > {self.max_discard_fraction:.0%})"
                ),
                first_failure,
            )
        if not samples.succeeded:
            raise EmptySampleSet(
                spec.module,
                spec.name,
                f"all {len(samples)} trials failed",
                first_failure,
            )
