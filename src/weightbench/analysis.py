# Copyright (c) Syntropy Systems
"""Regression analysis: fit linear cost models to collected samples.

Samples are grouped by assignment and reduced to the per-group median,
which absorbs one-off spikes (cold caches, page faults) better than a mean.
The medians are then fitted with ordinary least squares against the
component values, one slope per component plus an intercept.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from weightbench.errors import EmptySampleSet, UnderdeterminedModel
from weightbench.models import CostModel, Metric, OperationResult

if TYPE_CHECKING:
    from weightbench.models import ComponentAssignment, SampleSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroupMedian:
    """Median of one metric over the repeats of one assignment."""

    key: tuple[int, ...]
    assignment: ComponentAssignment
    median: float
    count: int


def group_medians(samples: SampleSet, metric: Metric) -> list[GroupMedian]:
    """Reduce succeeded samples to one median per distinct assignment.

    Groups are returned in first-seen order.
    """
    spec = samples.spec
    values: dict[tuple[int, ...], list[int]] = {}
    assignments: dict[tuple[int, ...], ComponentAssignment] = {}
    for sample in samples.succeeded:
        key = spec.assignment_key(sample.assignment)
        if key not in values:
            values[key] = []
            assignments[key] = sample.assignment
        values[key].append(sample.value(metric))

    return [
        GroupMedian(
            key=key,
            assignment=assignments[key],
            median=float(np.median(np.asarray(group, dtype=float))),
            count=len(group),
        )
        for key, group in values.items()
    ]


def trim_outliers(groups: list[GroupMedian], fraction: float) -> list[GroupMedian]:
    """Drop the lowest and highest ``fraction`` of groups by median.

    Ties are broken by assignment so the result does not depend on
    collection order. Survivors keep their original order.
    """
    if fraction <= 0.0 or not groups:
        return list(groups)
    drop = math.floor(len(groups) * fraction)
    if drop == 0:
        return list(groups)
    ranked = sorted(groups, key=lambda g: (g.median, g.key))
    removed = {g.key for g in ranked[:drop]} | {g.key for g in ranked[-drop:]}
    return [g for g in groups if g.key not in removed]


def r_squared(observed: np.ndarray, predicted: np.ndarray) -> float | None:
    """Coefficient of determination, None when observations are constant."""
    residual = float(np.sum((observed - predicted) ** 2))
    total = float(np.sum((observed - observed.mean()) ** 2))
    if total == 0.0:
        return None
    return 1.0 - residual / total


class RegressionAnalyzer:
    """Fits one CostModel per metric with outlier-trimmed least squares."""

    def __init__(self, trim_fraction: float = 0.0) -> None:
        if not 0.0 <= trim_fraction < 0.5:
            msg = f"trim_fraction must be within [0, 0.5), got {trim_fraction}"
            raise ValueError(msg)
        self.trim_fraction = trim_fraction

    def analyze(self, samples: SampleSet, metric: Metric) -> CostModel:
        """Fit ``metric`` against the operation's component values."""
        spec = samples.spec
        groups = group_medians(samples, metric)
        if not groups:
            raise EmptySampleSet(spec.module, spec.name, "no succeeded samples to analyze")

        groups = trim_outliers(groups, self.trim_fraction)
        names = spec.component_names
        free_parameters = 1 + len(names)
        if len(groups) < free_parameters:
            raise UnderdeterminedModel(
                spec.module,
                spec.name,
                (
                    f"{len(groups)} distinct assignment(s) for {free_parameters} "
                    f"free parameters ({metric.value})"
                ),
            )

        # Only components declared with min == max may be constant
        varying = [c.name for c in spec.components if c.min < c.max]
        collapsed = [
            name
            for index, name in enumerate(names)
            if name in varying and len({g.key[index] for g in groups}) < 2
        ]
        if collapsed:
            raise UnderdeterminedModel(
                spec.module,
                spec.name,
                f"components {collapsed} do not vary across the fitted groups ({metric.value})",
            )
        constant = [name for name in names if name not in varying]
        if constant:
            logger.debug("%s: fixed component(s) %s get slope 0", spec.key, constant)

        design = np.ones((len(groups), 1 + len(varying)), dtype=float)
        for row, group in enumerate(groups):
            for column, name in enumerate(varying, start=1):
                design[row, column] = group.assignment[name]
        observed = np.asarray([g.median for g in groups], dtype=float)

        coefficients, _residuals, rank, _singular = np.linalg.lstsq(design, observed, rcond=None)
        if rank < design.shape[1]:
            raise UnderdeterminedModel(
                spec.module,
                spec.name,
                f"components {varying} are linearly dependent ({metric.value})",
            )

        slopes = dict.fromkeys(names, 0.0)
        for column, name in enumerate(varying, start=1):
            slopes[name] = _clean(coefficients[column])
        base = _clean(coefficients[0])

        negative = [name for name, slope in slopes.items() if slope < 0.0]
        if base < 0.0:
            negative.insert(0, "base")
        if negative:
            logger.warning(
                "%s: negative %s coefficient(s) for %s", spec.key, metric.value, negative
            )

        return CostModel(
            metric=metric,
            base=base,
            per_component=slopes,
            negative_slopes=negative,
            r_squared=r_squared(observed, design @ coefficients),
        )

    def analyze_all(self, samples: SampleSet) -> OperationResult:
        """Fit every metric and package the operation result."""
        if not samples.frozen:
            samples.freeze()
        models = {metric: self.analyze(samples, metric) for metric in Metric}
        return OperationResult(
            spec=samples.spec,
            models=models,
            sample_count=len(samples),
            discarded_count=samples.discarded_count,
        )


def _clean(value: float) -> float:
    """Plain float coefficient, with -0.0 normalised to 0.0."""
    return float(value) + 0.0

