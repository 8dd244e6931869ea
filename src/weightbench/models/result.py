# Copyright (c) Syntropy Systems
"""Pydantic models for fitted cost models and run results."""

from __future__ import annotations

from pydantic import Field

from .base import ComponentAssignment, FrozenModel
from .operation import OperationSpec, TrialConfig
from .sample import Metric, RawSample


class CostModel(FrozenModel):
    """Fitted linear form ``base + sum(slope_c * value_c)`` for one metric."""

    metric: Metric
    base: float
    per_component: dict[str, float] = Field(default_factory=dict)
    negative_slopes: list[str] = Field(default_factory=list)
    r_squared: float | None = None

    def evaluate(self, assignment: ComponentAssignment) -> float:
        """Predict the metric for an assignment."""
        return self.base + sum(
            slope * assignment[name] for name, slope in self.per_component.items()
        )

    @property
    def has_negative(self) -> bool:
        return bool(self.negative_slopes)


class OperationResult(FrozenModel):
    """Terminal artifact for one operation, consumed by renderer and serializer."""

    spec: OperationSpec
    models: dict[Metric, CostModel] = Field(default_factory=dict)
    sample_count: int
    discarded_count: int = 0

    def model_for(self, metric: Metric) -> CostModel | None:
        return self.models.get(metric)


class OperationFailure(FrozenModel):
    """An operation-level failure kept for the run report."""

    module: str
    name: str
    kind: str
    message: str
    assignment: ComponentAssignment | None = None

    @property
    def key(self) -> str:
        return f"{self.module}::{self.name}"


class ResultBundle(FrozenModel):
    """Serialized form of a run: results plus optional raw samples."""

    format_version: int = 1
    trial: TrialConfig | None = None
    results: list[OperationResult] = Field(default_factory=list)
    samples: dict[str, list[RawSample]] = Field(default_factory=dict)
