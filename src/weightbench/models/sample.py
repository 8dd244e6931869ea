# Copyright (c) Syntropy Systems
"""Pydantic models for raw trial samples."""

from __future__ import annotations

from enum import Enum

from pydantic import Field, PrivateAttr

from .base import BenchBaseModel, ComponentAssignment, FrozenModel
from .operation import OperationSpec


class Metric(str, Enum):
    """Measured cost dimensions."""

    TIME = "time"
    READS = "reads"
    WRITES = "writes"
    PROOF_SIZE = "proof_size"


class RawSample(FrozenModel):
    """Outcome of one trial. Failed samples carry zeroed metrics."""

    assignment: ComponentAssignment = Field(default_factory=dict)
    elapsed_time: int = 0  # nanoseconds
    reads: int = 0
    writes: int = 0
    proof_size: int = 0
    succeeded: bool = True
    error: str | None = None

    @classmethod
    def failed(cls, assignment: ComponentAssignment, error: str) -> RawSample:
        """Build a failed sample with zeroed metrics."""
        return cls(assignment=dict(assignment), succeeded=False, error=error)

    def value(self, metric: Metric) -> int:
        """Return the measured value for a metric."""
        if metric is Metric.TIME:
            return self.elapsed_time
        if metric is Metric.READS:
            return self.reads
        if metric is Metric.WRITES:
            return self.writes
        return self.proof_size


class SampleSet(BenchBaseModel):
    """Ordered samples for one operation. Append-only until frozen."""

    spec: OperationSpec
    samples: list[RawSample] = Field(default_factory=list)

    _frozen: bool = PrivateAttr(default=False)

    def append(self, sample: RawSample) -> None:
        if self._frozen:
            msg = f"Sample set for {self.spec.key} is frozen"
            raise RuntimeError(msg)
        self.samples.append(sample)

    def freeze(self) -> None:
        """Stop accepting samples. Called before analysis."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def succeeded(self) -> list[RawSample]:
        return [s for s in self.samples if s.succeeded]

    @property
    def discarded_count(self) -> int:
        return sum(1 for s in self.samples if not s.succeeded)

    def __len__(self) -> int:
        return len(self.samples)
