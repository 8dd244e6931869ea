# Copyright (c) Syntropy Systems
"""Data model for weightbench."""

from .base import BenchBaseModel, ComponentAssignment, FrozenModel, format_assignment
from .operation import Component, OperationSpec, TrialConfig
from .result import CostModel, OperationFailure, OperationResult, ResultBundle
from .sample import Metric, RawSample, SampleSet

__all__ = [
    "BenchBaseModel",
    "Component",
    "ComponentAssignment",
    "CostModel",
    "FrozenModel",
    "Metric",
    "OperationFailure",
    "OperationResult",
    "OperationSpec",
    "RawSample",
    "ResultBundle",
    "SampleSet",
    "TrialConfig",
    "format_assignment",
]
