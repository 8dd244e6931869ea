"""
weightbench - Benchmark runtime operations into linear cost formulas.

Sweep components, sample in a sandbox, fit, render weights.
"""

__version__ = "0.1.0"

from weightbench.models import (  # noqa: E402
    Component,
    CostModel,
    Metric,
    OperationResult,
    OperationSpec,
    RawSample,
    SampleSet,
    TrialConfig,
)

__all__ = [
    "Component",
    "CostModel",
    "Metric",
    "OperationResult",
    "OperationSpec",
    "RawSample",
    "SampleSet",
    "TrialConfig",
    "__version__",
]
