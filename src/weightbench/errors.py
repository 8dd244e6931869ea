# Copyright (c) Syntropy Systems
"""Exception hierarchy for weightbench."""
from __future__ import annotations

from weightbench.models.base import ComponentAssignment, format_assignment


class WeightbenchError(Exception):
    """Base exception for all weightbench errors."""


class ConfigError(WeightbenchError):
    """Invalid configuration file or option value."""


class DeclarationError(WeightbenchError):
    """Operation declarations could not be read or are invalid."""


class RenderingInconsistency(WeightbenchError):
    """A result cannot be rendered. Fatal to the whole run."""


# --- Trial errors ---


class TrialExecutionFailure(WeightbenchError):
    """A single trial failed. Recorded as a failed sample, never fatal."""


class TrialTimeout(TrialExecutionFailure):
    """A trial did not finish within the per-trial timeout."""


class SandboxTaintedError(WeightbenchError):
    """The sandbox may still be running an abandoned trial."""


# --- Operation errors ---


class OperationError(WeightbenchError):
    """Failure fatal to one operation. Sibling operations keep running."""

    kind = "operation_error"

    def __init__(
        self,
        module: str,
        name: str,
        detail: str,
        assignment: ComponentAssignment | None = None,
    ) -> None:
        self.module = module
        self.name = name
        self.detail = detail
        self.assignment = assignment
        message = f"{module}::{name}: {detail}"
        if assignment is not None:
            message += f" (assignment: {format_assignment(assignment)})"
        super().__init__(message)


class ExcessiveDiscardRate(OperationError):
    """Too many trials of an operation failed."""

    kind = "excessive_discard_rate"


class EmptySampleSet(OperationError):
    """An operation produced no usable samples."""

    kind = "empty_sample_set"


class UnderdeterminedModel(OperationError):
    """Too few distinct assignments to fit the declared components."""

    kind = "underdetermined_model"
