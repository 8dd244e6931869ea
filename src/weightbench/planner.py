# Copyright (c) Syntropy Systems
"""Sweep planning: which component assignments to execute, in what order."""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from weightbench.models import Component, ComponentAssignment, OperationSpec, TrialConfig


def step_values(component: Component, steps: int) -> list[int]:
    """Return the swept values of one component, endpoints included.

    With a single step only ``min`` is used.
    """
    if steps == 1:
        return [component.min]
    span = component.max - component.min
    return [component.min + span * i // (steps - 1) for i in range(steps)]


def pinned_value(component: Component, trial: TrialConfig) -> int:
    """Value held by a component while another one is swept."""
    if trial.highest_range_only:
        return component.max
    return component.min


def generate_assignments(
    spec: OperationSpec,
    trial: TrialConfig,
) -> Iterator[ComponentAssignment]:
    """Generate assignments one component at a time.

    Every assignment is yielded ``trial.repeats`` times in a row so that
    variance at a fixed input can be told apart from variance across inputs.
    """
    if not spec.components:
        for _ in range(trial.repeats):
            yield {}
        return

    pinned = {c.name: pinned_value(c, trial) for c in spec.components}
    for swept in spec.components:
        for value in step_values(swept, trial.steps):
            assignment = dict(pinned)
            assignment[swept.name] = value
            for _ in range(trial.repeats):
                # Fresh dict per trial, callers may keep it
                yield dict(assignment)


@dataclass(frozen=True)
class SweepPlan:
    """Restartable, finite plan of trials for one operation."""

    spec: OperationSpec
    trial: TrialConfig

    def __iter__(self) -> Iterator[ComponentAssignment]:
        return generate_assignments(self.spec, self.trial)

    def __len__(self) -> int:
        count = len(self.spec.components)
        if count == 0:
            return self.trial.repeats
        return self.trial.repeats * self.trial.steps * count

    def trials(self) -> Iterator[tuple[int, ComponentAssignment]]:
        """Yield ``(trial_index, assignment)`` pairs."""
        return enumerate(self)

    def distinct(self) -> list[ComponentAssignment]:
        """Distinct assignments in first-seen order."""
        seen: set[tuple[int, ...]] = set()
        result: list[ComponentAssignment] = []
        for assignment in self:
            key = self.spec.assignment_key(assignment)
            if key not in seen:
                seen.add(key)
                result.append(assignment)
        return result
