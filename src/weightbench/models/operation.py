# Copyright (c) Syntropy Systems
"""Pydantic models for operation declarations and trial settings."""

from __future__ import annotations

import keyword

from pydantic import Field, field_validator, model_validator
from typing_extensions import Self

from .base import ComponentAssignment, FrozenModel

# Names the generated weight code already binds inside each method
RESERVED_COMPONENT_NAMES = frozenset({"Weight"})


def check_python_name(value: str, what: str) -> str:
    """Raise ValueError unless value can be used as a Python name."""
    if not value.isidentifier() or keyword.iskeyword(value):
        msg = f"{what} must be a Python identifier and not a keyword, got {value!r}"
        raise ValueError(msg)
    return value


class Component(FrozenModel):
    """One cost-relevant input dimension of an operation."""

    name: str
    min: int
    max: int

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        _ = check_python_name(value, "Component name")
        if value in RESERVED_COMPONENT_NAMES:
            msg = f"Component name {value!r} is reserved in generated code"
            raise ValueError(msg)
        return value

    @model_validator(mode="after")
    def _check_range(self) -> Self:
        if self.min > self.max:
            msg = f"Component '{self.name}' has min {self.min} > max {self.max}"
            raise ValueError(msg)
        return self

    def contains(self, value: int) -> bool:
        """Return True if value lies in the inclusive range."""
        return self.min <= value <= self.max


class OperationSpec(FrozenModel):
    """A benchmarked operation as declared by its runtime module."""

    module: str
    name: str
    components: tuple[Component, ...] = ()
    extra: bool = False

    @field_validator("module", "name")
    @classmethod
    def _check_identifier(cls, value: str) -> str:
        return check_python_name(value, "Module and operation names")

    @model_validator(mode="after")
    def _check_unique_components(self) -> Self:
        seen: set[str] = set()
        for component in self.components:
            if component.name in seen:
                msg = f"Duplicate component '{component.name}' in {self.key}"
                raise ValueError(msg)
            seen.add(component.name)
        return self

    @property
    def key(self) -> str:
        """Qualified name, also used as the sandbox code reference."""
        return f"{self.module}::{self.name}"

    @property
    def component_names(self) -> list[str]:
        return [c.name for c in self.components]

    def validate_assignment(self, assignment: ComponentAssignment) -> None:
        """Raise ValueError unless assignment covers exactly our components."""
        expected = set(self.component_names)
        actual = set(assignment)
        if expected != actual:
            missing = sorted(expected - actual)
            unknown = sorted(actual - expected)
            msg = f"{self.key}: assignment mismatch (missing={missing}, unknown={unknown})"
            raise ValueError(msg)
        for component in self.components:
            value = assignment[component.name]
            if not component.contains(value):
                msg = (
                    f"{self.key}: {component.name}={value} outside "
                    f"[{component.min}, {component.max}]"
                )
                raise ValueError(msg)

    def assignment_key(self, assignment: ComponentAssignment) -> tuple[int, ...]:
        """Return assignment values in component order, for grouping."""
        return tuple(assignment[name] for name in self.component_names)


class TrialConfig(FrozenModel):
    """How finely each range is sampled and how often each point repeats."""

    steps: int = Field(default=50, ge=1)
    repeats: int = Field(default=20, ge=1)
    lowest_range_only: bool = False
    highest_range_only: bool = False

    @model_validator(mode="after")
    def _check_range_flags(self) -> Self:
        if self.lowest_range_only and self.highest_range_only:
            msg = "lowest_range_only and highest_range_only are mutually exclusive"
            raise ValueError(msg)
        return self
