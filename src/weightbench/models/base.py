# Copyright (c) Syntropy Systems
"""Shared Pydantic model helpers for weightbench."""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, ConfigDict
from typing_extensions import TypeAlias

ComponentAssignment: TypeAlias = dict[str, int]


class BenchBaseModel(BaseModel):
    """Base model with shared config for weightbench schemas."""

    model_config: ClassVar[ConfigDict] = ConfigDict(
        extra="ignore",
        populate_by_name=True,
    )


class FrozenModel(BaseModel):
    """Base model for records that never change after creation."""

    model_config: ClassVar[ConfigDict] = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        frozen=True,
    )


def format_assignment(assignment: ComponentAssignment) -> str:
    """Format an assignment as ``a=1, b=2`` for messages and tables."""
    if not assignment:
        return "(no components)"
    return ", ".join(f"{k}={v}" for k, v in assignment.items())
