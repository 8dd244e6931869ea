# Copyright (c) Syntropy Systems
"""Loading and selecting operation declarations.

Example benchmarks.yaml:

    sandbox: myruntime.bench:make_sandbox
    modules:
      balances:
        transfer:
          components:
            - {name: n, min: 0, max: 1000}
        force_unreserve:
          extra: true
"""
from __future__ import annotations

import importlib
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import TYPE_CHECKING, cast

import yaml
from pydantic import Field, ValidationError

from weightbench.errors import DeclarationError
from weightbench.models import BenchBaseModel, Component, OperationSpec

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from weightbench.adapter import SandboxFactory


class OperationDeclaration(BenchBaseModel):
    """One operation entry in a declarations file."""

    components: list[Component] = Field(default_factory=list)
    extra: bool = False


class DeclarationFile(BenchBaseModel):
    """Schema of a declarations file."""

    sandbox: str | None = None
    modules: dict[str, dict[str, OperationDeclaration]] = Field(default_factory=dict)


def import_entry_point(reference: str) -> object:
    """Import ``package.module:attribute``."""
    module_name, sep, attribute = reference.partition(":")
    if not sep or not module_name or not attribute:
        msg = f"Entry point must look like 'package.module:attribute', got {reference!r}"
        raise DeclarationError(msg)
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        msg = f"Cannot import {module_name!r}: {e}"
        raise DeclarationError(msg) from e
    try:
        return cast("object", getattr(module, attribute))
    except AttributeError as e:
        msg = f"{module_name!r} has no attribute {attribute!r}"
        raise DeclarationError(msg) from e


def _matches(value: str, patterns: Sequence[str] | None) -> bool:
    if not patterns:
        return True
    return any(fnmatchcase(value, pattern) for pattern in patterns)


@dataclass(frozen=True)
class Declarations:
    """Validated operation declarations, in declaration order."""

    operations: list[OperationSpec] = field(default_factory=list)
    sandbox: str | None = None

    @property
    def modules(self) -> list[str]:
        """Module names in declaration order."""
        return list(dict.fromkeys(op.module for op in self.operations))

    def select(
        self,
        modules: Sequence[str] | None = None,
        operations: Sequence[str] | None = None,
        include_extra: bool = False,
    ) -> list[OperationSpec]:
        """Operations matching the module and operation patterns.

        Patterns are shell-style wildcards. Extra operations are skipped
        unless ``include_extra`` is set.
        """
        return [
            op
            for op in self.operations
            if _matches(op.module, modules)
            and _matches(op.name, operations)
            and (include_extra or not op.extra)
        ]

    def sandbox_factory(self) -> SandboxFactory:
        """Import the declared sandbox factory."""
        if self.sandbox is None:
            msg = "Declarations do not name a sandbox factory"
            raise DeclarationError(msg)
        factory = import_entry_point(self.sandbox)
        if not callable(factory):
            msg = f"Sandbox factory {self.sandbox!r} is not callable"
            raise DeclarationError(msg)
        return cast("SandboxFactory", factory)


def parse_declarations(data: object) -> Declarations:
    """Validate a parsed declarations mapping."""
    try:
        parsed = DeclarationFile.model_validate(data or {})
    except ValidationError as e:
        msg = f"Invalid declarations: {e}"
        raise DeclarationError(msg) from e

    specs: list[OperationSpec] = []
    for module, operations in parsed.modules.items():
        for name, declaration in operations.items():
            try:
                specs.append(
                    OperationSpec(
                        module=module,
                        name=name,
                        components=tuple(declaration.components),
                        extra=declaration.extra,
                    )
                )
            except ValidationError as e:
                msg = f"Invalid operation {module}::{name}: {e}"
                raise DeclarationError(msg) from e

    return Declarations(operations=specs, sandbox=parsed.sandbox)


def load_declarations(path: Path) -> Declarations:
    """Load declarations from a YAML file.

    Raises DeclarationError before any benchmarking starts if the file
    cannot be read or does not validate.
    """
    try:
        with path.open() as f:
            data = cast("object", yaml.safe_load(f))
    except (OSError, yaml.YAMLError) as e:
        msg = f"Cannot read declarations from {path}: {e}"
        raise DeclarationError(msg) from e
    return parse_declarations(data)
