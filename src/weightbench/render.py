# Copyright (c) Syntropy Systems
"""Render fitted cost models into generated Python source, one file per module."""
from __future__ import annotations

import logging
import math
from collections import defaultdict
from typing import TYPE_CHECKING, Literal

from jinja2 import Environment, FileSystemLoader, PackageLoader, StrictUndefined

from weightbench.errors import RenderingInconsistency
from weightbench.models import Metric

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from weightbench.models import CostModel, OperationResult, TrialConfig

logger = logging.getLogger(__name__)

NegativePolicy = Literal["keep", "clamp"]
NEGATIVE_POLICIES: tuple[str, ...] = ("keep", "clamp")

# Generated Weight field for each metric, in output order
WEIGHT_FIELDS: tuple[tuple[str, Metric], ...] = (
    ("ref_time", Metric.TIME),
    ("reads", Metric.READS),
    ("writes", Metric.WRITES),
    ("proof_size", Metric.PROOF_SIZE),
)

# Relative distance to an integer treated as float error, so 0.1 * 1000 stays 100
_SNAP_TOLERANCE = 1e-12


def to_units(value: float, scale: int = 1) -> int:
    """Scale a fitted coefficient and round it up to an integer.

    Only values within float error of an integer are snapped to it;
    any real excess rounds up.
    """
    scaled = value * scale
    nearest = round(scaled)
    if math.isclose(scaled, nearest, rel_tol=_SNAP_TOLERANCE, abs_tol=_SNAP_TOLERANCE):
        return int(nearest)
    return math.ceil(scaled)


def format_int(value: int) -> str:
    """Integer literal with ``_`` digit separators."""
    return f"{value:_}"


def class_name_for(module: str) -> str:
    """``staking_pool`` -> ``StakingPoolWeights``."""
    return "".join(part.capitalize() for part in module.split("_") if part) + "Weights"


def group_by_module(results: Iterable[OperationResult]) -> dict[str, list[OperationResult]]:
    """Group results by module name, modules sorted."""
    grouped: defaultdict[str, list[OperationResult]] = defaultdict(list)
    for result in results:
        grouped[result.spec.module].append(result)
    return {module: grouped[module] for module in sorted(grouped)}


def check_result(result: OperationResult) -> None:
    """Raise RenderingInconsistency unless ``result`` is complete."""
    spec = result.spec
    for metric in Metric:
        model = result.model_for(metric)
        if model is None:
            msg = f"{spec.key}: no {metric.value} model"
            raise RenderingInconsistency(msg)
        if model.metric is not metric:
            msg = f"{spec.key}: {metric.value} slot holds a {model.metric.value} model"
            raise RenderingInconsistency(msg)
        if set(model.per_component) != set(spec.component_names):
            msg = (
                f"{spec.key}: {metric.value} model components "
                f"{sorted(model.per_component)} do not match declared "
                f"{spec.component_names}"
            )
            raise RenderingInconsistency(msg)


class ModelRenderer:
    """Turns OperationResults into deterministic generated source.

    Coefficients are always rounded up so a generated weight never
    under-estimates the measured cost.
    """

    def __init__(
        self,
        template: Path | None = None,
        time_scale: int = 1000,
        negative_policy: NegativePolicy = "keep",
        header: str | None = None,
    ) -> None:
        """Initialize a renderer.

        Args:
            template: Custom Jinja2 template, defaults to the bundled one
            time_scale: Multiplier applied to nanosecond time coefficients
            negative_policy: "keep" renders negative coefficients as fitted,
                "clamp" renders them as zero
            header: Text placed verbatim at the top of every file

        """
        if negative_policy not in NEGATIVE_POLICIES:
            msg = f"Unknown negative policy: {negative_policy}"
            raise ValueError(msg)
        if time_scale < 1:
            msg = f"time_scale must be >= 1, got {time_scale}"
            raise ValueError(msg)
        self.time_scale = time_scale
        self.negative_policy = negative_policy
        self.header = header.rstrip() if header else None

        if template is None:
            loader = PackageLoader("weightbench", "templates")
            template_name = "weights.py.j2"
        else:
            loader = FileSystemLoader(str(template.parent))
            template_name = template.name
        env = Environment(
            loader=loader,
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            autoescape=False,  # noqa: S701
        )
        self._template = env.get_template(template_name)

    def coefficient(self, model: CostModel, value: float) -> int:
        """Integer coefficient as it appears in generated code."""
        scale = self.time_scale if model.metric is Metric.TIME else 1
        units = to_units(value, scale)
        if self.negative_policy == "clamp":
            return max(units, 0)
        return units

    def expression(self, result: OperationResult, metric: Metric) -> str:
        """Source expression ``base + slope * component ...`` for one metric."""
        model = result.models[metric]
        text = format_int(self.coefficient(model, model.base))
        for name in result.spec.component_names:
            slope = self.coefficient(model, model.per_component[name])
            if slope == 0:
                continue
            sign = "-" if slope < 0 else "+"
            text += f" {sign} {format_int(abs(slope))} * {name}"
        return text

    def _operation_context(self, result: OperationResult) -> dict[str, object]:
        spec = result.spec
        signature = ", ".join(f"{name}: int" for name in spec.component_names)
        if spec.components:
            ranges = ", ".join(f"{c.name} in [{c.min}, {c.max}]" for c in spec.components)
            summary = f"Range: {ranges}."
        else:
            summary = "No components."
        summary += f" Samples: {result.sample_count}, discarded: {result.discarded_count}."
        time_fit = result.models[Metric.TIME].r_squared
        if time_fit is not None:
            summary += f" Time fit r2: {time_fit:.4f}."
        return {
            "name": spec.name,
            "signature": signature,
            "summary": summary,
            "fields": [
                (field, self.expression(result, metric)) for field, metric in WEIGHT_FIELDS
            ],
        }

    def render(
        self,
        module: str,
        results: Iterable[OperationResult],
        trial: TrialConfig,
    ) -> str:
        """Render the generated source for one module."""
        from weightbench import __version__

        ordered = sorted(results, key=lambda r: r.spec.name)
        for result in ordered:
            if result.spec.module != module:
                msg = f"{result.spec.key} does not belong to module {module}"
                raise RenderingInconsistency(msg)
            check_result(result)

        return self._template.render(
            header=self.header,
            module=module,
            class_name=class_name_for(module),
            version=__version__,
            trial=trial,
            time_scale=self.time_scale,
            operations=[self._operation_context(r) for r in ordered],
        )

    def write(
        self,
        output_dir: Path,
        results: Iterable[OperationResult],
        trial: TrialConfig,
    ) -> list[Path]:
        """Write ``<module>_weights.py`` for every module in ``results``.

        Every module is rendered before any file is written, so an
        inconsistent result leaves the output directory untouched.
        """
        rendered = {
            module: self.render(module, module_results, trial)
            for module, module_results in group_by_module(results).items()
        }
        output_dir.mkdir(parents=True, exist_ok=True)
        paths: list[Path] = []
        for module, text in rendered.items():
            path = output_dir / f"{module}_weights.py"
            _ = path.write_text(text)
            logger.info("Wrote %s", path)
            paths.append(path)
        return paths
