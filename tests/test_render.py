# Copyright (c) Syntropy Systems
"""Tests for generated weight files."""

from __future__ import annotations

from pathlib import Path

import pytest

from weightbench.errors import RenderingInconsistency
from weightbench.models import (
    Component,
    CostModel,
    Metric,
    OperationResult,
    OperationSpec,
    TrialConfig,
)
from weightbench.render import ModelRenderer, class_name_for, format_int, to_units

TRIAL = TrialConfig(steps=3, repeats=2)


def make_result(
    name: str = "transfer",
    module: str = "balances",
    time: tuple[float, float] = (10.0, 2.0),
    reads: tuple[float, float] = (0.0, 1.0),
    components: tuple[str, ...] = ("n",),
) -> OperationResult:
    spec = OperationSpec(
        module=module,
        name=name,
        components=tuple(Component(name=c, min=0, max=10) for c in components),
    )

    def model(metric: Metric, base: float, slope: float) -> CostModel:
        negative = [c for c in components if slope < 0]
        return CostModel(
            metric=metric,
            base=base,
            per_component=dict.fromkeys(components, slope),
            negative_slopes=negative,
        )

    return OperationResult(
        spec=spec,
        models={
            Metric.TIME: model(Metric.TIME, *time),
            Metric.READS: model(Metric.READS, *reads),
            Metric.WRITES: model(Metric.WRITES, 0.0, 0.0),
            Metric.PROOF_SIZE: model(Metric.PROOF_SIZE, 0.0, 9.0),
        },
        sample_count=6,
    )


class TestHelpers:
    """Tests for rounding and naming helpers."""

    def test_to_units_rounds_up(self) -> None:
        assert to_units(10.0001, 1000) == 10_001
        assert to_units(2.0, 1000) == 2_000
        assert to_units(0.4) == 1

    def test_to_units_ignores_float_dust(self) -> None:
        assert to_units(0.1, 1000) == 100
        assert to_units(2.0000000000004) == 2

    def test_to_units_real_excess_rounds_up(self) -> None:
        assert to_units(2.0000004) == 3
        assert to_units(4e-10) == 1

    def test_to_units_negative(self) -> None:
        assert to_units(-2.5) == -2

    def test_format_int(self) -> None:
        assert format_int(1234567) == "1_234_567"
        assert format_int(-5) == "-5"

    def test_class_name(self) -> None:
        assert class_name_for("staking_pool") == "StakingPoolWeights"
        assert class_name_for("balances") == "BalancesWeights"


class TestModelRenderer:
    """Tests for ModelRenderer."""

    def test_render_expression(self) -> None:
        text = ModelRenderer().render("balances", [make_result()], TRIAL)

        assert "class BalancesWeights:" in text
        assert "def transfer(n: int) -> Weight:" in text
        assert "ref_time=10_000 + 2_000 * n," in text
        assert "reads=0 + 1 * n," in text
        assert "writes=0," in text
        assert "proof_size=0 + 9 * n," in text
        assert "Range: n in [0, 10]. Samples: 6, discarded: 0." in text
        assert "Steps: 3, repeats: 2" in text

    def test_tiny_slope_not_dropped(self) -> None:
        result = make_result(reads=(0.0, 4e-10))
        text = ModelRenderer().render("balances", [result], TRIAL)
        assert "reads=0 + 1 * n," in text

    def test_time_scale(self) -> None:
        text = ModelRenderer(time_scale=1).render("balances", [make_result()], TRIAL)
        assert "ref_time=10 + 2 * n," in text

    def test_deterministic_order(self) -> None:
        first = [make_result("b_op"), make_result("a_op")]
        second = list(reversed(first))

        renderer = ModelRenderer()
        text = renderer.render("balances", first, TRIAL)

        assert text == renderer.render("balances", second, TRIAL)
        assert text.index("def a_op") < text.index("def b_op")

    def test_zero_components(self) -> None:
        result = make_result("noop", time=(42.0, 0.0), components=())

        text = ModelRenderer().render("balances", [result], TRIAL)

        assert "def noop() -> Weight:" in text
        assert "ref_time=42_000," in text
        assert "No components." in text

    def test_negative_kept(self) -> None:
        result = make_result(reads=(5.0, -2.5))
        text = ModelRenderer().render("balances", [result], TRIAL)
        assert "reads=5 - 2 * n," in text

    def test_negative_clamped(self) -> None:
        result = make_result(reads=(5.0, -2.5))
        text = ModelRenderer(negative_policy="clamp").render("balances", [result], TRIAL)
        assert "reads=5," in text

    def test_unknown_negative_policy(self) -> None:
        with pytest.raises(ValueError):
            _ = ModelRenderer(negative_policy="drop")  # type: ignore[arg-type]

    def test_header(self) -> None:
        header = "# Licensed under the Apache License 2.0\n"
        text = ModelRenderer(header=header).render("balances", [make_result()], TRIAL)
        assert text.startswith("# Licensed under the Apache License 2.0\n\"\"\"Weights")

    def test_generated_source_compiles(self) -> None:
        text = ModelRenderer().render(
            "balances", [make_result(), make_result("noop", components=())], TRIAL
        )
        namespace: dict[str, object] = {}
        exec(compile(text, "balances_weights.py", "exec"), namespace)  # noqa: S102

        weights = namespace["BalancesWeights"]
        weight = weights.transfer(3)  # type: ignore[attr-defined]
        assert weight.ref_time == 16_000
        assert weight.reads == 3
        assert weight.proof_size == 27

    def test_custom_template(self, temp_dir: Path) -> None:
        template = temp_dir / "custom.j2"
        template.write_text(
            "{% for op in operations %}{{ module }}.{{ op.name }}: "
            "{% for field, expr in op.fields %}{{ field }}={{ expr }};{% endfor %}"
            "{% endfor %}"
        )

        text = ModelRenderer(template=template).render("balances", [make_result()], TRIAL)

        assert text == (
            "balances.transfer: ref_time=10_000 + 2_000 * n;reads=0 + 1 * n;"
            "writes=0;proof_size=0 + 9 * n;"
        )


class TestConsistencyChecks:
    """Inconsistent results abort rendering."""

    def test_missing_metric(self) -> None:
        result = make_result()
        broken = result.model_copy(
            update={"models": {k: v for k, v in result.models.items() if k is not Metric.WRITES}}
        )

        with pytest.raises(RenderingInconsistency, match="no writes model"):
            _ = ModelRenderer().render("balances", [broken], TRIAL)

    def test_component_mismatch(self) -> None:
        result = make_result()
        models = dict(result.models)
        models[Metric.READS] = CostModel(metric=Metric.READS, base=0.0, per_component={"m": 1.0})
        broken = result.model_copy(update={"models": models})

        with pytest.raises(RenderingInconsistency, match="do not match"):
            _ = ModelRenderer().render("balances", [broken], TRIAL)

    def test_wrong_module(self) -> None:
        with pytest.raises(RenderingInconsistency):
            _ = ModelRenderer().render("staking", [make_result()], TRIAL)

    def test_write_is_all_or_nothing(self, temp_dir: Path) -> None:
        good = make_result(module="assets")
        result = make_result()
        broken = result.model_copy(update={"models": {Metric.TIME: result.models[Metric.TIME]}})

        with pytest.raises(RenderingInconsistency):
            _ = ModelRenderer().write(temp_dir / "out", [good, broken], TRIAL)

        assert not (temp_dir / "out").exists()


class TestWrite:
    """Tests for writing one file per module."""

    def test_one_file_per_module(self, temp_dir: Path) -> None:
        results = [make_result(), make_result(module="assets", name="mint")]

        paths = ModelRenderer().write(temp_dir, results, TRIAL)

        assert [p.name for p in paths] == ["assets_weights.py", "balances_weights.py"]
        assert "class AssetsWeights:" in (temp_dir / "assets_weights.py").read_text()

    def test_rewrite_is_byte_identical(self, temp_dir: Path) -> None:
        results = [make_result(), make_result("burn")]
        renderer = ModelRenderer()

        _ = renderer.write(temp_dir / "a", results, TRIAL)
        _ = renderer.write(temp_dir / "b", list(reversed(results)), TRIAL)

        first = (temp_dir / "a" / "balances_weights.py").read_bytes()
        second = (temp_dir / "b" / "balances_weights.py").read_bytes()
        assert first == second
