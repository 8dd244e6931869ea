# Copyright (c) Syntropy Systems
"""Tests for operation declarations."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import DEMO_DECLARATIONS
from weightbench.declarations import import_entry_point, load_declarations, parse_declarations
from weightbench.errors import DeclarationError
from weightbench.testing import demo_sandbox


class TestLoadDeclarations:
    """Tests for reading declaration files."""

    def test_load_demo(self, temp_dir: Path) -> None:
        path = temp_dir / "benchmarks.yaml"
        path.write_text(DEMO_DECLARATIONS)

        decls = load_declarations(path)

        assert decls.sandbox == "weightbench.testing:demo_sandbox"
        assert decls.modules == ["demo"]
        assert [op.name for op in decls.operations] == [
            "write_items",
            "read_items",
            "read_write",
            "noop",
        ]
        read_write = decls.operations[2]
        assert read_write.component_names == ["r", "w"]
        assert decls.operations[3].extra
        assert decls.operations[3].components == ()

    def test_missing_file(self, temp_dir: Path) -> None:
        with pytest.raises(DeclarationError, match="Cannot read"):
            _ = load_declarations(temp_dir / "missing.yaml")

    def test_invalid_yaml(self, temp_dir: Path) -> None:
        path = temp_dir / "bad.yaml"
        path.write_text("modules: [unclosed")

        with pytest.raises(DeclarationError):
            _ = load_declarations(path)

    def test_empty_file(self, temp_dir: Path) -> None:
        path = temp_dir / "empty.yaml"
        path.write_text("")

        decls = load_declarations(path)

        assert decls.operations == []


class TestValidation:
    """Invalid declarations are rejected before any benchmarking."""

    def test_inverted_range(self) -> None:
        data = {"modules": {"demo": {"op": {"components": [{"name": "n", "min": 5, "max": 1}]}}}}
        with pytest.raises(DeclarationError, match="min 5 > max 1"):
            _ = parse_declarations(data)

    def test_duplicate_component(self) -> None:
        component = {"name": "n", "min": 0, "max": 1}
        data = {"modules": {"demo": {"op": {"components": [component, component]}}}}
        with pytest.raises(DeclarationError, match="Duplicate component"):
            _ = parse_declarations(data)

    def test_bad_operation_name(self) -> None:
        data = {"modules": {"demo": {"not-an-identifier": {}}}}
        with pytest.raises(DeclarationError, match="demo::not-an-identifier"):
            _ = parse_declarations(data)

    @pytest.mark.parametrize("name", ["from", "class", "return"])
    def test_keyword_component_name(self, name: str) -> None:
        data = {"modules": {"demo": {"op": {"components": [{"name": name, "min": 0, "max": 9}]}}}}
        with pytest.raises(DeclarationError, match="not a keyword"):
            _ = parse_declarations(data)

    def test_keyword_operation_name(self) -> None:
        with pytest.raises(DeclarationError, match="demo::lambda"):
            _ = parse_declarations({"modules": {"demo": {"lambda": {}}}})

    def test_keyword_module_name(self) -> None:
        with pytest.raises(DeclarationError, match="not a keyword"):
            _ = parse_declarations({"modules": {"import": {"op": {}}}})

    def test_reserved_component_name(self) -> None:
        data = {"modules": {"demo": {"op": {"components": [{"name": "Weight", "min": 0, "max": 9}]}}}}
        with pytest.raises(DeclarationError, match="reserved in generated code"):
            _ = parse_declarations(data)

    def test_scalar_operation_body(self) -> None:
        with pytest.raises(DeclarationError):
            _ = parse_declarations({"modules": {"demo": {"op": "yes"}}})


class TestSelect:
    """Tests for module and operation selection."""

    def setup_method(self) -> None:
        self.decls = parse_declarations(
            {
                "modules": {
                    "balances": {"transfer": {}, "transfer_all": {}, "burn": {"extra": True}},
                    "staking": {"bond": {}},
                }
            }
        )

    def test_select_everything(self) -> None:
        names = [op.key for op in self.decls.select()]
        assert names == ["balances::transfer", "balances::transfer_all", "staking::bond"]

    def test_wildcard_operation(self) -> None:
        names = [op.name for op in self.decls.select(operations=["transfer*"])]
        assert names == ["transfer", "transfer_all"]

    def test_module_filter(self) -> None:
        names = [op.key for op in self.decls.select(modules=["staking"])]
        assert names == ["staking::bond"]

    def test_star_selects_all_modules(self) -> None:
        assert len(self.decls.select(modules=["*"], operations=["*"])) == 3

    def test_extra_opt_in(self) -> None:
        names = [op.name for op in self.decls.select(modules=["balances"], include_extra=True)]
        assert "burn" in names


class TestEntryPoints:
    """Tests for importing the sandbox factory."""

    def test_import_demo_sandbox(self) -> None:
        assert import_entry_point("weightbench.testing:demo_sandbox") is demo_sandbox

    def test_sandbox_factory(self) -> None:
        decls = parse_declarations({"sandbox": "weightbench.testing:demo_sandbox"})
        assert decls.sandbox_factory() is demo_sandbox

    def test_bad_reference(self) -> None:
        with pytest.raises(DeclarationError, match="package.module:attribute"):
            _ = import_entry_point("weightbench.testing")

    def test_missing_module(self) -> None:
        with pytest.raises(DeclarationError, match="Cannot import"):
            _ = import_entry_point("weightbench_no_such_module:factory")

    def test_missing_attribute(self) -> None:
        with pytest.raises(DeclarationError, match="has no attribute"):
            _ = import_entry_point("weightbench.testing:nope")

    def test_no_sandbox_declared(self) -> None:
        with pytest.raises(DeclarationError, match="do not name a sandbox"):
            _ = parse_declarations({}).sandbox_factory()
