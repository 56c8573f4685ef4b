"""Unit tests for the alias store."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from sfdx_core.config import Aliases
from sfdx_core.errors import CoreError


def test_parse_and_update_writes_orgs_group(global_dir: Path) -> None:
    result = Aliases.parse_and_update(["dev=dev@example.com", "hub=hub@example.com"])

    assert result == {"dev": "dev@example.com", "hub": "hub@example.com"}
    on_disk = json.loads((global_dir / "alias.json").read_text(encoding="utf-8"))
    assert on_disk == {"orgs": {"dev": "dev@example.com", "hub": "hub@example.com"}}
    assert Aliases.fetch("dev") == "dev@example.com"
    assert Aliases.fetch("missing") is None


def test_empty_value_removes_alias() -> None:
    Aliases.parse_and_update(["dev=dev@example.com"])

    Aliases.parse_and_update(["dev="])

    assert Aliases.fetch("dev") is None
    assert Aliases.retrieve().keys() == []


@pytest.mark.parametrize("pair", ["noequals", "=dev@example.com", "Dev=dev@example.com", "my alias=x"])
def test_parse_and_update_rejects_invalid_pairs(pair: str) -> None:
    with pytest.raises(CoreError) as exc:
        Aliases.parse_and_update([pair])

    assert exc.value.name == "InvalidFormat"


def test_unset_and_save() -> None:
    Aliases.parse_and_update(["dev=dev@example.com", "qa=qa@example.com"])

    Aliases.unset_and_save("dev")

    assert Aliases.retrieve().keys() == ["qa"]


def test_unset_values_and_save_returns_removed_names() -> None:
    Aliases.parse_and_update(["a=u1@example.com", "b=u1@example.com", "c=u2@example.com", "d=u3@example.com"])

    removed = Aliases.unset_values_and_save(["u1@example.com", "u2@example.com"])

    assert sorted(removed) == ["a", "b", "c"]
    aliases = Aliases.retrieve()
    assert aliases.keys() == ["d"]
    assert aliases.get_keys_by_value("u3@example.com") == ["d"]


def test_aliases_are_global_even_in_project(project_dir: Path, global_dir: Path) -> None:
    Aliases.parse_and_update(["dev=dev@example.com"])

    assert (global_dir / "alias.json").exists()
    assert not (project_dir / ".sfdx" / "alias.json").exists()
