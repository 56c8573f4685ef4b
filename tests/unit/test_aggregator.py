"""Unit tests for the layered config view."""

from __future__ import annotations

from pathlib import Path

import pytest

from sfdx_core.config import ConfigAggregator, Location, SfdxConfig
from sfdx_core.config.aggregator import env_var_name


def _write(is_global: bool, **values: str) -> SfdxConfig:
    config = SfdxConfig.create(SfdxConfig.get_default_options(is_global=is_global))
    for key, value in values.items():
        config.set(key, value)
    config.write()
    return config


@pytest.mark.parametrize(
    ("key", "env"),
    [
        ("defaultusername", "SFDX_DEFAULTUSERNAME"),
        ("instanceUrl", "SFDX_INSTANCE_URL"),
        ("apiVersion", "SFDX_API_VERSION"),
        ("isvDebuggerSid", "SFDX_ISV_DEBUGGER_SID"),
    ],
)
def test_env_var_name(key: str, env: str) -> None:
    assert env_var_name(key) == env


def test_missing_key_is_not_found() -> None:
    aggregator = ConfigAggregator.create()
    info = aggregator.get_info("defaultusername")

    assert info.location is Location.NOT_FOUND
    assert info.value is None
    assert aggregator.get_local_config() is None


def test_global_value(global_dir: Path) -> None:
    _write(True, defaultusername="global@example.com")

    aggregator = ConfigAggregator.create()
    info = aggregator.get_info("defaultusername")

    assert info.value == "global@example.com"
    assert info.is_global()
    assert info.path == str(global_dir / "sfdx-config.json")


def test_local_overrides_global(project_dir: Path) -> None:
    _write(True, defaultusername="global@example.com", apiVersion="41.0")
    _write(False, defaultusername="local@example.com")

    aggregator = ConfigAggregator.create()

    assert aggregator.get_property_value("defaultusername") == "local@example.com"
    assert aggregator.get_location("defaultusername") is Location.LOCAL
    assert aggregator.get_path("defaultusername") == str(project_dir.resolve() / ".sfdx" / "sfdx-config.json")
    assert aggregator.get_location("apiVersion") is Location.GLOBAL


def test_environment_overrides_everything(project_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write(True, defaultusername="global@example.com")
    _write(False, defaultusername="local@example.com")
    monkeypatch.setenv("SFDX_DEFAULTUSERNAME", "env@example.com")

    aggregator = ConfigAggregator.create()
    info = aggregator.get_info("defaultusername")

    assert info.value == "env@example.com"
    assert info.is_environment()
    assert info.path == "SFDX_DEFAULTUSERNAME"
    assert aggregator.get_environment() == {"defaultusername": "env@example.com"}


def test_get_config_merges_layers(project_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write(True, apiVersion="41.0", defaultusername="global@example.com")
    _write(False, defaultusername="local@example.com")
    monkeypatch.setenv("SFDX_INSTANCE_URL", "https://na1.salesforce.com")

    aggregator = ConfigAggregator.create()

    assert aggregator.get_config() == {
        "apiVersion": "41.0",
        "defaultusername": "local@example.com",
        "instanceUrl": "https://na1.salesforce.com",
    }
    locations = {info.key: info.location for info in aggregator.get_config_infos()}
    assert locations == {
        "apiVersion": Location.GLOBAL,
        "defaultusername": Location.LOCAL,
        "instanceUrl": Location.ENVIRONMENT,
    }


def test_reload_sees_new_values() -> None:
    aggregator = ConfigAggregator.create()
    assert aggregator.get_property_value("defaultdevhubusername") is None

    _write(True, defaultdevhubusername="hub@example.com")

    assert aggregator.get_property_value("defaultdevhubusername") is None
    assert aggregator.reload().get_property_value("defaultdevhubusername") == "hub@example.com"


def test_global_config_loads_on_first_use(global_dir: Path) -> None:
    _write(True, apiVersion="41.0")

    config = ConfigAggregator().get_global_config()

    assert config.path == global_dir / "sfdx-config.json"
    assert config.get("apiVersion") == "41.0"
