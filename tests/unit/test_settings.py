"""Unit tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from sfdx_core.settings import CoreSettings, global_dir


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SFDX_GLOBAL_DIR", raising=False)
    monkeypatch.delenv("SFDX_LOG_LEVEL", raising=False)
    monkeypatch.delenv("SFDX_LOGIN_URL", raising=False)

    settings = CoreSettings()

    assert settings.global_dir == Path.home() / ".sfdx"
    assert settings.log_level == "WARNING"
    assert settings.login_url == "https://login.salesforce.com"
    assert settings.default_api_version == "42.0"
    assert settings.handshake_timeout == 60.0
    assert settings.subscribe_timeout == 180.0
    assert settings.keychain_service == "sfdx"


def test_settings_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SFDX_GLOBAL_DIR", str(tmp_path / "state"))
    monkeypatch.setenv("SFDX_SUBSCRIBE_TIMEOUT", "30")

    settings = CoreSettings()

    assert settings.global_dir == tmp_path / "state"
    assert settings.subscribe_timeout == 30.0
    assert global_dir() == tmp_path / "state"


def test_settings_loads_from_dotenv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SFDX_LOGIN_URL", raising=False)
    monkeypatch.delenv("SFDX_LOG_LEVEL", raising=False)
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env").write_text(
        "\n".join(
            [
                "SFDX_LOGIN_URL=https://test.salesforce.com",
                "SFDX_LOG_LEVEL=DEBUG",
                "",
            ]
        ),
        encoding="utf-8",
    )

    settings = CoreSettings()

    assert settings.login_url == "https://test.salesforce.com"
    assert settings.log_level == "DEBUG"
