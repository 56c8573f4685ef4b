"""Test configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from sfdx_core.auth_info import AuthFields, AuthInfo
from sfdx_core.crypto import Crypto

CONFIG_ENV_VARS = (
    "SFDX_API_VERSION",
    "SFDX_DEFAULTUSERNAME",
    "SFDX_DEFAULTDEVHUBUSERNAME",
    "SFDX_INSTANCE_URL",
    "SFDX_ISV_DEBUGGER_SID",
    "SFDX_ISV_DEBUGGER_URL",
    "SFDX_DISABLE_TELEMETRY",
    "SFDX_REST_DEPLOY",
    "SFDX_DEFAULT_API_VERSION",
    "SFDX_HANDSHAKE_TIMEOUT",
    "SFDX_SUBSCRIBE_TIMEOUT",
)


class MemoryKeyRepository:
    """Key repository that never touches the OS keyring."""

    def __init__(self, key: str | None = None) -> None:
        self.key = key
        self.writes = 0

    def get_key(self) -> str | None:
        return self.key

    def set_key(self, key: str) -> None:
        self.key = key
        self.writes += 1


@pytest.fixture(autouse=True)
def global_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate global state and start outside of any project."""
    path = tmp_path / "home" / ".sfdx"
    monkeypatch.setenv("SFDX_GLOBAL_DIR", str(path))
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return path


@pytest.fixture
def key_repository() -> MemoryKeyRepository:
    return MemoryKeyRepository()


@pytest.fixture(autouse=True)
def crypto() -> Iterator[Crypto]:
    """Process-wide crypto backed by an in-memory key."""
    Crypto.reset()
    instance = Crypto.create(MemoryKeyRepository())
    yield instance
    Crypto.reset()


@pytest.fixture
def project_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A project root (holding sfdx-project.json) as the working directory."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "sfdx-project.json").write_text("{}", encoding="utf-8")
    monkeypatch.chdir(root)
    return root


@pytest.fixture
def save_auth(crypto: Crypto) -> Callable[..., AuthInfo]:
    """Persist a credential file and return its record."""

    def _save(username: str, org_id: str = "00D000000000001AAA", **fields: Any) -> AuthInfo:
        values: dict[str, Any] = {
            "username": username,
            "org_id": org_id,
            "instance_url": "https://na1.salesforce.com",
            "login_url": "https://login.salesforce.com",
            "access_token": f"{org_id}!access-{username}",
            "refresh_token": f"refresh-{username}",
            **fields,
        }
        auth = AuthInfo(AuthFields(**values), crypto=crypto)
        return auth.save()

    return _save
