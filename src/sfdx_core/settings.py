"""Process settings.

Settings are loaded from:
- environment variables
- and a local `.env` file (if present)

Settings are read fresh on every call to :func:`get_settings` so tests (and
long-running hosts) can change the environment between calls.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

STATE_FOLDER = ".sfdx"
PROJECT_FILE = "sfdx-project.json"


class CoreSettings(BaseSettings):
    """Settings for the local trust-and-state layer.

    Environment variables:
    - SFDX_GLOBAL_DIR           (optional)
    - SFDX_LOG_LEVEL            (optional)
    - SFDX_LOGIN_URL            (optional)
    - SFDX_DEFAULT_API_VERSION  (optional)
    - SFDX_HANDSHAKE_TIMEOUT    (optional, seconds)
    - SFDX_SUBSCRIBE_TIMEOUT    (optional, seconds)
    - SFDX_HTTP_TIMEOUT         (optional, seconds)
    - SFDX_KEYCHAIN_SERVICE     (optional)
    - SFDX_KEYCHAIN_ACCOUNT     (optional)
    """

    global_dir: Path = Field(
        default_factory=lambda: Path.home() / STATE_FOLDER,
        validation_alias="SFDX_GLOBAL_DIR",
        description="Per-user directory holding credentials, aliases and global config",
    )

    log_level: str = Field(
        default="WARNING",
        validation_alias="SFDX_LOG_LEVEL",
        description="Root logging level",
    )

    login_url: str = Field(
        default="https://login.salesforce.com",
        validation_alias="SFDX_LOGIN_URL",
        description="Default OAuth login host",
    )

    default_api_version: str = Field(
        default="42.0",
        validation_alias="SFDX_DEFAULT_API_VERSION",
        description="API version used when none is configured",
    )

    handshake_timeout: float = Field(
        default=60.0,
        gt=0,
        validation_alias="SFDX_HANDSHAKE_TIMEOUT",
        description="Streaming handshake timeout in seconds",
    )
    subscribe_timeout: float = Field(
        default=180.0,
        gt=0,
        validation_alias="SFDX_SUBSCRIBE_TIMEOUT",
        description="Streaming subscribe timeout in seconds",
    )

    http_timeout: float = Field(
        default=30.0,
        gt=0,
        validation_alias="SFDX_HTTP_TIMEOUT",
        description="Timeout for regular (non streaming) HTTP calls",
    )

    keychain_service: str = Field(
        default="sfdx",
        validation_alias="SFDX_KEYCHAIN_SERVICE",
        description="Keyring service name holding the encryption key",
    )
    keychain_account: str = Field(
        default="local",
        validation_alias="SFDX_KEYCHAIN_ACCOUNT",
        description="Keyring account name holding the encryption key",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )


def get_settings() -> CoreSettings:
    return CoreSettings()


def global_dir() -> Path:
    """Directory for global state (credentials, aliases, global config)."""

    return get_settings().global_dir
