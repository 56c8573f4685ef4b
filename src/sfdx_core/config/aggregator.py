"""Read-only view over environment, local and global tool config.

Precedence is fixed: environment > local > global. Every lookup reports which
layer supplied the value.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from sfdx_core.config import sfdx_config as keys
from sfdx_core.config.sfdx_config import SfdxConfig
from sfdx_core.errors import InvalidProjectWorkspaceError

logger = logging.getLogger(__name__)

ENV_PREFIX = "SFDX_"


def env_var_name(key: str) -> str:
    """``instanceUrl`` -> ``SFDX_INSTANCE_URL``; ``defaultusername`` -> ``SFDX_DEFAULTUSERNAME``."""

    return ENV_PREFIX + re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", key).upper()


def _env_field(key: str) -> Any:
    return Field(default=None, validation_alias=env_var_name(key))


class EnvironmentOverrides(BaseSettings):
    """One environment variable per allowed config key."""

    apiVersion: str | None = _env_field(keys.API_VERSION)  # noqa: N815
    defaultdevhubusername: str | None = _env_field(keys.DEFAULT_DEV_HUB_USERNAME)
    defaultusername: str | None = _env_field(keys.DEFAULT_USERNAME)
    instanceUrl: str | None = _env_field(keys.INSTANCE_URL)  # noqa: N815
    isvDebuggerSid: str | None = _env_field(keys.ISV_DEBUGGER_SID)  # noqa: N815
    isvDebuggerUrl: str | None = _env_field(keys.ISV_DEBUGGER_URL)  # noqa: N815
    disableTelemetry: str | None = _env_field(keys.DISABLE_TELEMETRY)  # noqa: N815
    restDeploy: str | None = _env_field(keys.REST_DEPLOY)  # noqa: N815

    model_config = SettingsConfigDict(extra="ignore")

    def as_config(self) -> dict[str, str]:
        return self.model_dump(exclude_none=True)


class Location(str, Enum):
    ENVIRONMENT = "Environment"
    LOCAL = "Local"
    GLOBAL = "Global"
    NOT_FOUND = "NotFound"


@dataclass(frozen=True, slots=True)
class ConfigInfo:
    key: str
    location: Location
    value: Any = None
    path: str | None = None

    def is_environment(self) -> bool:
        return self.location is Location.ENVIRONMENT

    def is_local(self) -> bool:
        return self.location is Location.LOCAL

    def is_global(self) -> bool:
        return self.location is Location.GLOBAL


class ConfigAggregator:
    """Snapshot of the three config layers; call :meth:`reload` to refresh."""

    def __init__(self) -> None:
        self._environment: dict[str, str] = {}
        self._local: SfdxConfig | None = None
        self._global: SfdxConfig | None = None

    @classmethod
    def create(cls) -> ConfigAggregator:
        return cls().reload()

    def reload(self) -> ConfigAggregator:
        self._environment = EnvironmentOverrides().as_config()
        try:
            self._local = SfdxConfig.create(SfdxConfig.get_default_options(is_global=False))
        except InvalidProjectWorkspaceError:
            self._local = None
        self._global = SfdxConfig.create(SfdxConfig.get_default_options(is_global=True))
        logger.debug(
            "Loaded config layers",
            extra={
                "environment_keys": sorted(self._environment),
                "local_path": str(self._local.path) if self._local else None,
                "global_path": str(self._global.path),
            },
        )
        return self

    def get_info(self, key: str) -> ConfigInfo:
        if key in self._environment:
            return ConfigInfo(key, Location.ENVIRONMENT, self._environment[key], env_var_name(key))
        if self._local is not None and self._local.has(key):
            return ConfigInfo(key, Location.LOCAL, self._local.get(key), str(self._local.path))
        if self._global is not None and self._global.has(key):
            return ConfigInfo(key, Location.GLOBAL, self._global.get(key), str(self._global.path))
        return ConfigInfo(key, Location.NOT_FOUND)

    def get_property_value(self, key: str) -> Any:
        return self.get_info(key).value

    def get_location(self, key: str) -> Location:
        return self.get_info(key).location

    def get_path(self, key: str) -> str | None:
        return self.get_info(key).path

    def get_config_infos(self) -> list[ConfigInfo]:
        return [self.get_info(key) for key in self.get_config()]

    def get_config(self) -> dict[str, Any]:
        merged: dict[str, Any] = {}
        if self._global is not None:
            merged.update(self._global.get_contents())
        if self._local is not None:
            merged.update(self._local.get_contents())
        merged.update(self._environment)
        return merged

    def get_environment(self) -> dict[str, str]:
        return dict(self._environment)

    def get_local_config(self) -> SfdxConfig | None:
        return self._local

    def get_global_config(self) -> SfdxConfig:
        if self._global is None:
            self._global = SfdxConfig.create(SfdxConfig.get_default_options(is_global=True))
        return self._global
