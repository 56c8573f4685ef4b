"""The tool's own config file (``sfdx-config.json``), global or project-local."""

from __future__ import annotations

from collections.abc import Callable, Collection, Iterable
from dataclasses import dataclass
from typing import Any

from sfdx_core.config.config_file import ConfigFile, ConfigFileOptions
from sfdx_core.errors import CoreError
from sfdx_core.util.sfdc import is_salesforce_domain, validate_api_version

DEFAULT_USERNAME = "defaultusername"
DEFAULT_DEV_HUB_USERNAME = "defaultdevhubusername"
API_VERSION = "apiVersion"
INSTANCE_URL = "instanceUrl"
ISV_DEBUGGER_SID = "isvDebuggerSid"
ISV_DEBUGGER_URL = "isvDebuggerUrl"
DISABLE_TELEMETRY = "disableTelemetry"
REST_DEPLOY = "restDeploy"


def _is_boolean_string(value: Any) -> bool:
    return str(value).lower() in {"true", "false"}


@dataclass(frozen=True, slots=True)
class ConfigProperty:
    key: str
    hint: str = ""
    validator: Callable[[Any], bool] | None = None


ALLOWED_PROPERTIES: dict[str, ConfigProperty] = {
    prop.key: prop
    for prop in (
        ConfigProperty(API_VERSION, "must be in the format 42.0", validate_api_version),
        ConfigProperty(DEFAULT_DEV_HUB_USERNAME),
        ConfigProperty(DEFAULT_USERNAME),
        ConfigProperty(INSTANCE_URL, "must be a platform domain URL", is_salesforce_domain),
        ConfigProperty(ISV_DEBUGGER_SID),
        ConfigProperty(ISV_DEBUGGER_URL),
        ConfigProperty(DISABLE_TELEMETRY, "must be true or false", _is_boolean_string),
        ConfigProperty(REST_DEPLOY, "must be true or false", _is_boolean_string),
    )
}


class SfdxConfig(ConfigFile):
    """Config file that only accepts the known keys, with value validation."""

    FILENAME = "sfdx-config.json"

    @classmethod
    def get_default_options(cls, is_global: bool = True, filename: str | None = None) -> ConfigFileOptions:
        return ConfigFileOptions(filename=filename or cls.FILENAME, is_global=is_global, is_state=True)

    @staticmethod
    def get_allowed_properties() -> list[ConfigProperty]:
        return list(ALLOWED_PROPERTIES.values())

    def set(self, key: str, value: Any) -> None:
        prop = ALLOWED_PROPERTIES.get(key)
        if prop is None:
            raise CoreError(
                f"Unknown config key: {key}",
                "UnknownConfigKey",
                data={"key": key},
            )
        if value is not None and prop.validator is not None and not prop.validator(value):
            raise CoreError(
                f"Invalid config value for {key}: {prop.hint}",
                "InvalidConfigValue",
                data={"key": key},
            )
        super().set(key, value)

    def unset_values_and_write(self, keys: Iterable[str], values: Collection[Any]) -> bool:
        """Unset each of ``keys`` whose current value is one of ``values``; write if changed."""

        changed = False
        for key in keys:
            if self.has(key) and self.get(key) in values:
                self.unset(key)
                changed = True
        if changed:
            self.write()
        return changed
