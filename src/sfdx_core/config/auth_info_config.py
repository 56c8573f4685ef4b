"""Credential file for one username: ``<globalDir>/<username>.json``."""

from __future__ import annotations

from sfdx_core.config.config_file import ConfigFile, ConfigFileOptions


class AuthInfoConfig(ConfigFile):
    @classmethod
    def for_username(cls, username: str) -> AuthInfoConfig:
        return cls(ConfigFileOptions(filename=f"{username}.json", is_global=True))
