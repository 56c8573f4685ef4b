"""Global alias file mapping short names to usernames."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import Enum
from typing import Any

from sfdx_core.config.config_file import ConfigFile, ConfigFileOptions
from sfdx_core.errors import CoreError
from sfdx_core.util.json import find_upper_case_keys

logger = logging.getLogger(__name__)


class AliasGroup(str, Enum):
    ORGS = "orgs"


class Aliases(ConfigFile):
    """``alias.json`` in the global directory, grouped by alias kind."""

    FILENAME = "alias.json"

    def __init__(self, options: ConfigFileOptions | None = None, group: AliasGroup = AliasGroup.ORGS):
        super().__init__(options)
        self.group = group

    @classmethod
    def get_default_options(cls, is_global: bool = True, filename: str | None = None) -> ConfigFileOptions:
        return ConfigFileOptions(filename=filename or cls.FILENAME, is_global=True)

    def _group(self) -> dict[str, Any]:
        contents = self.get_contents()
        group = contents.get(self.group.value)
        if not isinstance(group, dict):
            group = {}
            contents[self.group.value] = group
        return group

    def get(self, key: str) -> Any:
        return self._group().get(key)

    def set(self, key: str, value: Any) -> None:
        self._group()[key] = value

    def unset(self, key: str) -> bool:
        group = self._group()
        if key not in group:
            return False
        del group[key]
        return True

    def has(self, key: str) -> bool:
        return key in self._group()

    def keys(self) -> list[str]:
        return list(self._group())

    def get_keys_by_value(self, value: Any) -> list[str]:
        return [key for key, current in self._group().items() if current == value]

    def update_values(self, new_values: dict[str, str | None]) -> None:
        group = self._group()
        for name, value in new_values.items():
            if value:
                group[name] = value
            else:
                group.pop(name, None)

    @classmethod
    def retrieve(cls) -> Aliases:
        return cls.create()

    @classmethod
    def parse_and_update(cls, pairs: Iterable[str]) -> dict[str, str | None]:
        """Apply ``name=value`` pairs and write once. An empty value removes the alias.

        Raises:
            CoreError: ``InvalidFormat`` for a malformed pair or an invalid name.
        """

        new_values: dict[str, str | None] = {}
        for pair in pairs:
            name, sep, value = pair.partition("=")
            name = name.strip()
            if not sep or not _is_valid_alias_name(name):
                raise CoreError(
                    f"Setting aliases must be in the format <key>=<value> but found: [{pair}]",
                    "InvalidFormat",
                    data={"pair": pair},
                )
            new_values[name] = value.strip() or None

        aliases = cls.retrieve()
        aliases.update_values(new_values)
        aliases.write()
        logger.debug("Updated aliases", extra={"aliases": sorted(new_values)})
        return new_values

    @classmethod
    def fetch(cls, name: str) -> str | None:
        value = cls.retrieve().get(name)
        return value if isinstance(value, str) else None

    @classmethod
    def unset_and_save(cls, name: str) -> None:
        aliases = cls.retrieve()
        if aliases.unset(name):
            aliases.write()

    @classmethod
    def unset_values_and_save(cls, values: Iterable[str]) -> list[str]:
        """Remove every alias pointing at one of ``values``; return the removed names."""

        aliases = cls.retrieve()
        removed: list[str] = []
        for value in values:
            for name in aliases.get_keys_by_value(value):
                aliases.unset(name)
                removed.append(name)
        if removed:
            aliases.write()
        return removed


def _is_valid_alias_name(name: str) -> bool:
    if not name or any(ch.isspace() for ch in name):
        return False
    return find_upper_case_keys({name: None}) is None
