"""JSON-file backed key/value documents with global or project-local scope."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

from sfdx_core.errors import InvalidProjectWorkspaceError
from sfdx_core.settings import PROJECT_FILE, STATE_FOLDER, global_dir
from sfdx_core.util import fs
from sfdx_core.util.json import read_json_map, write_json

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="ConfigFile")


@dataclass(frozen=True, slots=True)
class ConfigFileOptions:
    """Where a config file lives.

    Attributes:
        filename: Base name of the file.
        is_global: Per-user global directory instead of the project.
        is_state: Inside the project's state folder (``.sfdx``); ignored for
            global files, which always live in the global directory.
        root_folder: Explicit root; skips root resolution.
    """

    filename: str
    is_global: bool = True
    is_state: bool = True
    root_folder: Path | None = None


def resolve_project_path(start: fs.PathLike | None = None) -> Path:
    """Return the nearest ancestor directory holding the project marker.

    Raises:
        InvalidProjectWorkspaceError: If there is none.
    """

    root = fs.traverse_for_file(start or Path.cwd(), PROJECT_FILE)
    if root is None:
        raise InvalidProjectWorkspaceError(
            f"This directory does not contain a valid project: {PROJECT_FILE} not found.",
            actions=["Run the command from inside a project directory."],
        )
    return root


class ConfigFile:
    """A config document bound to one file path.

    ``get``/``set``/``unset`` only touch the in-memory copy; ``write`` persists.
    """

    FILENAME: str = "config.json"

    def __init__(self, options: ConfigFileOptions | None = None) -> None:
        self.options = options or self.get_default_options()
        root = self.options.root_folder or self.resolve_root_folder(self.options.is_global)
        if root is None:
            raise InvalidProjectWorkspaceError(
                f"Cannot use local config {self.options.filename}: "
                f"{PROJECT_FILE} not found in this directory or any parent.",
            )
        if not self.options.is_global and self.options.is_state:
            root = root / STATE_FOLDER
        self.path: Path = root / self.options.filename
        self._contents: dict[str, Any] = {}
        self._exists = False

    @classmethod
    def get_default_options(cls, is_global: bool = True, filename: str | None = None) -> ConfigFileOptions:
        return ConfigFileOptions(filename=filename or cls.FILENAME, is_global=is_global)

    @classmethod
    def create(cls: type[T], options: ConfigFileOptions | None = None) -> T:
        """Construct and read."""

        config = cls(options)
        config.read()
        return config

    @staticmethod
    def resolve_root_folder(is_global: bool) -> Path | None:
        """Global: the per-user directory. Local: the project root, or None."""

        if is_global:
            return global_dir()
        return fs.traverse_for_file(Path.cwd(), PROJECT_FILE)

    def read(self) -> dict[str, Any]:
        try:
            self._contents = read_json_map(self.path)
            self._exists = True
        except FileNotFoundError:
            self._contents = {}
            self._exists = False
        return self._contents

    def write(self, new_contents: dict[str, Any] | None = None) -> dict[str, Any]:
        if new_contents is not None:
            self._contents = dict(new_contents)
        fs.mkdirp(self.path.parent)
        write_json(self.path, self._contents)
        self._exists = True
        logger.debug("Wrote config file", extra={"path": str(self.path)})
        return self._contents

    def exists(self) -> bool:
        return self._exists or self.path.exists()

    def access(self, mode: int = os.R_OK) -> bool:
        try:
            fs.access(self.path, mode)
            return True
        except OSError:
            return False

    def stat(self) -> os.stat_result:
        return fs.stat(self.path)

    def unlink(self) -> None:
        """Delete the file. Raises ``FileNotFoundError`` when it is absent."""

        fs.remove(self.path)
        self._exists = False

    def get_path(self) -> Path:
        return self.path

    def is_global(self) -> bool:
        return self.options.is_global

    def get_contents(self) -> dict[str, Any]:
        return self._contents

    def set_contents(self, contents: dict[str, Any]) -> None:
        self._contents = dict(contents)

    def get(self, key: str) -> Any:
        return self._contents.get(key)

    def set(self, key: str, value: Any) -> None:
        self._contents[key] = value

    def unset(self, key: str) -> bool:
        if key not in self._contents:
            return False
        del self._contents[key]
        return True

    def has(self, key: str) -> bool:
        return key in self._contents

    def keys(self) -> list[str]:
        return list(self._contents)

    def values(self) -> list[Any]:
        return list(self._contents.values())

    def entries(self) -> Iterator[tuple[str, Any]]:
        return iter(self._contents.items())

    def get_keys_by_value(self, value: Any) -> list[str]:
        return [key for key, current in self._contents.items() if current == value]
