"""Filesystem primitives used by the config and organization layers."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from sfdx_core.errors import PathIsNullOrUndefinedError

logger = logging.getLogger(__name__)

DEFAULT_FILE_MODE = 0o600

PathLike = str | os.PathLike[str]


def read_file(path: PathLike, encoding: str = "utf-8") -> str:
    return Path(path).read_text(encoding=encoding)


def write_file(
    path: PathLike,
    data: str,
    *,
    encoding: str = "utf-8",
    mode: int = DEFAULT_FILE_MODE,
) -> None:
    """Write text and force the file mode, even when the file already existed."""

    target = Path(path)
    fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "w", encoding=encoding) as f:
        f.write(data)
    os.chmod(target, mode)


def mkdirp(path: PathLike, mode: int = 0o777) -> None:
    Path(path).mkdir(mode=mode, parents=True, exist_ok=True)


def access(path: PathLike, mode: int = os.F_OK) -> None:
    """Raise ``FileNotFoundError`` or ``PermissionError`` like node's ``fs.access``."""

    target = Path(path)
    if not target.exists():
        raise FileNotFoundError(2, "No such file or directory", str(target))
    if not os.access(target, mode):
        raise PermissionError(13, "Permission denied", str(target))


def stat(path: PathLike) -> os.stat_result:
    return Path(path).stat()


def remove(path: PathLike | None) -> None:
    """Recursively delete a file or directory.

    Raises:
        PathIsNullOrUndefinedError: If ``path`` is falsy.
        FileNotFoundError: If nothing exists at ``path``.
    """

    if not path:
        raise PathIsNullOrUndefinedError("Path is null or undefined.")

    target = Path(path)
    if target.is_dir() and not target.is_symlink():
        shutil.rmtree(target)
    else:
        target.unlink()
    logger.debug("Removed path", extra={"path": str(target)})


def traverse_for_file(start: PathLike, file_name: str) -> Path | None:
    """Walk upward from ``start`` and return the first directory containing ``file_name``."""

    current = Path(start).resolve()
    while True:
        try:
            stat(current / file_name)
            return current
        except FileNotFoundError:
            pass
        if current.parent == current:
            return None
        current = current.parent
