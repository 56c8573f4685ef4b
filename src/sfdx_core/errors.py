"""Error taxonomy.

Every error raised by this package is a :class:`CoreError`. Callers branch on
the ``name`` attribute, which is stable, rather than on message text.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class CoreError(Exception):
    """Base error with a stable discriminator.

    Args:
        message: Human readable message.
        name: Discriminator; defaults to the class level ``name``.
        actions: Optional remediation hints for the user.
        data: Optional context (file path, line number, ...).
    """

    name: str = "CoreError"

    def __init__(
        self,
        message: str = "",
        name: str | None = None,
        *,
        actions: list[str] | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if name:
            self.name = name
        self.actions = actions or []
        self.data: dict[str, Any] = dict(data or {})

    def __str__(self) -> str:
        return self.message or self.name


class ParseError(CoreError):
    name = "ParseError"

    def __init__(self, file: str, line: int, detail: str) -> None:
        super().__init__(
            f"Parse error in file {file} on line {line}\n{detail}",
            data={"file": file, "line": line},
        )
        self.file = file
        self.line = line


class MissingArgError(CoreError):
    name = "MissingArg"

    def __init__(self, which: str) -> None:
        super().__init__(f"Missing {which}", data={"which": which})
        self.which = which


class PathIsNullOrUndefinedError(CoreError):
    name = "PathIsNullOrUndefined"


class AuthInfoCreationError(CoreError):
    name = "AuthInfoCreationError"


class AuthRefreshError(CoreError):
    name = "AuthRefreshError"


class CryptoError(CoreError):
    name = "CryptoError"


class NoResultsError(CoreError):
    name = "NoResults"


class NotADevHubError(CoreError):
    name = "NotADevHub"


class InvalidProjectWorkspaceError(CoreError):
    name = "InvalidProjectWorkspace"


class MissingOrInvalidAccessTokenError(CoreError):
    name = "MissingOrInvalidAccessToken"


class ApiError(CoreError):
    """A failure reported by the platform; ``name`` is the platform errorCode."""

    name = "ApiError"

    def __init__(self, message: str, error_code: str | None = None, status_code: int | None = None):
        super().__init__(message, error_code, data={"status_code": status_code})
        self.error_code = error_code or self.name
        self.status_code = status_code


class StreamingTimeout(str, Enum):
    HANDSHAKE = "handshake"
    SUBSCRIBE = "subscribe"


class StreamingTimeoutError(CoreError):
    def __init__(self, kind: StreamingTimeout, message: str) -> None:
        super().__init__(message, kind.value)
        self.kind = kind
