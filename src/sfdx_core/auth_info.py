"""Credential records: OAuth fields for one username, encrypted at rest."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import requests
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from sfdx_core.config.aliases import Aliases
from sfdx_core.config.auth_info_config import AuthInfoConfig
from sfdx_core.crypto import Crypto
from sfdx_core.errors import (
    ApiError,
    AuthInfoCreationError,
    AuthRefreshError,
    CoreError,
)
from sfdx_core.oauth import OAuth2Client, OAuth2Options, TokenResponse
from sfdx_core.util.json import find_upper_case_keys

logger = logging.getLogger(__name__)

ENCRYPTED_FIELDS: tuple[str, ...] = ("accessToken", "refreshToken", "clientSecret", "password")

_ACCESS_TOKEN_ORG_ID = re.compile(r"^(00D\w{12,15})![.\w]*$")


class AuthFields(BaseModel):
    """Persisted shape of a credential (camelCase on disk)."""

    username: str | None = None
    org_id: str | None = None
    instance_url: str | None = None
    login_url: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    password: str | None = None
    created: str | None = None
    created_org_instance: str | None = None
    dev_hub_username: str | None = None
    is_dev_hub: bool | None = None
    expiration_date: str | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


@dataclass(frozen=True, slots=True)
class ConnectionOptions:
    """What a session handle needs; always decrypted values."""

    access_token: str | None
    instance_url: str | None
    login_url: str | None = None
    refresh_token: str | None = None
    client_id: str | None = None
    client_secret: str | None = None


def _utc_iso_now() -> str:
    return datetime.now(tz=UTC).isoformat()


class AuthInfo:
    """OAuth credential for one username.

    Use :meth:`create`; the constructor does not load or exchange anything.
    """

    def __init__(
        self,
        fields: AuthFields,
        *,
        crypto: Crypto,
        using_access_token: bool = False,
        oauth_client: OAuth2Client | None = None,
    ) -> None:
        self._fields = fields
        self._crypto = crypto
        self._using_access_token = using_access_token
        self._oauth_client = oauth_client

    @classmethod
    def create(
        cls,
        identifier: str | None,
        options: OAuth2Options | None = None,
        *,
        crypto: Crypto | None = None,
        oauth_client: OAuth2Client | None = None,
    ) -> AuthInfo:
        """Load a persisted credential, or obtain a new one when ``options`` are given.

        ``identifier`` may be an alias; it is resolved to a username first.

        Raises:
            AuthInfoCreationError: If no usable credential can be produced.
        """

        crypto = crypto or Crypto.create()
        username = (Aliases.fetch(identifier) or identifier) if identifier else None

        if options is None:
            if not username:
                raise AuthInfoCreationError("A username or alias is required to load authorization info.")
            return cls._load(username, crypto=crypto, oauth_client=oauth_client)

        if options.access_token:
            return cls._from_access_token(username, options, crypto=crypto)

        client = oauth_client or OAuth2Client(
            login_url=options.login_url,
            client_id=options.client_id,
            client_secret=options.client_secret,
            redirect_uri=options.redirect_uri,
        )
        if options.auth_code:
            auth = cls._exchange(
                username, options, client, lambda: client.request_token(options.auth_code or ""), crypto=crypto
            )
        elif options.refresh_token:
            auth = cls._exchange(
                username, options, client, lambda: client.refresh_token(options.refresh_token or ""), crypto=crypto
            )
        else:
            raise AuthInfoCreationError(
                "Unable to determine the auth flow: provide an auth code, refresh token or access token."
            )
        auth.save()
        return auth

    @classmethod
    def _load(cls, username: str, *, crypto: Crypto, oauth_client: OAuth2Client | None) -> AuthInfo:
        config = AuthInfoConfig.for_username(username)
        contents = config.read()
        if not config.exists():
            raise AuthInfoCreationError(
                f"No authorization information found for {username}.",
                actions=["Authorize the org first, or check the username and aliases."],
                data={"username": username, "file": str(config.path)},
            )

        decrypted = dict(contents)
        for key in ENCRYPTED_FIELDS:
            if decrypted.get(key) is not None:
                decrypted[key] = crypto.decrypt(decrypted[key])
        fields = AuthFields.model_validate(decrypted)
        if not fields.username:
            fields = fields.model_copy(update={"username": username})
        logger.debug("Loaded auth info", extra={"username": username})
        return cls(fields, crypto=crypto, oauth_client=oauth_client)

    @classmethod
    def _from_access_token(cls, username: str | None, options: OAuth2Options, *, crypto: Crypto) -> AuthInfo:
        if not options.instance_url:
            raise AuthInfoCreationError("An instance URL is required to authenticate with an access token.")
        match = _ACCESS_TOKEN_ORG_ID.match(options.access_token or "")
        fields = AuthFields(
            username=username,
            org_id=match.group(1) if match else None,
            access_token=options.access_token,
            instance_url=options.instance_url,
            login_url=options.login_url,
            created=_utc_iso_now(),
        )
        return cls(fields, crypto=crypto, using_access_token=True)

    @classmethod
    def _exchange(
        cls,
        username: str | None,
        options: OAuth2Options,
        client: OAuth2Client,
        grant: Callable[[], TokenResponse],
        *,
        crypto: Crypto,
    ) -> AuthInfo:
        try:
            token = grant()
            org_id = token.org_id()
            if not username or not org_id:
                user_info = client.get_user_info(token.instance_url, token.access_token)
                username = username or user_info.get("preferred_username")
                org_id = org_id or user_info.get("organization_id")
        except (ApiError, requests.RequestException) as e:
            raise AuthInfoCreationError(f"Error authenticating with the token endpoint: {e}") from e

        if not username:
            raise AuthInfoCreationError("The token endpoint did not identify a username.")

        fields = AuthFields(
            username=username,
            org_id=org_id,
            instance_url=token.instance_url,
            login_url=client.login_url,
            client_id=client.client_id,
            client_secret=options.client_secret,
            access_token=token.access_token,
            refresh_token=token.refresh_token or options.refresh_token,
            created=_utc_iso_now(),
        )
        logger.info("Authorized org", extra={"username": username, "org_id": org_id})
        return cls(fields, crypto=crypto, oauth_client=client)

    def get_fields(self) -> AuthFields:
        return self._fields

    def get_username(self) -> str | None:
        return self._fields.username

    def get_connection_options(self) -> ConnectionOptions:
        f = self._fields
        return ConnectionOptions(
            access_token=f.access_token,
            instance_url=f.instance_url,
            login_url=f.login_url,
            refresh_token=f.refresh_token,
            client_id=f.client_id,
            client_secret=f.client_secret,
        )

    def is_using_access_token(self) -> bool:
        return self._using_access_token

    def is_oauth(self) -> bool:
        return not self._using_access_token and bool(self._fields.refresh_token)

    def update(self, fields: dict[str, Any]) -> AuthInfo:
        """Merge fields into memory only. Keys may be camelCase or snake_case."""

        normalized = {to_camel(key) if "_" in key else key: value for key, value in fields.items()}
        invalid = find_upper_case_keys(normalized)
        if invalid is not None:
            raise CoreError(
                f"Invalid auth field name: {invalid}",
                "InvalidFieldName",
                data={"key": invalid},
            )
        self._fields = AuthFields.model_validate({**self._fields.to_dict(), **normalized})
        return self

    def save(self, extra_fields: dict[str, Any] | None = None) -> AuthInfo:
        """Merge ``extra_fields`` and write the credential file with secrets encrypted."""

        if extra_fields:
            self.update(extra_fields)

        if self._using_access_token:
            logger.debug("Access token credentials are kept in memory only")
            return self

        username = self._fields.username
        if not username:
            raise AuthInfoCreationError("Cannot save authorization info without a username.")

        data = self._fields.to_dict()
        for key in ENCRYPTED_FIELDS:
            if data.get(key) is not None:
                data[key] = self._crypto.encrypt(data[key])

        AuthInfoConfig.for_username(username).write(data)
        logger.debug("Saved auth info", extra={"username": username})
        return self

    def refresh(self) -> str:
        """Exchange the refresh token for a new access token and persist it.

        Raises:
            AuthRefreshError: When refresh is not possible or is rejected.
        """

        f = self._fields
        if self._using_access_token or not f.refresh_token:
            raise AuthRefreshError(
                f"Cannot refresh the access token for {f.username}: no refresh token.",
                actions=["Re-authorize the org."],
            )

        client = self._oauth_client or OAuth2Client(
            login_url=f.login_url,
            client_id=f.client_id,
            client_secret=f.client_secret,
        )
        try:
            token = client.refresh_token(f.refresh_token)
        except (ApiError, requests.RequestException) as e:
            raise AuthRefreshError(
                f"Error refreshing the access token for {f.username}: {e}",
                data={"username": f.username},
            ) from e

        update: dict[str, Any] = {"accessToken": token.access_token, "instanceUrl": token.instance_url}
        if token.refresh_token:
            update["refreshToken"] = token.refresh_token
        self.save(update)
        logger.info("Refreshed access token", extra={"username": f.username})
        return token.access_token

    def remove(self) -> None:
        """Delete the credential file. Raises ``FileNotFoundError`` when it is absent."""

        if not self._fields.username:
            raise FileNotFoundError("No credential file for an unnamed credential")
        AuthInfoConfig.for_username(self._fields.username).unlink()
