"""OAuth 2.0 token endpoint client (authorization code and refresh token grants)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import requests
from pydantic import BaseModel, ConfigDict

from sfdx_core.errors import ApiError
from sfdx_core.settings import get_settings

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_ID = "PlatformCLI"
DEFAULT_CLIENT_SECRET = ""
DEFAULT_REDIRECT_URI = "http://localhost:1717/OauthRedirect"


@dataclass(frozen=True, slots=True)
class OAuth2Options:
    """Ways to obtain a credential.

    Exactly one of ``auth_code``, ``refresh_token`` or ``access_token`` selects
    the flow. ``client_id``/``client_secret`` identify the connected app and are
    absent for access-token-only auth.
    """

    client_id: str | None = None
    client_secret: str | None = None
    login_url: str | None = None
    redirect_uri: str = DEFAULT_REDIRECT_URI
    auth_code: str | None = None
    refresh_token: str | None = None
    access_token: str | None = None
    instance_url: str | None = None


class TokenResponse(BaseModel):
    """Body returned by the token endpoint."""

    access_token: str
    instance_url: str
    refresh_token: str | None = None
    id: str | None = None
    issued_at: str | None = None
    token_type: str | None = None
    signature: str | None = None

    model_config = ConfigDict(extra="ignore")

    def org_id(self) -> str | None:
        """Parse ``.../id/<orgId>/<userId>``."""

        if not self.id:
            return None
        parts = self.id.rstrip("/").split("/")
        if len(parts) < 2 or parts[-3:-2] != ["id"]:
            return None
        return parts[-2]


class OAuth2Client:
    """Talks to ``<loginUrl>/services/oauth2/*``."""

    def __init__(
        self,
        *,
        login_url: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        redirect_uri: str = DEFAULT_REDIRECT_URI,
        session: requests.Session | None = None,
    ) -> None:
        settings = get_settings()
        self.login_url = (login_url or settings.login_url).rstrip("/")
        self.client_id = client_id or DEFAULT_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else DEFAULT_CLIENT_SECRET
        self.redirect_uri = redirect_uri
        self._timeout = settings.http_timeout
        self._session = session or requests.Session()

    @property
    def token_url(self) -> str:
        return f"{self.login_url}/services/oauth2/token"

    def request_token(self, code: str) -> TokenResponse:
        return self._post_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
            }
        )

    def refresh_token(self, refresh_token: str) -> TokenResponse:
        return self._post_token(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            }
        )

    def get_user_info(self, instance_url: str, access_token: str) -> dict[str, Any]:
        resp = self._session.get(
            f"{instance_url.rstrip('/')}/services/oauth2/userinfo",
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=self._timeout,
        )
        if not resp.ok:
            raise _oauth_error(resp)
        data: dict[str, Any] = resp.json()
        return data

    def _post_token(self, params: dict[str, str]) -> TokenResponse:
        logger.debug(
            "Requesting token", extra={"grant_type": params["grant_type"], "url": self.token_url}
        )
        resp = self._session.post(
            self.token_url,
            data=params,
            headers={"Accept": "application/json"},
            timeout=self._timeout,
        )
        if not resp.ok:
            raise _oauth_error(resp)
        return TokenResponse.model_validate(resp.json())


def _oauth_error(resp: requests.Response) -> ApiError:
    try:
        body = resp.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    code = body.get("error") or f"HTTP_{resp.status_code}"
    description = body.get("error_description") or resp.reason or "OAuth request failed"
    return ApiError(f"{code}: {description}", error_code=str(code), status_code=resp.status_code)
