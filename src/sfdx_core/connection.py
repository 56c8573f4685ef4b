"""Remote session handle built from a credential record."""

from __future__ import annotations

import logging
from typing import Any

import requests

from sfdx_core.auth_info import AuthFields, AuthInfo, ConnectionOptions
from sfdx_core.errors import ApiError, CoreError
from sfdx_core.settings import get_settings
from sfdx_core.util.sfdc import validate_api_version

logger = logging.getLogger(__name__)


def _version_key(version: str) -> float:
    try:
        return float(version)
    except ValueError:
        return 0.0


class Connection:
    """Authenticated REST access to one org.

    An expired session (401) is refreshed once through the credential record
    and the request replayed; nothing else is retried.
    """

    def __init__(
        self,
        auth_info: AuthInfo,
        *,
        api_version: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        settings = get_settings()
        self._auth_info = auth_info
        self._timeout = settings.http_timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/json",
                "User-Agent": "sfdx-core-python",
            }
        )
        self._api_version = api_version or settings.default_api_version

    @classmethod
    def create(
        cls,
        auth_info: AuthInfo,
        api_version: str | None = None,
        session: requests.Session | None = None,
    ) -> Connection:
        return cls(auth_info, api_version=api_version, session=session)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def get_auth_info(self) -> AuthInfo:
        return self._auth_info

    def get_auth_info_fields(self) -> AuthFields:
        return self._auth_info.get_fields()

    def get_connection_options(self) -> ConnectionOptions:
        return self._auth_info.get_connection_options()

    def get_username(self) -> str | None:
        return self._auth_info.get_username()

    def is_using_access_token(self) -> bool:
        return self._auth_info.is_using_access_token()

    @property
    def instance_url(self) -> str:
        url = self.get_connection_options().instance_url
        if not url:
            raise CoreError("The connection has no instance URL", "MissingInstanceUrl")
        return url.rstrip("/")

    def get_api_version(self) -> str:
        return self._api_version

    def set_api_version(self, version: str) -> None:
        if not validate_api_version(version):
            raise CoreError(f"Invalid API version {version}. Expecting format '[1-9][0-9].0'", "IncorrectAPIVersion")
        self._api_version = version

    def base_url(self) -> str:
        return f"{self.instance_url}/services/data/v{self._api_version}"

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def request(
        self,
        url: str,
        method: str = "GET",
        body: Any = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        """Send a request; ``url`` may be absolute or relative to the instance URL.

        Raises:
            ApiError: For any non-2xx response.
        """

        if not url.startswith(("http://", "https://")):
            url = f"{self.instance_url}/{url.lstrip('/')}"

        resp = self._send(method, url, body, params)
        if resp.status_code == 401 and self._auth_info.is_oauth():
            logger.debug("Session expired; refreshing access token", extra={"url": url})
            self._auth_info.refresh()
            resp = self._send(method, url, body, params)

        if not resp.ok:
            raise _api_error(resp)
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    def _send(self, method: str, url: str, body: Any, params: dict[str, str] | None) -> requests.Response:
        token = self.get_connection_options().access_token
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        logger.debug("Sending request", extra={"method": method, "url": url})
        return self._session.request(
            method,
            url,
            json=body,
            params=params,
            headers=headers,
            timeout=self._timeout,
        )

    def query(self, soql: str) -> dict[str, Any]:
        result: dict[str, Any] = self.request(f"{self.base_url()}/query", params={"q": soql})
        return result

    def retrieve_api_versions(self) -> list[dict[str, Any]]:
        versions: list[dict[str, Any]] = self.request(f"{self.instance_url}/services/data")
        return versions

    def retrieve_max_api_version(self) -> str:
        versions = [str(v["version"]) for v in self.retrieve_api_versions() if "version" in v]
        if not versions:
            raise CoreError("The org did not report any API versions", "NoResults")
        return max(versions, key=_version_key)

    def use_latest_api_version(self) -> str:
        self._api_version = self.retrieve_max_api_version()
        return self._api_version


def _api_error(resp: requests.Response) -> ApiError:
    try:
        body = resp.json()
    except ValueError:
        body = None

    if isinstance(body, list) and body and isinstance(body[0], dict):
        body = body[0]
    if isinstance(body, dict):
        code = body.get("errorCode") or body.get("error")
        message = body.get("message") or body.get("error_description") or resp.reason
    else:
        code, message = None, resp.text or resp.reason
    return ApiError(str(message), error_code=str(code) if code else f"HTTP_{resp.status_code}", status_code=resp.status_code)
