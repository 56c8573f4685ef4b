"""Unit tests for the REST session handle (HTTP mocked)."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any
from unittest.mock import Mock

import pytest

from sfdx_core.auth_info import AuthInfo
from sfdx_core.connection import Connection
from sfdx_core.errors import ApiError, CoreError
from sfdx_core.oauth import OAuth2Client, TokenResponse


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None, reason: str = "OK") -> None:
        self.status_code = status_code
        self.reason = reason
        self._body = body
        self.content = b"" if body is None else json.dumps(body).encode("utf-8")
        self.text = self.content.decode("utf-8")

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("no body")
        return self._body


class FakeSession:
    def __init__(self, *responses: FakeResponse) -> None:
        self.headers: dict[str, str] = {}
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        return self.responses.pop(0)


def test_base_url_and_api_version(save_auth: Callable[..., AuthInfo]) -> None:
    connection = Connection.create(save_auth("admin@example.com"), api_version="50.0")

    assert connection.base_url() == "https://na1.salesforce.com/services/data/v50.0"

    with pytest.raises(CoreError) as exc:
        connection.set_api_version("50")
    assert exc.value.name == "IncorrectAPIVersion"

    connection.set_api_version("51.0")
    assert connection.get_api_version() == "51.0"


def test_default_api_version_from_settings(
    monkeypatch: pytest.MonkeyPatch, save_auth: Callable[..., AuthInfo]
) -> None:
    monkeypatch.setenv("SFDX_DEFAULT_API_VERSION", "59.0")

    assert Connection.create(save_auth("admin@example.com")).get_api_version() == "59.0"


def test_request_sends_bearer_token(save_auth: Callable[..., AuthInfo]) -> None:
    session = FakeSession(FakeResponse(body={"ok": True}))
    connection = Connection(save_auth("admin@example.com"), session=session)  # type: ignore[arg-type]

    assert connection.request("/services/data") == {"ok": True}

    call = session.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == "https://na1.salesforce.com/services/data"
    assert call["headers"] == {"Authorization": "Bearer 00D000000000001AAA!access-admin@example.com"}


def test_request_refreshes_once_on_401(save_auth: Callable[..., AuthInfo]) -> None:
    save_auth("admin@example.com")
    client = Mock(spec=OAuth2Client)
    client.refresh_token.return_value = TokenResponse(
        access_token="00D000000000001AAA!renewed", instance_url="https://na1.salesforce.com"
    )
    auth = AuthInfo.create("admin@example.com", oauth_client=client)
    session = FakeSession(
        FakeResponse(401, [{"errorCode": "INVALID_SESSION_ID", "message": "Session expired"}], "Unauthorized"),
        FakeResponse(body={"totalSize": 0, "records": []}),
    )
    connection = Connection(auth, session=session)  # type: ignore[arg-type]

    result = connection.query("SELECT Id FROM Account")

    assert result == {"totalSize": 0, "records": []}
    assert len(session.calls) == 2
    assert session.calls[1]["headers"] == {"Authorization": "Bearer 00D000000000001AAA!renewed"}
    assert session.calls[1]["params"] == {"q": "SELECT Id FROM Account"}
    assert session.calls[1]["url"].endswith("/services/data/v42.0/query")


def test_request_error_carries_error_code(save_auth: Callable[..., AuthInfo]) -> None:
    session = FakeSession(
        FakeResponse(400, [{"errorCode": "INVALID_TYPE", "message": "sObject type is not supported"}], "Bad Request")
    )
    connection = Connection(save_auth("admin@example.com"), session=session)  # type: ignore[arg-type]

    with pytest.raises(ApiError) as exc:
        connection.query("SELECT Id FROM ActiveScratchOrg")

    assert exc.value.name == "INVALID_TYPE"
    assert exc.value.status_code == 400
    assert "not supported" in str(exc.value)


def test_request_error_without_body(save_auth: Callable[..., AuthInfo]) -> None:
    session = FakeSession(FakeResponse(503, None, "Service Unavailable"))
    connection = Connection(save_auth("admin@example.com"), session=session)  # type: ignore[arg-type]

    with pytest.raises(ApiError) as exc:
        connection.request("/services/data")

    assert exc.value.name == "HTTP_503"


def test_retrieve_max_api_version(save_auth: Callable[..., AuthInfo]) -> None:
    versions = [{"version": "41.0"}, {"version": "9.0"}, {"version": "100.0"}, {"version": "59.0"}]
    session = FakeSession(FakeResponse(body=versions), FakeResponse(body=versions))
    connection = Connection(save_auth("admin@example.com"), session=session)  # type: ignore[arg-type]

    assert connection.retrieve_max_api_version() == "100.0"
    assert connection.use_latest_api_version() == "100.0"
    assert connection.get_api_version() == "100.0"
