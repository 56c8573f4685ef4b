"""Unit tests for the organization aggregate and its removal cascade."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from sfdx_core.auth_info import AuthInfo
from sfdx_core.config import Aliases, ConfigAggregator, SfdxConfig
from sfdx_core.connection import Connection
from sfdx_core.errors import ApiError, CoreError, NoResultsError, NotADevHubError
from sfdx_core.oauth import OAuth2Options
from sfdx_core.org import Org, OrgFields, OrgState
from sfdx_core.util import fs

ORG_ID = "00D000000000001AAA"
HUB_ORG_ID = "00D000000000002AAA"


def _set_config(is_global: bool, **values: str) -> None:
    config = SfdxConfig.create(SfdxConfig.get_default_options(is_global=is_global))
    for key, value in values.items():
        config.set(key, value)
    config.write()


def test_create_from_username(save_auth: Callable[..., AuthInfo]) -> None:
    save_auth("admin@example.com")

    org = Org.create("admin@example.com")

    assert org.get_username() == "admin@example.com"
    assert org.get_org_id() == ORG_ID
    assert org.state is OrgState.ACTIVE
    assert org.get_connection().get_username() == "admin@example.com"


def test_create_from_alias(save_auth: Callable[..., AuthInfo]) -> None:
    save_auth("admin@example.com")
    Aliases.parse_and_update(["scratch=admin@example.com"])

    assert Org.create("scratch").get_username() == "admin@example.com"


def test_create_from_default_username(save_auth: Callable[..., AuthInfo]) -> None:
    save_auth("admin@example.com")
    save_auth("hub@example.com", HUB_ORG_ID)
    _set_config(True, defaultusername="admin@example.com", defaultdevhubusername="hub@example.com")

    aggregator = ConfigAggregator.create()

    assert Org.create(aggregator=aggregator).get_username() == "admin@example.com"
    assert Org.create(aggregator=aggregator, is_dev_hub=True).get_username() == "hub@example.com"


def test_create_without_any_username() -> None:
    with pytest.raises(CoreError) as exc:
        Org.create()

    assert exc.value.name == "NoUsername"


def test_fields(save_auth: Callable[..., AuthInfo]) -> None:
    save_auth("admin@example.com", dev_hub_username="hub@example.com")
    org = Org.create("admin@example.com")

    assert org.get_field(OrgFields.STATUS) == "UNKNOWN"
    assert org.get_fields([OrgFields.ORG_ID, OrgFields.DEV_HUB_USERNAME, "instanceUrl"]) == {
        "orgId": ORG_ID,
        "devHubUsername": "hub@example.com",
        "instanceUrl": "https://na1.salesforce.com",
    }


def test_check_scratch_org(monkeypatch: pytest.MonkeyPatch, save_auth: Callable[..., AuthInfo]) -> None:
    save_auth("hub@example.com", HUB_ORG_ID)
    save_auth("scratch@example.com", ORG_ID, dev_hub_username="hub@example.com")
    queries: list[tuple[str | None, str]] = []

    def fake_query(self: Connection, soql: str) -> dict[str, Any]:
        queries.append((self.get_username(), soql))
        return {
            "totalSize": 1,
            "records": [
                {
                    "attributes": {"type": "ActiveScratchOrg"},
                    "CreatedDate": "2024-01-01T00:00:00.000+0000",
                    "Edition": "Developer",
                    "ExpirationDate": "2024-01-08",
                }
            ],
        }

    monkeypatch.setattr(Connection, "query", fake_query)
    org = Org.create("scratch@example.com")

    fields = org.check_scratch_org()

    assert queries == [
        ("hub@example.com", "SELECT CreatedDate,Edition,ExpirationDate FROM ActiveScratchOrg WHERE ScratchOrg='00D000000000001'")
    ]
    assert fields.expiration_date == "2024-01-08"
    assert org.get_field(OrgFields.STATUS) == "ACTIVE"
    assert org.get_field(OrgFields.EDITION) == "Developer"


def test_check_scratch_org_no_results(monkeypatch: pytest.MonkeyPatch, save_auth: Callable[..., AuthInfo]) -> None:
    save_auth("hub@example.com", HUB_ORG_ID)
    save_auth("scratch@example.com", ORG_ID)
    monkeypatch.setattr(Connection, "query", lambda self, soql: {"totalSize": 0, "records": []})

    with pytest.raises(NoResultsError) as exc:
        Org.create("scratch@example.com").check_scratch_org("hub@example.com")

    assert exc.value.name == "NoResults"


def test_check_scratch_org_not_a_dev_hub(monkeypatch: pytest.MonkeyPatch, save_auth: Callable[..., AuthInfo]) -> None:
    save_auth("hub@example.com", HUB_ORG_ID)
    save_auth("scratch@example.com", ORG_ID)

    def fake_query(self: Connection, soql: str) -> dict[str, Any]:
        raise ApiError("sObject type 'ActiveScratchOrg' is not supported.", error_code="INVALID_TYPE")

    monkeypatch.setattr(Connection, "query", fake_query)

    with pytest.raises(NotADevHubError) as exc:
        Org.create("scratch@example.com").check_scratch_org("hub@example.com")

    assert exc.value.name == "NotADevHub"


def test_check_scratch_org_other_api_errors_propagate(
    monkeypatch: pytest.MonkeyPatch, save_auth: Callable[..., AuthInfo]
) -> None:
    save_auth("hub@example.com", HUB_ORG_ID)
    save_auth("scratch@example.com", ORG_ID)

    def fake_query(self: Connection, soql: str) -> dict[str, Any]:
        raise ApiError("boom", error_code="UNKNOWN_EXCEPTION")

    monkeypatch.setattr(Connection, "query", fake_query)

    with pytest.raises(ApiError) as exc:
        Org.create("scratch@example.com").check_scratch_org("hub@example.com")

    assert exc.value.name == "UNKNOWN_EXCEPTION"


def test_check_scratch_org_without_dev_hub(save_auth: Callable[..., AuthInfo]) -> None:
    save_auth("scratch@example.com", ORG_ID)

    with pytest.raises(CoreError) as exc:
        Org.create("scratch@example.com").check_scratch_org()

    assert exc.value.name == "NoDevHubUsername"


def test_get_dev_hub_org(save_auth: Callable[..., AuthInfo]) -> None:
    save_auth("hub@example.com", HUB_ORG_ID, is_dev_hub=True)
    save_auth("scratch@example.com", ORG_ID, dev_hub_username="hub@example.com")

    hub = Org.create("hub@example.com")
    assert hub.get_dev_hub_org() is hub

    from_scratch = Org.create("scratch@example.com").get_dev_hub_org()
    assert from_scratch.get_username() == "hub@example.com"
    assert from_scratch.is_dev_hub_org() is True


def test_refresh_auth_requests_base_url(monkeypatch: pytest.MonkeyPatch, save_auth: Callable[..., AuthInfo]) -> None:
    save_auth("admin@example.com")
    urls: list[str] = []
    monkeypatch.setattr(Connection, "request", lambda self, url, *args, **kwargs: urls.append(url))

    Org.create("admin@example.com").refresh_auth()

    assert urls == ["https://na1.salesforce.com/services/data/v42.0"]


def test_retrieve_max_api_version(monkeypatch: pytest.MonkeyPatch, save_auth: Callable[..., AuthInfo]) -> None:
    save_auth("admin@example.com")
    monkeypatch.setattr(
        Connection,
        "retrieve_api_versions",
        lambda self: [{"version": "42.0"}, {"version": "90.0"}, {"version": "9.0"}],
    )

    assert Org.create("admin@example.com").retrieve_max_api_version() == "90.0"


def test_add_and_remove_username(global_dir: Path, save_auth: Callable[..., AuthInfo]) -> None:
    save_auth("admin@example.com")
    user = save_auth("user@example.com")
    org = Org.create("admin@example.com")

    org.add_username(user)
    org.add_username("user@example.com")
    org.add_username("admin@example.com")

    membership = global_dir / f"{ORG_ID}.json"
    assert json.loads(membership.read_text(encoding="utf-8")) == {"usernames": ["user@example.com"]}

    org.remove_username("user@example.com")
    assert json.loads(membership.read_text(encoding="utf-8")) == {"usernames": []}


def test_membership_file_with_bad_shape(global_dir: Path, save_auth: Callable[..., AuthInfo]) -> None:
    save_auth("admin@example.com")
    user = save_auth("user@example.com")
    (global_dir / f"{ORG_ID}.json").write_text(json.dumps({"usernames": "nope"}), encoding="utf-8")

    with pytest.raises(CoreError) as exc:
        Org.create("admin@example.com").add_username(user)

    assert exc.value.name == "UnexpectedDataFormat"


def test_membership_file_rejects_invalid_org_id(global_dir: Path, save_auth: Callable[..., AuthInfo]) -> None:
    save_auth("admin@example.com", "../outside")

    with pytest.raises(CoreError) as exc:
        Org.create("admin@example.com").retrieve_org_users_config()

    assert exc.value.name == "InvalidOrgId"
    assert not (global_dir.parent / "outside.json").exists()


def test_read_user_auth_files_skips_missing(save_auth: Callable[..., AuthInfo]) -> None:
    save_auth("admin@example.com")
    user = save_auth("user@example.com")
    org = Org.create("admin@example.com")
    org.add_username(user)
    config = org.retrieve_org_users_config()
    config.read()
    config.set_usernames(["user@example.com", "gone@example.com"])
    config.write()

    usernames = [auth.get_username() for auth in org.read_user_auth_files()]

    assert usernames == ["admin@example.com", "user@example.com"]


def test_remove_cascades(project_dir: Path, global_dir: Path, save_auth: Callable[..., AuthInfo]) -> None:
    save_auth("admin@example.com")
    user = save_auth("user@example.com")
    save_auth("other@example.com", HUB_ORG_ID)
    Aliases.parse_and_update(["admin=admin@example.com", "user=user@example.com", "other=other@example.com"])
    _set_config(True, defaultusername="admin@example.com", defaultdevhubusername="other@example.com")
    _set_config(False, defaultusername="user")
    local_data = project_dir / ".sfdx" / "orgs" / "admin@example.com"
    local_data.mkdir(parents=True)
    (local_data / "maxRevision.json").write_text("{}", encoding="utf-8")

    aggregator = ConfigAggregator.create()
    org = Org.create("admin@example.com", aggregator)
    org.add_username(user)

    org.remove()

    assert org.state is OrgState.REMOVED
    assert not (global_dir / "admin@example.com.json").exists()
    assert not (global_dir / "user@example.com.json").exists()
    assert not (global_dir / f"{ORG_ID}.json").exists()
    assert (global_dir / "other@example.com.json").exists()
    assert not local_data.exists()
    assert Aliases.retrieve().keys() == ["other"]
    assert aggregator.get_property_value("defaultusername") is None
    assert aggregator.get_property_value("defaultdevhubusername") == "other@example.com"

    org.remove()


def test_remove_access_token_org_keeps_membership_file(global_dir: Path) -> None:
    membership = global_dir / f"{ORG_ID}.json"
    global_dir.mkdir(parents=True)
    membership.write_text(json.dumps({"usernames": ["user@example.com"]}), encoding="utf-8")
    auth = AuthInfo.create(
        "tok@example.com",
        OAuth2Options(access_token=f"{ORG_ID}!abc", instance_url="https://na1.salesforce.com"),
    )
    org = Org.create(Connection.create(auth))

    org.remove()

    assert membership.exists()
    assert org.state is OrgState.REMOVED


def test_clean_local_org_data_outside_project_is_noop(save_auth: Callable[..., AuthInfo]) -> None:
    save_auth("admin@example.com")

    Org.create("admin@example.com").clean_local_org_data()


def test_clean_local_org_data_with_override(project_dir: Path, save_auth: Callable[..., AuthInfo]) -> None:
    save_auth("admin@example.com")
    target = project_dir / ".sfdx" / "custom"
    target.mkdir(parents=True)

    Org.create("admin@example.com").clean_local_org_data("custom")

    assert not target.exists()


def test_clean_local_org_data_propagates_other_errors(
    monkeypatch: pytest.MonkeyPatch, project_dir: Path, save_auth: Callable[..., AuthInfo]
) -> None:
    save_auth("admin@example.com")

    def denied(path: Any) -> None:
        raise PermissionError(13, "Permission denied", str(path))

    monkeypatch.setattr(fs, "remove", denied)

    with pytest.raises(PermissionError):
        Org.create("admin@example.com").clean_local_org_data()
