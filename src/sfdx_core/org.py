"""Organization aggregate: credential, session handle and lifecycle.

An :class:`Org` owns its :class:`AuthInfo` and :class:`Connection`. Removal
cascades across every user linked to the org and is terminal.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from enum import Enum
from pathlib import Path
from typing import Any

from sfdx_core.auth_info import AuthFields, AuthInfo
from sfdx_core.config.aggregator import ConfigAggregator
from sfdx_core.config.aliases import Aliases
from sfdx_core.config.config_file import resolve_project_path
from sfdx_core.config.org_users_config import OrgUsersConfig
from sfdx_core.config.sfdx_config import DEFAULT_DEV_HUB_USERNAME, DEFAULT_USERNAME, SfdxConfig
from sfdx_core.connection import Connection
from sfdx_core.errors import (
    ApiError,
    AuthInfoCreationError,
    CoreError,
    InvalidProjectWorkspaceError,
    NoResultsError,
    NotADevHubError,
)
from sfdx_core.settings import STATE_FOLDER
from sfdx_core.util import fs
from sfdx_core.util.sfdc import trim_to_15

logger = logging.getLogger(__name__)

DEFAULT_KEYS = (DEFAULT_USERNAME, DEFAULT_DEV_HUB_USERNAME)

SCRATCH_ORG_QUERY = "SELECT CreatedDate,Edition,ExpirationDate FROM ActiveScratchOrg WHERE ScratchOrg='{org_id}'"


class OrgFields(str, Enum):
    ALIAS = "alias"
    CREATED_BY = "createdBy"
    CREATED_DATE = "createdDate"
    CREATED_ORG_INSTANCE = "createdOrgInstance"
    DEV_HUB_USERNAME = "devHubUsername"
    EDITION = "edition"
    EXPIRATION_DATE = "expirationDate"
    INSTANCE_URL = "instanceUrl"
    IS_DEV_HUB = "isDevHub"
    LOGIN_URL = "loginUrl"
    ORG_ID = "orgId"
    STATUS = "status"
    USERNAME = "username"


class OrgStatus(str, Enum):
    ACTIVE = "ACTIVE"
    UNKNOWN = "UNKNOWN"


class OrgState(str, Enum):
    CREATED = "created"
    ACTIVE = "active"
    REMOVED = "removed"


def _lower_first(key: str) -> str:
    return key[:1].lower() + key[1:]


class Org:
    """A remote organization this tool operates against."""

    def __init__(
        self,
        connection: Connection,
        aggregator: ConfigAggregator | None = None,
        is_dev_hub: bool = False,
    ) -> None:
        self._connection = connection
        self._aggregator = aggregator
        self._is_dev_hub = is_dev_hub
        self._fields: dict[str, Any] = {OrgFields.STATUS.value: OrgStatus.UNKNOWN.value}
        self._state = OrgState.CREATED

    @classmethod
    def create(
        cls,
        target: str | Connection | None = None,
        aggregator: ConfigAggregator | None = None,
        is_dev_hub: bool = False,
    ) -> Org:
        """Build an org from a username/alias, an existing connection, or config defaults.

        With no ``target`` the aggregator's ``defaultusername`` is used, or
        ``defaultdevhubusername`` when ``is_dev_hub`` is set.
        """

        if isinstance(target, Connection):
            connection = target
        else:
            alias_or_username = target
            if not alias_or_username:
                aggregator = aggregator or ConfigAggregator.create()
                key = DEFAULT_DEV_HUB_USERNAME if is_dev_hub else DEFAULT_USERNAME
                alias_or_username = aggregator.get_property_value(key)
                if not alias_or_username:
                    raise CoreError(
                        f"No username given and no {key} is configured.",
                        "NoUsername",
                        actions=[f"Set {key} or pass a username or alias."],
                    )
            connection = Connection.create(AuthInfo.create(str(alias_or_username)))

        org = cls(connection, aggregator, is_dev_hub)
        org._state = OrgState.ACTIVE
        logger.debug("Org created", extra={"username": org.get_username()})
        return org

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def state(self) -> OrgState:
        return self._state

    def get_connection(self) -> Connection:
        return self._connection

    def get_auth_info(self) -> AuthInfo:
        return self._connection.get_auth_info()

    def get_config_aggregator(self) -> ConfigAggregator | None:
        return self._aggregator

    def get_username(self) -> str | None:
        return self._connection.get_username()

    def get_org_id(self) -> str | None:
        return self._connection.get_auth_info_fields().org_id

    def is_dev_hub_org(self) -> bool:
        return self._is_dev_hub or bool(self._connection.get_auth_info_fields().is_dev_hub)

    def is_using_access_token(self) -> bool:
        return self._connection.is_using_access_token()

    def get_field(self, name: OrgFields | str) -> Any:
        key = name.value if isinstance(name, OrgFields) else name
        if self._fields.get(key) is not None:
            return self._fields[key]
        return self._connection.get_auth_info_fields().to_dict().get(key)

    def get_fields(self, names: Iterable[OrgFields | str]) -> dict[str, Any]:
        return {
            (name.value if isinstance(name, OrgFields) else name): self.get_field(name) for name in names
        }

    # ------------------------------------------------------------------
    # Remote checks
    # ------------------------------------------------------------------

    def check_scratch_org(self, dev_hub_username_or_alias: str | None = None) -> AuthFields:
        """Confirm this org is an active scratch org of the dev hub.

        Raises:
            NoResultsError: The dev hub has no active scratch org with this id.
            NotADevHubError: The dev hub org has no scratch org registry.
        """

        dev_hub = self._resolve_dev_hub(dev_hub_username_or_alias)
        fields = self._connection.get_auth_info_fields()
        soql = SCRATCH_ORG_QUERY.format(org_id=trim_to_15(fields.org_id or ""))

        try:
            results = dev_hub.get_connection().query(soql)
        except ApiError as e:
            if e.name == "INVALID_TYPE":
                raise NotADevHubError(
                    f"The provided dev hub username {dev_hub.get_username()} is not a valid dev hub.",
                    actions=["Enable the Dev Hub feature in the org, or use a different dev hub."],
                ) from e
            raise

        records = results.get("records") or []
        if not records:
            raise NoResultsError(
                f"No active scratch org found for org id {fields.org_id}.",
                data={"org_id": fields.org_id},
            )

        row = {_lower_first(k): v for k, v in records[0].items() if k != "attributes"}
        auth_info = self.get_auth_info()
        if row:
            auth_info.update(row)
        self._fields[OrgFields.STATUS.value] = OrgStatus.ACTIVE.value
        return auth_info.get_fields()

    def _resolve_dev_hub(self, dev_hub_username_or_alias: str | None) -> Org:
        name = dev_hub_username_or_alias
        if not name and self._aggregator is not None:
            name = self._aggregator.get_property_value(DEFAULT_DEV_HUB_USERNAME)
        if not name:
            name = self._connection.get_auth_info_fields().dev_hub_username
        if not name:
            raise CoreError(
                "No dev hub username or alias was found.",
                "NoDevHubUsername",
                actions=[f"Set {DEFAULT_DEV_HUB_USERNAME} or pass a dev hub username."],
            )
        if name == self.get_username():
            return self
        return Org.create(name, self._aggregator, is_dev_hub=True)

    def get_dev_hub_org(self) -> Org:
        """Return this org if it is a dev hub, else the org it was created from."""

        if self.is_dev_hub_org():
            return self
        dev_hub_username = self._connection.get_auth_info_fields().dev_hub_username
        if not dev_hub_username:
            raise CoreError(
                f"No dev hub is recorded for {self.get_username()}.",
                "NoDevHubUsername",
            )
        return Org.create(dev_hub_username, self._aggregator, is_dev_hub=True)

    def refresh_auth(self) -> None:
        """Make a cheap authenticated request so an expired token gets refreshed."""

        self._connection.request(self._connection.base_url())

    def retrieve_max_api_version(self) -> str:
        return self._connection.retrieve_max_api_version()

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def retrieve_org_users_config(self) -> OrgUsersConfig:
        org_id = self.get_org_id()
        if not org_id:
            raise CoreError(f"No org id is known for {self.get_username()}.", "MissingOrgId")
        return OrgUsersConfig.for_org_id(org_id)

    def add_username(self, auth: AuthInfo | str) -> Org:
        """Link a non-admin user to this org. Adding an already linked user is a no-op."""

        auth_info = AuthInfo.create(auth) if isinstance(auth, str) else auth
        username = auth_info.get_username()
        if not username or username == self.get_username():
            return self

        config = self.retrieve_org_users_config()
        config.read()
        usernames = config.get_usernames()
        if username not in usernames:
            usernames.append(username)
            config.set_usernames(usernames)
            config.write()
            logger.debug("Added username to org", extra={"org_id": self.get_org_id(), "username": username})
        return self

    def remove_username(self, auth: AuthInfo | str) -> Org:
        username = auth if isinstance(auth, str) else auth.get_username()
        config = self.retrieve_org_users_config()
        config.read()
        usernames = config.get_usernames()
        if username in usernames:
            config.set_usernames([u for u in usernames if u != username])
            config.write()
            logger.debug("Removed username from org", extra={"org_id": self.get_org_id(), "username": username})
        return self

    def read_user_auth_files(self) -> list[AuthInfo]:
        """This org's credential followed by one per linked user that still has a file."""

        auths = [self.get_auth_info()]
        if not self.get_org_id():
            return auths

        config = self.retrieve_org_users_config()
        config.read()
        for username in config.get_usernames():
            if username == self.get_username():
                continue
            try:
                auths.append(AuthInfo.create(username))
            except AuthInfoCreationError:
                logger.debug("Skipping linked user without auth file", extra={"username": username})
        return auths

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def clean_local_org_data(self, path_override: str | Path | None = None) -> None:
        """Delete ``<project>/.sfdx/orgs/<username>`` (or ``<project>/.sfdx/<path_override>``).

        Outside a project this does nothing.
        """

        try:
            root = resolve_project_path()
        except InvalidProjectWorkspaceError:
            logger.debug("Not in a project; no local org data to clean")
            return

        relative = Path(path_override) if path_override else Path("orgs") / (self.get_username() or "")
        data_path = root / STATE_FOLDER / relative
        self._manage_delete(lambda: fs.remove(data_path), data_path)

    def remove(self) -> None:
        """Delete every local trace of this org and its linked users.

        For each user: config defaults naming the user (or one of its aliases)
        are cleared, its aliases dropped and its credential file deleted. The
        membership file and local org data go last. Missing files are skipped;
        any other failure stops the cascade.
        """

        if self.is_using_access_token():
            auths = [self.get_auth_info()]
        else:
            auths = self.read_user_auth_files()

        aliases = Aliases.retrieve()
        configs = self._default_configs()
        usernames: list[str] = []
        removed_aliases: list[str] = []
        for auth in auths:
            username = auth.get_username()
            if not username:
                continue
            alias_names = aliases.get_keys_by_value(username)
            for config in configs:
                config.unset_values_and_write(DEFAULT_KEYS, [username, *alias_names])
            for name in alias_names:
                aliases.unset(name)
            if alias_names:
                aliases.write()
            self._manage_delete(auth.remove, username)
            usernames.append(username)
            removed_aliases.extend(alias_names)

        if not self.is_using_access_token() and self.get_org_id():
            org_users = self.retrieve_org_users_config()
            self._manage_delete(org_users.unlink, org_users.path)

        self.clean_local_org_data()

        if self._aggregator is not None:
            self._aggregator.reload()
        self._state = OrgState.REMOVED
        logger.info(
            "Org removed",
            extra={"username": self.get_username(), "users": usernames, "aliases": removed_aliases},
        )

    @staticmethod
    def _default_configs() -> list[SfdxConfig]:
        configs = [SfdxConfig.create(SfdxConfig.get_default_options(is_global=True))]
        try:
            configs.append(SfdxConfig.create(SfdxConfig.get_default_options(is_global=False)))
        except InvalidProjectWorkspaceError:
            logger.debug("Not in a project; only global config defaults are cleared")
        return configs

    @staticmethod
    def _manage_delete(delete: Callable[[], None], target: object) -> None:
        try:
            delete()
        except FileNotFoundError:
            logger.debug("Nothing to delete", extra={"target": str(target)})
