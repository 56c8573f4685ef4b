"""Membership file for one org id: ``<globalDir>/<orgId>.json``.

Lists the non-admin usernames that share the org.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, ValidationError

from sfdx_core.config.config_file import ConfigFile, ConfigFileOptions
from sfdx_core.errors import CoreError
from sfdx_core.util.sfdc import validate_salesforce_id


class OrgUsersContents(BaseModel):
    usernames: list[str] = Field(default_factory=list)


class OrgUsersConfig(ConfigFile):
    @classmethod
    def for_org_id(cls, org_id: str) -> OrgUsersConfig:
        # The id becomes a file name in the global directory.
        if not validate_salesforce_id(org_id):
            raise CoreError(f"Invalid org id: {org_id}", "InvalidOrgId", data={"orgId": org_id})
        return cls(ConfigFileOptions(filename=f"{org_id}.json", is_global=True))

    def get_usernames(self) -> list[str]:
        try:
            return OrgUsersContents.model_validate(self.get_contents()).usernames
        except ValidationError as e:
            raise CoreError(
                f"Usernames is not an array in {self.path}",
                "UnexpectedDataFormat",
                data={"file": str(self.path)},
            ) from e

    def set_usernames(self, usernames: list[str]) -> None:
        self.set("usernames", list(usernames))
