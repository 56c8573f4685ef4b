"""Config files, aliases and the layered config view."""

from sfdx_core.config.aggregator import ConfigAggregator, ConfigInfo, Location
from sfdx_core.config.aliases import AliasGroup, Aliases
from sfdx_core.config.auth_info_config import AuthInfoConfig
from sfdx_core.config.config_file import ConfigFile, ConfigFileOptions, resolve_project_path
from sfdx_core.config.org_users_config import OrgUsersConfig
from sfdx_core.config.sfdx_config import SfdxConfig

__all__ = [
    "AliasGroup",
    "Aliases",
    "AuthInfoConfig",
    "ConfigAggregator",
    "ConfigFile",
    "ConfigFileOptions",
    "ConfigInfo",
    "Location",
    "OrgUsersConfig",
    "SfdxConfig",
    "resolve_project_path",
]
