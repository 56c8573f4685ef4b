"""sfdx-core.

Local trust-and-state layer for a platform CLI:
- encrypted credential records and the org lifecycle
- global and project config files, aliases and the layered config view
- a streaming client that waits on a platform channel for a result
"""

__version__ = "0.1.0"

from sfdx_core.auth_info import AuthFields, AuthInfo
from sfdx_core.connection import Connection
from sfdx_core.crypto import Crypto
from sfdx_core.errors import CoreError
from sfdx_core.org import Org, OrgFields
from sfdx_core.settings import CoreSettings

__all__ = [
    "__version__",
    "AuthFields",
    "AuthInfo",
    "Connection",
    "CoreError",
    "CoreSettings",
    "Crypto",
    "Org",
    "OrgFields",
]
