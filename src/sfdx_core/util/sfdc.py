"""Platform value validators."""

from __future__ import annotations

import re
from urllib.parse import urlparse

_API_VERSION = re.compile(r"^[1-9]\d*\.0$")
_ORG_ID = re.compile(r"^[a-zA-Z0-9]{15}([a-zA-Z0-9]{3})?$")

SALESFORCE_DOMAINS: tuple[str, ...] = (
    ".salesforce.com",
    ".force.com",
    ".cloudforce.com",
    ".database.com",
    ".salesforce.mil",
)
SALESFORCE_HOSTS: frozenset[str] = frozenset({"developer.salesforce.com", "trailhead.salesforce.com"})


def is_salesforce_domain(url: str | None) -> bool:
    if not url:
        return False
    host = urlparse(url).hostname or ""
    if host in SALESFORCE_HOSTS:
        return True
    return any(host.endswith(domain) or host == domain[1:] for domain in SALESFORCE_DOMAINS)


def validate_api_version(value: object) -> bool:
    """True for strings like ``"42.0"``."""

    return isinstance(value, str) and bool(_API_VERSION.match(value))


def validate_salesforce_id(value: str) -> bool:
    return bool(_ORG_ID.match(value))


def trim_to_15(value: str) -> str:
    """Convert an 18 character id to its 15 character form."""

    if len(value) == 18:
        return value[:15]
    return value
