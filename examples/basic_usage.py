#!/usr/bin/env python3
"""Programmatic org usage example.

This demonstrates using the core components directly:

* load settings from `.env` / `SFDX_*` environment variables
* resolve an org from a username, an alias or the configured default
* run a query through the org's connection, refreshing the session if needed

The org must already be authorized (a credential file in the global directory).
"""

from __future__ import annotations

import argparse
from typing import Sequence

from sfdx_core.config import ConfigAggregator
from sfdx_core.errors import CoreError
from sfdx_core.logging import configure_logging
from sfdx_core.org import Org, OrgFields
from sfdx_core.settings import CoreSettings


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Query an authorized org (programmatic example).")
    parser.add_argument(
        "--target-org",
        default=None,
        help="Username or alias (defaults to the configured defaultusername)",
    )
    parser.add_argument("--soql", default="SELECT Id, Name FROM Organization", help="Query to run")
    parser.add_argument("--latest-api", action="store_true", help="Use the org's newest API version")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = CoreSettings()
    configure_logging(settings.log_level)

    try:
        org = Org.create(args.target_org, ConfigAggregator.create())
        connection = org.get_connection()
        if args.latest_api:
            connection.use_latest_api_version()
        result = connection.query(args.soql)
    except CoreError as exc:
        print(f"{exc.name}: {exc}")
        for action in exc.actions:
            print(f"  - {action}")
        return 1

    print(f"Org: {org.get_field(OrgFields.USERNAME)} ({org.get_org_id()})")
    print(f"API version: {connection.get_api_version()}")
    for record in result.get("records", []):
        print({key: value for key, value in record.items() if key != "attributes"})
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
