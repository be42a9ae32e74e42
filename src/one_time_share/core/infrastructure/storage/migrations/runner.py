"""
Schema version bookkeeping for one_time_share.

The store keeps a single version string in ``global_vars``. On startup
``update_version`` walks the ordered chain of registered upgrades from the
stored version to ``LATEST_VERSION`` and then records the latest version.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from one_time_share.utils.exceptions import MigrationError
from one_time_share.utils.logging import get_logger

if TYPE_CHECKING:
    from one_time_share.core.infrastructure.storage.facade import Storage

_log = get_logger(__name__)

MINIMAL_VERSION = "0.1"
LATEST_VERSION = "0.1"


@dataclass(frozen=True)
class SchemaUpgrade:
    """Upgrade step that brings the schema *to* ``version``."""
    version: str
    name: str
    up: Callable[[sqlite3.Connection], None]


# Ordered oldest -> newest. Empty while the schema is still at its first revision.
ALL_UPGRADES: tuple[SchemaUpgrade, ...] = ()


def plan_upgrades(
    version_from: str,
    version_to: str,
    upgrades: Sequence[SchemaUpgrade] = ALL_UPGRADES,
    *,
    minimal_version: str = MINIMAL_VERSION,
) -> list[SchemaUpgrade]:
    """
    Pick the upgrades to run for ``version_from`` -> ``version_to``.

    Starting at the minimal version means every upgrade up to the target runs;
    otherwise the chain starts right after the upgrade named ``version_from``.
    """
    if version_from == version_to:
        return []

    known = {u.version for u in upgrades}
    if version_from != minimal_version and version_from not in known:
        raise MigrationError(f"unknown schema version {version_from!r}, can't upgrade to {version_to!r}")

    plan: list[SchemaUpgrade] = []
    started = version_from == minimal_version
    for upgrade in upgrades:
        if started:
            plan.append(upgrade)
            if upgrade.version == version_to:
                break
        elif upgrade.version == version_from:
            started = True

    if not plan or plan[-1].version != version_to:
        found = plan[-1].version if plan else version_from
        raise MigrationError(f"last version upgrade not found: expected {version_to!r}, found {found!r}")
    return plan


def update_version(
    storage: "Storage",
    upgrades: Sequence[SchemaUpgrade] = ALL_UPGRADES,
    *,
    latest_version: str = LATEST_VERSION,
    minimal_version: str = MINIMAL_VERSION,
) -> list[str]:
    """
    Bring the store to ``latest_version``. Returns names of the applied upgrades.

    Runs once at startup, before any request is served.
    """
    current = storage.get_version()
    applied: list[str] = []

    if current != latest_version:
        plan = plan_upgrades(current, latest_version, upgrades, minimal_version=minimal_version)
        _log.info(
            "schema_upgrade_started",
            extra={"from_version": current, "to_version": latest_version, "steps": [u.name for u in plan]},
        )
        for upgrade in plan:
            storage.run_exclusive(upgrade.up)
            applied.append(upgrade.name)
            _log.info("schema_upgrade_applied", extra={"version": upgrade.version, "upgrade": upgrade.name})

    storage.set_version(latest_version)
    return applied
