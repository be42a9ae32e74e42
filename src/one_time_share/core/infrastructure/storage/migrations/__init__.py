from __future__ import annotations

from .runner import ALL_UPGRADES, LATEST_VERSION, MINIMAL_VERSION, SchemaUpgrade, plan_upgrades, update_version

__all__ = [
    "ALL_UPGRADES",
    "LATEST_VERSION",
    "MINIMAL_VERSION",
    "SchemaUpgrade",
    "plan_upgrades",
    "update_version",
]
