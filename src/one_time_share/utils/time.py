from __future__ import annotations

from datetime import UTC, datetime
import time

__all__ = [
    "iso_utc",
    "minutes_to_sec",
    "now_sec",
]

_MINUTE = 60


def now_sec() -> int:
    """UTC epoch time in whole seconds (the unit every stored timestamp uses)."""
    return int(time.time())


def minutes_to_sec(minutes: int) -> int:
    return int(minutes) * _MINUTE


def iso_utc(ts_sec: int | None = None) -> str:
    """ISO-8601 string in UTC for an epoch timestamp in seconds (or now)."""
    if ts_sec is None:
        ts_sec = now_sec()
    return datetime.fromtimestamp(ts_sec, tz=UTC).isoformat()
