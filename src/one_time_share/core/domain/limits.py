"""
Caller-side enforcement of identity limits.

The store only keeps the ceilings and the last-creation marker; comparing
them against a new message happens here. The rate-limit check and the
later ``record_creation_timestamp`` are two separate store calls, so two
near-simultaneous requests of one identity can both pass the check.
"""
from __future__ import annotations

from typing import Optional

from one_time_share.core.infrastructure.storage.repositories import IdentityLimits
from one_time_share.utils.exceptions import MessageRejected
from one_time_share.utils.time import minutes_to_sec

__all__ = [
    "check_creation_rate",
    "check_message_size",
    "creation_wait_minutes",
    "expire_timestamp_for",
    "parse_retention",
    "resolve_retention",
]


def creation_wait_minutes(creation_limit_minutes: int, last_creation_ts: int, now_ts: int) -> int:
    """
    Whole minutes left before the identity may create another message (0 = allowed).

    Uses ``limit - floor(elapsed_minutes)``, so 3m20s into a 5 minute limit
    reports 2 minutes.
    """
    if creation_limit_minutes <= 0 or last_creation_ts <= 0:
        return 0
    elapsed_sec = now_ts - last_creation_ts
    if elapsed_sec >= minutes_to_sec(creation_limit_minutes):
        return 0
    return creation_limit_minutes - max(elapsed_sec, 0) // 60


def check_creation_rate(limits: IdentityLimits, last_creation_ts: int, now_ts: int) -> None:
    wait = creation_wait_minutes(limits.creation_limit_minutes, last_creation_ts, now_ts)
    if wait > 0:
        raise MessageRejected(
            "creation_rate",
            f"Message creation limit reached. Wait for {wait} minute(s) and repeat",
        )


def check_message_size(limits: IdentityLimits, data: str) -> None:
    """Size is measured in UTF-8 bytes, 0 means unlimited."""
    if not data:
        raise MessageRejected("empty", "message_data is empty")
    if limits.max_size_bytes > 0 and len(data.encode("utf-8")) > limits.max_size_bytes:
        raise MessageRejected("too_big", "Message is too big")


def parse_retention(raw: Optional[str]) -> Optional[int]:
    """Form value -> minutes. Empty/missing -> None (use the identity default)."""
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw.strip())
    except ValueError:
        raise MessageRejected("retention_parse", "Can't parse retention limit") from None


def resolve_retention(limits: IdentityLimits, requested_minutes: Optional[int]) -> int:
    """
    Validate a requested retention against the identity ceiling.

    ``None`` takes the ceiling itself (unlimited when the identity has none).
    0 asks for a message that never expires, allowed only without a ceiling.
    """
    ceiling = limits.retention_limit_minutes
    if requested_minutes is None:
        return max(ceiling, 0)
    if requested_minutes < 0:
        raise MessageRejected("retention_invalid", "Invalid retention limit")
    if requested_minutes == 0 and ceiling > 0:
        raise MessageRejected("retention_unlimited", "Can't set unlimited retention limit, not allowed")
    if ceiling > 0 and requested_minutes > ceiling:
        raise MessageRejected("retention_too_big", "Requested retention limit is bigger than allowed")
    return requested_minutes


def expire_timestamp_for(retention_minutes: int, now_ts: int) -> int:
    """0 (never expires) for unlimited retention."""
    if retention_minutes <= 0:
        return 0
    return now_ts + minutes_to_sec(retention_minutes)
