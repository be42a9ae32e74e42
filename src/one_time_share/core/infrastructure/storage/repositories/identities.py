from __future__ import annotations

import sqlite3
from dataclasses import dataclass

from one_time_share.core.infrastructure.storage.sqlite_adapter import exec_script

_SCHEMA = """
CREATE TABLE IF NOT EXISTS identities (
    id                              INTEGER NOT NULL PRIMARY KEY,
    token                           TEXT    NOT NULL UNIQUE,
    retention_limit_minutes         INTEGER NOT NULL,
    max_size_bytes                  INTEGER NOT NULL,
    message_creation_limit_minutes  INTEGER NOT NULL,
    last_message_creation_timestamp INTEGER
);
"""


@dataclass(frozen=True)
class IdentityLimits:
    """
    Per-identity ceilings. Zero means "unlimited" for every field, so a
    missing identity is reported through ``found`` and never through zeros.
    """

    found: bool
    retention_limit_minutes: int = 0
    max_size_bytes: int = 0
    creation_limit_minutes: int = 0


MISSING = IdentityLimits(found=False)


class IdentitiesRepository:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def ensure_schema(self) -> None:
        exec_script(self._conn, _SCHEMA)

    def set_limits(
        self,
        token: str,
        retention_limit_minutes: int,
        max_size_bytes: int,
        creation_limit_minutes: int,
    ) -> None:
        # upsert keeps last_message_creation_timestamp of an existing identity
        self._conn.execute(
            "INSERT INTO identities "
            "(token, retention_limit_minutes, max_size_bytes, message_creation_limit_minutes) "
            "VALUES (?, ?, ?, ?) "
            "ON CONFLICT(token) DO UPDATE SET "
            "retention_limit_minutes=excluded.retention_limit_minutes, "
            "max_size_bytes=excluded.max_size_bytes, "
            "message_creation_limit_minutes=excluded.message_creation_limit_minutes",
            (token, int(retention_limit_minutes), int(max_size_bytes), int(creation_limit_minutes)),
        )

    def get_limits(self, token: str) -> IdentityLimits:
        row = self._conn.execute(
            "SELECT retention_limit_minutes, max_size_bytes, message_creation_limit_minutes "
            "FROM identities WHERE token = ?",
            (token,),
        ).fetchone()
        if row is None:
            return MISSING
        return IdentityLimits(
            found=True,
            retention_limit_minutes=int(row[0]),
            max_size_bytes=int(row[1]),
            creation_limit_minutes=int(row[2]),
        )

    def exists(self, token: str) -> bool:
        row = self._conn.execute("SELECT 1 FROM identities WHERE token = ? LIMIT 1", (token,)).fetchone()
        return row is not None

    def remove(self, token: str) -> None:
        self._conn.execute("DELETE FROM identities WHERE token = ?", (token,))

    def set_last_creation_timestamp(self, token: str, timestamp: int) -> None:
        """Overwrite the last-creation marker. No-op for a missing identity."""
        self._conn.execute(
            "UPDATE identities SET last_message_creation_timestamp = ? WHERE token = ?",
            (int(timestamp), token),
        )

    def get_last_creation_timestamp(self, token: str) -> int:
        """0 when never set or when the identity doesn't exist."""
        row = self._conn.execute(
            "SELECT last_message_creation_timestamp FROM identities WHERE token = ?",
            (token,),
        ).fetchone()
        if row is None or row[0] is None:
            return 0
        return int(row[0])

    def list_tokens(self) -> list[str]:
        return [r[0] for r in self._conn.execute("SELECT token FROM identities ORDER BY id")]
