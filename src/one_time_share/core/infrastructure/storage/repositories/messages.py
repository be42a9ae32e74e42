"""
Message table: message_token -> (expire_timestamp, data).

Write-once, read-once. There is no update path: a row is inserted by
``save`` and removed either by ``consume`` or by ``clear_expired``.
"""
from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Optional

from one_time_share.core.infrastructure.storage.sqlite_adapter import exec_script, transaction
from one_time_share.utils.exceptions import DuplicateTokenError

_SCHEMA = """
CREATE TABLE IF NOT EXISTS messages (
    id               INTEGER NOT NULL PRIMARY KEY,
    message_token    TEXT    NOT NULL UNIQUE,
    expire_timestamp INTEGER NOT NULL,
    data             TEXT    NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_messages_expire ON messages(expire_timestamp);
"""


@dataclass(frozen=True)
class ConsumedMessage:
    """Result of a consume attempt. ``data``/``expire_timestamp`` are meaningful only when ``found``."""

    found: bool
    data: Optional[str] = None
    expire_timestamp: int = 0

    def is_live(self, now_ts: int) -> bool:
        """Found and not expired at ``now_ts`` (expire_timestamp 0 never expires)."""
        if not self.found:
            return False
        return self.expire_timestamp == 0 or now_ts < self.expire_timestamp


NOT_FOUND = ConsumedMessage(found=False)


class MessagesRepository:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def ensure_schema(self) -> None:
        exec_script(self._conn, _SCHEMA)

    def save(self, message_token: str, expire_timestamp: int, data: str) -> None:
        """Insert a new message. Raises DuplicateTokenError, leaving the existing row untouched."""
        with transaction(self._conn) as cur:
            cur.execute("SELECT 1 FROM messages WHERE message_token = ? LIMIT 1", (message_token,))
            if cur.fetchone() is not None:
                raise DuplicateTokenError(message_token)
            cur.execute(
                "INSERT INTO messages (message_token, expire_timestamp, data) VALUES (?, ?, ?)",
                (message_token, int(expire_timestamp), data),
            )

    def consume(self, message_token: str) -> ConsumedMessage:
        """Read and delete the message in one transaction."""
        with transaction(self._conn) as cur:
            cur.execute(
                "SELECT id, data, expire_timestamp FROM messages WHERE message_token = ?",
                (message_token,),
            )
            row = cur.fetchone()
            if row is None:
                return NOT_FOUND
            row_id, data, expire_timestamp = row
            cur.execute("DELETE FROM messages WHERE id = ?", (row_id,))
        return ConsumedMessage(found=True, data=data, expire_timestamp=int(expire_timestamp))

    def clear_expired(self, now_ts: int) -> int:
        """Delete rows with 0 < expire_timestamp <= now_ts. Returns the number removed."""
        with transaction(self._conn) as cur:
            cur.execute(
                "DELETE FROM messages WHERE expire_timestamp > 0 AND expire_timestamp <= ?",
                (int(now_ts),),
            )
            return cur.rowcount or 0

    def count(self) -> int:
        row = self._conn.execute("SELECT COUNT(*) FROM messages").fetchone()
        return int(row[0] or 0)
