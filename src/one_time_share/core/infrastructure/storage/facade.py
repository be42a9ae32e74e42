"""
Single guarded handle over the SQLite store.

Every public operation takes one exclusive lock for its whole duration, so
all saves, consumes and purges run in a strict total order. That order is
what makes consume exactly-once and save no-overwrite under concurrent
request workers and the expiry janitor.
"""
from __future__ import annotations

import sqlite3
import threading
from collections.abc import Callable
from typing import Optional, TypeVar

from one_time_share.core.infrastructure.storage import sqlite_adapter
from one_time_share.core.infrastructure.storage.migrations.runner import LATEST_VERSION
from one_time_share.core.infrastructure.storage.repositories import (
    ConsumedMessage,
    GlobalVarsRepository,
    IdentitiesRepository,
    IdentityLimits,
    MessagesRepository,
)
from one_time_share.utils import metrics as M
from one_time_share.utils.exceptions import StoreConnectionError
from one_time_share.utils.logging import get_logger, short_token

_log = get_logger(__name__)

_T = TypeVar("_T")

VERSION_VAR = "version"
LAST_PURGE_VAR = "last_purge_timestamp"


class Storage:
    def __init__(self, conn: sqlite3.Connection, path: str = ":memory:") -> None:
        self.path = path
        self._conn: Optional[sqlite3.Connection] = conn
        self._lock = threading.Lock()
        self.messages = MessagesRepository(conn)
        self.identities = IdentitiesRepository(conn)
        self.global_vars = GlobalVarsRepository(conn)

    # ---------- lifecycle ----------

    @classmethod
    def connect(cls, path: str) -> "Storage":
        """Open (or create) the store at ``path``. Raises StoreConnectionError."""
        try:
            conn = sqlite_adapter.connect(path)
            storage = cls(conn, path)
            storage.global_vars.ensure_schema()
            storage.identities.ensure_schema()
            storage.messages.ensure_schema()
        except sqlite3.Error as exc:
            raise StoreConnectionError(f"can't open database at {path!r}: {exc}") from exc
        _log.info("store_connected", extra={"path": path})
        return storage

    def disconnect(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
        _log.info("store_disconnected", extra={"path": self.path})

    def is_open(self) -> bool:
        with self._lock:
            return self._conn is not None

    def _require_open(self) -> sqlite3.Connection:
        # called with the lock held
        if self._conn is None:
            raise StoreConnectionError("store is closed")
        return self._conn

    def run_exclusive(self, fn: Callable[[sqlite3.Connection], _T]) -> _T:
        """Run ``fn`` against the raw connection under the store lock (schema upgrades)."""
        with self._lock:
            conn = self._require_open()
            return fn(conn)

    # ---------- schema version ----------

    def get_version(self) -> str:
        with self._lock:
            self._require_open()
            version = self.global_vars.get_string(VERSION_VAR)
        # a fresh store has no version row and is created at the latest schema
        return version if version is not None else LATEST_VERSION

    def set_version(self, version: str) -> None:
        with self._lock:
            self._require_open()
            self.global_vars.set_string(VERSION_VAR, version)

    # ---------- messages ----------

    def save_message(self, message_token: str, expire_timestamp: int, data: str) -> None:
        """Raises DuplicateTokenError when ``message_token`` is already stored."""
        with self._lock:
            self._require_open()
            self.messages.save(message_token, expire_timestamp, data)
        M.inc("messages_saved_total")
        _log.debug("message_saved", extra={"message_token": short_token(message_token), "expire_timestamp": expire_timestamp})

    def consume_message(self, message_token: str) -> ConsumedMessage:
        """Return the message and delete it. Only the first caller for a token gets ``found=True``."""
        with self._lock:
            self._require_open()
            result = self.messages.consume(message_token)
        _log.debug("message_consume", extra={"message_token": short_token(message_token), "found": result.found})
        return result

    def clear_expired_messages(self, now_ts: int) -> int:
        """Delete messages with 0 < expire_timestamp <= now_ts. Returns how many were removed."""
        with self._lock:
            self._require_open()
            removed = self.messages.clear_expired(now_ts)
            self.global_vars.set_int(LAST_PURGE_VAR, now_ts)
        M.inc("messages_purged_total", removed)
        if removed:
            _log.info("expired_messages_cleared", extra={"removed": removed, "now_ts": now_ts})
        return removed

    def last_purge_timestamp(self) -> int:
        with self._lock:
            self._require_open()
            return self.global_vars.get_int(LAST_PURGE_VAR) or 0

    # ---------- identities ----------

    def set_limits(
        self,
        token: str,
        retention_limit_minutes: int,
        max_size_bytes: int,
        creation_limit_minutes: int,
    ) -> None:
        with self._lock:
            self._require_open()
            self.identities.set_limits(token, retention_limit_minutes, max_size_bytes, creation_limit_minutes)

    def get_limits(self, token: str) -> IdentityLimits:
        with self._lock:
            self._require_open()
            limits = self.identities.get_limits(token)
        if not limits.found:
            _log.info("identity_limits_not_found", extra={"identity": short_token(token)})
        return limits

    def identity_exists(self, token: str) -> bool:
        with self._lock:
            self._require_open()
            return self.identities.exists(token)

    def remove_identity(self, token: str) -> None:
        with self._lock:
            self._require_open()
            self.identities.remove(token)

    def record_creation_timestamp(self, token: str, timestamp: int) -> None:
        with self._lock:
            self._require_open()
            self.identities.set_last_creation_timestamp(token, timestamp)

    def get_last_creation_timestamp(self, token: str) -> int:
        with self._lock:
            self._require_open()
            return self.identities.get_last_creation_timestamp(token)

    def list_identities(self) -> list[str]:
        with self._lock:
            self._require_open()
            return self.identities.list_tokens()
