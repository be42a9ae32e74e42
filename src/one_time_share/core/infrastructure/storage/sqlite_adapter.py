from __future__ import annotations

import os
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager, suppress

BUSY_TIMEOUT_MS = int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000"))

# best effort: ":memory:" has no WAL, read-only media may refuse both
_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}",
)

__all__ = ["connect", "exec_script", "transaction"]


def connect(db_path: str) -> sqlite3.Connection:
    """
    One shared connection for the whole process.

    Autocommit mode: multi-statement steps go through ``transaction``.
    ``check_same_thread`` is off because request workers and the janitor
    thread use it in turn, serialized by the store lock.
    """
    conn = sqlite3.connect(
        db_path,
        timeout=BUSY_TIMEOUT_MS / 1000.0,
        isolation_level=None,
        check_same_thread=False,
    )
    for pragma in _PRAGMAS:
        with suppress(sqlite3.Error):
            conn.execute(pragma)
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Cursor]:
    """Write transaction: BEGIN IMMEDIATE, COMMIT on exit, ROLLBACK if the block raises."""
    cur = conn.execute("BEGIN IMMEDIATE")
    try:
        yield cur
        # a failed COMMIT leaves the transaction open, so it is rolled back too
        conn.execute("COMMIT")
    except BaseException:
        with suppress(sqlite3.Error):
            conn.execute("ROLLBACK")
        raise
    finally:
        cur.close()


def exec_script(conn: sqlite3.Connection, sql: str) -> None:
    if sql.strip():
        conn.executescript(sql)
