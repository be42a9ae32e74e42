# src/one_time_share/core/infrastructure/storage/repositories/global_vars.py
"""
Global scalars over SQLite (name -> integer_value / string_value).
Holds the schema version marker; room for future global flags.
"""

from __future__ import annotations

import sqlite3
from typing import Optional

from one_time_share.core.infrastructure.storage.sqlite_adapter import exec_script

_SCHEMA = """
CREATE TABLE IF NOT EXISTS global_vars (
    name          TEXT PRIMARY KEY,
    integer_value INTEGER,
    string_value  TEXT
);
"""


class GlobalVarsRepository:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def ensure_schema(self) -> None:
        exec_script(self.conn, _SCHEMA)

    def set_string(self, name: str, value: str) -> None:
        self.conn.execute(
            "INSERT INTO global_vars(name, string_value) VALUES(?, ?) "
            "ON CONFLICT(name) DO UPDATE SET string_value=excluded.string_value, integer_value=NULL",
            (name, value),
        )

    def get_string(self, name: str) -> Optional[str]:
        row = self.conn.execute("SELECT string_value FROM global_vars WHERE name = ?", (name,)).fetchone()
        return row[0] if row else None

    def set_int(self, name: str, value: int) -> None:
        self.conn.execute(
            "INSERT INTO global_vars(name, integer_value) VALUES(?, ?) "
            "ON CONFLICT(name) DO UPDATE SET integer_value=excluded.integer_value, string_value=NULL",
            (name, int(value)),
        )

    def get_int(self, name: str) -> Optional[int]:
        row = self.conn.execute("SELECT integer_value FROM global_vars WHERE name = ?", (name,)).fetchone()
        return int(row[0]) if row and row[0] is not None else None
