"""Key-value repository."""

from __future__ import annotations

import sqlite3


def get_value(conn: sqlite3.Connection, key: str) -> str | None:
    row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
    if row is None:
        return None
    return str(row[0])


def set_value(conn: sqlite3.Connection, key: str, value: str, ts: int) -> None:
    conn.execute(
        "INSERT INTO kv (key, value, updated_ts) VALUES (?, ?, ?) "
        "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
        "updated_ts = excluded.updated_ts",
        (key, value, ts),
    )
    conn.commit()
