"""SQLite-backed key-value store."""

from __future__ import annotations

from contextlib import closing
from pathlib import Path

from codenotes.storage.db import connect
from codenotes.storage.repos import kv
from codenotes.utils.time import now_ts


class SQLiteKeyValueStore:
    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path

    def get(self, key: str) -> str | None:
        with closing(connect(self._db_path)) as conn:
            return kv.get_value(conn, key)

    def set(self, key: str, value: str) -> None:
        with closing(connect(self._db_path)) as conn:
            kv.set_value(conn, key, value, now_ts())
