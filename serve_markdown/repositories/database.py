from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

ACCESS_LOG_TABLE = "markdown_access_log"

SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS {ACCESS_LOG_TABLE} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    item_id INTEGER NOT NULL DEFAULT 0,
    url TEXT NOT NULL,
    user_agent TEXT NOT NULL DEFAULT '',
    bot_name TEXT NOT NULL DEFAULT '',
    method TEXT NOT NULL DEFAULT '',
    ip_address TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_markdown_access_log_created
ON {ACCESS_LOG_TABLE}(created_at DESC);

CREATE INDEX IF NOT EXISTS idx_markdown_access_log_bot
ON {ACCESS_LOG_TABLE}(bot_name);
"""


class Database:
    def __init__(self, path: Path, *, busy_timeout_seconds: float = 5.0) -> None:
        self._path = path
        self._busy_timeout_seconds = busy_timeout_seconds

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path, timeout=self._busy_timeout_seconds)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def initialize(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self.connection() as conn:
            # WAL lets concurrent request workers append while a sweep runs.
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(SCHEMA_SQL)

    def drop_access_log(self) -> None:
        with self.connection() as conn:
            conn.execute(f"DROP TABLE IF EXISTS {ACCESS_LOG_TABLE}")
