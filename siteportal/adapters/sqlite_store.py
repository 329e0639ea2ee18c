"""
SitePortal — SQLite key-value store.

Persists the portal's JSON blobs in a single local SQLite table so state
survives restarts. Every write replaces the whole blob for its key.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)


class SQLiteStore:
    """SQLite-backed implementation of StoragePort."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from siteportal.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Create the kv_store table if it doesn't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key        TEXT PRIMARY KEY,
                    value      TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
        logger.debug("kv_store table initialized at %s", self._db_path)

    def get(self, key: str) -> str | None:
        """Return the stored blob for a key, or None."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            return None
        return row["value"]

    def set(self, key: str, value: str) -> None:
        """Insert or overwrite the blob for a key."""
        now = datetime.now().isoformat()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value, now),
            )
        logger.debug("Stored %s (%d bytes)", key, len(value))

    def delete(self, key: str) -> None:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        if cursor.rowcount > 0:
            logger.debug("Deleted %s", key)

    def keys(self) -> list[str]:
        """Return all stored keys."""
        with self._connect() as conn:
            rows = conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        return [r["key"] for r in rows]
