"""Storage adapter factory — creates the right store based on config."""

from __future__ import annotations

from siteportal.config import settings
from siteportal.ports.storage_port import StoragePort


def create_store(db_path: str | None = None) -> StoragePort:
    """Return the store for DATABASE_PATH (or an explicit path).

    ``:memory:`` yields a MemoryStore, since an in-memory SQLite database
    would vanish between the per-operation connections.
    """
    path = db_path or settings.DATABASE_PATH

    if path == ":memory:":
        from siteportal.adapters.memory_store import MemoryStore

        return MemoryStore()

    from siteportal.adapters.sqlite_store import SQLiteStore

    return SQLiteStore(db_path=path)
