"""Storage port — abstract key-value interface for persisted portal state.

Core modules depend on this protocol, never on a specific backend.
"""

from __future__ import annotations

from typing import Protocol


class StoragePort(Protocol):
    """Synchronous string-to-JSON-blob store. No transactions, no migrations."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...
