"""In-memory storage adapter — implements StoragePort.

Used by tests and by throwaway sessions that should not touch disk.
"""

from __future__ import annotations


class MemoryStore:
    """Dict-backed implementation of StoragePort."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)
