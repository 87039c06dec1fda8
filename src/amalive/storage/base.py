"""Durable client key-value storage interface.

The browser-style ``get``/``set`` store that holds the session id and
the vote ledger. Implementations raise
:class:`~amalive.core.errors.StorageError` on failure.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class KeyValueStorage(Protocol):
    """Protocol for durable client storage."""

    async def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key is unset."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Store *value* under *key*, replacing any previous value."""
        ...


class MemoryKeyValueStorage:
    """Process-local storage. Lives as long as the object does."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def dump(self) -> dict[str, str]:
        """Copy of the raw stored values."""
        return dict(self._data)
