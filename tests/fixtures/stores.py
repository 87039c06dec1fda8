"""Store and storage doubles for deterministic tests."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any

from amalive.core.errors import StorageError, TransientWriteError
from amalive.store.memory import InMemoryStore

from tests.fixtures.rows import T0

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from amalive.store.base import QueryOrder, Table, WriteOp


class TickingClock:
    """Returns T0, T0+1s, T0+2s, ... on successive calls."""

    def __init__(self, start: datetime = T0) -> None:
        self._now = start

    def __call__(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now


class FlakyStore(InMemoryStore):
    """InMemoryStore that can fail reads and writes on demand.

    Queue exceptions in ``read_errors`` (raised one per batch read, in
    order) and name tables in ``failing_writes`` to reject every write
    to them. All calls are recorded.
    """

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("clock", TickingClock())
        super().__init__(**kwargs)
        self.read_errors: list[Exception] = []
        self.failing_writes: set[Table] = set()
        self.reads: list[tuple[Table, dict[str, Any]]] = []
        self.writes: list[tuple[Table, WriteOp, dict[str, Any], dict[str, Any]]] = []

    async def batch_query(
        self,
        table: Table,
        filters: Mapping[str, Any] | None = None,
        order: QueryOrder | None = None,
    ) -> list[dict[str, Any]]:
        self.reads.append((table, dict(filters or {})))
        if self.read_errors:
            raise self.read_errors.pop(0)
        return await super().batch_query(table, filters, order)

    async def write(
        self,
        table: Table,
        op: WriteOp,
        payload: Mapping[str, Any] | None = None,
        match: Mapping[str, Any] | None = None,
    ) -> None:
        self.writes.append((table, op, dict(payload or {}), dict(match or {})))
        if table in self.failing_writes:
            raise TransientWriteError(table.value, "simulated outage")
        await super().write(table, op, payload, match)


class BrokenStorage:
    """Key-value storage whose reads and/or writes always fail."""

    def __init__(self, *, fail_get: bool = True, fail_set: bool = True) -> None:
        self.fail_get = fail_get
        self.fail_set = fail_set
        self.data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        if self.fail_get:
            msg = f"cannot read {key}"
            raise StorageError(msg)
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        if self.fail_set:
            msg = f"cannot write {key}"
            raise StorageError(msg)
        self.data[key] = value
