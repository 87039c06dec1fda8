"""In-process data store with vote-count views and change emission.

Mirrors the hosted schema closely enough to drive the live view end to
end: uniqueness of (entity, session) votes and of follow-ups per
question is enforced here, the ``*_with_votes`` views are computed on
read, and every write publishes the matching row change(s).
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from amalive.core.errors import TransientWriteError
from amalive.store.base import ChangeType, RowChange, Table, WriteOp
from amalive.store.feed import ChangeFeed

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from amalive.store.base import QueryOrder
    from amalive.store.feed import Subscription

# view -> (base table, vote table, vote foreign key)
_VIEWS: dict[Table, tuple[Table, Table, str]] = {
    Table.QUESTIONS_WITH_VOTES: (Table.QUESTIONS, Table.VOTES, "question_id"),
    Table.ANSWERS_WITH_VOTES: (Table.ANSWERS, Table.ANSWER_VOTES, "answer_id"),
}

_UNIQUE: dict[Table, tuple[str, ...]] = {
    Table.AMAS: ("slug",),
    Table.VOTES: ("question_id", "session_id"),
    Table.ANSWER_VOTES: ("answer_id", "session_id"),
    Table.FOLLOW_UPS: ("question_id",),
}

# parent table -> [(child table, foreign key)]
_CASCADES: dict[Table, list[tuple[Table, str]]] = {
    Table.AMAS: [(Table.QUESTIONS, "ama_id")],
    Table.QUESTIONS: [
        (Table.VOTES, "question_id"),
        (Table.ANSWERS, "question_id"),
        (Table.FOLLOW_UPS, "question_id"),
    ],
    Table.ANSWERS: [(Table.ANSWER_VOTES, "answer_id")],
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _matches(row: Mapping[str, Any], filters: Mapping[str, Any] | None) -> bool:
    if not filters:
        return True
    return all(row.get(k) == v for k, v in filters.items())


def _sort_key(value: Any) -> tuple[bool, Any]:
    # None sorts last ascending, first descending
    return (value is None, value if value is not None else 0)


class InMemoryStore:
    """A complete store living in process memory."""

    def __init__(
        self,
        *,
        feed: ChangeFeed | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.feed = feed or ChangeFeed()
        self._clock = clock or _utcnow
        self._tables: dict[Table, list[dict[str, Any]]] = {
            t: [] for t in Table if not t.is_view
        }

    # ── Reads ────────────────────────────────────────────────────

    def rows(self, table: Table) -> list[dict[str, Any]]:
        """Materialized rows of *table* (views computed), as copies."""
        if table in _VIEWS:
            base, votes, fk = _VIEWS[table]
            counts: dict[str, int] = {}
            for vote in self._tables[votes]:
                counts[vote[fk]] = counts.get(vote[fk], 0) + 1
            return [
                {**row, "vote_count": counts.get(row["id"], 0)}
                for row in self._tables[base]
            ]
        return [dict(row) for row in self._tables[table]]

    async def batch_query(
        self,
        table: Table,
        filters: Mapping[str, Any] | None = None,
        order: QueryOrder | None = None,
    ) -> list[dict[str, Any]]:
        result = [row for row in self.rows(table) if _matches(row, filters)]
        if order is not None:
            result.sort(
                key=lambda r: _sort_key(r.get(order.column)),
                reverse=order.descending,
            )
        return result

    # ── Subscriptions ────────────────────────────────────────────

    def subscribe(
        self,
        table: Table,
        filters: Mapping[str, Any] | None,
        on_change: Callable[[RowChange], Awaitable[None]],
    ) -> Subscription:
        return self.feed.subscribe(table, filters, on_change)

    def unsubscribe(self, subscription: Subscription) -> None:
        self.feed.unsubscribe(subscription)

    # ── Writes ───────────────────────────────────────────────────

    async def write(
        self,
        table: Table,
        op: WriteOp,
        payload: Mapping[str, Any] | None = None,
        match: Mapping[str, Any] | None = None,
    ) -> None:
        if table.is_view:
            msg = f"{table.value} is a read-only view"
            raise ValueError(msg)

        if op is WriteOp.INSERT:
            await self._insert(table, dict(payload or {}))
        elif op is WriteOp.UPDATE:
            if not match:
                msg = "update requires a match filter"
                raise ValueError(msg)
            await self._update(table, dict(payload or {}), match)
        else:
            if not match:
                msg = "delete requires a match filter"
                raise ValueError(msg)
            await self._delete(table, match)

    async def _insert(self, table: Table, row: dict[str, Any]) -> None:
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", self._clock().isoformat())

        existing = self._tables[table]
        if any(r["id"] == row["id"] for r in existing):
            raise TransientWriteError(table.value, f"duplicate id {row['id']}")
        unique = _UNIQUE.get(table)
        if unique is not None:
            key = tuple(row.get(c) for c in unique)
            if any(tuple(r.get(c) for c in unique) == key for r in existing):
                msg = f"duplicate key ({', '.join(unique)})"
                raise TransientWriteError(table.value, msg)

        existing.append(row)
        await self.feed.publish(RowChange(table, ChangeType.INSERT, new=dict(row)))

    async def _update(
        self, table: Table, changes: dict[str, Any], match: Mapping[str, Any]
    ) -> None:
        changes.pop("id", None)
        for row in self._tables[table]:
            if not _matches(row, match):
                continue
            old = dict(row)
            row.update(changes)
            await self.feed.publish(
                RowChange(table, ChangeType.UPDATE, new=dict(row), old=old)
            )

    async def _delete(self, table: Table, match: Mapping[str, Any]) -> None:
        rows = self._tables[table]
        doomed = [row for row in rows if _matches(row, match)]
        for row in doomed:
            rows.remove(row)
            for child, fk in _CASCADES.get(table, []):
                await self._delete(child, {fk: row["id"]})
            await self.feed.publish(RowChange(table, ChangeType.DELETE, old=row))
