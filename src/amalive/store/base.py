"""Data store boundary: tables, change records, and the store protocol.

The hosted store is an external collaborator. The core only needs a
batch read, a push feed of row changes per table, and fire-and-forget
writes whose effect is confirmed by the feed rather than the return
value.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from amalive.store.feed import Subscription


class Table(enum.Enum):
    """Tables and read-only views of the fixed schema."""

    AMAS = "amas"
    QUESTIONS = "questions"
    ANSWERS = "answers"
    VOTES = "votes"
    ANSWER_VOTES = "answer_votes"
    FOLLOW_UPS = "follow_up_questions"
    # Views with an aggregated vote_count column
    QUESTIONS_WITH_VOTES = "questions_with_votes"
    ANSWERS_WITH_VOTES = "answers_with_votes"

    @property
    def is_view(self) -> bool:
        return self in (Table.QUESTIONS_WITH_VOTES, Table.ANSWERS_WITH_VOTES)


class ChangeType(enum.Enum):
    """Kind of row change pushed by the feed."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class WriteOp(enum.Enum):
    """Write-through operations."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True, slots=True)
class QueryOrder:
    """Single-column ordering for batch reads."""

    column: str
    descending: bool = True


@dataclass(frozen=True, slots=True)
class RowChange:
    """One insert/update/delete notification for a single row.

    ``new`` is empty for deletes; ``old`` is empty for inserts.
    """

    table: Table
    change_type: ChangeType
    new: Mapping[str, Any] = field(default_factory=dict)
    old: Mapping[str, Any] = field(default_factory=dict)

    def value(self, column: str) -> Any:
        """Column value from the new row, falling back to the old one."""
        if column in self.new and self.new[column] is not None:
            return self.new[column]
        return self.old.get(column)


@runtime_checkable
class DataStore(Protocol):
    """Protocol that every store adapter satisfies."""

    async def batch_query(
        self,
        table: Table,
        filters: Mapping[str, Any] | None = None,
        order: QueryOrder | None = None,
    ) -> list[dict[str, Any]]:
        """Return rows of *table* matching equality *filters*."""
        ...

    def subscribe(
        self,
        table: Table,
        filters: Mapping[str, Any] | None,
        on_change: Callable[[RowChange], Awaitable[None]],
    ) -> Subscription:
        """Register *on_change* for changes to *table* matching *filters*."""
        ...

    def unsubscribe(self, subscription: Subscription) -> None:
        """Tear down a subscription. Idempotent."""
        ...

    async def write(
        self,
        table: Table,
        op: WriteOp,
        payload: Mapping[str, Any] | None = None,
        match: Mapping[str, Any] | None = None,
    ) -> None:
        """Issue a write-through.

        Raises:
            TransientWriteError: If the store rejected or never received it.
        """
        ...


async def fetch_by_id(
    store: DataStore, table: Table, row_id: str
) -> dict[str, Any] | None:
    """Authoritative single-row read by primary key."""
    rows = await store.batch_query(table, {"id": row_id})
    return rows[0] if rows else None
