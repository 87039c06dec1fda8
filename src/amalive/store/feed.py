"""In-process change feed: fan-out of row changes to subscriptions.

Adapters own one :class:`ChangeFeed`. Whatever receives changes from
the hosted store (the in-memory store itself, or a realtime transport
in front of :class:`~amalive.store.rest.RestStore`) calls
:meth:`ChangeFeed.publish`; subscribers get every change for their
table whose row matches their equality filters.
"""

from __future__ import annotations

import itertools
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from amalive.store.base import DataStore, RowChange, Table

logger = logging.getLogger(__name__)

_SUBSCRIPTION_IDS = itertools.count(1)


class Subscription:
    """Handle for one channel. Closing it stops delivery immediately."""

    def __init__(
        self,
        feed: ChangeFeed,
        table: Table,
        filters: Mapping[str, Any] | None,
        callback: Callable[[RowChange], Awaitable[None]],
    ) -> None:
        self.id = next(_SUBSCRIPTION_IDS)
        self.table = table
        self.filters: dict[str, Any] = dict(filters or {})
        self.callback = callback
        self.active = True
        self._feed = feed

    def matches(self, change: RowChange) -> bool:
        """Whether *change* belongs to this channel."""
        if change.table is not self.table:
            return False
        return all(change.value(k) == v for k, v in self.filters.items())

    def close(self) -> None:
        self._feed.unsubscribe(self)

    def __repr__(self) -> str:
        state = "active" if self.active else "closed"
        return f"<Subscription {self.id} {self.table.value} {state}>"


class ChangeFeed:
    """Registry of subscriptions with serialized delivery."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    @property
    def active_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(
        self,
        table: Table,
        filters: Mapping[str, Any] | None,
        on_change: Callable[[RowChange], Awaitable[None]],
    ) -> Subscription:
        sub = Subscription(self, table, filters, on_change)
        self._subscriptions.append(sub)
        logger.debug("Subscribed %r", sub)
        return sub

    def unsubscribe(self, subscription: Subscription) -> None:
        if not subscription.active:
            return
        subscription.active = False
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
        logger.debug("Unsubscribed %r", subscription)

    async def publish(self, change: RowChange) -> int:
        """Deliver *change* to every matching subscription, one at a time.

        A failing callback is logged and does not stop delivery to the
        remaining subscriptions. Returns the number of deliveries.
        """
        delivered = 0
        for sub in list(self._subscriptions):
            # May have been closed by an earlier callback in this loop
            if not sub.active or not sub.matches(change):
                continue
            try:
                await sub.callback(change)
            except Exception:
                logger.exception(
                    "Change handler failed for %s %s",
                    change.table.value,
                    change.change_type.value,
                )
            delivered += 1
        return delivered


class SubscriptionSet:
    """A group of channels on one store, torn down together."""

    def __init__(self, store: DataStore) -> None:
        self._store = store
        self._subscriptions: list[Subscription] = []

    def add(
        self,
        table: Table,
        filters: Mapping[str, Any] | None,
        on_change: Callable[[RowChange], Awaitable[None]],
    ) -> Subscription:
        sub = self._store.subscribe(table, filters, on_change)
        self._subscriptions.append(sub)
        return sub

    def close_all(self) -> None:
        """Unsubscribe every channel. Safe to call more than once."""
        subs, self._subscriptions = self._subscriptions, []
        for sub in subs:
            self._store.unsubscribe(sub)

    def __len__(self) -> int:
        return len(self._subscriptions)
