"""Data store boundary and adapters."""

from amalive.store.base import (
    ChangeType,
    DataStore,
    QueryOrder,
    RowChange,
    Table,
    WriteOp,
    fetch_by_id,
)
from amalive.store.feed import ChangeFeed, Subscription, SubscriptionSet
from amalive.store.memory import InMemoryStore
from amalive.store.rest import RestStore

__all__ = [
    "ChangeFeed",
    "ChangeType",
    "DataStore",
    "InMemoryStore",
    "QueryOrder",
    "RestStore",
    "RowChange",
    "Subscription",
    "SubscriptionSet",
    "Table",
    "WriteOp",
    "fetch_by_id",
]
