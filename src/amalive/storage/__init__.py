"""Durable client key-value storage."""

from amalive.storage.base import KeyValueStorage, MemoryKeyValueStorage
from amalive.storage.sql import SqlKeyValueStorage, create_storage

__all__ = [
    "KeyValueStorage",
    "MemoryKeyValueStorage",
    "SqlKeyValueStorage",
    "create_storage",
]
