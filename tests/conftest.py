"""Shared test fixtures for amalive."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from amalive.config.schema import StorageConfig
from amalive.live.intents import QuestionActions
from amalive.live.loader import load_ama
from amalive.live.view import LiveQuestionView
from amalive.session.identity import SessionIdentityStore
from amalive.session.ledger import VoteLedger
from amalive.storage.base import MemoryKeyValueStorage
from amalive.storage.sql import create_storage
from amalive.store.base import Table, WriteOp

from tests.fixtures.stores import FlakyStore

if TYPE_CHECKING:
    from collections.abc import Callable

    from amalive.live.models import Ama, FeedSnapshot
    from amalive.storage.sql import SqlKeyValueStorage


@pytest.fixture
def store() -> FlakyStore:
    """In-memory store with a ticking clock and failure injection."""
    return FlakyStore()


@pytest.fixture
def make_ama(store: FlakyStore) -> Any:
    """Factory fixture: insert an AMA into ``store`` and load it back."""

    async def _make(slug: str = "launch", **overrides: Any) -> Ama:
        payload: dict[str, Any] = {
            "slug": slug,
            "title": f"AMA {slug}",
            "owner_id": "host-1",
            "is_active": True,
            "allow_anonymous": True,
        }
        payload.update(overrides)
        await store.write(Table.AMAS, WriteOp.INSERT, payload)
        return await load_ama(store, slug)

    return _make


@pytest.fixture
async def ama(make_ama: Any) -> Ama:
    return await make_ama()


@pytest.fixture
async def live_view(store: FlakyStore, ama: Ama) -> LiveQuestionView:  # type: ignore[misc]
    """A started view on ``ama``, closed at teardown."""
    view = LiveQuestionView(store, ama.id)
    await view.start()
    yield view
    view.close()


@pytest.fixture
def storage() -> MemoryKeyValueStorage:
    return MemoryKeyValueStorage()


@pytest.fixture
async def sql_storage() -> SqlKeyValueStorage:  # type: ignore[misc]
    """In-memory SQLite client storage."""
    storage, engine = await create_storage(StorageConfig(url="sqlite+aiosqlite://"))
    yield storage
    await engine.dispose()


@pytest.fixture
def make_actions(store: FlakyStore) -> Any:
    """Factory fixture for one attendee's QuestionActions.

    Each call gets its own storage, so its own session id and ledger.
    """

    async def _make(
        ama: Ama,
        snapshot_source: Callable[[], FeedSnapshot],
        storage: MemoryKeyValueStorage | None = None,
    ) -> QuestionActions:
        kv = storage if storage is not None else MemoryKeyValueStorage()
        ledger = VoteLedger(kv)
        await ledger.load()
        return QuestionActions(
            store, ledger, SessionIdentityStore(kv), ama, snapshot_source
        )

    return _make
