"""LiveQuestionView -- subscriptions, refetches and the merger wired together.

Five channels feed one merger. Each raw change is stamped on arrival,
the authoritative row is re-read where counts are involved, and the
resulting event is applied. Apply is synchronous, so events never
interleave inside the merger; the stamps make a slow refetch lose to a
later one for the same row.

Usage::

    view = LiveQuestionView(store, ama.id)
    view.on_change(lambda snap: render(rank(snap.rows, SortMode.HOT)))
    await view.start()
    ...
    view.close()
"""

from __future__ import annotations

import itertools
import logging
from typing import TYPE_CHECKING, Any

from amalive.core.errors import StoreError
from amalive.live.events import (
    AnswerInserted,
    AnswerVoteChanged,
    FollowUpInserted,
    QuestionDeleted,
    QuestionInserted,
    QuestionUpdated,
    VoteChanged,
)
from amalive.live.loader import load_snapshot
from amalive.live.merger import FeedMerger
from amalive.live.normalizer import parse_answer, parse_follow_up, parse_question
from amalive.live.ranking import SortMode, rank
from amalive.store.base import ChangeType, Table, fetch_by_id
from amalive.store.feed import SubscriptionSet

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from amalive.core.retry import RetryConfig
    from amalive.live.events import ChangeEvent
    from amalive.live.models import FeedSnapshot, MergedRow
    from amalive.store.base import DataStore, RowChange

logger = logging.getLogger(__name__)


class LiveQuestionView:
    """Client-side live board for one AMA."""

    def __init__(
        self,
        store: DataStore,
        ama_id: str,
        *,
        retry: RetryConfig | None = None,
    ) -> None:
        self._store = store
        self.ama_id = ama_id
        self._retry = retry
        self._merger = FeedMerger()
        self._channels = SubscriptionSet(store)
        self._arrivals = itertools.count(1)
        self._recordings: list[list[ChangeEvent]] = []
        self._listeners: list[Callable[[FeedSnapshot], None]] = []
        self._started = False
        self._closed = False

    # ── Lifecycle ────────────────────────────────────────────────

    @property
    def snapshot(self) -> FeedSnapshot:
        return self._merger.snapshot

    @property
    def merger(self) -> FeedMerger:
        return self._merger

    @property
    def is_live(self) -> bool:
        return self._started and not self._closed

    async def start(self, rows: Iterable[MergedRow] | None = None) -> FeedSnapshot:
        """Seed the board and open all five channels.

        Args:
            rows: Pre-loaded rows. When None, a cold-start batch load runs.
        """
        if self._closed:
            msg = "Cannot start a closed view"
            raise RuntimeError(msg)
        if self._started:
            return self.snapshot

        if rows is None:
            rows = await load_snapshot(self._store, self.ama_id, retry=self._retry)
            if self._closed:
                return self.snapshot

        self._merger.reset(rows)
        self._open_channels()
        self._started = True
        self._emit()
        return self.snapshot

    async def refresh(self) -> FeedSnapshot:
        """Full reconciliation: replace the board with a fresh batch load.

        Channels stay open during the load. Events that arrive after the
        load began are replayed onto the reloaded board; results stamped
        before it lose to the reload.
        """
        seq = next(self._arrivals)
        recorded: list[ChangeEvent] = []
        self._recordings.append(recorded)
        try:
            rows = await load_snapshot(self._store, self.ama_id, retry=self._retry)
        finally:
            self._recordings = [r for r in self._recordings if r is not recorded]
        if self._closed:
            return self.snapshot
        self._merger.reset(rows, seq=seq, replay=recorded)
        self._emit()
        return self.snapshot

    def close(self) -> None:
        """Tear down every channel. Results still in flight are discarded."""
        if self._closed:
            return
        self._closed = True
        self._channels.close_all()

    def on_change(self, listener: Callable[[FeedSnapshot], None]) -> Callable[[], None]:
        """Register *listener*; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def ranked(self, mode: SortMode | str = SortMode.HOT) -> list[MergedRow]:
        return rank(self.snapshot.rows, mode)

    # ── Internals ────────────────────────────────────────────────

    def _open_channels(self) -> None:
        self._channels.add(
            Table.QUESTIONS, {"ama_id": self.ama_id}, self._on_question_change
        )
        self._channels.add(Table.VOTES, None, self._on_vote_change)
        self._channels.add(Table.ANSWERS, None, self._on_answer_change)
        self._channels.add(Table.ANSWER_VOTES, None, self._on_answer_vote_change)
        self._channels.add(Table.FOLLOW_UPS, None, self._on_follow_up_change)

    def _emit(self) -> None:
        snapshot = self.snapshot
        for listener in list(self._listeners):
            listener(snapshot)

    def _apply(self, event: ChangeEvent) -> None:
        if self._closed:
            logger.debug("View closed; discarding %s", type(event).__name__)
            return
        for recorded in self._recordings:
            recorded.append(event)
        before = self._merger.snapshot.revision
        if self._merger.apply(event).revision != before:
            self._emit()

    async def _refetch(self, table: Table, row_id: str) -> dict[str, Any] | None:
        try:
            return await fetch_by_id(self._store, table, row_id)
        except StoreError as e:
            logger.warning("Refetch of %s %s failed: %s", table.value, row_id, e)
            return None

    # ── Channel handlers ─────────────────────────────────────────

    async def _on_question_change(self, change: RowChange) -> None:
        seq = next(self._arrivals)
        if change.change_type is ChangeType.INSERT:
            raw = await self._refetch(Table.QUESTIONS_WITH_VOTES, change.new["id"])
            if raw is not None:
                self._apply(QuestionInserted(parse_question(raw), seq=seq))
        elif change.change_type is ChangeType.UPDATE:
            self._apply(QuestionUpdated(change.new["id"], dict(change.new), seq=seq))
        else:
            self._apply(QuestionDeleted(change.old["id"], seq=seq))

    async def _on_vote_change(self, change: RowChange) -> None:
        question_id = change.value("question_id")
        if not question_id:
            return
        seq = next(self._arrivals)
        raw = await self._refetch(Table.QUESTIONS_WITH_VOTES, question_id)
        if raw is not None:
            count = int(raw.get("vote_count") or 0)
            self._apply(VoteChanged(question_id, count, seq=seq))

    async def _on_answer_change(self, change: RowChange) -> None:
        if change.change_type is not ChangeType.INSERT:
            return
        seq = next(self._arrivals)
        raw = await self._refetch(Table.ANSWERS_WITH_VOTES, change.new["id"])
        if raw is not None:
            self._apply(AnswerInserted(parse_answer(raw), seq=seq))

    async def _on_answer_vote_change(self, change: RowChange) -> None:
        answer_id = change.value("answer_id")
        if not answer_id:
            return
        seq = next(self._arrivals)
        raw = await self._refetch(Table.ANSWERS_WITH_VOTES, answer_id)
        if raw is not None:
            count = int(raw.get("vote_count") or 0)
            self._apply(AnswerVoteChanged(answer_id, count, seq=seq))

    async def _on_follow_up_change(self, change: RowChange) -> None:
        if change.change_type is not ChangeType.INSERT:
            return
        seq = next(self._arrivals)
        self._apply(FollowUpInserted(parse_follow_up(change.new), seq=seq))
