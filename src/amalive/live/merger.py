"""Change-event merger -- the board's state machine.

Pure logic module. No IO (no refetches, no writes). The live view
performs the authoritative reads and hands finished events to
:class:`FeedMerger`; this module folds them into a new
:class:`~amalive.live.models.FeedSnapshot`.

Transitions per event:

    QuestionInserted   prepend a fresh row; duplicate id is a no-op
    QuestionUpdated    merge display fields; unknown id is an orphan
    QuestionDeleted    remove the row; idempotent
    VoteChanged        overwrite the question's count
    AnswerInserted     attach answer + answered flags in one replacement
    AnswerVoteChanged  overwrite the answer's count (indexed lookup)
    FollowUpInserted   attach follow-up; last write wins

Orphans (events for rows not present locally) are dropped. The row
heals on the next full refresh.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from amalive.core.errors import OrphanEventError
from amalive.live.events import (
    AnswerInserted,
    AnswerVoteChanged,
    FollowUpInserted,
    QuestionDeleted,
    QuestionInserted,
    QuestionUpdated,
    VoteChanged,
)
from amalive.live.models import FeedSnapshot, MergedRow

if TYPE_CHECKING:
    from collections.abc import Iterable

    from amalive.live.events import ChangeEvent

logger = logging.getLogger(__name__)

# Question columns an update payload may change. Counts, the answered
# flag and authorship are owned elsewhere.
_UPDATABLE_FIELDS: frozenset[str] = frozenset({"content", "author_name"})


def _version_key(event: ChangeEvent) -> str | None:
    """Row/field key for the stale-result check, or None if unversioned."""
    if isinstance(event, QuestionUpdated):
        return f"question:{event.question_id}"
    if isinstance(event, VoteChanged):
        return f"votes:{event.question_id}"
    if isinstance(event, AnswerVoteChanged):
        return f"answer_votes:{event.answer_id}"
    return None


# ── Transitions ───────────────────────────────────────────────


def _replace_row(snapshot: FeedSnapshot, row: MergedRow) -> FeedSnapshot:
    rows = dict(snapshot.rows_by_id)
    rows[row.id] = row
    return replace(snapshot, rows_by_id=rows)


def _insert_question(snapshot: FeedSnapshot, event: QuestionInserted) -> FeedSnapshot:
    question = event.question
    if question.id in snapshot:
        return snapshot
    rows = {question.id: MergedRow.fresh(question), **snapshot.rows_by_id}
    return replace(snapshot, rows_by_id=rows)


def _update_question(snapshot: FeedSnapshot, event: QuestionUpdated) -> FeedSnapshot:
    row = snapshot.get(event.question_id)
    if row is None:
        raise OrphanEventError(event, f"question {event.question_id} not loaded")

    fields = {
        k: v
        for k, v in event.changes.items()
        if k in _UPDATABLE_FIELDS and getattr(row.question, k) != v
    }
    if not fields:
        return snapshot
    return _replace_row(snapshot, replace(row, question=replace(row.question, **fields)))


def _delete_question(snapshot: FeedSnapshot, event: QuestionDeleted) -> FeedSnapshot:
    row = snapshot.get(event.question_id)
    if row is None:
        return snapshot

    rows = {k: v for k, v in snapshot.rows_by_id.items() if k != row.id}
    index = dict(snapshot.answer_index)
    gone = {f"question:{row.id}", f"votes:{row.id}"}
    if row.answer is not None:
        index.pop(row.answer.id, None)
        gone.add(f"answer_votes:{row.answer.id}")
    versions = {k: v for k, v in snapshot.versions.items() if k not in gone}
    return replace(snapshot, rows_by_id=rows, answer_index=index, versions=versions)


def _change_votes(snapshot: FeedSnapshot, event: VoteChanged) -> FeedSnapshot:
    row = snapshot.get(event.question_id)
    if row is None:
        raise OrphanEventError(event, f"question {event.question_id} not loaded")
    if row.question.vote_count == event.vote_count:
        return snapshot
    question = replace(row.question, vote_count=event.vote_count)
    return _replace_row(snapshot, replace(row, question=question))


def _insert_answer(snapshot: FeedSnapshot, event: AnswerInserted) -> FeedSnapshot:
    answer = event.answer
    row = snapshot.get(answer.question_id)
    if row is None:
        raise OrphanEventError(event, f"question {answer.question_id} not loaded")

    index = dict(snapshot.answer_index)
    if row.answer is not None:
        if row.answer.id == answer.id:
            return snapshot
        logger.warning(
            "Question %s already answered by %s; replacing with %s",
            row.id,
            row.answer.id,
            answer.id,
        )
        index.pop(row.answer.id, None)

    index[answer.id] = row.id
    rows = dict(snapshot.rows_by_id)
    rows[row.id] = row.with_answer(answer)
    return replace(snapshot, rows_by_id=rows, answer_index=index)


def _change_answer_votes(
    snapshot: FeedSnapshot, event: AnswerVoteChanged
) -> FeedSnapshot:
    row = snapshot.find_by_answer(event.answer_id)
    if row is None or row.answer is None:
        raise OrphanEventError(event, f"answer {event.answer_id} not loaded")
    if row.answer.vote_count == event.vote_count:
        return snapshot
    answer = replace(row.answer, vote_count=event.vote_count)
    return _replace_row(snapshot, replace(row, answer=answer))


def _insert_follow_up(snapshot: FeedSnapshot, event: FollowUpInserted) -> FeedSnapshot:
    follow_up = event.follow_up
    row = snapshot.get(follow_up.question_id)
    if row is None:
        raise OrphanEventError(event, f"question {follow_up.question_id} not loaded")

    if row.follow_up is not None:
        if row.follow_up.id == follow_up.id:
            return snapshot
        logger.warning(
            "Question %s already has follow-up %s; replacing with %s",
            row.id,
            row.follow_up.id,
            follow_up.id,
        )
    return _replace_row(snapshot, replace(row, follow_up=follow_up))


def _transition(snapshot: FeedSnapshot, event: ChangeEvent) -> FeedSnapshot:
    """Dispatch *event*. Raises OrphanEventError for unknown rows."""
    if isinstance(event, QuestionInserted):
        return _insert_question(snapshot, event)
    if isinstance(event, QuestionUpdated):
        return _update_question(snapshot, event)
    if isinstance(event, QuestionDeleted):
        return _delete_question(snapshot, event)
    if isinstance(event, VoteChanged):
        return _change_votes(snapshot, event)
    if isinstance(event, AnswerInserted):
        return _insert_answer(snapshot, event)
    if isinstance(event, AnswerVoteChanged):
        return _change_answer_votes(snapshot, event)
    if isinstance(event, FollowUpInserted):
        return _insert_follow_up(snapshot, event)
    msg = f"Unknown event type: {type(event).__name__}"
    raise TypeError(msg)


def apply_event(snapshot: FeedSnapshot, event: ChangeEvent) -> FeedSnapshot:
    """Fold one event into *snapshot* and return the resulting snapshot.

    Returns *snapshot* itself (identity preserved) when the event is an
    orphan, stale according to its arrival stamp, or an unstamped no-op.
    A stamped event that leaves the row unchanged still records its
    stamp, so an older result finishing later cannot overwrite it; the
    returned snapshot then keeps the same ``revision``.
    """
    key = _version_key(event)
    if key is not None and event.seq is not None:
        applied = snapshot.versions.get(key)
        if applied is not None and applied >= event.seq:
            logger.debug(
                "Discarding stale %s (seq %d, applied %d)",
                type(event).__name__,
                event.seq,
                applied,
            )
            return snapshot

    try:
        result = _transition(snapshot, event)
    except OrphanEventError as e:
        logger.debug("Dropping orphan event: %s", e)
        return snapshot

    stamped = key is not None and event.seq is not None
    if result is snapshot:
        if not stamped:
            return snapshot
        return replace(snapshot, versions={**snapshot.versions, key: event.seq})

    versions = result.versions
    if stamped:
        versions = {**versions, key: event.seq}
    return replace(result, versions=versions, revision=snapshot.revision + 1)


# ── State container ───────────────────────────────────────────


class FeedMerger:
    """Owns the canonical board and applies events one at a time.

    The only component that writes derived fields. Readers take
    :attr:`snapshot`, which is immutable.
    """

    def __init__(self, rows: Iterable[MergedRow] = ()) -> None:
        self._snapshot = FeedSnapshot.from_rows(rows)
        self.applied_count = 0
        self.ignored_count = 0

    @property
    def snapshot(self) -> FeedSnapshot:
        """The current board state."""
        return self._snapshot

    def apply(self, event: ChangeEvent) -> FeedSnapshot:
        """Apply *event* and return the new snapshot."""
        result = apply_event(self._snapshot, event)
        if result.revision == self._snapshot.revision:
            self.ignored_count += 1
        else:
            self.applied_count += 1
        self._snapshot = result
        return result

    def reset(
        self,
        rows: Iterable[MergedRow],
        *,
        seq: int | None = None,
        replay: Iterable[ChangeEvent] = (),
    ) -> FeedSnapshot:
        """Replace the board with a full reload.

        Without *seq*, applied arrival stamps carry over; they are
        monotonic for the lifetime of the view, not of one snapshot.

        With *seq* (the stamp taken before the reload's read began),
        every loaded row counts as updated at *seq*: results stamped
        earlier are stale from now on. Events in *replay* that arrived
        after *seq* are then re-applied, so nothing merged while the
        read was in flight is lost.
        """
        rows = list(rows)
        versions: dict[str, int] = dict(self._snapshot.versions)
        if seq is not None:
            versions = {}
            for row in rows:
                versions[f"question:{row.id}"] = seq
                versions[f"votes:{row.id}"] = seq
                if row.answer is not None:
                    versions[f"answer_votes:{row.answer.id}"] = seq

        snapshot = FeedSnapshot.from_rows(
            rows, versions=versions, revision=self._snapshot.revision + 1
        )
        for event in replay:
            if seq is None or (event.seq is not None and event.seq > seq):
                snapshot = apply_event(snapshot, event)
        self._snapshot = snapshot
        return snapshot
