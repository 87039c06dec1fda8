"""Tests for the change-event merger: transitions, staleness, orphans."""

from __future__ import annotations

import logging

import pytest

from amalive.live.events import (
    AnswerInserted,
    AnswerVoteChanged,
    FollowUpInserted,
    QuestionDeleted,
    QuestionInserted,
    QuestionUpdated,
    VoteChanged,
)
from amalive.live.merger import FeedMerger, apply_event
from amalive.live.models import FeedSnapshot

from tests.fixtures.rows import (
    at,
    make_answer,
    make_follow_up,
    make_question,
    make_row,
)

# ── Helpers ──────────────────────────────────────────────────────


def _answered_merger() -> FeedMerger:
    """Merger holding q-1 answered by a-1."""
    merger = FeedMerger([make_row("q-1")])
    merger.apply(AnswerInserted(make_answer("a-1", "q-1")))
    return merger


# ── QuestionInserted ─────────────────────────────────────────────


class TestQuestionInserted:
    def test_insert_into_empty(self) -> None:
        merger = FeedMerger()
        snap = merger.apply(QuestionInserted(make_question("q-1")))
        assert len(snap) == 1
        assert "q-1" in snap

    def test_idempotent_insert(self) -> None:
        merger = FeedMerger()
        merger.apply(QuestionInserted(make_question("q-1")))
        before = merger.snapshot
        after = merger.apply(QuestionInserted(make_question("q-1")))
        assert after is before
        assert len(after) == 1
        assert merger.ignored_count == 1

    def test_new_rows_go_first(self) -> None:
        merger = FeedMerger([make_row("q-1")])
        merger.apply(QuestionInserted(make_question("q-2", created_at=at(1))))
        assert [r.id for r in merger.snapshot.rows] == ["q-2", "q-1"]

    def test_answered_flag_on_insert_is_ignored(self) -> None:
        merger = FeedMerger()
        merger.apply(QuestionInserted(make_question("q-1", is_answered=True)))
        row = merger.snapshot.get("q-1")
        assert row is not None
        assert row.question.is_answered is False
        assert row.answered_display is False


# ── QuestionUpdated ──────────────────────────────────────────────


class TestQuestionUpdated:
    def test_merges_display_fields(self) -> None:
        merger = FeedMerger([make_row("q-1")])
        merger.apply(QuestionUpdated("q-1", {"content": "Edited?", "author_name": "Ada"}))
        q = merger.snapshot.get("q-1").question  # type: ignore[union-attr]
        assert q.content == "Edited?"
        assert q.author_name == "Ada"

    def test_ignores_owned_fields(self) -> None:
        merger = FeedMerger([make_row("q-1", vote_count=3)])
        before = merger.snapshot
        after = merger.apply(
            QuestionUpdated("q-1", {"is_answered": True, "vote_count": 99, "id": "zz"})
        )
        assert after is before

    def test_unchanged_values_are_a_no_op(self) -> None:
        merger = FeedMerger([make_row("q-1", content="Same?")])
        before = merger.snapshot
        assert merger.apply(QuestionUpdated("q-1", {"content": "Same?"})) is before

    def test_orphan_dropped(self) -> None:
        merger = FeedMerger()
        assert merger.apply(QuestionUpdated("q-404", {"content": "x"})) is merger.snapshot
        assert len(merger.snapshot) == 0


# ── QuestionDeleted ──────────────────────────────────────────────


class TestQuestionDeleted:
    def test_removes_row_and_answer_index(self) -> None:
        merger = _answered_merger()
        merger.apply(QuestionDeleted("q-1"))
        assert len(merger.snapshot) == 0
        assert merger.snapshot.find_by_answer("a-1") is None
        assert merger.snapshot.answer_index == {}

    def test_idempotent(self) -> None:
        merger = FeedMerger([make_row("q-1")])
        merger.apply(QuestionDeleted("q-1"))
        before = merger.snapshot
        assert merger.apply(QuestionDeleted("q-1")) is before

    def test_drops_stamps_of_deleted_row(self) -> None:
        merger = FeedMerger([make_row("q-1"), make_row("q-2")])
        merger.apply(AnswerInserted(make_answer("a-1", "q-1")))
        merger.apply(QuestionUpdated("q-1", {"content": "Edited?"}, seq=1))
        merger.apply(VoteChanged("q-1", 3, seq=2))
        merger.apply(AnswerVoteChanged("a-1", 1, seq=3))
        merger.apply(VoteChanged("q-2", 1, seq=4))

        merger.apply(QuestionDeleted("q-1", seq=5))
        assert merger.snapshot.versions == {"votes:q-2": 4}


# ── Votes ────────────────────────────────────────────────────────


class TestVotes:
    def test_vote_count_overwritten(self) -> None:
        merger = FeedMerger([make_row("q-1", vote_count=2)])
        merger.apply(VoteChanged("q-1", 5))
        assert merger.snapshot.get("q-1").question.vote_count == 5  # type: ignore[union-attr]

    def test_vote_count_can_drop(self) -> None:
        merger = FeedMerger([make_row("q-1", vote_count=2)])
        merger.apply(VoteChanged("q-1", 1))
        assert merger.snapshot.get("q-1").question.vote_count == 1  # type: ignore[union-attr]

    def test_vote_for_unknown_question_dropped(self) -> None:
        merger = FeedMerger()
        before = merger.snapshot
        assert merger.apply(VoteChanged("q-404", 3)) is before

    def test_answer_vote_via_index(self) -> None:
        merger = _answered_merger()
        merger.apply(AnswerVoteChanged("a-1", 7))
        row = merger.snapshot.find_by_answer("a-1")
        assert row is not None
        assert row.answer is not None
        assert row.answer.vote_count == 7

    def test_answer_vote_for_unknown_answer_dropped(self) -> None:
        merger = FeedMerger([make_row("q-1")])
        before = merger.snapshot
        assert merger.apply(AnswerVoteChanged("a-404", 1)) is before


# ── Staleness ────────────────────────────────────────────────────


class TestStaleResults:
    def test_older_vote_result_loses(self) -> None:
        merger = FeedMerger([make_row("q-1")])
        merger.apply(VoteChanged("q-1", 4, seq=2))
        before = merger.snapshot
        assert merger.apply(VoteChanged("q-1", 3, seq=1)) is before
        assert merger.snapshot.get("q-1").question.vote_count == 4  # type: ignore[union-attr]

    def test_equal_seq_is_stale(self) -> None:
        merger = FeedMerger([make_row("q-1")])
        merger.apply(VoteChanged("q-1", 4, seq=2))
        assert merger.apply(VoteChanged("q-1", 9, seq=2)) is merger.snapshot
        assert merger.snapshot.get("q-1").question.vote_count == 4  # type: ignore[union-attr]

    def test_versions_are_per_row(self) -> None:
        merger = FeedMerger([make_row("q-1"), make_row("q-2")])
        merger.apply(VoteChanged("q-1", 4, seq=5))
        merger.apply(VoteChanged("q-2", 2, seq=3))
        assert merger.snapshot.get("q-2").question.vote_count == 2  # type: ignore[union-attr]

    def test_question_and_vote_versions_independent(self) -> None:
        merger = FeedMerger([make_row("q-1")])
        merger.apply(VoteChanged("q-1", 4, seq=5))
        merger.apply(QuestionUpdated("q-1", {"content": "New?"}, seq=3))
        assert merger.snapshot.get("q-1").question.content == "New?"  # type: ignore[union-attr]

    def test_unstamped_events_always_apply(self) -> None:
        merger = FeedMerger([make_row("q-1")])
        merger.apply(VoteChanged("q-1", 4, seq=5))
        merger.apply(VoteChanged("q-1", 6))
        assert merger.snapshot.get("q-1").question.vote_count == 6  # type: ignore[union-attr]

    def test_reset_keeps_versions(self) -> None:
        merger = FeedMerger([make_row("q-1")])
        merger.apply(VoteChanged("q-1", 4, seq=5))
        merger.reset([make_row("q-1", vote_count=4)])
        assert merger.snapshot.versions == {"votes:q-1": 5}
        assert merger.apply(VoteChanged("q-1", 1, seq=4)) is merger.snapshot

    def test_unchanged_newer_result_still_blocks_older(self) -> None:
        # Count 2: a vote insert (seq 4) and its delete (seq 5) race; the
        # delete's read lands first and sees the unchanged count.
        merger = FeedMerger([make_row("q-1", vote_count=2)])
        merger.apply(VoteChanged("q-1", 2, seq=3))
        merger.apply(VoteChanged("q-1", 2, seq=5))
        merger.apply(VoteChanged("q-1", 3, seq=4))
        assert merger.snapshot.get("q-1").question.vote_count == 2  # type: ignore[union-attr]
        assert merger.snapshot.versions == {"votes:q-1": 5}

    def test_unchanged_stamped_result_counts_as_ignored(self) -> None:
        merger = FeedMerger([make_row("q-1", vote_count=2)])
        start = merger.snapshot.revision
        merger.apply(VoteChanged("q-1", 2, seq=1))
        assert merger.snapshot.revision == start
        assert merger.ignored_count == 1
        assert merger.applied_count == 0

    def test_reset_at_stamp_makes_earlier_results_stale(self) -> None:
        merger = FeedMerger([make_row("q-1")])
        merger.apply(VoteChanged("q-1", 4, seq=2))
        merger.reset([make_row("q-1", vote_count=5), make_row("q-2")], seq=3)
        assert merger.snapshot.versions == {
            "question:q-1": 3,
            "votes:q-1": 3,
            "question:q-2": 3,
            "votes:q-2": 3,
        }
        merger.apply(VoteChanged("q-2", 9, seq=1))
        assert merger.snapshot.get("q-2").question.vote_count == 0  # type: ignore[union-attr]

    def test_reset_replays_events_after_its_stamp(self) -> None:
        merger = FeedMerger()
        # Arrived while the reload was reading; both already applied once
        during_load = [
            QuestionInserted(make_question("q-old"), seq=2),
            QuestionInserted(make_question("q-new"), seq=4),
            VoteChanged("q-new", 2, seq=5),
        ]
        for event in during_load:
            merger.apply(event)

        merger.reset([make_row("q-1")], seq=3, replay=during_load)
        snap = merger.snapshot
        assert sorted(snap.rows_by_id) == ["q-1", "q-new"]
        assert snap.get("q-new").question.vote_count == 2  # type: ignore[union-attr]
        assert snap.versions["votes:q-new"] == 5


# ── Answers ──────────────────────────────────────────────────────


class TestAnswerInserted:
    def test_answer_and_flags_in_one_snapshot(self) -> None:
        merger = FeedMerger([make_row("q-1")])
        seen: list[FeedSnapshot] = [merger.snapshot]
        seen.append(merger.apply(AnswerInserted(make_answer("a-1", "q-1"))))
        for snap in seen:
            row = snap.get("q-1")
            assert row is not None
            assert row.answered_display is (row.answer is not None)
            assert row.question.is_answered is (row.answer is not None)
        final = seen[-1].get("q-1")
        assert final is not None
        assert final.answer is not None
        assert final.answered_display is True

    def test_answer_before_question_is_dropped(self) -> None:
        merger = FeedMerger()
        snap = merger.apply(AnswerInserted(make_answer("a-1", "q-1")))
        assert len(snap) == 0

        merger.apply(QuestionInserted(make_question("q-1")))
        row = merger.snapshot.get("q-1")
        assert row is not None
        assert row.answer is None

        # Reconciliation brings the answer back
        merger.apply(AnswerInserted(make_answer("a-1", "q-1")))
        assert merger.snapshot.get("q-1").answer is not None  # type: ignore[union-attr]

    def test_same_answer_twice_is_a_no_op(self) -> None:
        merger = _answered_merger()
        before = merger.snapshot
        assert merger.apply(AnswerInserted(make_answer("a-1", "q-1"))) is before

    def test_second_answer_overwrites(self, caplog) -> None:
        merger = _answered_merger()
        with caplog.at_level(logging.WARNING, logger="amalive.live.merger"):
            merger.apply(AnswerInserted(make_answer("a-2", "q-1", content="Better.")))
        row = merger.snapshot.get("q-1")
        assert row is not None
        assert row.answer is not None
        assert row.answer.id == "a-2"
        assert merger.snapshot.answer_index == {"a-2": "q-1"}
        assert "already answered" in caplog.text


# ── Follow-ups ───────────────────────────────────────────────────


class TestFollowUpInserted:
    def test_attached(self) -> None:
        merger = _answered_merger()
        merger.apply(FollowUpInserted(make_follow_up("f-1", "q-1")))
        assert merger.snapshot.get("q-1").follow_up.id == "f-1"  # type: ignore[union-attr]

    def test_orphan_dropped(self) -> None:
        merger = FeedMerger()
        assert merger.apply(FollowUpInserted(make_follow_up())) is merger.snapshot

    def test_same_follow_up_twice_is_a_no_op(self) -> None:
        merger = _answered_merger()
        merger.apply(FollowUpInserted(make_follow_up("f-1", "q-1")))
        before = merger.snapshot
        assert merger.apply(FollowUpInserted(make_follow_up("f-1", "q-1"))) is before

    def test_last_write_wins(self) -> None:
        merger = _answered_merger()
        merger.apply(FollowUpInserted(make_follow_up("f-1", "q-1")))
        merger.apply(FollowUpInserted(make_follow_up("f-2", "q-1")))
        assert merger.snapshot.get("q-1").follow_up.id == "f-2"  # type: ignore[union-attr]


# ── apply_event / FeedMerger bookkeeping ─────────────────────────


class TestBookkeeping:
    def test_apply_event_is_pure(self) -> None:
        snap = FeedSnapshot.from_rows([make_row("q-1")])
        result = apply_event(snap, VoteChanged("q-1", 2))
        assert snap.get("q-1").question.vote_count == 0  # type: ignore[union-attr]
        assert result.get("q-1").question.vote_count == 2  # type: ignore[union-attr]

    def test_revision_bumps_only_on_change(self) -> None:
        merger = FeedMerger([make_row("q-1")])
        start = merger.snapshot.revision
        merger.apply(VoteChanged("q-1", 1))
        merger.apply(VoteChanged("q-1", 1))
        assert merger.snapshot.revision == start + 1
        assert merger.applied_count == 1
        assert merger.ignored_count == 1

    def test_unknown_event_type_raises(self) -> None:
        with pytest.raises(TypeError, match="Unknown event type"):
            apply_event(FeedSnapshot(), object())  # type: ignore[arg-type]

    def test_duplicate_seed_rows_collapse(self) -> None:
        merger = FeedMerger([make_row("q-1"), make_row("q-1", content="dup")])
        assert len(merger.snapshot) == 1
        assert merger.snapshot.get("q-1").question.content == "Question q-1?"  # type: ignore[union-attr]
