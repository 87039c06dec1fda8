"""Tagged change events folded into the board by the merger.

``seq`` is the arrival stamp assigned when the raw change reached the
client, before any refetch. Events built by hand (tests, cold start)
leave it as None and are never treated as stale.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

    from amalive.live.models import Answer, FollowUp, Question


@dataclass(frozen=True, slots=True)
class QuestionInserted:
    question: Question
    seq: int | None = None


@dataclass(frozen=True, slots=True)
class QuestionUpdated:
    question_id: str
    changes: Mapping[str, Any] = field(default_factory=dict)
    seq: int | None = None


@dataclass(frozen=True, slots=True)
class QuestionDeleted:
    question_id: str
    seq: int | None = None


@dataclass(frozen=True, slots=True)
class AnswerInserted:
    answer: Answer
    seq: int | None = None


@dataclass(frozen=True, slots=True)
class VoteChanged:
    """Authoritative vote count for one question, freshly read."""

    question_id: str
    vote_count: int
    seq: int | None = None


@dataclass(frozen=True, slots=True)
class AnswerVoteChanged:
    """Authoritative vote count for one answer, freshly read."""

    answer_id: str
    vote_count: int
    seq: int | None = None


@dataclass(frozen=True, slots=True)
class FollowUpInserted:
    follow_up: FollowUp
    seq: int | None = None


ChangeEvent = (
    QuestionInserted
    | QuestionUpdated
    | QuestionDeleted
    | AnswerInserted
    | VoteChanged
    | AnswerVoteChanged
    | FollowUpInserted
)
