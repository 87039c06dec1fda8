"""View model for the live question board.

All values are frozen; every change produces a new object. Only the
merger builds new rows from change events, so derived fields
(vote counts, answered flags) have a single writer.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import datetime


@dataclass(frozen=True, slots=True)
class Ama:
    """One Ask-Me-Anything session."""

    id: str
    slug: str
    title: str
    owner_id: str | None = None
    description: str | None = None
    is_active: bool = True
    allow_anonymous: bool = True
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class Question:
    """A question as shown on the board.

    ``author_id`` is None for anonymous questions; those are attributed
    through ``session_id`` instead.
    """

    id: str
    ama_id: str
    content: str
    created_at: datetime
    author_name: str | None = None
    author_id: str | None = None
    session_id: str | None = None
    vote_count: int = 0
    is_answered: bool = False


@dataclass(frozen=True, slots=True)
class Answer:
    """The single answer to a question."""

    id: str
    question_id: str
    content: str
    created_at: datetime
    vote_count: int = 0


@dataclass(frozen=True, slots=True)
class FollowUp:
    """The single follow-up the question's author may post after an answer."""

    id: str
    question_id: str
    content: str
    created_at: datetime
    author_id: str | None = None
    session_id: str | None = None


@dataclass(frozen=True, slots=True)
class MergedRow:
    """A question joined with its optional answer and follow-up."""

    question: Question
    answer: Answer | None = None
    follow_up: FollowUp | None = None
    answered_display: bool = False

    @property
    def id(self) -> str:
        return self.question.id

    @classmethod
    def fresh(cls, question: Question) -> MergedRow:
        """A row for a question with nothing attached yet."""
        if question.is_answered:
            question = replace(question, is_answered=False)
        return cls(question=question)

    def with_answer(self, answer: Answer) -> MergedRow:
        """Attach *answer* and raise both answered flags in one step."""
        return replace(
            self,
            question=replace(self.question, is_answered=True),
            answer=answer,
            answered_display=True,
        )


@dataclass(frozen=True, slots=True)
class FeedSnapshot:
    """Immutable state of the board at one point in time.

    ``rows_by_id`` is keyed by question id; its iteration order is
    arrival order (newest insert first) and carries no display meaning.
    ``answer_index`` maps answer id to owning question id. ``versions``
    holds the last applied arrival stamp per row/field.
    """

    rows_by_id: Mapping[str, MergedRow] = field(default_factory=dict)
    answer_index: Mapping[str, str] = field(default_factory=dict)
    versions: Mapping[str, int] = field(default_factory=dict)
    revision: int = 0

    @classmethod
    def from_rows(
        cls,
        rows: Iterable[MergedRow],
        *,
        versions: Mapping[str, int] | None = None,
        revision: int = 0,
    ) -> FeedSnapshot:
        by_id: dict[str, MergedRow] = {}
        index: dict[str, str] = {}
        for row in rows:
            if row.id in by_id:
                continue
            by_id[row.id] = row
            if row.answer is not None:
                index[row.answer.id] = row.id
        return cls(
            rows_by_id=by_id,
            answer_index=index,
            versions=dict(versions or {}),
            revision=revision,
        )

    @property
    def rows(self) -> tuple[MergedRow, ...]:
        return tuple(self.rows_by_id.values())

    def get(self, question_id: str) -> MergedRow | None:
        return self.rows_by_id.get(question_id)

    def find_by_answer(self, answer_id: str) -> MergedRow | None:
        question_id = self.answer_index.get(answer_id)
        if question_id is None:
            return None
        return self.rows_by_id.get(question_id)

    def __len__(self) -> int:
        return len(self.rows_by_id)

    def __contains__(self, question_id: object) -> bool:
        return question_id in self.rows_by_id
