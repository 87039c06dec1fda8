"""Raw store rows -> view model.

Rows are validated with pydantic record models (unknown columns are
ignored, naive timestamps are read as UTC) and converted to the frozen
dataclasses in :mod:`amalive.live.models`. :func:`normalize` is the
cold-start join of a batch snapshot.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError

from amalive.core.errors import StoreError
from amalive.live.models import Ama, Answer, FollowUp, MergedRow, Question

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

R = TypeVar("R", bound="_Record")


class _Record(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    @field_validator("created_at", mode="after", check_fields=False)
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @field_validator("vote_count", mode="before", check_fields=False)
    @classmethod
    def _null_count(cls, value: Any) -> Any:
        return 0 if value is None else value


class AmaRecord(_Record):
    id: str
    slug: str
    title: str
    owner_id: str | None = None
    description: str | None = None
    is_active: bool = True
    allow_anonymous: bool = True
    created_at: datetime | None = None


class QuestionRecord(_Record):
    id: str
    ama_id: str
    content: str
    created_at: datetime
    author_name: str | None = None
    author_id: str | None = None
    session_id: str | None = None
    vote_count: int = 0
    is_answered: bool = False


class AnswerRecord(_Record):
    id: str
    question_id: str
    content: str
    created_at: datetime
    vote_count: int = 0


class FollowUpRecord(_Record):
    id: str
    question_id: str
    content: str
    created_at: datetime
    author_id: str | None = None
    session_id: str | None = None


def _validate(model: type[R], raw: Mapping[str, Any], what: str) -> R:
    try:
        return model.model_validate(dict(raw))
    except PydanticValidationError as e:
        msg = f"Malformed {what} row: {e}"
        raise StoreError(msg) from e


def parse_ama(raw: Mapping[str, Any]) -> Ama:
    rec = _validate(AmaRecord, raw, "amas")
    return Ama(**rec.model_dump())


def parse_question(raw: Mapping[str, Any]) -> Question:
    rec = _validate(QuestionRecord, raw, "questions")
    return Question(**rec.model_dump())


def parse_answer(raw: Mapping[str, Any]) -> Answer:
    rec = _validate(AnswerRecord, raw, "answers")
    return Answer(**rec.model_dump())


def parse_follow_up(raw: Mapping[str, Any]) -> FollowUp:
    rec = _validate(FollowUpRecord, raw, "follow_up_questions")
    return FollowUp(**rec.model_dump())


def normalize(
    raw_questions: Iterable[Mapping[str, Any]],
    raw_answers: Iterable[Mapping[str, Any]],
    raw_follow_ups: Iterable[Mapping[str, Any]],
) -> list[MergedRow]:
    """Join questions with their answer and follow-up.

    Question order is preserved. When more than one answer or follow-up
    references the same question, the first one wins.

    Raises:
        StoreError: If any row is malformed.
    """
    answers: dict[str, Answer] = {}
    for raw in raw_answers:
        answer = parse_answer(raw)
        answers.setdefault(answer.question_id, answer)

    follow_ups: dict[str, FollowUp] = {}
    for raw in raw_follow_ups:
        follow_up = parse_follow_up(raw)
        follow_ups.setdefault(follow_up.question_id, follow_up)

    rows: list[MergedRow] = []
    for raw in raw_questions:
        row = MergedRow.fresh(parse_question(raw))
        answer = answers.get(row.id)
        if answer is not None:
            row = row.with_answer(answer)
        follow_up = follow_ups.get(row.id)
        if follow_up is not None:
            row = replace(row, follow_up=follow_up)
        rows.append(row)
    return rows
