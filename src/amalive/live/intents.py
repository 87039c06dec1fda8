"""Mutation intents: questions, votes, follow-ups and host actions.

Every intent validates locally, then issues a write-through. The board
itself is never touched here; the change comes back through the live
view's channels. Rejections raise an :class:`~amalive.core.errors.IntentError`
before anything is written. A failed write is logged and reported in
the returned :class:`IntentResult`, never retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from amalive.core.errors import (
    EligibilityError,
    PermissionDeniedError,
    TransientWriteError,
    ValidationError,
)
from amalive.session.ledger import VoteKind
from amalive.store.base import Table, WriteOp

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from amalive.live.models import Ama, FeedSnapshot, MergedRow, Question
    from amalive.session.identity import SessionIdentityStore
    from amalive.session.ledger import VoteLedger
    from amalive.store.base import DataStore

logger = logging.getLogger(__name__)

ANONYMOUS_NAME = "Anonymous"


@dataclass(frozen=True, slots=True)
class IntentResult:
    """Outcome of a write-through.

    ``written`` only means the store accepted the call; the board
    changes when the matching event arrives. ``was_voted`` is set for
    vote toggles (membership before the click).
    """

    written: bool
    was_voted: bool | None = None
    error: TransientWriteError | None = None


def is_question_author(
    question: Question, session_id: str, account_id: str | None = None
) -> bool:
    """Match by account for signed-in authors, by session otherwise."""
    if question.author_id is not None:
        return account_id is not None and account_id == question.author_id
    return question.session_id is not None and question.session_id == session_id


def can_follow_up(
    row: MergedRow | None, session_id: str, account_id: str | None = None
) -> bool:
    """Whether the caller may post the follow-up for *row* right now."""
    if row is None or row.answer is None or row.follow_up is not None:
        return False
    return is_question_author(row.question, session_id, account_id)


def _require_text(content: str | None, what: str) -> str:
    text = (content or "").strip()
    if not text:
        msg = f"{what} cannot be empty"
        raise ValidationError(msg)
    return text


class QuestionActions:
    """Write-side of the board for one AMA and one client session."""

    def __init__(
        self,
        store: DataStore,
        ledger: VoteLedger,
        identity: SessionIdentityStore,
        ama: Ama,
        snapshot_source: Callable[[], FeedSnapshot],
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._identity = identity
        self._ama = ama
        self._snapshot_source = snapshot_source
        # Follow-ups written but not yet confirmed by the feed
        self._pending_follow_ups: set[str] = set()

    async def _write(
        self,
        table: Table,
        op: WriteOp,
        payload: Mapping[str, Any] | None = None,
        match: Mapping[str, Any] | None = None,
    ) -> IntentResult:
        try:
            await self._store.write(table, op, payload, match)
        except TransientWriteError as e:
            logger.warning("Write-through failed: %s", e)
            return IntentResult(written=False, error=e)
        return IntentResult(written=True)

    # ── Attendee intents ─────────────────────────────────────────

    async def submit_question(
        self,
        content: str,
        author_name: str | None = None,
        *,
        account_id: str | None = None,
        account_email: str | None = None,
    ) -> IntentResult:
        """Submit a new question to the AMA.

        Raises:
            ValidationError: If *content* is blank.
            PermissionDeniedError: If the AMA is closed, or anonymous
                questions are disabled and no account is signed in.
        """
        text = _require_text(content, "Question")
        if not self._ama.is_active:
            msg = f"AMA {self._ama.slug!r} is not accepting questions"
            raise PermissionDeniedError(msg)
        if not self._ama.allow_anonymous and account_id is None:
            msg = "Sign in to ask a question in this AMA"
            raise PermissionDeniedError(msg)

        session_id = await self._identity.get_or_create_session_id()
        name = (author_name or "").strip() or account_email or ANONYMOUS_NAME
        return await self._write(
            Table.QUESTIONS,
            WriteOp.INSERT,
            {
                "ama_id": self._ama.id,
                "content": text,
                "author_name": name,
                "author_id": account_id,
                "session_id": session_id,
            },
        )

    async def _toggle_vote(
        self, kind: VoteKind, entity_id: str, table: Table, column: str
    ) -> IntentResult:
        session_id = await self._identity.get_or_create_session_id()
        toggled = await self._ledger.toggle(kind, entity_id)
        key = {column: entity_id, "session_id": session_id}
        if toggled.was_voted:
            result = await self._write(table, WriteOp.DELETE, match=key)
        else:
            result = await self._write(table, WriteOp.INSERT, key)
        return replace(result, was_voted=toggled.was_voted)

    async def toggle_question_vote(self, question_id: str) -> IntentResult:
        return await self._toggle_vote(
            VoteKind.QUESTION, question_id, Table.VOTES, "question_id"
        )

    async def toggle_answer_vote(self, answer_id: str) -> IntentResult:
        return await self._toggle_vote(
            VoteKind.ANSWER, answer_id, Table.ANSWER_VOTES, "answer_id"
        )

    async def submit_follow_up(
        self,
        question_id: str,
        content: str,
        *,
        account_id: str | None = None,
    ) -> IntentResult:
        """Post the one follow-up allowed after an answer.

        Raises:
            ValidationError: If *content* is blank.
            EligibilityError: If the question is unknown or unanswered,
                already has a follow-up (confirmed or pending), or the
                caller is not its author.
        """
        text = _require_text(content, "Follow-up")
        row = self._snapshot_source().get(question_id)
        if row is None:
            msg = f"Unknown question {question_id}"
            raise EligibilityError(msg)
        if row.answer is None:
            msg = "Follow-ups are only possible after the question is answered"
            raise EligibilityError(msg)
        if row.follow_up is not None or question_id in self._pending_follow_ups:
            msg = "This question already has a follow-up"
            raise EligibilityError(msg)

        session_id = await self._identity.get_or_create_session_id()
        if not is_question_author(row.question, session_id, account_id):
            msg = "Only the author of the question can follow up"
            raise EligibilityError(msg)

        result = await self._write(
            Table.FOLLOW_UPS,
            WriteOp.INSERT,
            {
                "question_id": question_id,
                "content": text,
                "author_id": account_id,
                "session_id": session_id,
            },
        )
        if result.written:
            self._pending_follow_ups.add(question_id)
        return result

    async def can_follow_up(
        self, question_id: str, *, account_id: str | None = None
    ) -> bool:
        """Rendering-side eligibility check for one question."""
        if question_id in self._pending_follow_ups:
            return False
        session_id = await self._identity.get_or_create_session_id()
        row = self._snapshot_source().get(question_id)
        return can_follow_up(row, session_id, account_id)

    # ── Host intents ─────────────────────────────────────────────

    def _require_owner(self, account_id: str | None) -> None:
        if account_id is None or account_id != self._ama.owner_id:
            msg = f"Only the host of {self._ama.slug!r} can do this"
            raise PermissionDeniedError(msg)

    async def answer_question(
        self, question_id: str, content: str, *, account_id: str | None
    ) -> IntentResult:
        """Insert the answer, then flag the question as answered.

        Raises:
            PermissionDeniedError: If *account_id* does not own the AMA.
            ValidationError: If *content* is blank.
            EligibilityError: If the question is unknown or already answered.
        """
        self._require_owner(account_id)
        text = _require_text(content, "Answer")
        row = self._snapshot_source().get(question_id)
        if row is None:
            msg = f"Unknown question {question_id}"
            raise EligibilityError(msg)
        if row.answer is not None:
            msg = f"Question {question_id} is already answered"
            raise EligibilityError(msg)

        result = await self._write(
            Table.ANSWERS,
            WriteOp.INSERT,
            {"question_id": question_id, "content": text},
        )
        if not result.written:
            return result
        try:
            await self._store.write(
                Table.QUESTIONS,
                WriteOp.UPDATE,
                {"is_answered": True},
                {"id": question_id},
            )
        except TransientWriteError as e:
            # The board derives answered state from the answer row itself
            logger.warning("Answer saved but flagging %s failed: %s", question_id, e)
        return result

    async def delete_question(
        self, question_id: str, *, account_id: str | None
    ) -> IntentResult:
        """Remove a question (and, store-side, everything hanging off it)."""
        self._require_owner(account_id)
        return await self._write(
            Table.QUESTIONS, WriteOp.DELETE, match={"id": question_id}
        )
