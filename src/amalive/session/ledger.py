"""Local vote ledger: which questions and answers this session upvoted.

Membership only gates which vote buttons render as active and decides
whether a click inserts or deletes a vote. Counts never come from here;
they arrive through the change feed. A failed write-through leaves the
ledger out of step with the store until the next reconciliation.
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from amalive.core.errors import StorageError

if TYPE_CHECKING:
    from amalive.storage.base import KeyValueStorage

logger = logging.getLogger(__name__)


class VoteKind(enum.Enum):
    """Entity kinds that can be upvoted."""

    QUESTION = "question"
    ANSWER = "answer"


_STORAGE_KEYS: dict[VoteKind, str] = {
    VoteKind.QUESTION: "votedQuestions",
    VoteKind.ANSWER: "votedAnswers",
}


@dataclass(frozen=True, slots=True)
class ToggleResult:
    """Outcome of a local toggle. ``was_voted`` is the state before it."""

    kind: VoteKind
    entity_id: str
    was_voted: bool

    @property
    def is_voted(self) -> bool:
        """Membership after the toggle."""
        return not self.was_voted


def serialize_ids(ids: frozenset[str] | set[str]) -> str:
    """Encode a membership set as a sorted JSON array."""
    return json.dumps(sorted(ids))


def deserialize_ids(raw: str) -> set[str]:
    """Decode a JSON array of ids. Raises ValueError on malformed input."""
    data = json.loads(raw)
    if not isinstance(data, list) or not all(isinstance(i, str) for i in data):
        msg = "expected a JSON array of strings"
        raise ValueError(msg)
    return set(data)


class VoteLedger:
    """Per-kind sets of entity ids the current session has voted for."""

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage
        self._voted: dict[VoteKind, set[str]] = {kind: set() for kind in VoteKind}

    async def load(self) -> None:
        """Read both membership sets from storage.

        Unreadable or corrupt entries leave that set empty.
        """
        for kind, key in _STORAGE_KEYS.items():
            try:
                raw = await self._storage.get(key)
            except StorageError as e:
                logger.warning("Cannot load %s: %s", key, e)
                continue
            if not raw:
                continue
            try:
                self._voted[kind] = deserialize_ids(raw)
            except ValueError as e:
                logger.warning("Discarding corrupt %s: %s", key, e)

    def has_voted(self, kind: VoteKind, entity_id: str) -> bool:
        return entity_id in self._voted[kind]

    def voted(self, kind: VoteKind) -> frozenset[str]:
        """Snapshot of the ids voted for under *kind*."""
        return frozenset(self._voted[kind])

    async def toggle(self, kind: VoteKind, entity_id: str) -> ToggleResult:
        """Flip membership for *entity_id* and persist the updated set.

        Returns the prior state so the caller can issue the complementary
        write-through (insert when it was absent, delete when present).
        """
        members = self._voted[kind]
        was_voted = entity_id in members
        if was_voted:
            members.discard(entity_id)
        else:
            members.add(entity_id)

        key = _STORAGE_KEYS[kind]
        try:
            await self._storage.set(key, serialize_ids(members))
        except StorageError as e:
            logger.warning("Cannot persist %s: %s", key, e)

        return ToggleResult(kind=kind, entity_id=entity_id, was_voted=was_voted)
