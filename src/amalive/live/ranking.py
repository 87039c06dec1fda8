"""Display ordering for the board.

Pure projections; the canonical snapshot is never reordered.

    HOT  vote count desc, then newest first, then question id
    NEW  created_at desc, then question id
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from amalive.live.models import MergedRow


class SortMode(enum.Enum):
    """Selectable board ordering."""

    HOT = "hot"
    NEW = "new"


def _hot_key(row: MergedRow) -> tuple[int, float, str]:
    q = row.question
    return (-q.vote_count, -q.created_at.timestamp(), q.id)


def _new_key(row: MergedRow) -> tuple[float, str]:
    q = row.question
    return (-q.created_at.timestamp(), q.id)


def rank(rows: Iterable[MergedRow], mode: SortMode | str = SortMode.HOT) -> list[MergedRow]:
    """Return *rows* in display order for *mode*."""
    mode = SortMode(mode)
    key = _hot_key if mode is SortMode.HOT else _new_key
    return sorted(rows, key=key)
