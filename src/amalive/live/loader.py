"""Cold-start and refresh reads.

Batch reads retry on transient store errors; everything else
propagates.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from amalive.core.errors import NotFoundError
from amalive.core.retry import retry_with_backoff
from amalive.live.normalizer import normalize, parse_ama
from amalive.store.base import QueryOrder, Table

if TYPE_CHECKING:
    from collections.abc import Mapping

    from amalive.core.retry import RetryConfig
    from amalive.live.models import Ama, MergedRow
    from amalive.store.base import DataStore

logger = logging.getLogger(__name__)


async def _read(
    store: DataStore,
    table: Table,
    filters: Mapping[str, Any] | None = None,
    order: QueryOrder | None = None,
    retry: RetryConfig | None = None,
) -> list[dict[str, Any]]:
    return await retry_with_backoff(
        lambda: store.batch_query(table, filters, order),
        retry,
        label=f"Read of {table.value}",
    )


async def load_ama(
    store: DataStore, slug: str, *, retry: RetryConfig | None = None
) -> Ama:
    """Look up an AMA by its public slug.

    Raises:
        NotFoundError: If no AMA has this slug.
    """
    rows = await _read(store, Table.AMAS, {"slug": slug}, retry=retry)
    if not rows:
        msg = f"No AMA with slug {slug!r}"
        raise NotFoundError(msg)
    return parse_ama(rows[0])


async def load_snapshot(
    store: DataStore, ama_id: str, *, retry: RetryConfig | None = None
) -> list[MergedRow]:
    """Batch-load one AMA's questions with answers and follow-ups."""
    questions = await _read(
        store,
        Table.QUESTIONS_WITH_VOTES,
        {"ama_id": ama_id},
        QueryOrder("vote_count"),
        retry,
    )
    if not questions:
        return []

    # Answers and follow-ups carry no ama_id; filter by loaded questions
    question_ids = {q["id"] for q in questions}
    answers = [
        a
        for a in await _read(store, Table.ANSWERS_WITH_VOTES, retry=retry)
        if a.get("question_id") in question_ids
    ]
    follow_ups = [
        f
        for f in await _read(store, Table.FOLLOW_UPS, retry=retry)
        if f.get("question_id") in question_ids
    ]
    logger.debug(
        "Loaded %d questions, %d answers, %d follow-ups for %s",
        len(questions),
        len(answers),
        len(follow_ups),
        ama_id,
    )
    return normalize(questions, answers, follow_ups)
