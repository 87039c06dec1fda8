"""Retried data store reads.

Only reads go through here. Writes are never retried; a failed
write-through surfaces as :class:`~amalive.core.errors.TransientWriteError`
and the user may re-trigger the action.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from amalive.core.errors import (
    StoreError,
    StoreRateLimitError,
    StoreTimeoutError,
    StoreUnavailableError,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = logging.getLogger(__name__)

_RETRYABLE_TYPES: tuple[type[StoreError], ...] = (
    StoreRateLimitError,
    StoreTimeoutError,
    StoreUnavailableError,
)


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Backoff settings for store reads (the ``[retry]`` config table)."""

    max_retries: int = 3
    base_delay: float = 0.5
    max_delay: float = 10.0
    jitter: bool = True


def is_retryable(error: BaseException) -> bool:
    """True for store errors a later read may not hit again."""
    return isinstance(error, _RETRYABLE_TYPES)


def _compute_delay(attempt: int, config: RetryConfig, error: StoreError) -> float:
    """Seconds to wait before retry number ``attempt + 1``.

    A rate-limited read waits the store's ``Retry-After`` instead of the
    backoff schedule, still capped at ``max_delay``.
    """
    if isinstance(error, StoreRateLimitError) and error.retry_after is not None:
        return min(error.retry_after, config.max_delay)

    delay = min(config.base_delay * 2**attempt, config.max_delay)
    if config.jitter:
        delay *= random.uniform(0.5, 1.5)
    return delay


def _describe(error: StoreError) -> str:
    if isinstance(error, StoreRateLimitError):
        return "was rate limited"
    if isinstance(error, StoreTimeoutError):
        return "timed out"
    return f"hit an unavailable store ({error})"


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    *,
    label: str = "Store read",
) -> T:
    """Await ``fn()`` until it succeeds or fails in a way retrying won't fix.

    Each retry is logged at WARNING as ``"<label> timed out; retry 1/3
    in 0.5s"``. Non-store errors and non-transient store errors
    (``NotFoundError``, a plain ``StoreError`` for a rejected request)
    propagate on the first attempt.

    Raises:
        The last store error once ``max_retries`` retries are spent.
    """
    cfg = config or RetryConfig()
    attempt = 0
    while True:
        try:
            return await fn()
        except StoreError as e:
            if not is_retryable(e) or attempt >= cfg.max_retries:
                raise
            delay = _compute_delay(attempt, cfg, e)
            attempt += 1
            logger.warning(
                "%s %s; retry %d/%d in %.1fs",
                label,
                _describe(e),
                attempt,
                cfg.max_retries,
                delay,
            )
            await asyncio.sleep(delay)
