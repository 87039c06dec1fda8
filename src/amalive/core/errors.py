"""Exception hierarchy for amalive.

Every module imports from here. The hierarchy is:

    AmaliveError
    ├── IntentError
    │   ├── ValidationError
    │   ├── PermissionDeniedError
    │   └── EligibilityError
    ├── TransientWriteError(table)
    ├── OrphanEventError(event)
    ├── StoreError
    │   ├── StoreTimeoutError
    │   ├── StoreRateLimitError(retry_after)
    │   ├── StoreUnavailableError
    │   └── NotFoundError
    ├── StorageError
    └── ConfigError
"""

from __future__ import annotations


class AmaliveError(Exception):
    """Base exception for all amalive errors."""


# ─── Intent Errors ────────────────────────────────────────────


class IntentError(AmaliveError):
    """A mutation intent was rejected before any write was issued."""


class ValidationError(IntentError):
    """Empty or missing required field."""


class PermissionDeniedError(IntentError):
    """Caller may not perform this action (anonymity policy, ownership)."""


class EligibilityError(IntentError):
    """Follow-up or answer preconditions are not met."""


# ─── Write-through Errors ─────────────────────────────────────


class TransientWriteError(AmaliveError):
    """A write-through call against the data store failed.

    Logged by the caller, never retried by the core.
    """

    def __init__(self, table: str, message: str) -> None:
        self.table = table
        super().__init__(f"[{table}] {message}")


# ─── Merge Errors ─────────────────────────────────────────────


class OrphanEventError(AmaliveError):
    """A change event references a row that is not present locally."""

    def __init__(self, event: object, reason: str) -> None:
        self.event = event
        super().__init__(f"{type(event).__name__}: {reason}")


# ─── Store Errors ─────────────────────────────────────────────


class StoreError(AmaliveError):
    """Base for data store read errors."""


class StoreTimeoutError(StoreError):
    """Store request timed out."""


class StoreRateLimitError(StoreError):
    """Store rejected the request with a rate limit. Includes retry_after."""

    def __init__(self, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        msg = "Rate limited"
        if retry_after is not None:
            msg += f" (retry after {retry_after}s)"
        super().__init__(msg)


class StoreUnavailableError(StoreError):
    """Store is unreachable or returned a server error."""


class NotFoundError(StoreError):
    """Requested row does not exist."""


# ─── Storage Errors ───────────────────────────────────────────


class StorageError(AmaliveError):
    """Durable client key-value storage failed."""


# ─── Configuration Errors ─────────────────────────────────────


class ConfigError(AmaliveError):
    """Invalid configuration."""
