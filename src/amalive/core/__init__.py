"""Core types, errors, and shared utilities."""

from amalive.core.errors import (
    AmaliveError,
    ConfigError,
    EligibilityError,
    IntentError,
    NotFoundError,
    OrphanEventError,
    PermissionDeniedError,
    StorageError,
    StoreError,
    StoreRateLimitError,
    StoreTimeoutError,
    StoreUnavailableError,
    TransientWriteError,
    ValidationError,
)
from amalive.core.retry import RetryConfig, is_retryable, retry_with_backoff

__all__ = [
    "AmaliveError",
    "ConfigError",
    "EligibilityError",
    "IntentError",
    "NotFoundError",
    "OrphanEventError",
    "PermissionDeniedError",
    "RetryConfig",
    "StorageError",
    "StoreError",
    "StoreRateLimitError",
    "StoreTimeoutError",
    "StoreUnavailableError",
    "TransientWriteError",
    "ValidationError",
    "is_retryable",
    "retry_with_backoff",
]
