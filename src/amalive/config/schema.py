"""Pydantic models for amalive configuration."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class StoreConfig(BaseModel):
    """Connection settings for the hosted data store."""

    url: str = "http://localhost:54321"
    api_key: str | None = None
    api_key_env: str | None = "AMALIVE_STORE_KEY"
    timeout: float = 10.0


class StorageConfig(BaseModel):
    """Durable client key-value storage (session id, vote ledger)."""

    url: str = "sqlite+aiosqlite:///~/.local/share/amalive/client.db"


class ViewConfig(BaseModel):
    """Rendering defaults for the question board."""

    default_sort: Literal["hot", "new"] = "hot"
    max_content_len: int = 280


class ReadRetryConfig(BaseModel):
    """Backoff for cold-start and refresh reads. Writes are never retried."""

    max_retries: int = 3
    base_delay: float = 0.5
    max_delay: float = 10.0
    jitter: bool = True


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "WARNING"
    file: str = ""


class AmaliveConfig(BaseModel):
    """Top-level configuration for amalive."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    view: ViewConfig = Field(default_factory=ViewConfig)
    retry: ReadRetryConfig = Field(default_factory=ReadRetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
