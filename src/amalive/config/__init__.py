"""Configuration loading and validation."""

from amalive.config.loader import load_config
from amalive.config.schema import (
    AmaliveConfig,
    LoggingConfig,
    ReadRetryConfig,
    StorageConfig,
    StoreConfig,
    ViewConfig,
)

__all__ = [
    "AmaliveConfig",
    "LoggingConfig",
    "ReadRetryConfig",
    "StorageConfig",
    "StoreConfig",
    "ViewConfig",
    "load_config",
]
