"""Application configuration helpers."""

from __future__ import annotations

from .env import require_env_var, require_env_vars
from .errors import ConfigurationError, InvalidSettingError, MissingConfigurationError
from .http_resilience import (
    RateLimit,
    ResilienceConfig,
    RetryPolicy,
    listing_resilience,
    transfer_resilience,
)
from .ingest import IngestConfig, QueueNames, StagingTarget, get_ingest_config
from .logging import configure_logging
from .storage import StorageConfig, get_storage_config

__all__ = [
    "ConfigurationError",
    "IngestConfig",
    "InvalidSettingError",
    "MissingConfigurationError",
    "QueueNames",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StagingTarget",
    "StorageConfig",
    "configure_logging",
    "get_ingest_config",
    "get_storage_config",
    "listing_resilience",
    "require_env_var",
    "require_env_vars",
    "transfer_resilience",
]
