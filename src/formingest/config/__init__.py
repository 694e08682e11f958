"""Application configuration helpers."""

from __future__ import annotations

from formingest.common.logging import configure_logging

from .env import optional_env_var, require_env_vars, split_list
from .errors import ConfigurationError, MissingConfigurationError
from .ownership import get_ownership_context
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "StorageConfig",
    "configure_logging",
    "get_database_config",
    "get_ownership_context",
    "get_storage_config",
    "optional_env_var",
    "require_env_vars",
    "split_list",
]
