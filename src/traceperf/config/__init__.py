"""
Configuration management for the traceperf package.

This module provides a clean interface for loading, validating, and accessing
configuration data from a TOML file with singleton pattern management.
"""

# Main configuration interface
from .manager import (
    clear_config_cache,
    get_config,
    get_config_info,
    get_config_path,
    is_config_loaded,
    set_config_path,
)

# For advanced usage - direct access to validators
from .storage_config import StorageConfig
from .validators import (
    default_run_id,
    validate_app_config,
    validate_engine_config,
    validate_logging_config,
    validate_metrics_config,
    validate_run_config,
    validate_storage_config,
)

__all__ = [
    # Main interface
    "get_config",
    "set_config_path",
    "clear_config_cache",
    "is_config_loaded",
    "get_config_info",
    "get_config_path",
    # Advanced interface
    "StorageConfig",
    "default_run_id",
    "validate_app_config",
    "validate_engine_config",
    "validate_logging_config",
    "validate_metrics_config",
    "validate_run_config",
    "validate_storage_config",
]
