"""
Configuration management and singleton pattern.

This module provides the main configuration loading and management interface,
implementing a singleton pattern to ensure configuration is loaded only once.
The correlation engine itself never calls get_config(); the CLI loads the
configuration once and hands the relevant sections to each collaborator.
"""

import logging
import tomllib
from pathlib import Path
from typing import Optional

from ..models.config import AppConfig
from ..validation import ErrorSeverity, handle_config_error
from .validators import validate_app_config

logger = logging.getLogger(__name__)

# --- Global Singleton for Configuration ---

# This global variable will hold the single instance of the loaded AppConfig.
_CONFIG: Optional[AppConfig] = None

# Default path to the configuration file, relative to this script's location.
# Overridden by tests and by the CLI --config option.
_CONFIG_FILE_PATH = Path(__file__).parent.parent.parent.parent / "conf" / "config.toml"


def set_config_path(config_path: Path) -> None:
    """
    Set a custom configuration file path.

    Clears the cached configuration so the next get_config() call loads the
    new file.

    Args:
        config_path: Path to the config.toml file
    """
    global _CONFIG_FILE_PATH, _CONFIG
    _CONFIG_FILE_PATH = Path(config_path)
    _CONFIG = None
    logger.info(f"Configuration path set to: {config_path}")


def clear_config_cache() -> None:
    """Clear the cached configuration, forcing a reload on next access."""
    global _CONFIG
    _CONFIG = None
    logger.debug("Configuration cache cleared")


def _load_config(config_path: Path) -> AppConfig:
    """
    Load and validate the application configuration from a TOML file.

    Raises:
        FileNotFoundError: If the configuration file is missing
        ValidationError: If configuration validation fails
        tomllib.TOMLDecodeError: If the TOML file is malformed
    """
    logger.info(f"Loading configuration from: {config_path}")
    try:
        with open(config_path, "rb") as f:
            config_data = tomllib.load(f)
        app_config = validate_app_config(config_data)

        logger.info(
            f"Successfully loaded configuration for run {app_config.run.run_id} "
            f"(target pid {app_config.engine.target_pid}, "
            f"{len(app_config.metrics.counting) + len(app_config.metrics.counter)} custom metrics)"
        )
        return app_config

    except (FileNotFoundError, tomllib.TOMLDecodeError) as e:
        handle_config_error(
            error=e,
            context=f"reading {config_path}",
            severity=ErrorSeverity.CRITICAL,
            reraise=True,
            logger=logger
        )
        raise
    except Exception as e:
        handle_config_error(
            error=e,
            context="processing configuration",
            severity=ErrorSeverity.ERROR,
            reraise=True,
            logger=logger
        )
        raise


def get_config() -> AppConfig:
    """
    Get the global application configuration, loading it if necessary.

    Returns:
        The singleton AppConfig instance

    Raises:
        FileNotFoundError: If the configuration file is missing
        ValidationError: If configuration validation fails
        tomllib.TOMLDecodeError: If the TOML file is malformed
    """
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = _load_config(_CONFIG_FILE_PATH)
    return _CONFIG


def is_config_loaded() -> bool:
    """Check if configuration has been loaded and cached."""
    return _CONFIG is not None


def get_config_info() -> dict:
    """
    Get information about the current configuration state.

    Returns:
        Dictionary with configuration metadata
    """
    return {
        "config_loaded": is_config_loaded(),
        "config_path": str(_CONFIG_FILE_PATH),
        "run_id": _CONFIG.run.run_id if _CONFIG else None,
        "target_pid": _CONFIG.engine.target_pid if _CONFIG else None,
        "custom_metrics_count": (
            len(_CONFIG.metrics.counting) + len(_CONFIG.metrics.counter) if _CONFIG else 0
        ),
    }


def get_config_path() -> Path:
    """The configuration file path get_config() loads from."""
    return _CONFIG_FILE_PATH
