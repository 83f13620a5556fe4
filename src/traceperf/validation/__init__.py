"""
Validation and error handling for the traceperf package.

This module provides input validation, the package's exception types and
error handling helpers with consistent error reporting.
"""

from .exceptions import (
    CorrelationError,
    EngineStateError,
    ErrorSeverity,
    EventsLostError,
    InvalidEventError,
    ValidationError,
    handle_cli_error,
    handle_config_error,
    handle_error,
)

from .validators import (
    validate_enum_choice,
    validate_integer_list,
    validate_metric_name,
    validate_path_exists,
    validate_positive_integer,
    validate_run_id,
)

__all__ = [
    # Exceptions
    "CorrelationError",
    "EngineStateError",
    "ErrorSeverity",
    "EventsLostError",
    "InvalidEventError",
    "ValidationError",
    # Error handling
    "handle_error",
    "handle_config_error",
    "handle_cli_error",
    # Validators
    "validate_enum_choice",
    "validate_integer_list",
    "validate_metric_name",
    "validate_path_exists",
    "validate_positive_integer",
    "validate_run_id",
]
