"""
Simplified validation functions.

This module provides the validation functions used by the configuration
layer and the command-line interface.
"""

import os
import re
from pathlib import Path
from typing import Any, List, Optional, Union

from .exceptions import ValidationError

# Characters that are not allowed in a run id, since it names output files.
_INVALID_FILE_NAME_CHARS = set('<>:"/\\|?*\0')


def validate_positive_integer(
    value: Any,
    min_value: int = 1,
    max_value: Optional[int] = None,
    field_name: str = "value"
) -> int:
    """
    Validate that a value is an integer within the given bounds.

    Args:
        value: Value to validate
        min_value: Minimum allowed value (inclusive)
        max_value: Maximum allowed value (inclusive), None for no limit
        field_name: Name of the field being validated

    Returns:
        Validated integer value

    Raises:
        ValidationError: If validation fails
    """
    if isinstance(value, bool):
        raise ValidationError(
            f"{field_name} must be a valid integer, got {value}",
            field_name=field_name,
            value=value
        )
    try:
        int_value = int(value)
    except (ValueError, TypeError):
        raise ValidationError(
            f"{field_name} must be a valid integer, got {value}",
            field_name=field_name,
            value=value
        )
    if int_value < min_value:
        raise ValidationError(
            f"{field_name} must be >= {min_value}, got {int_value}",
            field_name=field_name,
            value=value
        )
    if max_value is not None and int_value > max_value:
        raise ValidationError(
            f"{field_name} must be <= {max_value}, got {int_value}",
            field_name=field_name,
            value=value
        )
    return int_value


def validate_path_exists(path: Union[str, Path], field_name: str = "path") -> str:
    """
    Validate that a path exists.

    Args:
        path: Path to validate
        field_name: Name of the field being validated

    Returns:
        Validated path string

    Raises:
        ValidationError: If path doesn't exist
    """
    path_str = str(path)
    if not os.path.exists(path_str):
        raise ValidationError(
            f"{field_name} does not exist: {path_str}",
            field_name=field_name,
            value=path_str
        )
    return path_str


def validate_run_id(run_id: Any, field_name: str = "run_id") -> str:
    """
    Validate a run id, which is used as the stem of every output file name.

    Args:
        run_id: Run id to validate
        field_name: Name of the field being validated

    Returns:
        Validated run id

    Raises:
        ValidationError: If the run id is blank or not a valid file name
    """
    if not isinstance(run_id, str) or not run_id.strip():
        raise ValidationError(
            f"{field_name} cannot be null, empty or white space",
            field_name=field_name,
            value=run_id
        )

    invalid = sorted(c for c in set(run_id) if c in _INVALID_FILE_NAME_CHARS or ord(c) < 32)
    if invalid:
        raise ValidationError(
            f"{field_name} contains invalid file name characters: {invalid!r}",
            field_name=field_name,
            value=run_id
        )

    return run_id


def validate_metric_name(name: Any, field_name: str = "metric_name") -> str:
    """
    Validate a metric name (letters, digits, underscores, dots and hyphens).

    Raises:
        ValidationError: If the name is empty or has unsupported characters
    """
    if not name or not isinstance(name, str):
        raise ValidationError(
            f"{field_name} must be a non-empty string",
            field_name=field_name,
            value=name
        )

    if not re.match(r'^[A-Za-z][A-Za-z0-9_.-]*$', name):
        raise ValidationError(
            f"{field_name} must start with a letter and contain only alphanumeric "
            f"characters, underscores, dots and hyphens: {name}",
            field_name=field_name,
            value=name
        )

    return name


def validate_integer_list(
    values: Any,
    field_name: str = "values",
    min_value: int = 0,
    max_value: Optional[int] = None
) -> List[int]:
    """
    Validate a list of integers.

    Args:
        values: A list of integers, or a comma-separated string (e.g. '1,2')
        field_name: Name of the field being validated
        min_value: Minimum allowed item value
        max_value: Maximum allowed item value

    Returns:
        Validated list of integers (may be empty)

    Raises:
        ValidationError: If the format is invalid
    """
    if isinstance(values, str):
        values = values.strip()
        if not values:
            return []
        try:
            values = [int(v.strip(), 0) for v in values.split(",")]
        except ValueError:
            raise ValidationError(
                f"{field_name} must be comma-separated integers (e.g., '1,2')",
                field_name=field_name,
                value=values
            )

    if not isinstance(values, list):
        raise ValidationError(
            f"{field_name} must be a list of integers",
            field_name=field_name,
            value=values
        )

    return [
        validate_positive_integer(
            value,
            min_value=min_value,
            max_value=max_value,
            field_name=f"{field_name}[{i}]"
        )
        for i, value in enumerate(values)
    ]


def validate_enum_choice(
    value: Any,
    choices: List[str],
    field_name: str = "value",
    case_sensitive: bool = True
) -> str:
    """
    Validate that a value is one of the allowed choices.

    Args:
        value: Value to validate
        choices: List of allowed choices
        field_name: Name of the field being validated
        case_sensitive: Whether the comparison should be case-sensitive

    Returns:
        Validated choice, in the casing of the allowed choice

    Raises:
        ValidationError: If value is not in choices
    """
    choice_list = list(choices)

    str_value = str(value)

    if case_sensitive:
        if str_value not in choice_list:
            raise ValidationError(
                f"{field_name} must be one of {choice_list}, got {value}",
                field_name=field_name,
                value=value
            )
        return str_value

    lower_choices = [choice.lower() for choice in choice_list]
    lower_value = str_value.lower()
    if lower_value not in lower_choices:
        raise ValidationError(
            f"{field_name} must be one of {choice_list}, got {value}",
            field_name=field_name,
            value=value
        )
    return choice_list[lower_choices.index(lower_value)]
