"""
Configuration validation utilities.

This module provides validation functions for each section of the
configuration file: engine, run, metrics, storage and logging.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models.config import (
    AppConfig,
    CounterMetricConfig,
    CountingMetricConfig,
    EngineConfig,
    LoggingConfig,
    MetricsConfig,
    RunConfig,
)
from ..validation import (
    ValidationError,
    validate_enum_choice,
    validate_integer_list,
    validate_metric_name,
    validate_positive_integer,
    validate_run_id,
)
from .storage_config import StorageConfig

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def default_run_id() -> str:
    """Timestamp run id, e.g. 20260119143005."""
    return datetime.now().strftime("%Y%m%d%H%M%S")


def _validate_bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a boolean", field_name=field_name, value=value)
    return value


def validate_engine_config(engine_data: Dict[str, Any]) -> EngineConfig:
    """
    Validate and create an EngineConfig from the `[engine]` section.

    Raises:
        ValidationError: If validation fails
    """
    try:
        target_pid = validate_positive_integer(
            engine_data.get("target_pid", 0),
            min_value=0,
            field_name="engine.target_pid",
        )

        counter_sources = validate_integer_list(
            engine_data.get("counter_sources", []),
            field_name="engine.counter_sources",
            min_value=0,
        )

        default_counter_interval = validate_positive_integer(
            engine_data.get("default_counter_interval", 1),
            min_value=1,
            field_name="engine.default_counter_interval",
        )

        seed_target_process = _validate_bool(
            engine_data.get("seed_target_process", False),
            "engine.seed_target_process",
        )

        return EngineConfig(
            target_pid=target_pid,
            counter_sources=counter_sources,
            default_counter_interval=default_counter_interval,
            seed_target_process=seed_target_process,
        )

    except ValidationError as e:
        logger.error(f"Engine configuration validation failed: {e}")
        raise


def validate_run_config(run_data: Dict[str, Any]) -> RunConfig:
    """
    Validate and create a RunConfig from the `[run]` section.

    A missing run id defaults to the current timestamp.

    Raises:
        ValidationError: If validation fails
    """
    try:
        run_id = validate_run_id(run_data.get("run_id") or default_run_id(), field_name="run.run_id")

        output_dir_str = run_data.get("output_dir", "results")
        if not isinstance(output_dir_str, str) or not output_dir_str.strip():
            raise ValidationError("run.output_dir must be a non-empty string", field_name="run.output_dir")

        min_iterations = run_data.get("min_iterations")
        if min_iterations is not None:
            min_iterations = validate_positive_integer(min_iterations, min_value=1, field_name="run.min_iterations")

        max_iterations = run_data.get("max_iterations")
        if max_iterations is not None:
            max_iterations = validate_positive_integer(max_iterations, min_value=1, field_name="run.max_iterations")

        if min_iterations is not None and max_iterations is not None and min_iterations > max_iterations:
            raise ValidationError(
                f"run.min_iterations ({min_iterations}) cannot exceed run.max_iterations ({max_iterations})",
                field_name="run.min_iterations",
                value=min_iterations,
            )

        return RunConfig(
            run_id=run_id,
            output_dir=Path(output_dir_str),
            min_iterations=min_iterations,
            max_iterations=max_iterations,
        )

    except ValidationError as e:
        logger.error(f"Run configuration validation failed: {e}")
        raise


def _metric_tables(metrics_data: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    """The `[[metrics.<key>]]` entries, each checked to be a table."""
    items = metrics_data.get(key, [])
    field_name = f"metrics.{key}"
    if not isinstance(items, list):
        raise ValidationError(f"{field_name} must be an array of tables", field_name=field_name, value=items)
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(
                f"{field_name}[{i}] must be a table, got {item!r}",
                field_name=f"{field_name}[{i}]",
                value=item,
            )
    return items


def validate_metrics_config(metrics_data: Dict[str, Any]) -> MetricsConfig:
    """
    Validate and create a MetricsConfig from the `[metrics]` section.

    Raises:
        ValidationError: If validation fails or a custom metric name repeats
    """
    try:
        enabled = metrics_data.get("enabled", [])
        if not isinstance(enabled, list):
            raise ValidationError("metrics.enabled must be a list of metric names", field_name="metrics.enabled")
        enabled = [
            validate_metric_name(name, field_name=f"metrics.enabled[{i}]")
            for i, name in enumerate(enabled)
        ]

        seen_names: List[str] = []

        def unique_name(name: Any, field_name: str) -> str:
            name = validate_metric_name(name, field_name=field_name)
            if name in seen_names:
                raise ValidationError(f"Duplicate custom metric name: {name}", field_name=field_name, value=name)
            seen_names.append(name)
            return name

        counting = []
        for i, item in enumerate(_metric_tables(metrics_data, "counting")):
            marker = item.get("marker", "")
            if not isinstance(marker, str) or not marker.strip():
                raise ValidationError(
                    f"metrics.counting[{i}].marker must be a non-empty string",
                    field_name=f"metrics.counting[{i}].marker",
                )
            counting.append(
                CountingMetricConfig(
                    name=unique_name(item.get("name"), f"metrics.counting[{i}].name"),
                    marker=marker,
                    unit=str(item.get("unit", "count")),
                )
            )

        counter = []
        for i, item in enumerate(_metric_tables(metrics_data, "counter")):
            module = item.get("module")
            if module is not None and (not isinstance(module, str) or not module.strip()):
                raise ValidationError(
                    f"metrics.counter[{i}].module must be a non-empty string when given",
                    field_name=f"metrics.counter[{i}].module",
                )
            counter.append(
                CounterMetricConfig(
                    name=unique_name(item.get("name"), f"metrics.counter[{i}].name"),
                    counter_source=validate_positive_integer(
                        item.get("counter_source"),
                        min_value=0,
                        field_name=f"metrics.counter[{i}].counter_source",
                    ),
                    module=module,
                    unit=str(item.get("unit", "count")),
                )
            )

        return MetricsConfig(enabled=enabled, counting=counting, counter=counter)

    except ValidationError as e:
        logger.error(f"Metrics configuration validation failed: {e}")
        raise


def validate_storage_config(storage_data: Dict[str, Any]) -> StorageConfig:
    """
    Validate and create a StorageConfig from the `[storage]` section.

    Raises:
        ValidationError: If validation fails
    """
    try:
        return StorageConfig.from_dict(storage_data)
    except ValueError as e:
        raise ValidationError(f"Invalid storage configuration: {e}", field_name="storage") from e


def validate_logging_config(logging_data: Dict[str, Any]) -> LoggingConfig:
    level = validate_enum_choice(
        logging_data.get("level", "INFO"),
        choices=LOG_LEVELS,
        field_name="logging.level",
        case_sensitive=False,
    )
    return LoggingConfig(level=level)


def validate_app_config(config_data: Dict[str, Any], run_id_override: Optional[str] = None) -> AppConfig:
    """
    Validate a whole configuration document.

    Args:
        config_data: Parsed TOML data
        run_id_override: Run id taking precedence over `[run] run_id`

    Raises:
        ValidationError: If any section is invalid
    """
    run_data = dict(config_data.get("run", {}))
    if run_id_override:
        run_data["run_id"] = run_id_override

    return AppConfig(
        engine=validate_engine_config(config_data.get("engine", {})),
        run=validate_run_config(run_data),
        metrics=validate_metrics_config(config_data.get("metrics", {})),
        storage=validate_storage_config(config_data.get("storage", {})),
        logging=validate_logging_config(config_data.get("logging", {})),
    )
