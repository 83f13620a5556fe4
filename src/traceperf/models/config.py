"""
Configuration data models.

This module contains the configuration structures for the correlation engine,
the run, custom metric definitions, storage, logging and the application
configuration that aggregates them.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from ..config.storage_config import StorageConfig


@dataclass
class EngineConfig:
    """
    Settings consumed by the correlation engine, loaded from `[engine]`.

    The engine is given this object explicitly and never reads global state.
    """

    # Process id that roots the tracked process tree.
    target_pid: int
    # Counter sources to attribute. Empty means every source.
    counter_sources: List[int] = field(default_factory=list)
    # Weight used for samples of a source whose interval was never announced.
    default_counter_interval: int = 1
    # Seed the target process record from the live process before replay.
    seed_target_process: bool = False


@dataclass
class RunConfig:
    """Settings for one analysis run, loaded from `[run]`."""

    # Stem of every output file name.
    run_id: str
    # Directory the run's results are written to.
    output_dir: Path
    # Expected iteration bounds. Violations are only warned about.
    min_iterations: Optional[int] = None
    max_iterations: Optional[int] = None


@dataclass
class CountingMetricConfig:
    """A metric counting a named custom marker, from `[[metrics.counting]]`."""

    name: str
    marker: str
    unit: str = "count"


@dataclass
class CounterMetricConfig:
    """A metric over an attributed counter total, from `[[metrics.counter]]`."""

    name: str
    counter_source: int
    # Module file name (basename) to restrict the total to. None means the
    # whole tracked process tree.
    module: Optional[str] = None
    unit: str = "count"


@dataclass
class MetricsConfig:
    """Metric selection and custom metric definitions, loaded from `[metrics]`."""

    # Metric names to evaluate. Empty means every registered metric.
    enabled: List[str] = field(default_factory=list)
    counting: List[CountingMetricConfig] = field(default_factory=list)
    counter: List[CounterMetricConfig] = field(default_factory=list)


@dataclass
class LoggingConfig:
    """Logging settings, loaded from `[logging]`."""

    level: str = "INFO"


@dataclass
class AppConfig:
    """
    The root configuration object that aggregates all loaded settings.
    """

    engine: EngineConfig
    run: RunConfig
    metrics: MetricsConfig
    storage: "StorageConfig"
    logging: LoggingConfig
