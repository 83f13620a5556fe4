"""
Metric registry.

Maps metric names to definitions holding a factory for fresh evaluator
instances. The registry is filled by explicit register() calls: the built-in
metrics through register_default_metrics() and custom metrics from the
`[metrics]` configuration section through register_configured_metrics().
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Sequence

from ..models.config import MetricsConfig
from ..validation import ValidationError, validate_metric_name
from .base import MetricEvaluator
from .evaluators import (
    CounterDeltaEvaluator,
    CountingEvaluator,
    DurationEvaluator,
    PassThroughEvaluator,
)

logger = logging.getLogger(__name__)

EvaluatorFactory = Callable[[], MetricEvaluator]

GC_START_MARKER = "GCStart"


@dataclass(frozen=True)
class MetricDefinition:
    """
    Identity and factory of one metric.

    Attributes:
        name: Unique metric name used in result rows
        unit: Unit of the reported values
        factory: Returns a new evaluator instance on every call
        display_name: Human-readable name (defaults to ``name``)
    """

    name: str
    unit: str
    factory: EvaluatorFactory
    display_name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.display_name or self.name


class MetricRegistry:
    """Ordered mapping from metric name to MetricDefinition."""

    def __init__(self):
        self._definitions: Dict[str, MetricDefinition] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def __iter__(self) -> Iterator[MetricDefinition]:
        return iter(list(self._definitions.values()))

    def names(self) -> List[str]:
        return list(self._definitions)

    def register(
        self,
        name: str,
        factory: EvaluatorFactory,
        unit: str = "count",
        display_name: Optional[str] = None,
    ) -> MetricDefinition:
        """
        Register a metric.

        Raises:
            ValueError: If a metric with the same name is already registered
        """
        if name in self._definitions:
            raise ValueError(f"Metric already registered: {name}")

        definition = MetricDefinition(name=name, unit=unit, factory=factory, display_name=display_name)
        self._definitions[name] = definition
        logger.debug(f"Registered metric {name} ({unit})")
        return definition

    def get(self, name: str) -> MetricDefinition:
        try:
            return self._definitions[name]
        except KeyError:
            raise KeyError(f"Unknown metric: {name}. Registered metrics: {self.names()}") from None

    def create(self, name: str) -> MetricEvaluator:
        """Create a fresh evaluator for ``name``."""
        return self.get(name).factory()

    def select(self, names: Optional[Sequence[str]] = None) -> List[MetricDefinition]:
        """
        Resolve a metric selection. None or an empty selection means all.

        Raises:
            ValidationError: If a selected name is not registered
        """
        if not names:
            return list(self._definitions.values())

        unknown = [name for name in names if name not in self._definitions]
        if unknown:
            raise ValidationError(
                f"Unknown metric(s) {unknown}; registered metrics: {self.names()}",
                field_name="metrics.enabled",
                value=list(names),
            )
        return [self._definitions[name] for name in dict.fromkeys(names)]


def register_default_metrics(registry: MetricRegistry) -> MetricRegistry:
    """Register the built-in metrics."""
    registry.register(
        "GCCount",
        lambda: CountingEvaluator(GC_START_MARKER),
        unit="count",
        display_name="GC Count",
    )
    registry.register(
        "AllocatedBytes",
        lambda: PassThroughEvaluator("allocated_bytes"),
        unit="bytes",
        display_name="Allocated Bytes",
    )
    registry.register(
        "Duration",
        DurationEvaluator,
        unit="ms",
        display_name="Duration",
    )
    return registry


def register_configured_metrics(registry: MetricRegistry, metrics_config: MetricsConfig) -> MetricRegistry:
    """Register the custom metrics defined in configuration."""
    for counting in metrics_config.counting:
        validate_metric_name(counting.name, field_name="metrics.counting.name")
        registry.register(
            counting.name,
            _counting_factory(counting.marker),
            unit=counting.unit,
        )

    for counter in metrics_config.counter:
        validate_metric_name(counter.name, field_name="metrics.counter.name")
        registry.register(
            counter.name,
            _counter_factory(counter.counter_source, counter.module),
            unit=counter.unit,
        )

    return registry


def create_default_registry(metrics_config: Optional[MetricsConfig] = None) -> MetricRegistry:
    """A registry holding the built-in metrics plus any configured ones."""
    registry = register_default_metrics(MetricRegistry())
    if metrics_config is not None:
        register_configured_metrics(registry, metrics_config)
    return registry


def _counting_factory(marker: str) -> EvaluatorFactory:
    return lambda: CountingEvaluator(marker)


def _counter_factory(counter_source: int, module: Optional[str]) -> EvaluatorFactory:
    return lambda: CounterDeltaEvaluator(counter_source, module)
