"""
Pluggable per-iteration metric evaluators and their registry.
"""

from .base import EvaluationContext, MetricEvaluator
from .evaluators import (
    CounterDeltaEvaluator,
    CountingEvaluator,
    DurationEvaluator,
    PassThroughEvaluator,
)
from .registry import (
    GC_START_MARKER,
    MetricDefinition,
    MetricRegistry,
    create_default_registry,
    register_configured_metrics,
    register_default_metrics,
)

__all__ = [
    # Framework
    "EvaluationContext",
    "MetricEvaluator",
    # Evaluators
    "CounterDeltaEvaluator",
    "CountingEvaluator",
    "DurationEvaluator",
    "PassThroughEvaluator",
    # Registry
    "GC_START_MARKER",
    "MetricDefinition",
    "MetricRegistry",
    "create_default_registry",
    "register_configured_metrics",
    "register_default_metrics",
]
