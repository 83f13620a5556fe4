"""
Data models for the correlation engine.

Event Models:
- Raw trace events and the fields each event kind requires

Tracking Models:
- Processes, modules with their address ranges and life spans
- Samples that could not be attributed to a module

Result Models:
- Iteration windows, metric value rows and statistics rows
- Diagnostics counters for recoverable conditions

Configuration Models:
- Engine, run, metric, storage and logging settings
"""

# Event models
from .events import EVENT_FIELD_NAMES, REQUIRED_FIELDS, EventKind, TraceEvent

# Tracking models
from .tracking import (
    AddressRange,
    DeferredSample,
    LifeSpan,
    Module,
    Process,
    ProcessState,
)

# Result models
from .results import (
    CorrelationDiagnostics,
    IterationWindow,
    MetricValueRow,
    StatisticsRow,
)

# Configuration models
from .config import (
    AppConfig,
    CounterMetricConfig,
    CountingMetricConfig,
    EngineConfig,
    LoggingConfig,
    MetricsConfig,
    RunConfig,
)

__all__ = [
    # Events
    "EVENT_FIELD_NAMES",
    "REQUIRED_FIELDS",
    "EventKind",
    "TraceEvent",
    # Tracking
    "AddressRange",
    "DeferredSample",
    "LifeSpan",
    "Module",
    "Process",
    "ProcessState",
    # Results
    "CorrelationDiagnostics",
    "IterationWindow",
    "MetricValueRow",
    "StatisticsRow",
    # Configuration
    "AppConfig",
    "CounterMetricConfig",
    "CountingMetricConfig",
    "EngineConfig",
    "LoggingConfig",
    "MetricsConfig",
    "RunConfig",
]
