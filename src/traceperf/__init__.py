"""
traceperf: Trace event correlation and metric aggregation.

This package turns a time-ordered stream of low-level trace events (process
lifecycle, module load/unload, performance-counter samples, iteration and
custom markers) into per-test, per-iteration metric values and their
descriptive statistics.

The package is organized into specialized modules:
- models: Events, process/module records, result rows and configuration
- tracking: Interval index and process/module tracker
- attribution: Counter sample attribution to processes and modules
- metrics: Pluggable metric evaluators and their registry
- aggregation: Iteration windows and the statistics reducer
- engine: Event dispatch, correlation engine and trace sessions
- storage: Trace tables, benchmark event log and result storage
- report: Markdown and CSV report writers
- config: Configuration management and validation
- validation: Input validation and error handling
- cli: Command-line interface and run orchestration

Usage:
    From command line:
        traceperf analyze trace.parquet --target-pid 4242

    Programmatically:
        from traceperf import CorrelationEngine, EngineConfig
        engine = CorrelationEngine(EngineConfig(target_pid=4242))
        engine.on_event("ProcessStart", timestamp=0.0, process_id=4242)
        ...
        statistics = engine.finalize()
"""

# Main interfaces
from .config import get_config, clear_config_cache, set_config_path
from .engine import (
    CorrelationEngine,
    InMemoryTraceSession,
    ReplayTraceSession,
    SessionLifecycleManager,
)
from .metrics import MetricRegistry, create_default_registry
from .cli.orchestrator import AnalysisRunner
from .cli import main_cli

# Model classes for external use
from .models import (
    AppConfig,
    CorrelationDiagnostics,
    EngineConfig,
    EventKind,
    MetricValueRow,
    StatisticsRow,
    TraceEvent,
)

# Validation utilities
from .validation import (
    CorrelationError,
    EngineStateError,
    EventsLostError,
    InvalidEventError,
    ValidationError,
)

__version__ = "1.0.0"

__all__ = [
    # Main interfaces
    "get_config",
    "clear_config_cache",
    "set_config_path",
    "CorrelationEngine",
    "InMemoryTraceSession",
    "ReplayTraceSession",
    "SessionLifecycleManager",
    "MetricRegistry",
    "create_default_registry",
    "AnalysisRunner",
    "main_cli",
    # Models
    "AppConfig",
    "CorrelationDiagnostics",
    "EngineConfig",
    "EventKind",
    "MetricValueRow",
    "StatisticsRow",
    "TraceEvent",
    # Validation
    "CorrelationError",
    "EngineStateError",
    "EventsLostError",
    "InvalidEventError",
    "ValidationError",
]
