"""
Correlation result data models.

This module defines the rows produced by a correlation run:

- Iteration windows opened and closed by iteration markers
- Metric value rows, one per (test, metric, iteration)
- Statistics rows, derived from metric value rows and never stored as state
- Diagnostics counters for the recoverable conditions seen during a run

The row types are flat so they can be turned into polars DataFrames and
written by the storage layer without further mapping.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional


@dataclass
class IterationWindow:
    """
    One repetition of a test, between its start and stop markers.

    ``end_timestamp`` stays None while the window is open.
    """

    test_name: str
    iteration: int
    start_timestamp: float
    end_timestamp: Optional[float] = None

    @property
    def is_closed(self) -> bool:
        return self.end_timestamp is not None

    @property
    def duration(self) -> Optional[float]:
        if self.end_timestamp is None:
            return None
        return self.end_timestamp - self.start_timestamp


@dataclass(frozen=True)
class MetricValueRow:
    """The value one metric produced for one iteration of one test."""

    test_name: str
    metric_name: str
    iteration: int
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class StatisticsRow:
    """
    Summary statistics for one (test, metric) group.

    ``std_dev`` is None when it is undefined (a single iteration).
    """

    test_name: str
    metric_name: str
    count: int
    mean: float
    std_dev: Optional[float]
    minimum: float
    maximum: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CorrelationDiagnostics:
    """
    Counters for conditions that were logged and skipped rather than raised.

    Attributes:
        events_processed: Events accepted by the engine
        out_of_order_events: Events whose timestamp went backwards
        dropped_process_events: Process/module events for untracked processes
        duplicate_process_starts: Start events for processes already running
        duplicate_module_loads: Load notifications for an already loaded module
        unmatched_module_unloads: Unload events with no matching loaded module
        dropped_samples: Counter samples for untracked processes
        filtered_samples: Counter samples from sources outside the filter
        unattributed_samples: Samples that no module claimed (deferred)
        dangling_iterations: Iteration starts without a matching stop
        unmatched_iteration_stops: Iteration stops without an open window
        empty_iterations: Closed windows that produced no metric value
        events_lost: Events the capture session reported as lost
    """

    events_processed: int = 0
    out_of_order_events: int = 0
    dropped_process_events: int = 0
    duplicate_process_starts: int = 0
    duplicate_module_loads: int = 0
    unmatched_module_unloads: int = 0
    dropped_samples: int = 0
    filtered_samples: int = 0
    unattributed_samples: int = 0
    dangling_iterations: int = 0
    unmatched_iteration_stops: int = 0
    empty_iterations: int = 0
    events_lost: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
