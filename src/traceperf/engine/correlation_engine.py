"""
Trace event correlation engine.

The engine consumes one ordered event stream and turns it into per-test,
per-iteration metric values and their statistics. Every event goes through an
explicit dispatch table, in this order of registration:

1. the process tracker (process and module lifecycle)
2. the sample attribution resolver (counter intervals and samples)
3. iteration control (opening and closing iteration windows)
4. metric evaluator subscriptions (e.g. custom markers)

The engine does no locking. It must be fed from a single thread, and each
capture session needs its own engine instance.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from ..aggregation.aggregator import IterationAggregator
from ..aggregation.statistics import compute_statistics
from ..attribution.resolver import SampleAttributionResolver
from ..metrics.base import EvaluationContext, MetricEvaluator
from ..metrics.registry import MetricRegistry, create_default_registry
from ..models.config import EngineConfig
from ..models.events import EventKind, TraceEvent
from ..models.results import CorrelationDiagnostics, MetricValueRow, StatisticsRow
from ..models.tracking import Process
from ..tracking.process_tracker import ProcessTracker
from ..validation.exceptions import EngineStateError
from .dispatcher import EventDispatcher

logger = logging.getLogger(__name__)

# Event kinds that only count when they come from the tracked process tree
# (if they carry a process id at all).
_PROCESS_SCOPED_MARKERS = (
    EventKind.ITERATION_START,
    EventKind.ITERATION_STOP,
    EventKind.CUSTOM_MARKER,
)


class EngineState(Enum):
    RUNNING = "running"
    FINALIZED = "finalized"
    ABORTED = "aborted"


class CorrelationEngine:
    """
    Correlates a raw trace event stream into metric values and statistics.

    Args:
        config: Engine settings (target process, counter sources, weights)
        registry: Metric registry; defaults to the built-in metrics
        metrics: Names of the metrics to evaluate; None or empty means every
            registered metric
        min_iterations: Expected minimum iterations per test (warning only)
        max_iterations: Expected maximum iterations per test (warning only)
    """

    def __init__(
        self,
        config: EngineConfig,
        registry: Optional[MetricRegistry] = None,
        metrics: Optional[Sequence[str]] = None,
        min_iterations: Optional[int] = None,
        max_iterations: Optional[int] = None,
    ):
        self.config = config
        self.registry = registry if registry is not None else create_default_registry()
        self.definitions = self.registry.select(metrics)

        self.diagnostics = CorrelationDiagnostics()
        self.dispatcher = EventDispatcher()
        self.tracker = ProcessTracker(config.target_pid, self.diagnostics)
        self.resolver = SampleAttributionResolver(
            self.tracker,
            counter_sources=config.counter_sources,
            default_interval=config.default_counter_interval,
            diagnostics=self.diagnostics,
        )
        self.aggregator = IterationAggregator(
            self.diagnostics,
            min_iterations=min_iterations,
            max_iterations=max_iterations,
        )
        self.context = EvaluationContext(
            dispatcher=self.dispatcher,
            resolver=self.resolver,
            tracker=self.tracker,
        )

        # test name -> metric name -> evaluator
        self._evaluators: Dict[str, Dict[str, MetricEvaluator]] = {}
        self._state = EngineState.RUNNING
        self._last_timestamp: Optional[float] = None
        self.abort_reason: Optional[str] = None

        self._build_dispatch_table()
        logger.debug(
            f"Correlation engine ready for target process {config.target_pid} "
            f"with metrics {[d.name for d in self.definitions]}"
        )

    def _build_dispatch_table(self) -> None:
        subscribe = self.dispatcher.subscribe
        subscribe(EventKind.PROCESS_START, self.tracker.on_process_start)
        subscribe(EventKind.PROCESS_STOP, self.tracker.on_process_stop)
        subscribe(EventKind.MODULE_LOAD, self.tracker.on_module_load)
        subscribe(EventKind.MODULE_UNLOAD, self.tracker.on_module_unload)
        subscribe(EventKind.COUNTER_INTERVAL_CHANGED, self.resolver.on_interval_changed)
        subscribe(EventKind.COUNTER_SAMPLE, self.resolver.on_sample)
        subscribe(EventKind.ITERATION_START, self._on_iteration_start)
        subscribe(EventKind.ITERATION_STOP, self._on_iteration_stop)

    # --- State ---

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_finalized(self) -> bool:
        return self._state is EngineState.FINALIZED

    @property
    def is_aborted(self) -> bool:
        return self._state is EngineState.ABORTED

    @property
    def processes(self) -> List[Process]:
        return self.tracker.processes

    # --- Input ---

    def seed_process(self, pid: int, name: Optional[str] = None, parent_pid: Optional[int] = None) -> Process:
        """Register a process that was already running when capture started."""
        self._ensure_running()
        return self.tracker.seed_process(pid, name=name, parent_pid=parent_pid)

    def on_event(self, kind: Any, **fields: Any) -> None:
        """
        Feed one raw event given as its kind and fields.

        Example:
            engine.on_event("CounterSample", timestamp=12.5, process_id=42,
                            counter_source=0, instruction_pointer=0x7ff0_1000)

        Raises:
            InvalidEventError: If the kind is unknown or a required field is missing
            EngineStateError: If the engine was finalized or aborted
        """
        timestamp = fields.pop("timestamp", None)
        self.feed(TraceEvent.create(kind, timestamp, **fields))

    def feed(self, event: TraceEvent) -> None:
        """
        Feed one event. Events are expected in non-decreasing timestamp order;
        an event that goes back in time is processed and logged.

        Raises:
            EngineStateError: If the engine was finalized or aborted
        """
        self._ensure_running()

        if self._last_timestamp is not None and event.timestamp < self._last_timestamp:
            self.diagnostics.out_of_order_events += 1
            logger.warning(
                f"{event.kind.value} at {event.timestamp} is earlier than the previous "
                f"event at {self._last_timestamp}"
            )
        else:
            self._last_timestamp = event.timestamp

        self.diagnostics.events_processed += 1

        if (
            event.kind in _PROCESS_SCOPED_MARKERS
            and event.process_id is not None
            and not self.tracker.is_tracked(event.process_id)
        ):
            self.diagnostics.dropped_process_events += 1
            return

        self.dispatcher.publish(event)

    # --- Iteration control ---

    def _evaluators_for(self, test_name: str) -> Dict[str, MetricEvaluator]:
        evaluators = self._evaluators.get(test_name)
        if evaluators is None:
            evaluators = {}
            for definition in self.definitions:
                evaluator = definition.factory()
                evaluator.attach(self.context)
                evaluators[definition.name] = evaluator
            self._evaluators[test_name] = evaluators
            logger.debug(f"Created {len(evaluators)} evaluators for test {test_name}")
        return evaluators

    def _on_iteration_start(self, event: TraceEvent) -> None:
        self.aggregator.open_window(event.test_name, event.iteration, event.timestamp)
        for evaluator in self._evaluators_for(event.test_name).values():
            evaluator.begin_iteration(event)

    def _on_iteration_stop(self, event: TraceEvent) -> None:
        window = self.aggregator.close_window(event.test_name, event.iteration, event.timestamp)
        if window is None:
            return

        values = {
            metric_name: evaluator.end_iteration(event)
            for metric_name, evaluator in self._evaluators_for(event.test_name).items()
        }
        self.aggregator.record(window, values)

    # --- Session end ---

    def finalize(self) -> List[StatisticsRow]:
        """
        Close the stream: drop dangling iterations, detach evaluators and
        return the statistics. Calling it again returns the same statistics.

        Raises:
            EngineStateError: If the engine was aborted
        """
        if self._state is EngineState.ABORTED:
            raise EngineStateError(f"Cannot finalize an aborted engine: {self.abort_reason}")
        if self._state is EngineState.FINALIZED:
            return self.get_statistics()

        self.aggregator.drop_open_windows()
        self._detach_evaluators()
        self.aggregator.check_iteration_bounds()
        self._state = EngineState.FINALIZED

        statistics = self.get_statistics()
        logger.info(
            f"Correlation finished: {self.diagnostics.events_processed} events, "
            f"{len(self.aggregator.windows)} iterations, {len(statistics)} statistics rows, "
            f"{self.resolver.unattributed_sample_count} unattributed samples"
        )
        return statistics

    def abort(self, reason: str) -> None:
        """
        Abandon the run. Every value collected so far is discarded and no
        statistics will be produced.
        """
        if self._state is EngineState.ABORTED:
            return
        self.aggregator.discard_all()
        self._detach_evaluators()
        self._state = EngineState.ABORTED
        self.abort_reason = reason
        self.diagnostics.extra["abort_reason"] = reason
        logger.error(f"Correlation aborted: {reason}")

    def _detach_evaluators(self) -> None:
        for evaluators in self._evaluators.values():
            for evaluator in evaluators.values():
                evaluator.detach()

    def _ensure_running(self) -> None:
        if self._state is not EngineState.RUNNING:
            raise EngineStateError(f"Engine is {self._state.value}; no further events are accepted")

    # --- Output ---

    def get_statistics(self) -> List[StatisticsRow]:
        if self._state is EngineState.ABORTED:
            return []
        return compute_statistics(self.aggregator.rows())

    def get_metric_values(self) -> List[MetricValueRow]:
        if self._state is EngineState.ABORTED:
            return []
        return self.aggregator.rows()

    def get_unattributed_sample_count(self) -> int:
        return self.resolver.unattributed_sample_count

    def get_diagnostics(self) -> CorrelationDiagnostics:
        return self.diagnostics
