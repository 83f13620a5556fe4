"""
Analysis runner for CLI integration.

This module wires configuration, the metric registry, a trace session, the
correlation engine and the results storage together for one run.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..engine.correlation_engine import CorrelationEngine
from ..engine.session import InMemoryTraceSession, ReplayTraceSession, SessionLifecycleManager, TraceSession
from ..metrics.registry import MetricRegistry, create_default_registry
from ..models.config import AppConfig
from ..models.results import CorrelationDiagnostics, MetricValueRow, StatisticsRow
from ..report.writers import render_markdown_table
from ..storage.event_log import event_log_to_trace_events, read_event_log
from ..storage.results_manager import ResultsStorageManager
from ..validation import handle_error, ErrorSeverity

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Everything one analysis run produced."""

    statistics: List[StatisticsRow]
    metric_values: List[MetricValueRow]
    diagnostics: CorrelationDiagnostics
    unattributed_sample_count: int
    markdown: str
    output_paths: Dict[str, Path] = field(default_factory=dict)


class AnalysisRunner:
    """
    Runs one correlation of a trace or benchmark event log and saves results.

    Args:
        app_config: Validated application configuration
        registry: Metric registry; defaults to the built-in metrics plus the
            custom metrics of ``app_config.metrics``
    """

    def __init__(self, app_config: AppConfig, registry: Optional[MetricRegistry] = None):
        self.app_config = app_config
        self.registry = registry if registry is not None else create_default_registry(app_config.metrics)
        self.active_manager: Optional[SessionLifecycleManager] = None
        self.shutdown_requested = False

    def request_shutdown(self) -> None:
        self.shutdown_requested = True
        if self.active_manager is not None:
            self.active_manager.request_shutdown()

    def create_engine(self, metrics: Optional[Sequence[str]] = None) -> CorrelationEngine:
        run_config = self.app_config.run
        return CorrelationEngine(
            self.app_config.engine,
            registry=self.registry,
            metrics=metrics if metrics is not None else self.app_config.metrics.enabled,
            min_iterations=run_config.min_iterations,
            max_iterations=run_config.max_iterations,
        )

    def analyze_trace(self, trace_path: Path) -> AnalysisResult:
        """
        Replay a recorded trace through a fresh engine.

        Raises:
            EventsLostError: If the recording reports lost events
            FileNotFoundError: If the trace does not exist
        """
        logger.info(f"Analyzing trace {trace_path} for target process {self.app_config.engine.target_pid}")
        session = ReplayTraceSession(trace_path)
        engine = self.create_engine()
        self._run_session(session, engine)
        return self._save(engine, {"source": str(trace_path), "mode": "trace"})

    def summarize_event_log(self, event_log_path: Path) -> AnalysisResult:
        """
        Compute Duration statistics from a benchmark event log alone.

        Raises:
            FileNotFoundError: If the log does not exist
            ValueError: If a log line is malformed
        """
        logger.info(f"Summarizing benchmark event log {event_log_path}")
        events = event_log_to_trace_events(read_event_log(event_log_path))

        session = InMemoryTraceSession(name=f"event log {Path(event_log_path).name}")
        engine = self.create_engine(metrics=["Duration"])

        def replay_log() -> None:
            for event in events:
                session.emit(event)

        self._run_session(session, engine, workload=replay_log)
        return self._save(engine, {"source": str(event_log_path), "mode": "event_log"})

    def _run_session(self, session: TraceSession, engine: CorrelationEngine, workload=None) -> None:
        manager = SessionLifecycleManager(
            session,
            engine,
            seed_target=self.app_config.engine.seed_target_process,
        )
        self.active_manager = manager
        try:
            if self.shutdown_requested:
                manager.request_shutdown()
            manager.run(workload)
        except Exception as e:
            handle_error(e, f"correlating {session.name}", severity=ErrorSeverity.ERROR, reraise=True, logger=logger)
        finally:
            self.active_manager = None

    def _save(self, engine: CorrelationEngine, metadata: Dict[str, str]) -> AnalysisResult:
        run_config = self.app_config.run
        statistics = engine.get_statistics()
        metric_values = engine.get_metric_values()
        labels = {definition.name: definition.label for definition in self.registry}

        storage = ResultsStorageManager(run_config.output_dir, run_config.run_id, self.app_config.storage)
        metadata = dict(metadata, target_pid=self.app_config.engine.target_pid)
        output_paths = storage.save_results(
            statistics,
            metric_values,
            engine.get_diagnostics(),
            deferred_samples=engine.resolver.deferred_samples,
            metadata=metadata,
            metric_labels=labels,
        )

        unattributed = engine.get_unattributed_sample_count()
        if unattributed:
            logger.info(f"{unattributed} counter samples could not be attributed to a module")

        return AnalysisResult(
            statistics=statistics,
            metric_values=metric_values,
            diagnostics=engine.get_diagnostics(),
            unattributed_sample_count=unattributed,
            markdown=render_markdown_table(statistics, labels, unattributed),
            output_paths=output_paths,
        )
