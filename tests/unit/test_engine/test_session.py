"""
Unit tests for trace sessions and the session lifecycle manager.
"""

import threading
from unittest.mock import patch

import psutil
import pytest

from traceperf.engine.correlation_engine import CorrelationEngine
from traceperf.engine.session import (
    InMemoryTraceSession,
    ReplayTraceSession,
    SessionLifecycleManager,
)
from traceperf.models.config import EngineConfig
from traceperf.storage.trace_store import write_trace
from traceperf.validation import EventsLostError


def _iterations(builder, count=2):
    builder.process_start()
    for i in range(count):
        builder.iteration_start("A", i).iteration_stop("A", i)
    return builder.events


def _emitting(session, events):
    def workload():
        for event in events:
            session.emit(event)
    return workload


@pytest.mark.unit
class TestInMemoryTraceSession:
    """Test cases for InMemoryTraceSession."""

    def test_events_in_emission_order(self, trace_builder):
        events = _iterations(trace_builder)
        session = InMemoryTraceSession()
        session.start()
        for event in events:
            session.emit(event)
        session.stop()

        assert list(session.events()) == events
        assert list(session.events()) == []

    def test_emit_requires_running_session(self, trace_builder):
        session = InMemoryTraceSession()

        with pytest.raises(RuntimeError):
            session.emit(trace_builder.process_start().events[0])

    def test_emit_from_threads(self, trace_builder):
        event = trace_builder.marker("X").events[0]
        session = InMemoryTraceSession()
        session.start()

        def produce():
            for _ in range(100):
                session.emit(event)

        threads = [threading.Thread(target=produce) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        session.stop()

        assert len(list(session.events())) == 400
        assert session.events_lost == 0


@pytest.mark.unit
class TestSessionLifecycleManager:
    """Test cases for SessionLifecycleManager."""

    def test_run_feeds_and_finalizes(self, engine_config, trace_builder):
        session = InMemoryTraceSession()
        engine = CorrelationEngine(engine_config, metrics=["Duration"])

        statistics = SessionLifecycleManager(session, engine).run(
            _emitting(session, _iterations(trace_builder))
        )

        assert statistics[0].count == 2
        assert engine.is_finalized
        assert session.is_running is False

    def test_lost_events_abort_the_run(self, engine_config, trace_builder):
        session = InMemoryTraceSession(name="capture")
        engine = CorrelationEngine(engine_config, metrics=["Duration"])
        emit_all = _emitting(session, _iterations(trace_builder))

        def lossy_workload():
            emit_all()
            session.report_lost(3)

        with pytest.raises(EventsLostError) as exc_info:
            SessionLifecycleManager(session, engine).run(lossy_workload)

        assert exc_info.value.events_lost == 3
        assert "3 events were lost in capture" in str(exc_info.value)
        assert engine.is_aborted
        assert engine.get_statistics() == []
        assert engine.get_diagnostics().events_lost == 3

    def test_failing_workload_aborts_engine(self, engine_config):
        session = InMemoryTraceSession()
        engine = CorrelationEngine(engine_config)

        def workload():
            raise OSError("benchmark crashed")

        with pytest.raises(OSError):
            SessionLifecycleManager(session, engine).run(workload)

        assert engine.is_aborted
        assert session.is_running is False

    def test_shutdown_stops_feeding(self, engine_config, trace_builder):
        session = InMemoryTraceSession()
        engine = CorrelationEngine(engine_config, metrics=["Duration"])
        manager = SessionLifecycleManager(session, engine)
        manager.request_shutdown()

        statistics = manager.run(_emitting(session, _iterations(trace_builder)))

        assert manager.shutdown_requested
        assert statistics == []
        assert engine.get_diagnostics().events_processed == 0

    def test_seed_target_from_live_process(self, target_pid, trace_builder):
        engine = CorrelationEngine(EngineConfig(target_pid=target_pid))
        session = InMemoryTraceSession()

        with patch("psutil.Process") as mock_process_class:
            mock_process = mock_process_class.return_value
            mock_process.name.return_value = "bench.exe"
            mock_process.ppid.return_value = 1
            SessionLifecycleManager(session, engine, seed_target=True).run()

        mock_process_class.assert_called_once_with(target_pid)
        process = engine.tracker.get_process(target_pid)
        assert process.name == "bench.exe"
        assert process.parent_process_id == 1
        assert process.start_timestamp is None

    def test_seed_target_that_is_gone(self, target_pid):
        engine = CorrelationEngine(EngineConfig(target_pid=target_pid))

        with patch("psutil.Process", side_effect=psutil.NoSuchProcess(target_pid)):
            SessionLifecycleManager(InMemoryTraceSession(), engine, seed_target=True).run()

        process = engine.tracker.get_process(target_pid)
        assert process is not None
        assert process.name is None


@pytest.mark.unit
class TestReplayTraceSession:
    """Test cases for ReplayTraceSession."""

    def test_replay_recorded_trace(self, temp_dir, engine_config, trace_builder):
        path = write_trace(_iterations(trace_builder, count=3), temp_dir / "trace.parquet")
        session = ReplayTraceSession(path)
        engine = CorrelationEngine(engine_config, metrics=["Duration"])

        statistics = SessionLifecycleManager(session, engine).run()

        assert statistics[0].count == 3
        assert session.metadata["event_count"] == 7

    def test_replay_reports_recorded_losses(self, temp_dir, engine_config, trace_builder):
        path = write_trace(_iterations(trace_builder), temp_dir / "trace.parquet", events_lost=2)
        engine = CorrelationEngine(engine_config)

        with pytest.raises(EventsLostError):
            SessionLifecycleManager(ReplayTraceSession(path), engine).run()

        assert engine.is_aborted
