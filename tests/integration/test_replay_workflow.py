"""
Integration tests for replaying recorded traces and event logs through the
analysis runner.
"""

import pytest

from traceperf.cli.orchestrator import AnalysisRunner
from traceperf.config import validate_app_config
from traceperf.storage.event_log import BenchmarkEventLogWriter
from traceperf.storage.trace_store import write_trace
from traceperf.validation import EventsLostError

APP = r"C:\bench\app.dll"
RUNTIME = r"C:\runtime\coreclr.dll"


def _benchmark_trace(builder, target_pid):
    builder.process_start(name="host.exe")
    builder.interval(0, 1000)
    builder.module_load(RUNTIME, 0x7FF0_0000, 0x10_0000, checksum=11)
    builder.process_start(pid=5000, parent=target_pid, name="worker.exe")
    builder.module_load(APP, 0x40_0000, 0x1000, pid=5000)

    # Iteration 0: three GCs, samples in runtime, app and nowhere.
    builder.iteration_start("Sort", 0, timestamp=100.0)
    builder.marker("GCStart").marker("GCStart").marker("GCStart")
    builder.sample(0x7FF0_0010).sample(0x40_0010, pid=5000).sample(0x1)
    builder.iteration_stop("Sort", 0, timestamp=110.0, allocated_bytes=4096)

    # Iteration 1: no GC, one runtime sample.
    builder.iteration_start("Sort", 1, timestamp=120.0)
    builder.sample(0x7FF0_0020)
    builder.iteration_stop("Sort", 1, timestamp=124.0, allocated_bytes=2048)

    # A test whose last iteration never finishes.
    builder.iteration_start("Scan", 0, timestamp=130.0)
    builder.iteration_stop("Scan", 0, timestamp=131.0)
    builder.iteration_start("Scan", 1, timestamp=140.0)
    builder.module_unload(APP, 0x40_0000, 0x1000, pid=5000)
    builder.process_stop(pid=5000)
    return builder.events


@pytest.fixture
def app_config(temp_dir, target_pid):
    return validate_app_config(
        {
            "engine": {"target_pid": target_pid},
            "run": {"run_id": "replay", "output_dir": str(temp_dir / "results")},
            "metrics": {
                "counter": [{"name": "RuntimeSamples", "counter_source": 0, "module": "coreclr.dll"}],
            },
            "storage": {"generate_legacy_formats": True},
        }
    )


@pytest.mark.integration
class TestReplayWorkflow:
    """Replay a recorded trace end to end."""

    def test_analyze_trace(self, temp_dir, app_config, trace_builder, target_pid):
        trace = write_trace(_benchmark_trace(trace_builder, target_pid), temp_dir / "bench.parquet")

        result = AnalysisRunner(app_config).analyze_trace(trace)

        by_key = {(s.test_name, s.metric_name): s for s in result.statistics}
        gc = by_key[("Sort", "GCCount")]
        assert (gc.count, gc.mean, gc.minimum, gc.maximum) == (2, 1.5, 0.0, 3.0)
        assert by_key[("Sort", "Duration")].mean == 7.0
        assert by_key[("Sort", "AllocatedBytes")].mean == 3072.0
        runtime = by_key[("Sort", "RuntimeSamples")]
        assert (runtime.minimum, runtime.maximum) == (1000.0, 1000.0)
        assert by_key[("Scan", "Duration")].count == 1
        assert by_key[("Scan", "Duration")].std_dev is None

        assert result.unattributed_sample_count == 1
        assert result.diagnostics.dangling_iterations == 1
        assert "| GC Count" in result.markdown
        assert result.markdown.endswith("Unattributed counter samples: 1\n")

        output_dir = temp_dir / "results"
        assert (output_dir / "replay.md").read_text(encoding="utf-8") == result.markdown
        for name in ("statistics.parquet", "metric_values.parquet", "unattributed_samples.parquet",
                     "statistics.csv", "diagnostics.json"):
            assert (output_dir / name).exists(), name

    def test_statistics_sorted(self, temp_dir, app_config, trace_builder, target_pid):
        trace = write_trace(_benchmark_trace(trace_builder, target_pid), temp_dir / "bench.parquet")

        result = AnalysisRunner(app_config).analyze_trace(trace)

        keys = [(s.test_name, s.metric_name) for s in result.statistics]
        assert keys == sorted(keys)

    def test_replay_is_deterministic(self, temp_dir, app_config, trace_builder, target_pid):
        trace = write_trace(_benchmark_trace(trace_builder, target_pid), temp_dir / "bench.parquet")

        first = AnalysisRunner(app_config).analyze_trace(trace)
        second = AnalysisRunner(app_config).analyze_trace(trace)

        assert first.statistics == second.statistics
        assert first.markdown == second.markdown

    def test_lost_events_produce_no_results(self, temp_dir, app_config, trace_builder, target_pid):
        trace = write_trace(
            _benchmark_trace(trace_builder, target_pid), temp_dir / "bench.parquet", events_lost=5
        )

        with pytest.raises(EventsLostError):
            AnalysisRunner(app_config).analyze_trace(trace)

        assert not (temp_dir / "results" / "statistics.parquet").exists()

    def test_shutdown_before_run(self, temp_dir, app_config, trace_builder, target_pid):
        trace = write_trace(_benchmark_trace(trace_builder, target_pid), temp_dir / "bench.parquet")
        runner = AnalysisRunner(app_config)
        runner.request_shutdown()

        result = runner.analyze_trace(trace)

        assert result.statistics == []


@pytest.mark.integration
class TestEventLogWorkflow:
    """Summarize a benchmark event log end to end."""

    def test_summarize_event_log(self, temp_dir, app_config):
        ticks = iter([0.0, 10.0, 14.0, 20.0, 26.0, 30.0, 31.0, 40.0])
        path = temp_dir / "bench.log"
        with BenchmarkEventLogWriter(path, clock=lambda: next(ticks)) as log:
            log.benchmark_start("Sort")
            log.iteration_start("Sort", 0)
            log.iteration_stop("Sort", 0, success=True)
            log.iteration_start("Sort", 1)
            log.iteration_stop("Sort", 1, success=True)
            log.iteration_start("Sort", 2)
            log.iteration_stop("Sort", 2, success=False)
            log.benchmark_stop("Sort", success=False, reason="iteration 2 failed")

        result = AnalysisRunner(app_config).summarize_event_log(path)

        assert len(result.statistics) == 1
        row = result.statistics[0]
        assert (row.test_name, row.metric_name, row.count) == ("Sort", "Duration", 2)
        assert row.mean == 5.0
        assert result.diagnostics.dangling_iterations == 1
