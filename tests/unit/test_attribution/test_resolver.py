"""
Unit tests for counter sample attribution.
"""

import pytest

from traceperf.attribution.resolver import SampleAttributionResolver
from traceperf.tracking.process_tracker import ProcessTracker

APP = r"C:\bench\app.dll"
RUNTIME = r"C:\runtime\coreclr.dll"


def _setup(target_pid, counter_sources=None, default_interval=1):
    tracker = ProcessTracker(target_pid)
    resolver = SampleAttributionResolver(
        tracker, counter_sources=counter_sources, default_interval=default_interval
    )
    return tracker, resolver


def _feed(tracker, resolver, events):
    handlers = {
        "ProcessStart": tracker.on_process_start,
        "ProcessStop": tracker.on_process_stop,
        "ModuleLoad": tracker.on_module_load,
        "ModuleUnload": tracker.on_module_unload,
        "CounterIntervalChanged": resolver.on_interval_changed,
        "CounterSample": resolver.on_sample,
    }
    return [handlers[event.kind.value](event) for event in events]


@pytest.mark.unit
class TestSampleAttribution:
    """Test cases for SampleAttributionResolver."""

    def test_sample_attributed_to_module(self, trace_builder, target_pid):
        tracker, resolver = _setup(target_pid)
        trace_builder.process_start().interval(0, 1000).module_load(APP, 0x1000, 0x100).sample(0x1050)
        results = _feed(tracker, resolver, trace_builder.events)

        module = results[-1]
        assert module is not None
        assert module.counter_totals == {0: 1000}
        assert tracker.get_process(target_pid).counter_totals == {0: 1000}
        assert resolver.unattributed_sample_count == 0

    def test_weight_follows_latest_interval(self, trace_builder, target_pid):
        tracker, resolver = _setup(target_pid)
        trace_builder.process_start().module_load(APP, 0x1000, 0x100)
        trace_builder.interval(0, 10).sample(0x1010).interval(0, 25).sample(0x1020)
        _feed(tracker, resolver, trace_builder.events)

        assert tracker.get_process(target_pid).modules[0].counter_totals[0] == 35

    def test_default_interval_for_unannounced_source(self, trace_builder, target_pid):
        tracker, resolver = _setup(target_pid, default_interval=3)
        trace_builder.process_start().module_load(APP, 0x1000, 0x100).sample(0x1010, source=5)
        _feed(tracker, resolver, trace_builder.events)

        assert tracker.get_process(target_pid).modules[0].counter_totals == {5: 3}
        assert resolver.interval_for(5) == 3

    def test_non_positive_interval_ignored(self, trace_builder, target_pid):
        tracker, resolver = _setup(target_pid)
        trace_builder.interval(0, 10).interval(0, 0)
        _feed(tracker, resolver, trace_builder.events)

        assert resolver.interval_for(0) == 10

    def test_invalid_default_interval(self, target_pid):
        with pytest.raises(ValueError):
            _setup(target_pid, default_interval=0)

    def test_sample_before_load_stays_unattributed(self, trace_builder, target_pid):
        tracker, resolver = _setup(target_pid)
        trace_builder.process_start()
        trace_builder.sample(0x1050, timestamp=5.0)
        trace_builder.module_load(APP, 0x1000, 0x100, timestamp=10.0)
        results = _feed(tracker, resolver, trace_builder.events)

        assert results[1] is None
        module = results[2]
        assert module.counter_totals == {}
        assert resolver.unattributed_sample_count == 1
        assert resolver.deferred_samples[0].instruction_pointer == 0x1050
        assert resolver.unattributed_total(target_pid, 0) == 1

    def test_sample_after_unload_stays_unattributed(self, trace_builder, target_pid):
        tracker, resolver = _setup(target_pid)
        trace_builder.process_start()
        trace_builder.module_load(APP, 0x1000, 0x100, timestamp=10.0)
        trace_builder.module_unload(APP, 0x1000, 0x100, timestamp=20.0)
        trace_builder.sample(0x1050, timestamp=25.0)
        _feed(tracker, resolver, trace_builder.events)

        assert tracker.get_process(target_pid).modules[0].counter_totals == {}
        assert resolver.unattributed_sample_count == 1

    def test_reload_at_new_address(self, trace_builder, target_pid):
        tracker, resolver = _setup(target_pid)
        trace_builder.process_start()
        trace_builder.module_load(APP, 0x1000, 0x100, timestamp=10.0)
        trace_builder.sample(0x1010, timestamp=11.0)
        trace_builder.module_unload(APP, 0x1000, 0x100, timestamp=20.0)
        trace_builder.module_load(APP, 0x8000, 0x100, timestamp=30.0)
        trace_builder.sample(0x8010, timestamp=31.0)
        trace_builder.sample(0x1010, timestamp=32.0)
        _feed(tracker, resolver, trace_builder.events)

        first, second = tracker.get_process(target_pid).modules
        assert first.counter_totals == {0: 1}
        assert second.counter_totals == {0: 1}
        assert resolver.unattributed_sample_count == 1
        assert resolver.counter_total(0, "app.dll") == 2

    def test_samples_for_untracked_process_dropped(self, trace_builder, target_pid):
        tracker, resolver = _setup(target_pid)
        trace_builder.process_start().sample(0x1000, pid=999).sample(0x1000, pid=1001)
        _feed(tracker, resolver, trace_builder.events)

        assert tracker.diagnostics.dropped_samples == 2
        assert tracker.get_process(target_pid).counter_totals == {}
        assert resolver.unattributed_sample_count == 0

    def test_samples_after_process_stop_still_accumulate(self, trace_builder, target_pid):
        tracker, resolver = _setup(target_pid)
        trace_builder.process_start().module_load(APP, 0x1000, 0x100).process_stop()
        trace_builder.sample(0x1050).sample(0x9000)
        results = _feed(tracker, resolver, trace_builder.events)

        process = tracker.get_process(target_pid)
        assert not process.is_running
        assert results[-2] is process.modules[0]
        assert results[-1] is None
        assert process.counter_totals == {0: 2}
        assert process.modules[0].counter_totals == {0: 1}
        assert resolver.unattributed_total(target_pid, 0) == 1
        assert resolver.delivered_total(target_pid, 0) == 2
        assert tracker.diagnostics.dropped_samples == 0

    def test_counter_source_filter(self, trace_builder, target_pid):
        tracker, resolver = _setup(target_pid, counter_sources=[1])
        trace_builder.process_start().module_load(APP, 0x1000, 0x100)
        trace_builder.sample(0x1010, source=0).sample(0x1010, source=1)
        _feed(tracker, resolver, trace_builder.events)

        assert tracker.get_process(target_pid).modules[0].counter_totals == {1: 1}
        assert tracker.diagnostics.filtered_samples == 1

    def test_conservation(self, trace_builder, target_pid):
        tracker, resolver = _setup(target_pid)
        trace_builder.process_start().interval(0, 7)
        trace_builder.sample(0x500)
        trace_builder.module_load(APP, 0x1000, 0x100)
        trace_builder.module_load(RUNTIME, 0x2000, 0x1000)
        for address in (0x1010, 0x2010, 0x2FFF, 0x3000, 0x1000, 0x10FF):
            trace_builder.sample(address)
        trace_builder.module_unload(APP, 0x1000, 0x100)
        trace_builder.sample(0x1010)
        _feed(tracker, resolver, trace_builder.events)

        process = tracker.get_process(target_pid)
        module_sum = sum(m.counter_totals.get(0, 0) for m in process.modules)
        unattributed = resolver.unattributed_total(target_pid, 0)
        assert module_sum + unattributed == resolver.delivered_total(target_pid, 0)
        assert resolver.delivered_total(target_pid, 0) == 8 * 7
        assert unattributed == 3 * 7

    def test_counter_total_by_module_name(self, trace_builder, target_pid):
        tracker, resolver = _setup(target_pid)
        trace_builder.process_start()
        trace_builder.process_start(pid=100, parent=target_pid)
        trace_builder.module_load(RUNTIME, 0x2000, 0x100)
        trace_builder.module_load(RUNTIME, 0x2000, 0x100, pid=100)
        trace_builder.sample(0x2010).sample(0x2010, pid=100).sample(0x9999)
        _feed(tracker, resolver, trace_builder.events)

        assert resolver.counter_total(0, "CORECLR.DLL") == 2
        assert resolver.counter_total(0) == 3
        assert resolver.counter_total(0, "missing.dll") == 0
