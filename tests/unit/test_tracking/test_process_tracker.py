"""
Unit tests for the process and module tracker.
"""

import pytest

from traceperf.models.tracking import ProcessState
from traceperf.tracking.process_tracker import ProcessTracker

APP = r"C:\bench\app.dll"


@pytest.fixture
def tracker(target_pid):
    return ProcessTracker(target_pid)


def _feed(tracker, events):
    handlers = {
        "ProcessStart": tracker.on_process_start,
        "ProcessStop": tracker.on_process_stop,
        "ModuleLoad": tracker.on_module_load,
        "ModuleUnload": tracker.on_module_unload,
    }
    return [handlers[event.kind.value](event) for event in events]


@pytest.mark.unit
class TestProcessLifecycle:
    """Test cases for process tracking."""

    def test_target_process_is_tracked(self, tracker, trace_builder, target_pid):
        _feed(tracker, trace_builder.process_start(name="bench.exe").events)

        process = tracker.get_process(target_pid)
        assert process.name == "bench.exe"
        assert process.start_timestamp == 1.0
        assert tracker.state_of(target_pid) is ProcessState.RUNNING

    def test_untracked_process_is_dropped(self, tracker, trace_builder):
        _feed(tracker, trace_builder.process_start(pid=77, parent=1).events)

        assert tracker.get_process(77) is None
        assert tracker.state_of(77) is ProcessState.UNSEEN
        assert tracker.diagnostics.dropped_process_events == 1

    def test_children_join_the_tree(self, tracker, trace_builder, target_pid):
        trace_builder.process_start()
        trace_builder.process_start(pid=100, parent=target_pid)
        trace_builder.process_start(pid=200, parent=100)
        _feed(tracker, trace_builder.events)

        assert tracker.is_tracked(100)
        assert tracker.is_tracked(200)
        assert [p.process_id for p in tracker.processes] == [target_pid, 100, 200]

    def test_process_stop(self, tracker, trace_builder, target_pid):
        _feed(tracker, trace_builder.process_start().process_stop().events)

        process = tracker.get_process(target_pid)
        assert process.state is ProcessState.EXITED
        assert process.end_timestamp == 2.0

    def test_duplicate_start_is_ignored(self, tracker, trace_builder, target_pid):
        results = _feed(tracker, trace_builder.process_start().process_start(name="other.exe").events)

        assert results[1] is None
        assert tracker.get_process(target_pid).name == "bench.exe"
        assert tracker.diagnostics.duplicate_process_starts == 1

    def test_pid_reuse_creates_new_record(self, tracker, trace_builder, target_pid):
        trace_builder.process_start().process_stop().process_start(name="second.exe")
        _feed(tracker, trace_builder.events)

        assert len(tracker.processes) == 2
        assert tracker.get_process(target_pid).name == "second.exe"
        assert tracker.processes[0].state is ProcessState.EXITED

    def test_seeded_process_gets_start_details(self, tracker, trace_builder, target_pid):
        seeded = tracker.seed_process(target_pid, name=None, parent_pid=None)
        assert seeded.start_timestamp is None

        _feed(tracker, trace_builder.process_start(parent=1, name="bench.exe").events)

        assert tracker.get_process(target_pid) is seeded
        assert seeded.start_timestamp == 1.0
        assert seeded.name == "bench.exe"
        assert seeded.parent_process_id == 1
        assert tracker.diagnostics.duplicate_process_starts == 0

    def test_stop_for_unknown_process(self, tracker, trace_builder):
        _feed(tracker, trace_builder.process_stop(pid=999).events)

        assert tracker.diagnostics.dropped_process_events == 1


@pytest.mark.unit
class TestModuleLifecycle:
    """Test cases for module load and unload tracking."""

    def test_find_module_during_life_span(self, tracker, trace_builder, target_pid):
        trace_builder.process_start().module_load(APP, 0x1000, 0x100, timestamp=10.0)
        _feed(tracker, trace_builder.events)

        module = tracker.find_module(target_pid, 0x1050, 11.0)
        assert module is not None
        assert module.file_name == APP
        assert tracker.find_module(target_pid, 0x1050, 9.0) is None
        assert tracker.find_module(target_pid, 0x2000, 11.0) is None

    def test_unload_ends_life_span(self, tracker, trace_builder, target_pid):
        trace_builder.process_start()
        trace_builder.module_load(APP, 0x1000, 0x100, timestamp=10.0)
        trace_builder.module_unload(APP, 0x1000, 0x100, timestamp=20.0)
        _feed(tracker, trace_builder.events)

        module = tracker.get_process(target_pid).modules[0]
        assert module.loaded is False
        assert module.unload_timestamp == 20.0
        assert tracker.find_module(target_pid, 0x1050, 21.0) is None

    def test_module_load_for_untracked_process(self, tracker, trace_builder):
        _feed(tracker, trace_builder.module_load(APP, 0x1000, 0x100, pid=5).events)

        assert tracker.diagnostics.dropped_process_events == 1

    def test_zero_size_module_is_dropped(self, tracker, trace_builder, target_pid):
        results = _feed(tracker, trace_builder.process_start().module_load(APP, 0x1000, 0).events)

        assert results[1] is None
        assert tracker.get_process(target_pid).modules == []

    def test_duplicate_load_keeps_single_record(self, tracker, trace_builder, target_pid):
        trace_builder.process_start()
        trace_builder.module_load(APP, 0x1000, 0x100)
        trace_builder.module_load(APP, 0x1000, 0x100)
        results = _feed(tracker, trace_builder.events)

        assert results[1] is results[2]
        assert len(tracker.get_process(target_pid).modules) == 1
        assert tracker.diagnostics.duplicate_module_loads == 1

    def test_reload_at_same_address_reuses_record(self, tracker, trace_builder, target_pid):
        trace_builder.process_start()
        trace_builder.module_load(APP, 0x1000, 0x100, checksum=7, timestamp=10.0)
        trace_builder.module_unload(APP, 0x1000, 0x100, checksum=7, timestamp=20.0)
        trace_builder.module_load(APP, 0x1000, 0x100, checksum=7, timestamp=30.0)
        results = _feed(tracker, trace_builder.events)

        assert results[1] is results[3]
        module = results[3]
        assert module.loaded is True
        assert module.load_count == 2
        assert module.load_timestamp == 30.0
        assert tracker.find_module(target_pid, 0x1050, 31.0) is module

    def test_reload_at_new_address_creates_new_record(self, tracker, trace_builder, target_pid):
        trace_builder.process_start()
        trace_builder.module_load(APP, 0x1000, 0x100, timestamp=10.0)
        trace_builder.module_unload(APP, 0x1000, 0x100, timestamp=20.0)
        trace_builder.module_load(APP, 0x8000, 0x100, timestamp=30.0)
        results = _feed(tracker, trace_builder.events)

        assert results[1] is not results[3]
        assert len(tracker.get_process(target_pid).modules) == 2
        assert tracker.find_module(target_pid, 0x1050, 31.0) is None
        assert tracker.find_module(target_pid, 0x8050, 31.0) is results[3]

    def test_unmatched_unload(self, tracker, trace_builder):
        trace_builder.process_start().module_unload(APP, 0x1000, 0x100)
        results = _feed(tracker, trace_builder.events)

        assert results[1] is None
        assert tracker.diagnostics.unmatched_module_unloads == 1

    def test_path_match_is_case_insensitive(self, tracker, trace_builder):
        trace_builder.process_start()
        trace_builder.module_load(APP, 0x1000, 0x100)
        trace_builder.module_unload(APP.upper(), 0x1000, 0x100)
        results = _feed(tracker, trace_builder.events)

        assert results[2] is results[1]
        assert tracker.diagnostics.unmatched_module_unloads == 0

    def test_modules_are_per_process(self, tracker, trace_builder, target_pid):
        trace_builder.process_start()
        trace_builder.process_start(pid=100, parent=target_pid)
        trace_builder.module_load(APP, 0x1000, 0x100, pid=100)
        _feed(tracker, trace_builder.events)

        assert tracker.find_module(100, 0x1050, 100.0) is not None
        assert tracker.find_module(target_pid, 0x1050, 100.0) is None
