"""
Unit tests for iteration window aggregation.
"""

import pytest

from traceperf.aggregation.aggregator import IterationAggregator
from traceperf.models.results import CorrelationDiagnostics


@pytest.fixture
def aggregator():
    return IterationAggregator(CorrelationDiagnostics())


@pytest.mark.unit
class TestIterationAggregator:
    """Test cases for IterationAggregator."""

    def test_complete_window_records_values(self, aggregator):
        window = aggregator.open_window("Sort", 0, 1.0)
        closed = aggregator.close_window("Sort", 0, 3.0)

        assert closed is window
        assert window.duration == 2.0
        rows = aggregator.record(window, {"Duration": 2.0, "GCCount": None})

        assert [(r.metric_name, r.value) for r in rows] == [("Duration", 2.0)]
        assert aggregator.windows == [window]

    def test_values_keep_iteration_order(self, aggregator):
        for i, value in enumerate([5.0, 3.0, 4.0]):
            window = aggregator.open_window("Sort", i, float(i))
            aggregator.close_window("Sort", i, i + 0.5)
            aggregator.record(window, {"Duration": value})

        group = aggregator.groups()[("Sort", "Duration")]
        assert [row.iteration for row in group] == [0, 1, 2]
        assert [row.value for row in group] == [5.0, 3.0, 4.0]

    def test_restart_drops_dangling_window(self, aggregator):
        aggregator.open_window("Sort", 0, 1.0)
        aggregator.open_window("Sort", 1, 2.0)

        assert aggregator.diagnostics.dangling_iterations == 1
        assert aggregator.open_window_for("Sort").iteration == 1

    def test_stop_without_start(self, aggregator):
        assert aggregator.close_window("Sort", 0, 1.0) is None
        assert aggregator.diagnostics.unmatched_iteration_stops == 1

    def test_stop_with_other_index_leaves_window_open(self, aggregator):
        aggregator.open_window("Sort", 0, 1.0)

        assert aggregator.close_window("Sort", 1, 2.0) is None
        assert aggregator.open_window_for("Sort") is not None

    def test_tests_are_independent(self, aggregator):
        aggregator.open_window("A", 0, 1.0)
        aggregator.open_window("B", 0, 2.0)

        assert aggregator.close_window("A", 0, 3.0) is not None
        assert aggregator.close_window("B", 0, 4.0) is not None
        assert aggregator.diagnostics.dangling_iterations == 0

    def test_window_without_values_is_discarded(self, aggregator):
        window = aggregator.open_window("Sort", 0, 1.0)
        aggregator.close_window("Sort", 0, 2.0)

        assert aggregator.record(window, {"GCCount": None}) == []
        assert aggregator.windows == []
        assert aggregator.rows() == []
        assert aggregator.diagnostics.empty_iterations == 1

    def test_drop_open_windows(self, aggregator):
        aggregator.open_window("A", 0, 1.0)
        aggregator.open_window("B", 0, 1.0)

        dropped = aggregator.drop_open_windows()

        assert len(dropped) == 2
        assert aggregator.open_window_for("A") is None
        assert aggregator.diagnostics.dangling_iterations == 2

    def test_discard_all(self, aggregator):
        window = aggregator.open_window("Sort", 0, 1.0)
        aggregator.close_window("Sort", 0, 2.0)
        aggregator.record(window, {"Duration": 1.0})

        aggregator.discard_all()

        assert aggregator.rows() == []
        assert aggregator.windows == []

    def test_iteration_bounds(self):
        aggregator = IterationAggregator(min_iterations=2, max_iterations=3)
        for test_name, count in (("Few", 1), ("Fine", 2), ("Many", 4)):
            for i in range(count):
                window = aggregator.open_window(test_name, i, float(i))
                aggregator.close_window(test_name, i, i + 0.5)
                aggregator.record(window, {"Duration": 0.5})

        messages = aggregator.check_iteration_bounds()

        assert len(messages) == 2
        assert any("Few" in message for message in messages)
        assert any("Many" in message for message in messages)
