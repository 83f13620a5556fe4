"""
Iteration and test aggregation.

Tracks the iteration windows of every test and groups the metric values they
produce by (test, metric), preserving iteration order. Only complete windows
contribute values: a start without a stop is dropped, and a window that
produced no value at all is discarded rather than reported as zero.
"""

import logging
from collections import Counter
from typing import Dict, List, Mapping, Optional, Tuple

from ..models.results import CorrelationDiagnostics, IterationWindow, MetricValueRow

logger = logging.getLogger(__name__)


class IterationAggregator:
    """
    Owns the metric value rows of a correlation run.

    Args:
        diagnostics: Shared diagnostics counters
        min_iterations: Expected minimum iterations per test (warning only)
        max_iterations: Expected maximum iterations per test (warning only)
    """

    def __init__(
        self,
        diagnostics: Optional[CorrelationDiagnostics] = None,
        min_iterations: Optional[int] = None,
        max_iterations: Optional[int] = None,
    ):
        self.diagnostics = diagnostics if diagnostics is not None else CorrelationDiagnostics()
        self.min_iterations = min_iterations
        self.max_iterations = max_iterations

        self.windows: List[IterationWindow] = []
        self._open: Dict[str, IterationWindow] = {}
        self._groups: Dict[Tuple[str, str], List[MetricValueRow]] = {}

    # --- Iteration windows ---

    def open_window(self, test_name: str, iteration: int, timestamp: float) -> IterationWindow:
        previous = self._open.pop(test_name, None)
        if previous is not None:
            self.diagnostics.dangling_iterations += 1
            logger.warning(
                f"Iteration {previous.iteration} of {test_name} never stopped; "
                f"dropping it at the start of iteration {iteration}"
            )

        window = IterationWindow(test_name=test_name, iteration=iteration, start_timestamp=timestamp)
        self._open[test_name] = window
        return window

    def open_window_for(self, test_name: str) -> Optional[IterationWindow]:
        return self._open.get(test_name)

    def close_window(self, test_name: str, iteration: int, timestamp: float) -> Optional[IterationWindow]:
        """
        Close the open window of ``test_name`` if it has the given index.

        Returns:
            The closed window, or None when no matching window was open
        """
        window = self._open.get(test_name)
        if window is None or window.iteration != iteration:
            self.diagnostics.unmatched_iteration_stops += 1
            logger.warning(
                f"Stop of iteration {iteration} of {test_name} has no matching start; ignored"
            )
            return None

        del self._open[test_name]
        window.end_timestamp = timestamp
        return window

    def record(self, window: IterationWindow, values: Mapping[str, Optional[float]]) -> List[MetricValueRow]:
        """
        Store the values a closed window produced, keyed by metric name.

        Absent values (None) are skipped. A window without any value is
        discarded.
        """
        rows = [
            MetricValueRow(
                test_name=window.test_name,
                metric_name=metric_name,
                iteration=window.iteration,
                value=value,
            )
            for metric_name, value in values.items()
            if value is not None
        ]
        if not rows:
            self.diagnostics.empty_iterations += 1
            logger.debug(f"Iteration {window.iteration} of {window.test_name} produced no values; discarded")
            return rows

        self.windows.append(window)
        for row in rows:
            self.add(row)
        return rows

    def drop_open_windows(self) -> List[IterationWindow]:
        """Drop every window that is still open (end of stream or cancellation)."""
        dangling = list(self._open.values())
        self._open.clear()
        for window in dangling:
            self.diagnostics.dangling_iterations += 1
            logger.warning(f"Iteration {window.iteration} of {window.test_name} never stopped; dropped")
        return dangling

    # --- Rows ---

    def add(self, row: MetricValueRow) -> None:
        self._groups.setdefault((row.test_name, row.metric_name), []).append(row)

    def groups(self) -> Dict[Tuple[str, str], List[MetricValueRow]]:
        """Rows grouped by (test, metric), in first-seen order."""
        return {key: list(rows) for key, rows in self._groups.items()}

    def rows(self) -> List[MetricValueRow]:
        return [row for rows in self._groups.values() for row in rows]

    def discard_all(self) -> None:
        self._open.clear()
        self._groups.clear()
        self.windows.clear()

    def check_iteration_bounds(self) -> List[str]:
        """Warn about tests whose completed iteration count is out of bounds."""
        counts = Counter(window.test_name for window in self.windows)
        messages = []
        for test_name, count in counts.items():
            if self.min_iterations is not None and count < self.min_iterations:
                messages.append(f"{test_name} completed {count} iterations, fewer than the minimum {self.min_iterations}")
            if self.max_iterations is not None and count > self.max_iterations:
                messages.append(f"{test_name} completed {count} iterations, more than the maximum {self.max_iterations}")
        for message in messages:
            logger.warning(message)
        return messages
