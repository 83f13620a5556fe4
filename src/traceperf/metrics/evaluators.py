"""
Built-in metric evaluators.
"""

import logging
from typing import Optional

from ..models.events import EVENT_FIELD_NAMES, EventKind, TraceEvent
from .base import EvaluationContext, MetricEvaluator

logger = logging.getLogger(__name__)


class CountingEvaluator(MetricEvaluator):
    """Counts a named custom marker between iteration start and stop."""

    def __init__(self, marker: str):
        super().__init__()
        self.marker = marker
        self._count = 0
        self._active = False

    def attach(self, context: EvaluationContext) -> None:
        super().attach(context)
        self.subscribe(EventKind.CUSTOM_MARKER, self._on_marker, name=self.marker)

    def _on_marker(self, event: TraceEvent) -> None:
        if self._active:
            self._count += 1

    def begin_iteration(self, event: TraceEvent) -> None:
        self._count = 0
        self._active = True

    def end_iteration(self, event: TraceEvent) -> Optional[float]:
        if not self._active:
            return None
        self._active = False
        return float(self._count)


class PassThroughEvaluator(MetricEvaluator):
    """Reports a value carried directly on the iteration stop event."""

    def __init__(self, field_name: str):
        super().__init__()
        if field_name not in EVENT_FIELD_NAMES:
            raise ValueError(f"Unknown trace event field: {field_name}")
        self.field_name = field_name

    def begin_iteration(self, event: TraceEvent) -> None:
        pass

    def end_iteration(self, event: TraceEvent) -> Optional[float]:
        value = getattr(event, self.field_name)
        if value is None:
            return None
        return float(value)


class CounterDeltaEvaluator(MetricEvaluator):
    """
    Reports how much an attributed counter total grew during the iteration.

    Args:
        counter_source: Counter source id
        module_name: Only count samples attributed to modules with this file
            name; None counts every sample of the tracked process tree
    """

    def __init__(self, counter_source: int, module_name: Optional[str] = None):
        super().__init__()
        self.counter_source = counter_source
        self.module_name = module_name
        self._baseline: Optional[int] = None

    def _current_total(self) -> int:
        if self.context is None:
            raise RuntimeError("CounterDeltaEvaluator must be attached before use")
        return self.context.resolver.counter_total(self.counter_source, self.module_name)

    def begin_iteration(self, event: TraceEvent) -> None:
        self._baseline = self._current_total()

    def end_iteration(self, event: TraceEvent) -> Optional[float]:
        if self._baseline is None:
            return None
        delta = self._current_total() - self._baseline
        self._baseline = None
        return float(delta)


class DurationEvaluator(MetricEvaluator):
    """Reports the time between iteration start and stop, in trace milliseconds."""

    def __init__(self):
        super().__init__()
        self._start: Optional[float] = None

    def begin_iteration(self, event: TraceEvent) -> None:
        self._start = event.timestamp

    def end_iteration(self, event: TraceEvent) -> Optional[float]:
        if self._start is None:
            return None
        duration = event.timestamp - self._start
        self._start = None
        if duration < 0:
            logger.warning(
                f"Iteration {event.iteration} of {event.test_name} stopped before it started; "
                f"no duration recorded"
            )
            return None
        return duration
