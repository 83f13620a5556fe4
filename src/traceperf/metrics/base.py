"""
Metric evaluator framework.

A metric evaluator observes the event stream between an iteration's start
and stop markers and produces at most one value per iteration. Evaluators get
everything they need through an EvaluationContext: the dispatch table to
subscribe to named events, the sample attribution resolver for counter totals
and the process tracker.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

from ..models.events import EventKind, TraceEvent

if TYPE_CHECKING:
    from ..attribution.resolver import SampleAttributionResolver
    from ..engine.dispatcher import EventCallback, EventDispatcher, Subscription
    from ..tracking.process_tracker import ProcessTracker


@dataclass
class EvaluationContext:
    """Collaborators an evaluator may read from while attached to an engine."""

    dispatcher: "EventDispatcher"
    resolver: "SampleAttributionResolver"
    tracker: "ProcessTracker"


class MetricEvaluator(ABC):
    """
    Base class of all metric evaluators.

    Lifecycle: ``attach(context)`` once, then ``begin_iteration`` and
    ``end_iteration`` for every iteration of one test. ``begin_iteration``
    resets per-iteration state and may be called again without a matching
    ``end_iteration`` (the previous iteration is then abandoned).
    """

    def __init__(self):
        self.context: Optional[EvaluationContext] = None
        self._subscriptions: List["Subscription"] = []

    def attach(self, context: EvaluationContext) -> None:
        """Bind the evaluator to an engine. Subclasses subscribe to events here."""
        self.context = context

    def detach(self) -> None:
        """Remove every subscription made through subscribe()."""
        if self.context is not None:
            for subscription in self._subscriptions:
                self.context.dispatcher.unsubscribe(subscription)
        self._subscriptions.clear()

    def subscribe(self, kind: EventKind, callback: "EventCallback", name: Optional[str] = None) -> None:
        if self.context is None:
            raise RuntimeError(f"{type(self).__name__} must be attached before subscribing to events")
        self._subscriptions.append(self.context.dispatcher.subscribe(kind, callback, name=name))

    @abstractmethod
    def begin_iteration(self, event: TraceEvent) -> None:
        """Reset per-iteration state at an iteration start."""

    @abstractmethod
    def end_iteration(self, event: TraceEvent) -> Optional[float]:
        """
        Return this iteration's value at an iteration stop.

        None means the value is absent for this iteration, which is not the
        same as zero.
        """
