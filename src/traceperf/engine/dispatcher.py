"""
Event dispatch table.

Maps each event kind to an ordered list of subscriber callbacks. Publishing an
event invokes the subscribers of its kind synchronously, in registration order.
Subscriptions to custom markers may be restricted to a single marker name.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..models.events import EventKind, TraceEvent

logger = logging.getLogger(__name__)

EventCallback = Callable[[TraceEvent], None]


@dataclass(eq=False)
class Subscription:
    """A registered callback; returned by subscribe() for later removal."""

    kind: EventKind
    callback: EventCallback
    name: Optional[str] = None

    def accepts(self, event: TraceEvent) -> bool:
        return self.name is None or event.marker == self.name


class EventDispatcher:
    """Explicit observer table from event kind to subscriber callbacks."""

    def __init__(self):
        self._subscribers: Dict[EventKind, List[Subscription]] = defaultdict(list)

    def subscribe(self, kind: EventKind, callback: EventCallback, name: Optional[str] = None) -> Subscription:
        """
        Register ``callback`` for events of ``kind``.

        Args:
            kind: Event kind to observe
            callback: Called with each matching event
            name: For custom markers, only events with this marker name are
                delivered

        Returns:
            The subscription handle
        """
        subscription = Subscription(kind=EventKind.parse(kind), callback=callback, name=name)
        self._subscribers[subscription.kind].append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        subscribers = self._subscribers.get(subscription.kind, [])
        if subscription in subscribers:
            subscribers.remove(subscription)
            return True
        return False

    def publish(self, event: TraceEvent) -> None:
        # Copy so a callback may unsubscribe while the event is delivered.
        for subscription in list(self._subscribers.get(event.kind, ())):
            if subscription.accepts(event):
                subscription.callback(event)

    def subscriber_count(self, kind: EventKind) -> int:
        return len(self._subscribers.get(kind, ()))
