"""
Correlation engine, event dispatch and trace session management.
"""

from .correlation_engine import CorrelationEngine, EngineState
from .dispatcher import EventDispatcher, Subscription
from .session import (
    InMemoryTraceSession,
    ReplayTraceSession,
    SessionLifecycleManager,
    TraceSession,
)

__all__ = [
    "CorrelationEngine",
    "EngineState",
    "EventDispatcher",
    "Subscription",
    "InMemoryTraceSession",
    "ReplayTraceSession",
    "SessionLifecycleManager",
    "TraceSession",
]
