"""
Trace sessions and the session lifecycle manager.

A trace session is the source of the raw event stream. Capture may buffer
events on another thread; the lifecycle manager drains the session on a single
thread and feeds the correlation engine one event at a time, in order.

The engine assumes a complete stream. If a session reports any lost events,
the manager aborts the engine and raises EventsLostError; a run that lost
events is never partially salvaged.
"""

import logging
import queue
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

import psutil

from ..models.events import TraceEvent
from ..models.results import StatisticsRow
from ..storage.trace_store import read_trace
from ..validation.exceptions import EventsLostError
from .correlation_engine import CorrelationEngine

logger = logging.getLogger(__name__)


class TraceSession(ABC):
    """Interface of an event-producing capture session."""

    name: str = "trace session"

    @abstractmethod
    def start(self) -> None:
        """Start capturing events."""

    @abstractmethod
    def stop(self) -> None:
        """Stop capturing events. Buffered events remain readable."""

    @abstractmethod
    def events(self) -> Iterator[TraceEvent]:
        """Captured events, in timestamp order."""

    @property
    @abstractmethod
    def events_lost(self) -> int:
        """Number of events the capture reported as lost."""


class InMemoryTraceSession(TraceSession):
    """
    Queue-backed session that capture code on any thread can emit into.

    Events are delivered in emission order.
    """

    def __init__(self, name: str = "in-memory trace session"):
        self.name = name
        self._queue: "queue.Queue[TraceEvent]" = queue.Queue()
        self._lock = threading.Lock()
        self._events_lost = 0
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        self._running = True
        logger.debug(f"Started {self.name}")

    def stop(self) -> None:
        self._running = False
        logger.debug(f"Stopped {self.name} with {self._queue.qsize()} buffered events")

    def emit(self, event: TraceEvent) -> None:
        """
        Buffer one event.

        Raises:
            RuntimeError: If the session is not running
        """
        if not self._running:
            raise RuntimeError(f"Cannot emit into {self.name}: session is not running")
        self._queue.put(event)

    def report_lost(self, count: int = 1) -> None:
        """Record events the capture mechanism dropped."""
        with self._lock:
            self._events_lost += count
        logger.warning(f"{self.name} lost {count} events")

    @property
    def events_lost(self) -> int:
        with self._lock:
            return self._events_lost

    def events(self) -> Iterator[TraceEvent]:
        while True:
            try:
                yield self._queue.get_nowait()
            except queue.Empty:
                return


class ReplayTraceSession(TraceSession):
    """Replays a recorded trace table (see traceperf.storage.trace_store)."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.name = f"recorded trace {self.path.name}"
        self._events: List[TraceEvent] = []
        self.metadata: Dict[str, Any] = {}

    def start(self) -> None:
        self._events, self.metadata = read_trace(self.path)

    def stop(self) -> None:
        pass

    @property
    def events_lost(self) -> int:
        return int(self.metadata.get("events_lost", 0))

    def events(self) -> Iterator[TraceEvent]:
        return iter(self._events)


class SessionLifecycleManager:
    """
    Runs a session (and optionally a workload) and feeds the engine.

    Args:
        session: The event source
        engine: A fresh engine dedicated to this session
        seed_target: Seed the target process record from the live process
            (name and parent id) before feeding, for targets that were
            already running when capture started
    """

    def __init__(self, session: TraceSession, engine: CorrelationEngine, seed_target: bool = False):
        self.session = session
        self.engine = engine
        self.seed_target = seed_target
        self._shutdown = threading.Event()

    def request_shutdown(self) -> None:
        """
        Stop feeding at the next event boundary. Iterations still open are
        discarded when the engine is finalized.
        """
        self._shutdown.set()
        logger.info("Shutdown requested; the engine will stop receiving events")

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown.is_set()

    def run(self, workload: Optional[Callable[[], Any]] = None) -> List[StatisticsRow]:
        """
        Capture, correlate and finalize.

        Args:
            workload: Called between session start and stop (e.g. the benchmark)

        Returns:
            The engine's statistics rows

        Raises:
            EventsLostError: If the session lost any events
        """
        self.session.start()
        try:
            if workload is not None:
                workload()
        except Exception as e:
            self.engine.abort(f"workload failed: {e}")
            raise
        finally:
            self.session.stop()

        events_lost = self.session.events_lost
        if events_lost:
            self.engine.diagnostics.events_lost = events_lost
            error = EventsLostError(events_lost, self.session.name)
            self.engine.abort(str(error))
            raise error

        if self.seed_target:
            self._seed_target_process()

        fed = 0
        for event in self.session.events():
            if self._shutdown.is_set():
                logger.warning(f"Stopped feeding after {fed} events on shutdown request")
                break
            self.engine.feed(event)
            fed += 1

        logger.debug(f"Fed {fed} events from {self.session.name}")
        return self.engine.finalize()

    def _seed_target_process(self) -> None:
        pid = self.engine.config.target_pid
        try:
            process = psutil.Process(pid)
            name = process.name()
            parent_pid = process.ppid()
        except psutil.NoSuchProcess:
            logger.warning(f"Target process {pid} is not running; seeding it without details")
            name, parent_pid = None, None
        except psutil.AccessDenied:
            logger.warning(f"Access denied reading target process {pid}; seeding it without details")
            name, parent_pid = None, None
        self.engine.seed_process(pid, name=name, parent_pid=parent_pid)
