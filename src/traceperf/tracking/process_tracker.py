"""
Process and module tracker.

Maintains the tracked process tree and, for every tracked process, the modules
loaded into it with their address ranges and load/unload timestamps. It
answers the question "which module owned this address at this time".

Process state machine: ``Unseen -> Running -> Exited``. A process joins the
tree when its own id or its parent id is already tracked; the root of the tree
is the externally supplied target process id. Events for untracked processes
are dropped.

Module state machine: ``NotLoaded -> Loaded -> Unloaded``. Loading the same
image (path, checksum and address range) again after it was unloaded reuses
the unloaded record; loading it at a different address creates a new record.
"""

import logging
from typing import Dict, List, Optional

from ..models.events import TraceEvent
from ..models.results import CorrelationDiagnostics
from ..models.tracking import AddressRange, LifeSpan, Module, Process, ProcessState
from .interval_index import IntervalIndex

logger = logging.getLogger(__name__)


class ProcessTracker:
    """
    Owns every Process and Module record for the duration of a session.

    Args:
        target_pid: Process id that roots the tracked process tree
        diagnostics: Shared diagnostics counters (a private instance is
            created when omitted)
    """

    def __init__(self, target_pid: int, diagnostics: Optional[CorrelationDiagnostics] = None):
        self.target_pid = target_pid
        self.diagnostics = diagnostics if diagnostics is not None else CorrelationDiagnostics()

        self._tracked_ids = {target_pid}
        # Current record per process id; a reused pid replaces an exited record.
        self._processes: Dict[int, Process] = {}
        self._history: List[Process] = []
        self._indexes: Dict[int, IntervalIndex[Module]] = {}

    # --- Queries ---

    @property
    def processes(self) -> List[Process]:
        """Every process record created during the session, in creation order."""
        return list(self._history)

    def get_process(self, pid: int) -> Optional[Process]:
        """The current record for ``pid``, if any."""
        return self._processes.get(pid)

    def is_tracked(self, pid: int) -> bool:
        return pid in self._tracked_ids

    def state_of(self, pid: int) -> ProcessState:
        process = self._processes.get(pid)
        if process is None:
            return ProcessState.UNSEEN
        return process.state

    def find_module(self, pid: int, address: int, timestamp: float) -> Optional[Module]:
        """
        Return the module of process ``pid`` whose range contains ``address``
        and whose life span contains ``timestamp``.
        """
        index = self._indexes.get(pid)
        if index is None:
            return None
        return index.find(address, predicate=lambda module: module.life_span.contains(timestamp))

    # --- Process lifecycle ---

    def seed_process(
        self,
        pid: int,
        name: Optional[str] = None,
        parent_pid: Optional[int] = None,
    ) -> Process:
        """
        Create a Running record for a process that was alive before the
        session started (no start timestamp). A later start event for the
        same pid fills in the missing details instead of being a duplicate.
        """
        existing = self._processes.get(pid)
        if existing is not None and existing.is_running:
            logger.debug(f"Process {pid} is already running; not seeding it again")
            return existing

        self._tracked_ids.add(pid)
        process = Process(
            process_id=pid,
            parent_process_id=parent_pid,
            name=name,
            start_timestamp=None,
        )
        self._add_process(process)
        logger.info(f"Seeded tracked process {pid} ({name or 'unknown'})")
        return process

    def on_process_start(self, event: TraceEvent) -> Optional[Process]:
        pid = event.process_id
        parent_pid = event.parent_process_id

        existing = self._processes.get(pid)
        if existing is not None and existing.is_running:
            if existing.start_timestamp is None:
                existing.start_timestamp = event.timestamp
                existing.name = existing.name or event.process_name
                if existing.parent_process_id is None:
                    existing.parent_process_id = parent_pid
                return existing
            self.diagnostics.duplicate_process_starts += 1
            logger.warning(f"Duplicate start for running process {pid} at {event.timestamp}; ignored")
            return None

        if pid not in self._tracked_ids and parent_pid not in self._tracked_ids:
            self.diagnostics.dropped_process_events += 1
            return None

        self._tracked_ids.add(pid)
        process = Process(
            process_id=pid,
            parent_process_id=parent_pid,
            name=event.process_name,
            start_timestamp=event.timestamp,
        )
        if existing is not None:
            logger.debug(f"Process id {pid} reused after exit at {existing.end_timestamp}")
        self._add_process(process)
        logger.debug(f"Tracking process {pid} ({event.process_name}), parent {parent_pid}")
        return process

    def on_process_stop(self, event: TraceEvent) -> Optional[Process]:
        process = self._running_process(event)
        if process is None:
            return None

        process.state = ProcessState.EXITED
        process.end_timestamp = event.timestamp
        logger.debug(f"Process {process.process_id} exited at {event.timestamp}")
        return process

    # --- Module lifecycle ---

    def on_module_load(self, event: TraceEvent) -> Optional[Module]:
        process = self._running_process(event)
        if process is None:
            return None

        if event.image_size <= 0:
            self.diagnostics.dropped_process_events += 1
            logger.warning(
                f"Ignoring load of {event.file_name} in process {process.process_id} "
                f"with non-positive image size {event.image_size}"
            )
            return None

        address_range = AddressRange(event.image_base, event.image_size)
        checksum = event.checksum or 0
        index = self._indexes[process.process_id]

        for module in reversed(process.modules):
            if not module.matches(event.file_name, checksum, address_range):
                continue
            if module.loaded:
                self.diagnostics.duplicate_module_loads += 1
                logger.debug(
                    f"Duplicate load notification for {event.file_name} "
                    f"in process {process.process_id}; ignored"
                )
                return module

            # Reloaded at the same address: keep the record and its totals.
            module.loaded = True
            module.life_span = LifeSpan(event.timestamp)
            module.load_count += 1
            index.insert(address_range.start, address_range.size, module)
            logger.debug(f"Reloaded {event.file_name} at {address_range.start:#x} in process {process.process_id}")
            return module

        module = Module(
            file_name=event.file_name,
            checksum=checksum,
            address_range=address_range,
            life_span=LifeSpan(event.timestamp),
        )
        process.modules.append(module)
        index.insert(address_range.start, address_range.size, module)
        logger.debug(
            f"Loaded {event.file_name} [{address_range.start:#x}, {address_range.end:#x}) "
            f"in process {process.process_id}"
        )
        return module

    def on_module_unload(self, event: TraceEvent) -> Optional[Module]:
        process = self._running_process(event)
        if process is None:
            return None

        address_range = AddressRange(event.image_base, event.image_size)
        checksum = event.checksum or 0

        for module in reversed(process.modules):
            if module.loaded and module.matches(event.file_name, checksum, address_range):
                module.loaded = False
                module.life_span.end = event.timestamp
                self._indexes[process.process_id].remove(module)
                logger.debug(f"Unloaded {event.file_name} from process {process.process_id}")
                return module

        self.diagnostics.unmatched_module_unloads += 1
        logger.info(
            f"Unload of {event.file_name} at {address_range.start:#x} in process "
            f"{process.process_id} has no matching loaded module; ignored"
        )
        return None

    # --- Helpers ---

    def _add_process(self, process: Process) -> None:
        self._processes[process.process_id] = process
        self._history.append(process)
        self._indexes[process.process_id] = IntervalIndex(name=f"modules of process {process.process_id}")

    def _running_process(self, event: TraceEvent) -> Optional[Process]:
        process = self._processes.get(event.process_id)
        if process is None or not process.is_running:
            self.diagnostics.dropped_process_events += 1
            return None
        return process
