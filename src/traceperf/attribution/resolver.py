"""
Sample attribution resolver.

Attributes every counter sample to the process and, where possible, to the
module whose code was executing when the sample was taken. The weight of a
sample is the most recently announced sampling interval of its counter source.

Samples that no module claims at sample time are kept as deferred samples.
They are never re-resolved against modules loaded later: a module that did
not exist at sample time cannot have produced the sample. They stay in an
explicit unattributed bucket so that, for every process and counter source::

    sum(module totals) + unattributed total == delivered total
"""

import logging
import ntpath
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..models.events import TraceEvent
from ..models.results import CorrelationDiagnostics
from ..models.tracking import DeferredSample, Module, Process
from ..tracking.process_tracker import ProcessTracker

logger = logging.getLogger(__name__)


class SampleAttributionResolver:
    """
    Attributes counter samples using the process tracker's module state.

    Args:
        tracker: The tracker owning process and module records
        counter_sources: Counter source ids to attribute; None or empty
            means every source
        default_interval: Weight of samples whose source never announced an
            interval
        diagnostics: Shared diagnostics counters (defaults to the tracker's)
    """

    def __init__(
        self,
        tracker: ProcessTracker,
        counter_sources: Optional[Iterable[int]] = None,
        default_interval: int = 1,
        diagnostics: Optional[CorrelationDiagnostics] = None,
    ):
        if default_interval < 1:
            raise ValueError(f"default_interval must be >= 1, got {default_interval}")

        self.tracker = tracker
        self.counter_sources: Optional[Set[int]] = set(counter_sources) if counter_sources else None
        self.default_interval = default_interval
        self.diagnostics = diagnostics if diagnostics is not None else tracker.diagnostics

        self.deferred_samples: List[DeferredSample] = []
        self._intervals: Dict[int, int] = {}
        self._defaulted_sources: Set[int] = set()
        # Keyed by process record so a reused pid starts from zero.
        self._delivered: Dict[Tuple[Process, int], int] = defaultdict(int)
        self._unattributed: Dict[Tuple[Process, int], int] = defaultdict(int)

    def interval_for(self, counter_source: int) -> int:
        """The weight currently applied to samples of ``counter_source``."""
        interval = self._intervals.get(counter_source)
        if interval is not None:
            return interval

        if counter_source not in self._defaulted_sources:
            self._defaulted_sources.add(counter_source)
            logger.warning(
                f"No sampling interval announced for counter source {counter_source}; "
                f"weighting its samples by {self.default_interval}"
            )
        return self.default_interval

    def on_interval_changed(self, event: TraceEvent) -> None:
        source = event.counter_source
        if not self._accepts(source):
            return
        if event.interval <= 0:
            logger.warning(f"Ignoring non-positive interval {event.interval} for counter source {source}")
            return

        previous = self._intervals.get(source)
        self._intervals[source] = event.interval
        logger.debug(f"Counter source {source} interval changed from {previous} to {event.interval}")

    def on_sample(self, event: TraceEvent) -> Optional[Module]:
        """
        Attribute one counter sample.

        Returns:
            The module the sample was attributed to, or None when the sample
            was dropped or deferred
        """
        source = event.counter_source
        if not self._accepts(source):
            self.diagnostics.filtered_samples += 1
            return None

        # Exited processes still accumulate; only module events stop at exit.
        process = self.tracker.get_process(event.process_id)
        if process is None:
            self.diagnostics.dropped_samples += 1
            return None

        weight = self.interval_for(source)
        process.add_counter(source, weight)
        self._delivered[(process, source)] += weight

        module = self.tracker.find_module(process.process_id, event.instruction_pointer, event.timestamp)
        if module is not None:
            module.add_counter(source, weight)
            return module

        self.deferred_samples.append(
            DeferredSample(
                instruction_pointer=event.instruction_pointer,
                process_id=process.process_id,
                counter_source=source,
                timestamp=event.timestamp,
                weight=weight,
            )
        )
        self._unattributed[(process, source)] += weight
        self.diagnostics.unattributed_samples += 1
        return None

    # --- Queries ---

    @property
    def unattributed_sample_count(self) -> int:
        return len(self.deferred_samples)

    def unattributed_total(self, pid: int, counter_source: int) -> int:
        """Weighted total of the deferred samples of the current record of ``pid``."""
        process = self.tracker.get_process(pid)
        if process is None:
            return 0
        return self._unattributed.get((process, counter_source), 0)

    def delivered_total(self, pid: int, counter_source: int) -> int:
        """Weighted total of every accepted sample of the current record of ``pid``."""
        process = self.tracker.get_process(pid)
        if process is None:
            return 0
        return self._delivered.get((process, counter_source), 0)

    def counter_total(self, counter_source: int, module_name: Optional[str] = None) -> int:
        """
        Attributed total of ``counter_source`` across the tracked process tree.

        Args:
            counter_source: Counter source id
            module_name: Restrict the total to modules with this file name
                (basename, case-insensitive). None sums whole processes,
                unattributed samples included.
        """
        if module_name is None:
            return sum(
                process.counter_totals.get(counter_source, 0)
                for process in self.tracker.processes
            )

        wanted = module_name.lower()
        return sum(
            module.counter_totals.get(counter_source, 0)
            for process in self.tracker.processes
            for module in process.modules
            if ntpath.basename(module.file_name).lower() == wanted
        )

    def _accepts(self, counter_source: int) -> bool:
        return self.counter_sources is None or counter_source in self.counter_sources
