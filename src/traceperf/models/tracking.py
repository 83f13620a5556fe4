"""
Process and module tracking data models.

These records are owned by the process tracker for the lifetime of a
correlation session. Counter totals are keyed by counter source id.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class ProcessState(Enum):
    """Lifecycle of a tracked process."""

    UNSEEN = "unseen"
    RUNNING = "running"
    EXITED = "exited"


@dataclass(frozen=True)
class AddressRange:
    """Half-open address range ``[start, start + size)``."""

    start: int
    size: int

    @property
    def end(self) -> int:
        return self.start + self.size

    def contains(self, address: int) -> bool:
        return self.start <= address < self.end


@dataclass
class LifeSpan:
    """Half-open time span; ``end`` stays open-ended until the owner is unloaded."""

    start: float
    end: float = math.inf

    def contains(self, timestamp: float) -> bool:
        return self.start <= timestamp < self.end


@dataclass(eq=False)
class Module:
    """
    A module image loaded into a tracked process.

    Records compare by identity: a module loaded again at a different address
    is a distinct record, even when path and checksum match an older one.
    """

    file_name: str
    checksum: int
    address_range: AddressRange
    life_span: LifeSpan
    loaded: bool = True
    counter_totals: Dict[int, int] = field(default_factory=dict)
    # Number of times this record was (re)loaded at the same address.
    load_count: int = 1

    @property
    def load_timestamp(self) -> float:
        return self.life_span.start

    @property
    def unload_timestamp(self) -> float:
        return self.life_span.end

    def matches(self, file_name: str, checksum: int, address_range: AddressRange) -> bool:
        """Whether this record describes the same image at the same address."""
        return (
            self.address_range == address_range
            and self.checksum == checksum
            and self.file_name.lower() == file_name.lower()
        )

    def add_counter(self, counter_source: int, value: int) -> None:
        self.counter_totals[counter_source] = self.counter_totals.get(counter_source, 0) + value


@dataclass(eq=False)
class Process:
    """A process that belongs to the tracked process tree."""

    process_id: int
    parent_process_id: Optional[int]
    name: Optional[str]
    start_timestamp: Optional[float]
    end_timestamp: Optional[float] = None
    state: ProcessState = ProcessState.RUNNING
    modules: List[Module] = field(default_factory=list)
    counter_totals: Dict[int, int] = field(default_factory=dict)

    @property
    def is_running(self) -> bool:
        return self.state is ProcessState.RUNNING

    def add_counter(self, counter_source: int, value: int) -> None:
        self.counter_totals[counter_source] = self.counter_totals.get(counter_source, 0) + value


@dataclass(frozen=True)
class DeferredSample:
    """A counter sample that no loaded module claimed at sample time."""

    instruction_pointer: int
    process_id: int
    counter_source: int
    timestamp: float
    weight: int
