"""
Trace event data model.

This module defines the single record type that flows through the correlation
engine. A trace event is a timestamped record describing process, module,
counter or iteration activity. Fields that do not apply to an event kind are
left as None.
"""

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from ..validation.exceptions import InvalidEventError


class EventKind(str, Enum):
    """Kinds of raw events accepted by the correlation engine."""

    PROCESS_START = "ProcessStart"
    PROCESS_STOP = "ProcessStop"
    MODULE_LOAD = "ModuleLoad"
    MODULE_UNLOAD = "ModuleUnload"
    COUNTER_INTERVAL_CHANGED = "CounterIntervalChanged"
    COUNTER_SAMPLE = "CounterSample"
    ITERATION_START = "IterationStart"
    ITERATION_STOP = "IterationStop"
    CUSTOM_MARKER = "CustomMarker"

    @classmethod
    def parse(cls, value: Any) -> "EventKind":
        """Accept an EventKind, its value ("ModuleLoad") or its name ("MODULE_LOAD")."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            pass
        try:
            return cls[str(value)]
        except KeyError:
            raise InvalidEventError(
                f"Unknown event kind: {value!r}",
                field_name="kind",
                value=value,
            )


# Fields that must be present (not None) for each event kind.
REQUIRED_FIELDS: Dict[EventKind, FrozenSet[str]] = {
    EventKind.PROCESS_START: frozenset({"process_id"}),
    EventKind.PROCESS_STOP: frozenset({"process_id"}),
    EventKind.MODULE_LOAD: frozenset({"process_id", "file_name", "image_base", "image_size"}),
    EventKind.MODULE_UNLOAD: frozenset({"process_id", "file_name", "image_base", "image_size"}),
    EventKind.COUNTER_INTERVAL_CHANGED: frozenset({"counter_source", "interval"}),
    EventKind.COUNTER_SAMPLE: frozenset({"process_id", "counter_source", "instruction_pointer"}),
    EventKind.ITERATION_START: frozenset({"test_name", "iteration"}),
    EventKind.ITERATION_STOP: frozenset({"test_name", "iteration"}),
    EventKind.CUSTOM_MARKER: frozenset({"marker"}),
}


@dataclass(frozen=True)
class TraceEvent:
    """
    A single raw trace event.

    Attributes:
        kind: The event kind
        timestamp: Trace clock timestamp in milliseconds
        process_id: Process the event belongs to
        parent_process_id: Parent process id (ProcessStart only)
        process_name: Image name of the process (ProcessStart only)
        file_name: Full path of the module image
        checksum: Image checksum of the module
        image_base: Base address of the loaded module
        image_size: Size of the loaded module image in bytes
        counter_source: Numeric id of a performance counter source
        instruction_pointer: Address executing when a counter sample was taken
        interval: Sampling interval announced for a counter source
        test_name: Test identity (iteration markers)
        iteration: Iteration index (iteration markers)
        allocated_bytes: Allocated byte count carried on an iteration stop
        marker: Name of a custom marker event (e.g. "GCStart")
    """

    kind: EventKind
    timestamp: float
    process_id: Optional[int] = None
    parent_process_id: Optional[int] = None
    process_name: Optional[str] = None
    file_name: Optional[str] = None
    checksum: Optional[int] = None
    image_base: Optional[int] = None
    image_size: Optional[int] = None
    counter_source: Optional[int] = None
    instruction_pointer: Optional[int] = None
    interval: Optional[int] = None
    test_name: Optional[str] = None
    iteration: Optional[int] = None
    allocated_bytes: Optional[int] = None
    marker: Optional[str] = None

    @classmethod
    def create(cls, kind: Any, timestamp: float, **fields: Any) -> "TraceEvent":
        """
        Build an event and check that every field required by its kind is set.

        Raises:
            InvalidEventError: If the kind is unknown, a field name is not part
                of the event model, or a required field is missing
        """
        event_kind = EventKind.parse(kind)

        unknown = set(fields) - EVENT_FIELD_NAMES
        if unknown:
            raise InvalidEventError(
                f"Unknown field(s) for {event_kind.value}: {sorted(unknown)}",
                field_name=sorted(unknown)[0],
                value=fields[sorted(unknown)[0]],
            )

        if timestamp is None:
            raise InvalidEventError(
                f"{event_kind.value} event is missing a timestamp",
                field_name="timestamp",
            )

        missing = sorted(
            name for name in REQUIRED_FIELDS[event_kind] if fields.get(name) is None
        )
        if missing:
            raise InvalidEventError(
                f"{event_kind.value} event is missing required field(s): {missing}",
                field_name=missing[0],
            )

        return cls(kind=event_kind, timestamp=float(timestamp), **fields)

    def to_dict(self) -> Dict[str, Any]:
        """Flatten the event into a plain dictionary (kind as its string value)."""
        data = dataclasses.asdict(self)
        data["kind"] = self.kind.value
        return data


EVENT_FIELD_NAMES: FrozenSet[str] = frozenset(
    f.name for f in dataclasses.fields(TraceEvent) if f.name not in ("kind", "timestamp")
)
