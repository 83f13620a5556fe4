"""
Benchmark event log.

A flat, line-oriented record of benchmark lifecycle events that a benchmark
host can write without any tracing facility. One record per line::

    timestamp,benchmark,event,iteration,success,reason

Timestamps are milliseconds on a monotonic clock. ``iteration``, ``success``
and ``reason`` may be empty. In the free-text fields (benchmark and reason)
a backslash is written as ``\\\\``, a comma as ``\\_``, a newline as ``\\n`` and a
carriage return as ``\\r``, so a record never spans lines and splitting on
commas is unambiguous.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterable, Iterator, List, Optional, Union

from ..models.events import EventKind, TraceEvent

logger = logging.getLogger(__name__)

BENCHMARK_START = "BenchmarkStart"
BENCHMARK_STOP = "BenchmarkStop"
BENCHMARK_ITERATION_START = "BenchmarkIterationStart"
BENCHMARK_ITERATION_STOP = "BenchmarkIterationStop"

EVENT_NAMES = (BENCHMARK_START, BENCHMARK_STOP, BENCHMARK_ITERATION_START, BENCHMARK_ITERATION_STOP)

FIELD_COUNT = 6

_ESCAPES = {"\\": "\\\\", ",": "\\_", "\n": "\\n", "\r": "\\r"}
_UNESCAPES = {"\\": "\\", "_": ",", "n": "\n", "r": "\r"}


def escape_field(text: str) -> str:
    return "".join(_ESCAPES.get(char, char) for char in text)


def unescape_field(text: str) -> str:
    """
    Reverse escape_field().

    Raises:
        ValueError: On an unknown escape sequence or a trailing backslash
    """
    result = []
    chars = iter(text)
    for char in chars:
        if char != "\\":
            result.append(char)
            continue
        escaped = next(chars, None)
        if escaped not in _UNESCAPES:
            raise ValueError(f"Invalid escape sequence '\\{escaped or ''}' in {text!r}")
        result.append(_UNESCAPES[escaped])
    return "".join(result)


@dataclass(frozen=True)
class EventLogRecord:
    """One line of a benchmark event log."""

    timestamp: float
    benchmark: str
    event: str
    iteration: Optional[int] = None
    success: Optional[bool] = None
    reason: str = ""

    def to_line(self) -> str:
        fields = [
            repr(float(self.timestamp)),
            escape_field(self.benchmark),
            self.event,
            "" if self.iteration is None else str(self.iteration),
            "" if self.success is None else str(self.success),
            escape_field(self.reason),
        ]
        return ",".join(fields)

    @classmethod
    def from_line(cls, line: str) -> "EventLogRecord":
        """
        Parse one record.

        Raises:
            ValueError: If the line does not hold six well-formed fields
        """
        fields = line.rstrip("\r\n").split(",")
        if len(fields) != FIELD_COUNT:
            raise ValueError(f"Expected {FIELD_COUNT} fields, got {len(fields)}: {line!r}")

        timestamp, benchmark, event, iteration, success, reason = fields
        if event not in EVENT_NAMES:
            raise ValueError(f"Unknown benchmark event {event!r}")

        if success == "":
            parsed_success = None
        elif success.lower() in ("true", "false"):
            parsed_success = success.lower() == "true"
        else:
            raise ValueError(f"Invalid success flag {success!r}")

        return cls(
            timestamp=float(timestamp),
            benchmark=unescape_field(benchmark),
            event=event,
            iteration=int(iteration) if iteration else None,
            success=parsed_success,
            reason=unescape_field(reason),
        )


class BenchmarkEventLogWriter:
    """
    Writes benchmark lifecycle events to an event log file.

    Usable as a context manager::

        with BenchmarkEventLogWriter(path) as log:
            log.benchmark_start("Sort")
            log.iteration_start("Sort", 0)
            ...
    """

    def __init__(self, path: Union[str, Path], clock=None):
        self.path = Path(path)
        self._clock = clock or (lambda: time.perf_counter() * 1000.0)
        self._file: Optional[IO[str]] = None

    def open(self) -> "BenchmarkEventLogWriter":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "w", encoding="utf-8", newline="\n")
        logger.debug(f"Opened benchmark event log {self.path}")
        return self

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> "BenchmarkEventLogWriter":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def write(self, record: EventLogRecord) -> None:
        if self._file is None:
            raise RuntimeError(f"Event log {self.path} is not open")
        self._file.write(record.to_line() + "\n")

    def _write_event(self, benchmark: str, event: str, iteration: Optional[int] = None,
                     success: Optional[bool] = None, reason: str = "") -> EventLogRecord:
        record = EventLogRecord(
            timestamp=self._clock(),
            benchmark=benchmark,
            event=event,
            iteration=iteration,
            success=success,
            reason=reason,
        )
        self.write(record)
        return record

    def benchmark_start(self, benchmark: str) -> EventLogRecord:
        return self._write_event(benchmark, BENCHMARK_START)

    def benchmark_stop(self, benchmark: str, success: Optional[bool] = None, reason: str = "") -> EventLogRecord:
        return self._write_event(benchmark, BENCHMARK_STOP, success=success, reason=reason)

    def iteration_start(self, benchmark: str, iteration: int) -> EventLogRecord:
        return self._write_event(benchmark, BENCHMARK_ITERATION_START, iteration=iteration)

    def iteration_stop(self, benchmark: str, iteration: int, success: Optional[bool] = None) -> EventLogRecord:
        return self._write_event(benchmark, BENCHMARK_ITERATION_STOP, iteration=iteration, success=success)


def iter_event_log(lines: Iterable[str]) -> Iterator[EventLogRecord]:
    """Parse records from lines, skipping blank lines."""
    for line_number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            yield EventLogRecord.from_line(line)
        except ValueError as e:
            raise ValueError(f"Line {line_number}: {e}") from e


def read_event_log(path: Union[str, Path]) -> List[EventLogRecord]:
    """
    Read every record of an event log file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If a line is malformed
    """
    with open(path, "r", encoding="utf-8", newline="") as f:
        records = list(iter_event_log(f))
    logger.info(f"Read {len(records)} benchmark events from {path}")
    return records


def event_log_to_trace_events(records: Iterable[EventLogRecord]) -> List[TraceEvent]:
    """
    Turn iteration records into IterationStart/IterationStop trace events.

    Benchmark start and stop records carry no iteration and are skipped.
    An iteration stop explicitly flagged as unsuccessful is skipped, which
    leaves its iteration dangling so that it is dropped.
    """
    events = []
    for record in records:
        if record.event == BENCHMARK_ITERATION_START:
            kind = EventKind.ITERATION_START
        elif record.event == BENCHMARK_ITERATION_STOP:
            if record.success is False:
                logger.info(f"Iteration {record.iteration} of {record.benchmark} failed; dropping it")
                continue
            kind = EventKind.ITERATION_STOP
        else:
            continue
        events.append(
            TraceEvent.create(kind, record.timestamp, test_name=record.benchmark, iteration=record.iteration)
        )
    return events
