"""
Storage for recorded traces, benchmark event logs and correlation results.

This module provides:
- Parquet (or JSON) trace tables with one column per event field
- The line-oriented benchmark event log with its escaping rules
- A results manager writing metric values, statistics and diagnostics

Polars is used for all DataFrame operations.
"""

from .base import DataStorage
from .event_log import (
    BenchmarkEventLogWriter,
    EventLogRecord,
    event_log_to_trace_events,
    read_event_log,
)
from .factory import create_storage
from .parquet_storage import JsonStorage, ParquetStorage
from .results_manager import ResultsStorageManager
from .trace_store import (
    TRACE_SCHEMA,
    dataframe_to_events,
    events_to_dataframe,
    read_trace,
    write_trace,
)

__all__ = [
    "DataStorage",
    "JsonStorage",
    "ParquetStorage",
    "create_storage",
    # Event log
    "BenchmarkEventLogWriter",
    "EventLogRecord",
    "event_log_to_trace_events",
    "read_event_log",
    # Results
    "ResultsStorageManager",
    # Traces
    "TRACE_SCHEMA",
    "dataframe_to_events",
    "events_to_dataframe",
    "read_trace",
    "write_trace",
]
