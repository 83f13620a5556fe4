"""
Recorded trace tables.

A recorded trace is a table with one row per trace event and one column per
event field, stored with a DataStorage backend, plus a small JSON sidecar
holding session metadata (notably how many events the capture lost).
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import polars as pl

from ..models.events import EVENT_FIELD_NAMES, TraceEvent
from .base import DataStorage
from .parquet_storage import JsonStorage, ParquetStorage

logger = logging.getLogger(__name__)

TRACE_SCHEMA: Dict[str, Any] = {
    "kind": pl.Utf8,
    "timestamp": pl.Float64,
    "process_id": pl.Int64,
    "parent_process_id": pl.Int64,
    "process_name": pl.Utf8,
    "file_name": pl.Utf8,
    "checksum": pl.Int64,
    # Addresses may use the full unsigned 64-bit range.
    "image_base": pl.UInt64,
    "image_size": pl.UInt64,
    "counter_source": pl.Int64,
    "instruction_pointer": pl.UInt64,
    "interval": pl.Int64,
    "test_name": pl.Utf8,
    "iteration": pl.Int64,
    "allocated_bytes": pl.Int64,
    "marker": pl.Utf8,
}

METADATA_SUFFIX = ".session.json"


def events_to_dataframe(events: Iterable[TraceEvent]) -> pl.DataFrame:
    """Build a trace table from events, in stream order."""
    return pl.DataFrame([event.to_dict() for event in events], schema=TRACE_SCHEMA)


def dataframe_to_events(df: pl.DataFrame) -> List[TraceEvent]:
    """
    Rebuild events from a trace table.

    Columns that are missing from the table are treated as unset fields.
    Rows are validated like events fed to the engine.

    Raises:
        ValueError: If the table has no ``kind`` or ``timestamp`` column
        InvalidEventError: If a row lacks a field required by its kind
    """
    missing = {"kind", "timestamp"} - set(df.columns)
    if missing:
        raise ValueError(f"Trace table is missing required column(s): {sorted(missing)}")

    field_columns = [name for name in df.columns if name in EVENT_FIELD_NAMES]
    ignored = set(df.columns) - set(field_columns) - {"kind", "timestamp"}
    if ignored:
        logger.warning(f"Ignoring unknown trace table column(s): {sorted(ignored)}")

    events = []
    for row in df.iter_rows(named=True):
        fields = {name: row[name] for name in field_columns if row[name] is not None}
        events.append(TraceEvent.create(row["kind"], row["timestamp"], **fields))
    return events


def trace_metadata_path(path: Union[str, Path]) -> Path:
    path = Path(path)
    return path.with_name(path.stem + METADATA_SUFFIX)


def storage_for_path(path: Union[str, Path]) -> DataStorage:
    """Pick the storage backend from the trace file extension."""
    if Path(path).suffix.lower() == ".json":
        return JsonStorage()
    return ParquetStorage()


def write_trace(
    events: Iterable[TraceEvent],
    path: Union[str, Path],
    events_lost: int = 0,
    storage: Optional[DataStorage] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Path:
    """
    Write a recorded trace and its session metadata sidecar.

    Returns:
        The path of the trace table
    """
    path = Path(path)
    storage = storage or storage_for_path(path)

    df = events_to_dataframe(events)
    storage.save_dataframe(df, str(path))

    session_metadata = dict(metadata or {})
    session_metadata.update({"events_lost": int(events_lost), "event_count": len(df)})
    storage.save_dict(session_metadata, str(trace_metadata_path(path)))

    logger.info(f"Wrote trace with {len(df)} events to {path}")
    return path


def read_trace(
    path: Union[str, Path],
    storage: Optional[DataStorage] = None,
) -> Tuple[List[TraceEvent], Dict[str, Any]]:
    """
    Read a recorded trace and its session metadata.

    A trace without a sidecar is assumed to be complete (no lost events).

    Raises:
        FileNotFoundError: If the trace table does not exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Trace file not found: {path}")

    storage = storage or storage_for_path(path)
    events = dataframe_to_events(storage.load_dataframe(str(path)))

    metadata_path = trace_metadata_path(path)
    if storage.file_exists(str(metadata_path)):
        metadata = storage.load_dict(str(metadata_path))
    else:
        logger.info(f"No session metadata next to {path}; assuming no events were lost")
        metadata = {}
    metadata.setdefault("events_lost", 0)

    logger.info(f"Read trace with {len(events)} events from {path}")
    return events, metadata
