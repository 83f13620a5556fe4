"""
Results storage manager for correlation runs.

This module provides a high-level interface for saving and loading the
results of a correlation run using the configured storage format.
"""

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import polars as pl

from ..config.storage_config import StorageConfig
from ..models.results import CorrelationDiagnostics, MetricValueRow, StatisticsRow
from ..models.tracking import DeferredSample
from ..report.writers import (
    dataframe_to_statistics,
    metric_values_to_dataframe,
    statistics_to_dataframe,
    write_markdown_table,
    write_statistics_csv,
)
from .factory import create_storage

logger = logging.getLogger(__name__)

DEFERRED_SAMPLE_SCHEMA = {
    "instruction_pointer": pl.UInt64,
    "process_id": pl.Int64,
    "counter_source": pl.Int64,
    "timestamp": pl.Float64,
    "weight": pl.Int64,
}


class ResultsStorageManager:
    """
    Saves and loads the results of one correlation run.

    Files written to ``output_dir``:

    - ``metric_values.<ext>``: one row per (test, metric, iteration)
    - ``statistics.<ext>``: one row per (test, metric)
    - ``unattributed_samples.<ext>``: samples no module claimed
    - ``statistics.csv``: formatted report table, when legacy formats are enabled
    - ``diagnostics.json``: run metadata and diagnostics counters
    - ``<run_id>.md``: Markdown statistics table
    """

    def __init__(self, output_dir: Path, run_id: str, storage_config: Optional[StorageConfig] = None):
        """
        Args:
            output_dir: Directory where result files will be stored
            run_id: Run id, used as the Markdown report file name
            storage_config: Storage settings (defaults to Parquet with snappy)
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.run_id = run_id

        storage_config = storage_config or StorageConfig()
        self.storage_format = storage_config.format
        self.compression = storage_config.compression
        self.generate_legacy = storage_config.generate_legacy_formats

        self.storage = create_storage(self.storage_format, self.compression)
        logger.debug(f"Initialized ResultsStorageManager with format: {self.storage_format}")

    def _path(self, stem: str) -> Path:
        return self.output_dir / f"{stem}{self.storage.extension}"

    @property
    def markdown_path(self) -> Path:
        return self.output_dir / f"{self.run_id}.md"

    def save_results(
        self,
        statistics: Sequence[StatisticsRow],
        metric_values: Sequence[MetricValueRow],
        diagnostics: CorrelationDiagnostics,
        deferred_samples: Iterable[DeferredSample] = (),
        metadata: Optional[Dict[str, Any]] = None,
        metric_labels: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Path]:
        """
        Save every result file of a run.

        Returns:
            Mapping from result kind to the written path

        Raises:
            Exception: If any storage operation fails
        """
        try:
            logger.info("Saving correlation results...")
            written = {
                "metric_values": self._save_dataframe(metric_values_to_dataframe(metric_values), "metric_values"),
                "statistics": self._save_dataframe(statistics_to_dataframe(statistics), "statistics"),
                "unattributed_samples": self._save_dataframe(
                    pl.DataFrame([asdict(s) for s in deferred_samples], schema=DEFERRED_SAMPLE_SCHEMA),
                    "unattributed_samples",
                ),
            }

            if self.generate_legacy:
                written["statistics_csv"] = write_statistics_csv(
                    statistics, self.output_dir / "statistics.csv", metric_labels
                )

            written["diagnostics"] = self._save_diagnostics(diagnostics, metadata)
            written["markdown"] = write_markdown_table(
                statistics, self.markdown_path, metric_labels, diagnostics.unattributed_samples
            )

            logger.info(f"Successfully saved correlation results to: {self.output_dir}")
            return written

        except Exception as e:
            logger.error(f"Error saving correlation results: {e}", exc_info=True)
            raise

    def _save_dataframe(self, df: pl.DataFrame, stem: str) -> Path:
        path = self._path(stem)
        self.storage.save_dataframe(df, str(path))
        logger.debug(f"Saved {len(df)} {stem} rows to: {path}")
        return path

    def _save_diagnostics(self, diagnostics: CorrelationDiagnostics, metadata: Optional[Dict[str, Any]]) -> Path:
        data = {
            "run_id": self.run_id,
            "metadata": metadata or {},
            "diagnostics": diagnostics.to_dict(),
        }
        path = self.output_dir / "diagnostics.json"
        self.storage.save_dict(data, str(path))
        logger.debug(f"Saved diagnostics to: {path}")
        return path

    def load_statistics(self) -> List[StatisticsRow]:
        return dataframe_to_statistics(self.load_dataframe("statistics"))

    def load_metric_values(self, columns: Optional[List[str]] = None) -> pl.DataFrame:
        return self.load_dataframe("metric_values", columns)

    def load_diagnostics(self) -> Dict[str, Any]:
        return self.storage.load_dict(str(self.output_dir / "diagnostics.json"))

    def load_dataframe(self, stem: str, columns: Optional[List[str]] = None) -> pl.DataFrame:
        """
        Raises:
            FileNotFoundError: If the result file does not exist
        """
        path = self._path(stem)
        if not self.storage.file_exists(str(path)):
            raise FileNotFoundError(f"No {stem} found in {self.output_dir}")
        return self.storage.load_dataframe(str(path), columns)

    def get_storage_info(self) -> Dict[str, Any]:
        """Storage settings and the sizes of the result files that exist."""
        info = {
            "storage_format": self.storage_format,
            "compression": self.compression,
            "output_dir": str(self.output_dir),
            "files": {},
        }
        for path in sorted(self.output_dir.iterdir()):
            if path.is_file():
                info["files"][path.name] = {
                    "size_bytes": self.storage.get_file_size(str(path)),
                    "exists": True,
                }
        return info
