"""
Abstract base class for data storage implementations.

This module defines the DataStorage interface shared by the storage backends.
Trace tables, metric values and statistics are stored as DataFrames; run
metadata and diagnostics are stored as dictionaries.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

import polars as pl


class DataStorage(ABC):
    """Abstract base class for data storage implementations."""

    # File extension used for DataFrames written by this backend.
    extension: str = ""

    @abstractmethod
    def save_dataframe(self, df: pl.DataFrame, path: str) -> None:
        """
        Save a Polars DataFrame to the specified path.

        Args:
            df: Polars DataFrame to save
            path: File path to save to
        """

    @abstractmethod
    def load_dataframe(self, path: str, columns: Optional[List[str]] = None) -> pl.DataFrame:
        """
        Load a Polars DataFrame from the specified path.

        Args:
            path: File path to load from
            columns: Optional list of columns to load

        Returns:
            Loaded Polars DataFrame
        """

    @abstractmethod
    def save_dict(self, data: Dict[str, Any], path: str) -> None:
        """Save dictionary data (metadata, diagnostics) to the specified path."""

    @abstractmethod
    def load_dict(self, path: str) -> Dict[str, Any]:
        """Load dictionary data from the specified path."""

    def file_exists(self, path: str) -> bool:
        return Path(path).exists()

    def get_file_size(self, path: str) -> int:
        """Size of a file in bytes, 0 if it does not exist."""
        try:
            return Path(path).stat().st_size
        except FileNotFoundError:
            return 0
