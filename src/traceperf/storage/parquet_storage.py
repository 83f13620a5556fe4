"""
Parquet and JSON storage implementations using Polars.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import polars as pl

from .base import DataStorage

logger = logging.getLogger(__name__)


def _save_json(data: Dict[str, Any], path: str) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def _load_json(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


class ParquetStorage(DataStorage):
    """
    Columnar Parquet storage with compression.

    Dictionaries (run metadata, diagnostics) are small and are always written
    as JSON for readability.
    """

    extension = ".parquet"

    def __init__(self, compression: Literal["snappy", "gzip", "brotli", "lz4", "zstd"] = "snappy"):
        self.compression = compression
        logger.debug(f"Initialized ParquetStorage with compression: {compression}")

    def save_dataframe(self, df: pl.DataFrame, path: str) -> None:
        try:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            df.write_parquet(path, compression=self.compression)
            logger.debug(f"Saved DataFrame with {len(df)} rows to {path}")
        except Exception as e:
            logger.error(f"Failed to save DataFrame to {path}: {e}")
            raise

    def load_dataframe(self, path: str, columns: Optional[List[str]] = None) -> pl.DataFrame:
        try:
            if columns:
                df = pl.read_parquet(path, columns=columns)
                logger.debug(f"Loaded DataFrame with columns {columns} from {path}")
            else:
                df = pl.read_parquet(path)
                logger.debug(f"Loaded DataFrame with {len(df)} rows from {path}")
            return df
        except Exception as e:
            logger.error(f"Failed to load DataFrame from {path}: {e}")
            raise

    def save_dict(self, data: Dict[str, Any], path: str) -> None:
        try:
            _save_json(data, path)
            logger.debug(f"Saved dictionary data to {path}")
        except Exception as e:
            logger.error(f"Failed to save dictionary to {path}: {e}")
            raise

    def load_dict(self, path: str) -> Dict[str, Any]:
        try:
            data = _load_json(path)
            logger.debug(f"Loaded dictionary data from {path}")
            return data
        except Exception as e:
            logger.error(f"Failed to load dictionary from {path}: {e}")
            raise


class JsonStorage(DataStorage):
    """
    Human-readable storage: DataFrames are written as JSON arrays of rows.

    Suited to small runs; large traces should use ParquetStorage.
    """

    extension = ".json"

    def save_dataframe(self, df: pl.DataFrame, path: str) -> None:
        try:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            df.write_json(path)
            logger.debug(f"Saved DataFrame with {len(df)} rows to {path}")
        except Exception as e:
            logger.error(f"Failed to save DataFrame to {path}: {e}")
            raise

    def load_dataframe(self, path: str, columns: Optional[List[str]] = None) -> pl.DataFrame:
        try:
            df = pl.read_json(path)
            if columns:
                df = df.select(columns)
            logger.debug(f"Loaded DataFrame with {len(df)} rows from {path}")
            return df
        except Exception as e:
            logger.error(f"Failed to load DataFrame from {path}: {e}")
            raise

    def save_dict(self, data: Dict[str, Any], path: str) -> None:
        try:
            _save_json(data, path)
            logger.debug(f"Saved dictionary data to {path}")
        except Exception as e:
            logger.error(f"Failed to save dictionary to {path}: {e}")
            raise

    def load_dict(self, path: str) -> Dict[str, Any]:
        try:
            return _load_json(path)
        except Exception as e:
            logger.error(f"Failed to load dictionary from {path}: {e}")
            raise
