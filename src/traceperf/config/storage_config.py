"""
Storage configuration model and validation.

This module defines the StorageConfig dataclass which encapsulates the
storage-related options for recorded traces and correlation results: the
primary format, Parquet compression and whether the formatted statistics CSV
is written alongside.
"""

from dataclasses import dataclass
from typing import Any, Dict, Literal

SUPPORTED_FORMATS = ("parquet", "json")
SUPPORTED_COMPRESSIONS = ("snappy", "gzip", "brotli", "lz4", "zstd")


@dataclass
class StorageConfig:
    """
    Configuration model for data storage settings.

    Attributes:
        format: Primary storage format type
            - 'parquet': Columnar format with compression (recommended)
            - 'json': Human-readable rows, for small runs
        compression: Compression algorithm for Parquet format
            - 'snappy': Fast compression/decompression (default)
            - 'gzip': Higher compression ratio, slower
            - 'brotli': Very high compression ratio
            - 'lz4': Very fast compression
            - 'zstd': Modern balanced compression
        generate_legacy_formats: Also write the formatted statistics table
            as CSV (columns Test Name, Metric, Iterations, AVERAGE, STDEV.S,
            MIN, MAX)

    Note:
        Compression setting only applies to Parquet format.
    """

    format: Literal["parquet", "json"] = "parquet"
    compression: Literal["snappy", "gzip", "brotli", "lz4", "zstd"] = "snappy"
    generate_legacy_formats: bool = False

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "StorageConfig":
        """
        Create a StorageConfig instance from a dictionary.

        Raises:
            ValueError: If invalid configuration values are provided
        """
        format_type = config_dict.get("format", "parquet")
        compression = config_dict.get("compression", "snappy")
        generate_legacy = config_dict.get("generate_legacy_formats", False)

        if format_type not in SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported storage format: {format_type}")

        if format_type == "parquet" and compression not in SUPPORTED_COMPRESSIONS:
            raise ValueError(f"Unsupported compression algorithm: {compression}")

        if not isinstance(generate_legacy, bool):
            raise ValueError("generate_legacy_formats must be a boolean")

        return cls(
            format=format_type,
            compression=compression,
            generate_legacy_formats=generate_legacy,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format": self.format,
            "compression": self.compression,
            "generate_legacy_formats": self.generate_legacy_formats,
        }
