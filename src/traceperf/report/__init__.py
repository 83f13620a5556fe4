"""
Report writers for statistics and metric values.
"""

from .writers import (
    NOT_AVAILABLE,
    STATISTICS_HEADERS,
    UNATTRIBUTED_LABEL,
    dataframe_to_statistics,
    format_number,
    metric_values_to_dataframe,
    render_markdown_table,
    statistics_to_dataframe,
    write_markdown_table,
    write_statistics_csv,
)

__all__ = [
    "NOT_AVAILABLE",
    "STATISTICS_HEADERS",
    "UNATTRIBUTED_LABEL",
    "dataframe_to_statistics",
    "format_number",
    "metric_values_to_dataframe",
    "render_markdown_table",
    "statistics_to_dataframe",
    "write_markdown_table",
    "write_statistics_csv",
]
