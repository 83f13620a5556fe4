"""
Report writers for correlation results.

Statistics are rendered as a Markdown table with the columns

    Test Name | Metric | Iterations | AVERAGE | STDEV.S | MIN | MAX

and as CSV through polars. Numbers use three decimals, or scientific notation
with three decimals above 99999. An undefined standard deviation (a single
iteration) is shown as ``N/A``.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

import polars as pl

from ..models.results import MetricValueRow, StatisticsRow

logger = logging.getLogger(__name__)

STATISTICS_HEADERS = ["Test Name", "Metric", "Iterations", "AVERAGE", "STDEV.S", "MIN", "MAX"]
# Markdown alignment row: names left, iteration count centered, numbers right.
_ALIGNMENTS = [":---", ":---", ":---:", "---:", "---:", "---:", "---:"]

NOT_AVAILABLE = "N/A"
UNATTRIBUTED_LABEL = "Unattributed counter samples"

STATISTICS_SCHEMA = {
    "test_name": pl.Utf8,
    "metric_name": pl.Utf8,
    "count": pl.Int64,
    "mean": pl.Float64,
    "std_dev": pl.Float64,
    "minimum": pl.Float64,
    "maximum": pl.Float64,
}

METRIC_VALUES_SCHEMA = {
    "test_name": pl.Utf8,
    "metric_name": pl.Utf8,
    "iteration": pl.Int64,
    "value": pl.Float64,
}


def format_number(value: Optional[float]) -> str:
    if value is None:
        return NOT_AVAILABLE
    if value > 99999:
        return f"{value:.3E}"
    return f"{value:.3f}"


def statistics_to_dataframe(statistics: Iterable[StatisticsRow]) -> pl.DataFrame:
    """Statistics rows as a DataFrame; an undefined deviation becomes null."""
    return pl.DataFrame([row.to_dict() for row in statistics], schema=STATISTICS_SCHEMA)


def metric_values_to_dataframe(values: Iterable[MetricValueRow]) -> pl.DataFrame:
    return pl.DataFrame([row.to_dict() for row in values], schema=METRIC_VALUES_SCHEMA)


def dataframe_to_statistics(df: pl.DataFrame) -> List[StatisticsRow]:
    return [StatisticsRow(**row) for row in df.iter_rows(named=True)]


def _escape_cell(text: str) -> str:
    return text.replace("|", "\\|")


def statistics_table_rows(
    statistics: Iterable[StatisticsRow],
    metric_labels: Optional[Mapping[str, str]] = None,
) -> List[List[str]]:
    """Formatted cell values, one list per statistics row."""
    labels = metric_labels or {}
    return [
        [
            row.test_name,
            labels.get(row.metric_name, row.metric_name),
            str(row.count),
            format_number(row.mean),
            format_number(row.std_dev),
            format_number(row.minimum),
            format_number(row.maximum),
        ]
        for row in statistics
    ]


def render_markdown_table(
    statistics: Sequence[StatisticsRow],
    metric_labels: Optional[Mapping[str, str]] = None,
    unattributed_samples: Optional[int] = None,
) -> str:
    """
    Render statistics as a Markdown table.

    Args:
        statistics: Rows in report order
        metric_labels: Optional metric name to display name mapping
        unattributed_samples: When given, the number of counter samples no
            module claimed, reported in a line under the table

    Returns:
        The table, one line per row, ending with a newline
    """
    rows = [[_escape_cell(cell) for cell in cells] for cells in statistics_table_rows(statistics, metric_labels)]

    widths = [len(header) for header in STATISTICS_HEADERS]
    for cells in rows:
        widths = [max(width, len(cell)) for width, cell in zip(widths, cells)]

    def format_line(cells: List[str]) -> str:
        padded = [
            cell.rjust(width) if alignment.endswith(":") and not alignment.startswith(":")
            else cell.ljust(width)
            for cell, width, alignment in zip(cells, widths, _ALIGNMENTS)
        ]
        return "| " + " | ".join(padded) + " |"

    separator = "|" + "|".join(
        _alignment_cell(alignment, width + 2) for alignment, width in zip(_ALIGNMENTS, widths)
    ) + "|"

    lines = [format_line(STATISTICS_HEADERS), separator]
    lines.extend(format_line(cells) for cells in rows)
    if unattributed_samples is not None:
        lines.extend(["", f"{UNATTRIBUTED_LABEL}: {unattributed_samples}"])
    return "\n".join(lines) + "\n"


def _alignment_cell(alignment: str, width: int) -> str:
    left = alignment.startswith(":")
    right = alignment.endswith(":")
    dashes = width - int(left) - int(right)
    return (":" if left else "") + "-" * dashes + (":" if right else "")


def write_markdown_table(
    statistics: Sequence[StatisticsRow],
    path: Union[str, Path],
    metric_labels: Optional[Mapping[str, str]] = None,
    unattributed_samples: Optional[int] = None,
) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_markdown_table(statistics, metric_labels, unattributed_samples), encoding="utf-8")
    logger.info(f"Wrote Markdown statistics table to {path}")
    return path


def write_statistics_csv(
    statistics: Sequence[StatisticsRow],
    path: Union[str, Path],
    metric_labels: Optional[Mapping[str, str]] = None,
) -> Path:
    """
    Write statistics as CSV with the report headers and formatted numbers.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    cells = statistics_table_rows(statistics, metric_labels)
    columns: Dict[str, List[str]] = {
        header: [row[i] for row in cells] for i, header in enumerate(STATISTICS_HEADERS)
    }
    pl.DataFrame(columns, schema={header: pl.Utf8 for header in STATISTICS_HEADERS}).write_csv(path)
    logger.info(f"Wrote statistics CSV to {path}")
    return path
