"""
Statistics reducer.

A pure function from metric value rows to one statistics row per
(test, metric) group: count, mean, sample standard deviation, min and max.
The standard deviation is undefined (None) for a single value.
"""

from typing import Iterable, List

import polars as pl

from ..models.results import MetricValueRow, StatisticsRow
from ..report.writers import STATISTICS_SCHEMA, dataframe_to_statistics, metric_values_to_dataframe

GROUP_KEYS = ["test_name", "metric_name"]


def summarize_metric_values(df: pl.DataFrame) -> pl.DataFrame:
    """
    Reduce a metric values frame to a statistics frame.

    Groups are sorted by (test, metric); the sort is stable so ties keep the
    order in which groups were first seen. ``std_dev`` is null for a group
    with a single value.
    """
    value = pl.col("value")
    return (
        df.group_by(GROUP_KEYS, maintain_order=True)
        .agg(
            value.count().cast(pl.Int64).alias("count"),
            value.mean().alias("mean"),
            value.std(ddof=1).alias("std_dev"),
            value.min().alias("minimum"),
            value.max().alias("maximum"),
        )
        # Mean clamped into [min, max] against rounding.
        .with_columns(pl.min_horizontal(pl.max_horizontal("mean", "minimum"), "maximum").alias("mean"))
        .sort(GROUP_KEYS, maintain_order=True)
        .select(list(STATISTICS_SCHEMA))
    )


def compute_statistics(rows: Iterable[MetricValueRow]) -> List[StatisticsRow]:
    """Compute statistics rows ordered by (test name, metric name)."""
    df = metric_values_to_dataframe(rows)
    if df.is_empty():
        return []
    return dataframe_to_statistics(summarize_metric_values(df))
