"""
Per-iteration value aggregation and statistics reduction.
"""

from .aggregator import IterationAggregator
from .statistics import compute_statistics, summarize_metric_values

__all__ = [
    "IterationAggregator",
    "compute_statistics",
    "summarize_metric_values",
]
