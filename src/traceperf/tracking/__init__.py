"""
Process and module state tracking.
"""

from .interval_index import IntervalIndex
from .process_tracker import ProcessTracker

__all__ = [
    "IntervalIndex",
    "ProcessTracker",
]
