"""
Attribution of counter samples to processes and modules.
"""

from .resolver import SampleAttributionResolver

__all__ = ["SampleAttributionResolver"]
