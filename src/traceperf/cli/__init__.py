"""
Command-line interface for the traceperf package.

This module provides the main CLI entry point for the analysis application.
"""

from .main import main_cli

__all__ = [
    "main_cli",
]
