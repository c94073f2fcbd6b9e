"""
Command-line interface for labkit.
"""

from .main import cli

__all__ = ["cli"]
