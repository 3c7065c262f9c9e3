"""CLI interface for StargatePortal.

This module provides the ``stargate`` command-line interface.
"""

from .main import app

__all__ = [
    "app",
]
