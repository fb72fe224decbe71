"""
specconv.cli
============

Command-line entry points (``specconv convolve``, ``specconv gaussian``).
"""

from .main import main

__all__ = ["main"]
