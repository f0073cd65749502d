"""
Dependency Cutoff Tool

Check that the versions locked in package-lock.json were published before a
given date, and recommend downgrades for those that were not.
"""

__version__ = "0.1.0"

from .cli import main

__all__ = ["main"]
