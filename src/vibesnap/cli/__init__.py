"""
Command line interface for VibeSnap.
"""

from .main import cli, main

__all__ = [
    "cli",
    "main",
]
