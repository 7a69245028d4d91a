"""
VibeSnap - snapshot-style local version control.

Captures point-in-time snapshots of a working directory into named tracks,
stores file content once in a content-addressed object store, and restores,
diffs or navigates snapshots by time.
"""

__version__ = "0.1.0"
__author__ = "VibeSnap Contributors"

__all__ = ["__version__"]
