"""
Managers package for VibeSnap.
"""

from .snapshot import SnapshotManager

__all__ = [
    'SnapshotManager',
]
