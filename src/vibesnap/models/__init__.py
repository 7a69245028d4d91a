"""
Data models for VibeSnap.
"""

from .snapshot import (
    Manifest,
    Checkpoint,
    Track,
    Head,
    Outcome,
    RestoreReport,
    TimelineEntry,
)

__all__ = [
    "Manifest",
    "Checkpoint",
    "Track",
    "Head",
    "Outcome",
    "RestoreReport",
    "TimelineEntry",
]
