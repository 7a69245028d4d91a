"""
Snapshot core: ignore rules, manifests, repository state, history graph,
restore and diff.
"""

from .ignore import IgnoreFilter, read_ignore_patterns, matches_pattern, is_ignored
from .manifest import ManifestBuilder
from .repository import Repository, InitReport
from .graph import CheckpointGraph, generate_checkpoint_id
from .restore import RestoreEngine
from .diff import DiffEngine, DiffReport, FileDiff, DiffLine

__all__ = [
    # Ignore rules
    "IgnoreFilter",
    "read_ignore_patterns",
    "matches_pattern",
    "is_ignored",

    # Manifests and repository state
    "ManifestBuilder",
    "Repository",
    "InitReport",

    # History
    "CheckpointGraph",
    "generate_checkpoint_id",

    # Restore and diff
    "RestoreEngine",
    "DiffEngine",
    "DiffReport",
    "FileDiff",
    "DiffLine",
]
