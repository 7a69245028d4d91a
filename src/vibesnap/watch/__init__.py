"""
Background auto-snapshot watcher and its single-instance lock.
"""

from .lock import WatchLock, StopResult
from .watcher import AutoSnapshotWatcher, EventDebouncer, WatcherState

__all__ = [
    "WatchLock",
    "StopResult",
    "AutoSnapshotWatcher",
    "EventDebouncer",
    "WatcherState",
]
