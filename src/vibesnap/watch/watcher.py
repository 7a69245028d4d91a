"""
Automatic snapshots on a timer or on file changes.

Change events arrive on the watchdog observer thread, are handed to the
event loop and debounced into batches; each accepted batch produces one
automatic checkpoint.
"""

import asyncio
import os
import time
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, List, Set
from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler, FileSystemEvent

from ..models.snapshot import Checkpoint
from ..snapshot.graph import CheckpointGraph, generate_checkpoint_id
from ..snapshot.ignore import IgnoreFilter
from ..snapshot.manifest import ManifestBuilder
from ..snapshot.repository import Repository
from ..utils.logging import get_logger
from ..utils.errors import WatcherError

logger = get_logger(__name__)

DEBOUNCE_SECONDS = 2.0
TIME_BASED = "Time-based"
FILE_SAVE = "File save"

# Event types that mean content changed; open/close notifications are ignored
CHANGE_EVENTS = {"created", "modified", "deleted", "moved"}


class WatcherState(Enum):
    IDLE = "idle"
    ARMED = "armed"
    TRIGGERED = "triggered"
    ERROR = "error"


class EventDebouncer:
    """Coalesces paths into batches separated by a quiet window.

    Every new path restarts the timer; when it fires, all pending paths
    go onto ``queue`` as one sorted batch. Must be used from the event
    loop thread.
    """

    def __init__(self, window: float = DEBOUNCE_SECONDS, queue: Optional[asyncio.Queue] = None):
        self.window = window
        self.queue: asyncio.Queue = queue if queue is not None else asyncio.Queue()
        self._pending: Set[str] = set()
        self._timer: Optional[asyncio.TimerHandle] = None

    def push(self, path: str) -> None:
        self._pending.add(path)
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().call_later(self.window, self._flush)

    def _flush(self) -> None:
        self._timer = None
        if not self._pending:
            return
        batch = sorted(self._pending)
        self._pending.clear()
        self.queue.put_nowait(batch)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending.clear()


class _ChangeHandler(FileSystemEventHandler):
    """Forwards watchdog events from the observer thread to the event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop, watcher: 'AutoSnapshotWatcher'):
        self.loop = loop
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in CHANGE_EVENTS:
            return
        paths = [event.src_path]
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.append(dest)
        for path in paths:
            self.loop.call_soon_threadsafe(self.watcher.notify, os.fsdecode(path))


class AutoSnapshotWatcher:
    """Records automatic checkpoints for one repository.

    Interval mode snapshots every N minutes unconditionally. Change mode
    snapshots once per burst of file changes, after a quiet window, and
    only if some changed path is not ignored.
    """

    def __init__(
        self,
        repo: Repository,
        builder: ManifestBuilder,
        graph: CheckpointGraph,
        ignore_filter: Optional[IgnoreFilter] = None,
        debounce: float = DEBOUNCE_SECONDS,
    ):
        self.repo = repo
        self.builder = builder
        self.graph = graph
        self.ignore_filter = ignore_filter or builder.ignore_filter
        self.debouncer = EventDebouncer(window=debounce)
        self.state = WatcherState.IDLE
        self.created_count = 0
        self.last_checkpoint: Optional[Checkpoint] = None

    @property
    def queue(self) -> asyncio.Queue:
        return self.debouncer.queue

    def notify(self, path: str) -> None:
        """Feed one raw changed path (event loop thread only)."""
        self.debouncer.push(path)

    def filter_batch(self, batch: List[str]) -> List[str]:
        """Changed paths that should cause a snapshot."""
        root = self.repo.root
        kept = []
        for raw in batch:
            path = Path(raw)
            if not path.is_absolute():
                path = root / path
            if path == root:
                continue
            if self.ignore_filter.is_ignored_tree(path):
                continue
            kept.append(raw)
        return kept

    async def create_auto_checkpoint(self, kind: str) -> Optional[Checkpoint]:
        """Snapshot the whole tree; None when there is nothing to record."""
        outcome = await self.builder.build(["."])
        manifest = outcome.value
        if not len(manifest):
            logger.info("auto_snapshot_skipped", reason="empty_manifest", kind=kind)
            return None

        head = self.repo.read_head()
        checkpoint = Checkpoint(
            id=generate_checkpoint_id(head.track, time.time_ns()),
            track=head.track,
            parent=head.checkpoint,
            timestamp=int(time.time()),
            note=f"{kind} at {datetime.now().strftime('%H:%M:%S')}",
            is_auto=True,
        )

        await self.builder.save(checkpoint.id, manifest)
        await self.graph.record_checkpoint(checkpoint)
        self.repo.write_head(head.track, checkpoint.id)

        self.created_count += 1
        self.last_checkpoint = checkpoint
        logger.info(
            "auto_snapshot_created",
            checkpoint_id=checkpoint.id,
            kind=kind,
            files=len(manifest),
            warnings=len(outcome.warnings),
        )
        return checkpoint

    async def _trigger(self, kind: str) -> Optional[Checkpoint]:
        self.state = WatcherState.TRIGGERED
        try:
            return await self.create_auto_checkpoint(kind)
        except Exception as e:
            logger.error("auto_snapshot_failed", kind=kind, error=str(e), exc_info=True)
            return None
        finally:
            self.state = WatcherState.ARMED

    async def run_interval(self, minutes: float, max_triggers: Optional[int] = None) -> None:
        """Snapshot every ``minutes`` until cancelled or ``max_triggers`` is reached."""
        logger.info("watch_started", mode="interval", minutes=minutes)
        self.state = WatcherState.ARMED
        triggers = 0
        try:
            while max_triggers is None or triggers < max_triggers:
                await asyncio.sleep(minutes * 60)
                await self._trigger(TIME_BASED)
                triggers += 1
        finally:
            self.state = WatcherState.IDLE
            logger.info("watch_stopped", mode="interval", triggers=triggers, created=self.created_count)

    async def run_on_change(self, max_batches: Optional[int] = None, observe: bool = True) -> None:
        """Snapshot after each debounced burst of changes.

        Args:
            max_batches: Stop after this many batches (dropped ones included)
            observe: Start a recursive watchdog observer on the root. When
                False, paths only arrive through ``notify``.
        """
        observer = None
        if observe:
            observer = Observer()
            observer.schedule(
                _ChangeHandler(asyncio.get_running_loop(), self),
                str(self.repo.root),
                recursive=True,
            )
            try:
                observer.start()
            except OSError as e:
                self.state = WatcherState.ERROR
                raise WatcherError(f"Could not watch {self.repo.root}: {e}", cause=e) from e

        logger.info("watch_started", mode="on_change", root=str(self.repo.root))
        self.state = WatcherState.ARMED
        batches = 0
        try:
            while max_batches is None or batches < max_batches:
                try:
                    batch = await asyncio.wait_for(self.queue.get(), timeout=1.0)
                except asyncio.TimeoutError:
                    if observer is not None and not observer.is_alive():
                        self.state = WatcherState.ERROR
                        raise WatcherError("File watcher stopped unexpectedly")
                    continue

                batches += 1
                changed = self.filter_batch(batch)
                if not changed:
                    logger.debug("change_batch_dropped", events=len(batch))
                    continue

                logger.debug("change_batch_accepted", events=len(batch), changed=len(changed))
                await self._trigger(FILE_SAVE)
        finally:
            self.debouncer.cancel()
            if observer is not None:
                observer.stop()
                observer.join()
            if self.state is not WatcherState.ERROR:
                self.state = WatcherState.IDLE
            logger.info("watch_stopped", mode="on_change", batches=batches, created=self.created_count)


__all__ = [
    "AutoSnapshotWatcher",
    "EventDebouncer",
    "WatcherState",
    "DEBOUNCE_SECONDS",
    "TIME_BASED",
    "FILE_SAVE",
]
