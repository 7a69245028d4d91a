"""
Snapshot manager for VibeSnap.

Wires the object store, manifest builder, checkpoint graph, restore and
diff engines and the watcher for one repository root, and exposes every
user-facing operation on top of them.
"""

import asyncio
import signal
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Optional, List, Tuple, Union, Callable

from ..models.snapshot import (
    Checkpoint,
    Manifest,
    Head,
    Track,
    Outcome,
    RestoreReport,
    TimelineEntry,
)
from ..snapshot.diff import DiffEngine, DiffReport
from ..snapshot.graph import CheckpointGraph, generate_checkpoint_id
from ..snapshot.ignore import IgnoreFilter
from ..snapshot.manifest import ManifestBuilder
from ..snapshot.repository import Repository, InitReport
from ..snapshot.restore import RestoreEngine
from ..storage.objects import ObjectStore
from ..utils.config import VibeConfig, load_config
from ..utils.errors import (
    VibeSnapError,
    CheckpointNotFoundError,
    NotEnoughCheckpointsError,
    ManifestNotFoundError,
    ManifestDeserializationError,
)
from ..utils.logging import get_logger
from ..utils.validators import parse_duration, parse_time_of_day, validate_track_name
from ..watch.lock import WatchLock
from ..watch.watcher import AutoSnapshotWatcher, DEBOUNCE_SECONDS

logger = get_logger(__name__)

ProgressCallback = Callable[[str], None]


class SnapshotManager:
    """Every user-facing operation, scoped to one repository root.

    Use as an async context manager so the metadata database is opened
    and closed around the operations::

        async with SnapshotManager.open() as manager:
            outcome = await manager.snap(note="first")
    """

    def __init__(self, root: Path, config: Optional[VibeConfig] = None):
        self.config = config or load_config()
        self.repo = Repository(root, self.config.default_track)
        self.store = ObjectStore(self.repo.objects_path)
        self.ignore_filter = IgnoreFilter.from_root(self.repo.root)
        self.builder = ManifestBuilder(
            self.repo.root,
            self.store,
            self.repo.snapshots_path,
            self.ignore_filter,
        )
        self.graph = CheckpointGraph(self.repo.db_path)
        self.restorer = RestoreEngine(self.repo, self.store, self.builder)
        self.differ = DiffEngine(self.store)

    @classmethod
    def open(cls, start: Optional[Path] = None, config: Optional[VibeConfig] = None) -> 'SnapshotManager':
        """Manager for the repository containing ``start`` (default: cwd)."""
        return cls(Repository.find_root(start), config)

    @classmethod
    async def init(cls, path: Optional[Path] = None, config: Optional[VibeConfig] = None) -> InitReport:
        config = config or load_config()
        return await Repository.init(path, config.default_track)

    @classmethod
    def reset(cls, path: Optional[Path] = None) -> bool:
        return Repository.reset(path)

    async def initialize(self) -> None:
        await self.graph.initialize()

    async def close(self) -> None:
        await self.graph.close()

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @property
    def root(self) -> Path:
        return self.repo.root

    def head(self) -> Head:
        return self.repo.read_head()

    # Recording

    async def snap(
        self,
        paths: Optional[List[Union[str, Path]]] = None,
        note: str = "",
        files: Optional[List[Union[str, Path]]] = None,
        on_file: Optional[ProgressCallback] = None,
    ) -> Outcome[Checkpoint]:
        """Record a checkpoint of ``files`` if given, else ``paths`` (default: whole tree)."""
        head = self.repo.read_head()
        inputs = files if files else (paths or ["."])

        built = await self.builder.build(list(inputs), on_file=on_file)
        checkpoint = Checkpoint(
            id=generate_checkpoint_id(head.track, time.time_ns()),
            track=head.track,
            parent=head.checkpoint,
            timestamp=int(time.time()),
            note=note or self.config.format_auto_note(),
            is_auto=False,
        )

        await self.builder.save(checkpoint.id, built.value)
        await self.graph.record_checkpoint(checkpoint)
        self.repo.write_head(head.track, checkpoint.id)

        logger.info(
            "snapshot_created",
            checkpoint_id=checkpoint.id,
            track=checkpoint.track,
            files=len(built.value),
        )
        return Outcome(value=checkpoint, warnings=built.warnings)

    # Restoring and navigation

    async def restore(
        self,
        checkpoint_id: str,
        files: Optional[List[str]] = None,
        on_file: Optional[ProgressCallback] = None,
    ) -> Outcome[RestoreReport]:
        """Restore a recorded checkpoint; an unrecorded id is refused before any file is written."""
        await self.graph.get_checkpoint(checkpoint_id)
        return await self.restorer.restore(checkpoint_id, files, on_file)

    async def latest(self, on_file: Optional[ProgressCallback] = None) -> Optional[Outcome[RestoreReport]]:
        """Restore the head of the current track; None when the track is empty."""
        head = self.repo.read_head()
        track_head = await self.graph.track_head(head.track)
        if track_head is None:
            return None
        return await self.restore(track_head, on_file=on_file)

    async def rewind(
        self,
        duration: Optional[str] = None,
        to_time: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[Checkpoint, Outcome[RestoreReport]]:
        """Restore the latest checkpoint of the current track at or before a point in time.

        Args:
            duration: How far back from now, e.g. ``30m`` or ``1h30m``
            to_time: Local time of day today, ``HH:MM`` or ``HH:MM:SS``
        """
        now = now or datetime.now()
        if duration:
            target = int(now.timestamp()) - parse_duration(duration)
        elif to_time:
            target = parse_time_of_day(to_time, now)
        else:
            raise VibeSnapError("Either --duration or --to must be specified")

        head = self.repo.read_head()
        checkpoint = await self.graph.find_at_or_before(head.track, target)
        outcome = await self.restore(checkpoint.id)
        logger.info("rewound", checkpoint_id=checkpoint.id, target=target)
        return checkpoint, outcome

    async def fast_forward(self) -> Tuple[Checkpoint, Outcome[RestoreReport]]:
        """Restore the next checkpoint after HEAD on the current track."""
        head = self.repo.read_head()
        if head.checkpoint is None:
            raise CheckpointNotFoundError("No current checkpoint to fast-forward from")

        current = await self.graph.get_checkpoint(head.checkpoint)
        checkpoint = await self.graph.find_after(head.track, current.timestamp)
        outcome = await self.restore(checkpoint.id)
        logger.info("fast_forwarded", checkpoint_id=checkpoint.id, previous=current.id)
        return checkpoint, outcome

    # Tracks

    async def branch(self, name: str, from_id: Optional[str] = None) -> Track:
        """Create a track starting at ``from_id`` or the HEAD checkpoint."""
        validate_track_name(name)
        start = from_id or self.repo.read_head().checkpoint
        return await self.graph.create_track(name, start)

    async def switch(self, name: str, on_file: Optional[ProgressCallback] = None) -> Outcome[Head]:
        """Make ``name`` the current track, restoring its head if it has one."""
        track_head = await self.graph.track_head(name)
        if track_head is None:
            head = self.repo.write_head(name)
            logger.info("track_switched", track=name, checkpoint_id=None)
            return Outcome(value=head)

        restored = await self.restore(track_head, on_file=on_file)
        head = self.repo.write_head(name, track_head)
        logger.info("track_switched", track=name, checkpoint_id=track_head)
        return Outcome(value=head, warnings=restored.warnings)

    async def list_tracks(self) -> List[Track]:
        return await self.graph.list_tracks()

    # Queries

    async def list_checkpoints(
        self,
        track: Optional[str] = None,
        containing: Optional[str] = None,
    ) -> List[Checkpoint]:
        """Checkpoints oldest first, optionally only those whose manifest holds ``containing``"""
        checkpoints = await self.graph.list_checkpoints(track)
        if containing is None:
            return checkpoints

        wanted = Path(containing).as_posix()
        selected = []
        for checkpoint in checkpoints:
            try:
                manifest = await self.builder.load(checkpoint.id)
            except (ManifestNotFoundError, ManifestDeserializationError) as e:
                logger.warning("manifest_unreadable", checkpoint_id=checkpoint.id, error=str(e))
                continue
            if wanted in manifest:
                selected.append(checkpoint)
        return selected

    async def get_checkpoint(self, checkpoint_id: str) -> Checkpoint:
        return await self.graph.get_checkpoint(checkpoint_id)

    async def load_manifest(self, checkpoint_id: str) -> Manifest:
        return await self.builder.load(checkpoint_id)

    async def timeline(self, track: Optional[str] = None) -> List[TimelineEntry]:
        head = self.repo.read_head()
        checkpoints = await self.graph.list_checkpoints(track or head.track)
        return [
            TimelineEntry(checkpoint=c, is_current=c.id == head.checkpoint)
            for c in checkpoints
        ]

    async def graph_view(self, track: Optional[str] = None) -> List[Checkpoint]:
        """Checkpoints newest first, for drawing parent links."""
        checkpoints = await self.graph.list_checkpoints(track)
        return list(reversed(checkpoints))

    # Diff

    async def diff(self, id1: str, id2: str, path: Optional[str] = None) -> DiffReport:
        old = await self.builder.load(id1)
        new = await self.builder.load(id2)
        return await self.differ.diff(old, new, Path(path).as_posix() if path else None)

    async def diff_pair(self, id1: Optional[str] = None, id2: Optional[str] = None) -> Tuple[str, str]:
        """Explicit ids, or the two most recent checkpoints of the current track."""
        if id1 and id2:
            return id1, id2
        if id1 or id2:
            raise VibeSnapError("Provide both checkpoint ids or neither")

        checkpoints = await self.graph.list_checkpoints(self.repo.read_head().track)
        if len(checkpoints) < 2:
            raise NotEnoughCheckpointsError()
        return checkpoints[-2].id, checkpoints[-1].id

    # Watching

    def create_watcher(self, debounce: float = DEBOUNCE_SECONDS) -> AutoSnapshotWatcher:
        return AutoSnapshotWatcher(
            self.repo,
            self.builder,
            self.graph,
            self.ignore_filter,
            debounce=debounce,
        )

    async def watch(
        self,
        interval_minutes: Optional[float] = None,
        on_change: bool = False,
        watcher: Optional[AutoSnapshotWatcher] = None,
    ) -> None:
        """Run the auto-snapshot loop until SIGINT or SIGTERM.

        Holds the single-instance lock for the duration of the run.
        """
        watcher = watcher or self.create_watcher()
        minutes = interval_minutes or self.config.watch_interval_minutes

        lock = WatchLock(self.repo.pid_path)
        lock.acquire()

        task = asyncio.current_task()
        loop = asyncio.get_running_loop()
        signals = (signal.SIGTERM, signal.SIGINT)
        if sys.platform != "win32":
            for sig in signals:
                loop.add_signal_handler(sig, task.cancel)

        try:
            if on_change:
                await watcher.run_on_change()
            else:
                await watcher.run_interval(minutes)
        except asyncio.CancelledError:
            logger.info("watch_cancelled")
        finally:
            if sys.platform != "win32":
                for sig in signals:
                    loop.remove_signal_handler(sig)
            lock.release()


__all__ = ["SnapshotManager"]
