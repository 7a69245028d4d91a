"""
Repository layout, root discovery and the HEAD pointer.

A repository is a directory holding ``.vibe/``. HEAD is a one-line
record of the current track and, optionally, the current checkpoint.
"""

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..models.snapshot import Head
from ..utils.logging import get_logger
from ..utils.errors import (
    NotInRepoError,
    RepoExistsError,
    InvalidHeadError,
    error_context,
)
from .graph import CheckpointGraph
from .ignore import REPO_DIR, DEFAULT_VIBEIGNORE, ignore_source

logger = get_logger(__name__)

DEFAULT_TRACK = "main"


@dataclass
class InitReport:
    """What ``Repository.init`` created."""
    root: Path
    ignore_file: Optional[str]
    created_vibeignore: bool


class Repository:
    """File layout of one repository.

    ::

        <root>/.vibe/
            vibe.db          tracks and checkpoints
            HEAD             "<track> [<checkpoint id>]"
            objects/<hash>   blobs
            snapshots/<id>.json
            watch.pid        background watcher marker
            logs/            watcher log
    """

    def __init__(self, root: Path, default_track: str = DEFAULT_TRACK):
        self.root = Path(root)
        self.default_track = default_track

    @property
    def vibe_dir(self) -> Path:
        return self.root / REPO_DIR

    @property
    def db_path(self) -> Path:
        return self.vibe_dir / "vibe.db"

    @property
    def head_path(self) -> Path:
        return self.vibe_dir / "HEAD"

    @property
    def objects_path(self) -> Path:
        return self.vibe_dir / "objects"

    @property
    def snapshots_path(self) -> Path:
        return self.vibe_dir / "snapshots"

    @property
    def pid_path(self) -> Path:
        return self.vibe_dir / "watch.pid"

    @property
    def logs_path(self) -> Path:
        return self.vibe_dir / "logs"

    @classmethod
    def find_root(cls, start: Optional[Path] = None) -> Path:
        """Nearest directory at or above ``start`` holding a ``.vibe`` directory."""
        current = Path(start or Path.cwd()).resolve()
        for candidate in (current, *current.parents):
            if (candidate / REPO_DIR).is_dir():
                return candidate
        raise NotInRepoError()

    @classmethod
    def discover(cls, start: Optional[Path] = None, default_track: str = DEFAULT_TRACK) -> 'Repository':
        return cls(cls.find_root(start), default_track)

    def read_head(self) -> Head:
        """Current HEAD; a missing HEAD file is recreated on the default track."""
        with error_context("repository", "read_head"):
            if not self.head_path.exists():
                logger.warning("head_missing_recreated", track=self.default_track)
                self.write_head(self.default_track)
                return Head(self.default_track)
            tokens = self.head_path.read_text(encoding="utf-8").split()

        if len(tokens) == 1:
            return Head(tokens[0])
        if len(tokens) == 2:
            return Head(tokens[0], tokens[1])
        raise InvalidHeadError()

    def write_head(self, track: str, checkpoint_id: Optional[str] = None) -> Head:
        head = Head(track, checkpoint_id)
        with error_context("repository", "write_head"):
            self.head_path.write_text(head.render(), encoding="utf-8")
        logger.debug("head_written", track=track, checkpoint_id=checkpoint_id)
        return head

    @classmethod
    async def init(cls, path: Optional[Path] = None, default_track: str = DEFAULT_TRACK) -> InitReport:
        """Create ``.vibe`` in ``path``

        Raises:
            RepoExistsError: if ``path`` already holds a repository
        """
        root = Path(path or Path.cwd()).resolve()
        repo = cls(root, default_track)
        if repo.vibe_dir.exists():
            raise RepoExistsError()

        with error_context("repository", "init", root=str(root)):
            repo.objects_path.mkdir(parents=True)
            repo.snapshots_path.mkdir()

            async with CheckpointGraph(repo.db_path) as graph:
                await graph.ensure_track(default_track)

            repo.write_head(default_track)

            created = False
            source = ignore_source(root)
            if source is None:
                (root / ".vibeignore").write_text(DEFAULT_VIBEIGNORE, encoding="utf-8")
                source = root / ".vibeignore"
                created = True

        logger.info("repository_initialized", root=str(root), ignore_file=source.name)
        return InitReport(root=root, ignore_file=source.name, created_vibeignore=created)

    @classmethod
    def reset(cls, path: Optional[Path] = None) -> bool:
        """Delete the ``.vibe`` directory; False when there is none."""
        root = Path(path or Path.cwd()).resolve()
        vibe_dir = root / REPO_DIR
        if not vibe_dir.exists():
            return False
        with error_context("repository", "reset", root=str(root)):
            shutil.rmtree(vibe_dir)
        logger.info("repository_reset", root=str(root))
        return True


__all__ = [
    "Repository",
    "InitReport",
    "DEFAULT_TRACK",
]
