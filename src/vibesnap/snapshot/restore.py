"""
Writing a checkpoint's files back into the working tree.

Restores are detached: HEAD moves to the restored checkpoint on a full
restore, but no track head ever moves.
"""

from pathlib import Path
from typing import Optional, List, Callable
import aiofiles
import aiofiles.os

from ..models.snapshot import Outcome, RestoreReport
from ..storage.objects import ObjectStore
from ..utils.logging import get_logger
from ..utils.errors import StorageError
from .manifest import ManifestBuilder
from .repository import Repository

logger = get_logger(__name__)


class RestoreEngine:
    """Best-effort restore of a manifest into the working tree.

    Files are written one by one with no rollback. A failure on one file
    is reported as a warning and the rest are still written.
    """

    def __init__(self, repo: Repository, store: ObjectStore, manifests: ManifestBuilder):
        self.repo = repo
        self.store = store
        self.manifests = manifests

    async def restore(
        self,
        checkpoint_id: str,
        files: Optional[List[str]] = None,
        on_file: Optional[Callable[[str], None]] = None,
    ) -> Outcome[RestoreReport]:
        """Restore a checkpoint.

        Args:
            checkpoint_id: Checkpoint to restore
            files: Restore only these manifest paths. HEAD is left alone.
            on_file: Optional progress callback

        Returns:
            Outcome with the report and per-file warnings. HEAD moves to the
            checkpoint only on a full restore; track heads never move.
        """
        manifest = await self.manifests.load(checkpoint_id)
        report = RestoreReport(checkpoint_id=checkpoint_id, selective=files is not None)
        outcome: Outcome[RestoreReport] = Outcome(value=report)

        if files is not None:
            manifest, missing = manifest.select([Path(f).as_posix() for f in files])
            for path in missing:
                self._warn(outcome, f"File {path} not found in checkpoint {checkpoint_id}")
            if not len(manifest):
                report.aborted = True
                self._warn(outcome, "No valid files to restore")
                return outcome

        for path in manifest.paths():
            target = self.repo.root / path
            try:
                content = await self.store.get(manifest.files[path])
                await aiofiles.os.makedirs(target.parent, exist_ok=True)
                async with aiofiles.open(target, 'wb') as f:
                    await f.write(content)
            except (OSError, StorageError) as e:
                self._warn(outcome, f"Failed to restore {path}: {e}")
                continue

            report.restored.append(path)
            if on_file is not None:
                on_file(path)

        if not report.selective:
            head = self.repo.read_head()
            self.repo.write_head(head.track, checkpoint_id)
            report.head_updated = True

        logger.info(
            "checkpoint_restored",
            checkpoint_id=checkpoint_id,
            restored=len(report.restored),
            selective=report.selective,
            warnings=len(outcome.warnings),
        )
        return outcome

    def _warn(self, outcome: Outcome, message: str) -> None:
        logger.warning("restore_entry_skipped", detail=message)
        outcome.warn(message)


__all__ = ["RestoreEngine"]
