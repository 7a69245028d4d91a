"""
Manifest building, persistence and loading.

A manifest maps repository-relative posix paths to blob hashes. One
manifest is written per checkpoint under ``snapshots/<id>.json`` and is
never rewritten.
"""

import json
import os
from pathlib import Path
from typing import Optional, List, Dict, Callable, Union
import aiofiles
import aiofiles.os

from ..models.snapshot import Manifest, Outcome
from ..storage.objects import ObjectStore
from ..utils.logging import get_logger
from ..utils.errors import (
    ManifestNotFoundError,
    ManifestExistsError,
    ManifestSerializationError,
    ManifestDeserializationError,
    StorageError,
    error_context,
)
from .ignore import IgnoreFilter

logger = get_logger(__name__)

# Called with the manifest path of every stored file
FileCallback = Callable[[str], None]


class ManifestBuilder:
    """Builds manifests from the working tree and persists them per checkpoint.

    Building is best effort: an input or entry that cannot be resolved,
    read or stored is reported as a warning and skipped.
    """

    def __init__(
        self,
        root: Path,
        store: ObjectStore,
        snapshots_path: Path,
        ignore_filter: Optional[IgnoreFilter] = None,
    ):
        self.root = Path(root)
        self.store = store
        self.snapshots_path = Path(snapshots_path)
        self.ignore_filter = ignore_filter or IgnoreFilter.from_root(self.root)

    def manifest_path(self, checkpoint_id: str) -> Path:
        return self.snapshots_path / f"{checkpoint_id}.json"

    async def build(
        self,
        inputs: Optional[List[Union[str, Path]]] = None,
        on_file: Optional[FileCallback] = None,
    ) -> Outcome[Manifest]:
        """Store every non-ignored file under ``inputs`` and map it to its hash.

        Args:
            inputs: Files or directories, absolute or relative to the root.
                Defaults to the whole tree.
            on_file: Optional progress callback

        Returns:
            Outcome carrying the manifest and one warning per skipped item
        """
        files: Dict[str, str] = {}
        outcome: Outcome[Manifest] = Outcome(value=Manifest())

        for raw in inputs or ["."]:
            candidate = Path(raw)
            if not candidate.is_absolute():
                candidate = self.root / candidate

            try:
                source = candidate.resolve(strict=True)
            except (OSError, RuntimeError):
                self._warn(outcome, f"Path {candidate} could not be resolved (missing or broken link), skipped")
                continue

            if self.ignore_filter.is_ignored(source):
                self._warn(outcome, f"Ignored: {source} (matches ignore pattern)")
                continue

            try:
                storage_rel = source.relative_to(self.root).as_posix()
            except ValueError:
                storage_rel = source.name
            if storage_rel == ".":
                storage_rel = ""

            if source.is_dir():
                await self._build_directory(source, storage_rel, files, outcome, on_file)
            elif source.is_file():
                await self._store_file(source, storage_rel, files, outcome, on_file)
            else:
                self._warn(outcome, f"{source} is not a regular file or directory, skipped")

        outcome.value = Manifest(files)
        logger.info(
            "manifest_built",
            files=len(files),
            warnings=len(outcome.warnings),
        )
        return outcome

    async def _build_directory(
        self,
        source: Path,
        storage_rel: str,
        files: Dict[str, str],
        outcome: Outcome,
        on_file: Optional[FileCallback],
    ) -> None:
        def on_walk_error(error: OSError) -> None:
            self._warn(outcome, f"Error walking directory {source}: {error}, skipped entry")

        for dirpath, dirnames, filenames in os.walk(source, onerror=on_walk_error):
            current = Path(dirpath)
            # Prune ignored directories so their contents are never visited
            dirnames[:] = sorted(
                name for name in dirnames
                if not self.ignore_filter.is_ignored(current / name)
            )
            for name in sorted(filenames):
                entry = current / name
                if self.ignore_filter.is_ignored(entry):
                    continue
                rel = entry.relative_to(source).as_posix()
                manifest_key = f"{storage_rel}/{rel}" if storage_rel else rel
                await self._store_file(entry, manifest_key, files, outcome, on_file)

    async def _store_file(
        self,
        path: Path,
        manifest_key: str,
        files: Dict[str, str],
        outcome: Outcome,
        on_file: Optional[FileCallback],
    ) -> None:
        try:
            async with aiofiles.open(path, 'rb') as f:
                content = await f.read()
        except OSError as e:
            self._warn(outcome, f"Failed to read {path}: {e}, skipped")
            return

        try:
            content_hash = await self.store.put(content)
        except StorageError as e:
            self._warn(outcome, f"Failed to store {path}: {e}, skipped")
            return

        files[manifest_key] = content_hash
        if on_file is not None:
            on_file(manifest_key)

    def _warn(self, outcome: Outcome, message: str) -> None:
        logger.warning("manifest_entry_skipped", detail=message)
        outcome.warn(message)

    async def save(self, checkpoint_id: str, manifest: Manifest) -> Path:
        """Write ``snapshots/<id>.json``.

        Manifests are write-once.

        Raises:
            ManifestExistsError: a manifest is already recorded under the id
        """
        try:
            content = json.dumps(manifest.to_dict(), indent=2, sort_keys=True)
        except (TypeError, ValueError) as e:
            raise ManifestSerializationError(str(e)) from e

        path = self.manifest_path(checkpoint_id)
        with error_context("manifest_builder", "save", checkpoint_id=checkpoint_id):
            await aiofiles.os.makedirs(self.snapshots_path, exist_ok=True)
            try:
                async with aiofiles.open(path, 'x', encoding='utf-8') as f:
                    await f.write(content)
            except FileExistsError as e:
                raise ManifestExistsError(checkpoint_id) from e

        logger.debug("manifest_saved", checkpoint_id=checkpoint_id, files=len(manifest))
        return path

    async def load(self, checkpoint_id: str) -> Manifest:
        """Read the manifest recorded for a checkpoint.

        Raises:
            ManifestNotFoundError: no record for the checkpoint
            ManifestDeserializationError: the record is malformed
        """
        path = self.manifest_path(checkpoint_id)
        if not await aiofiles.os.path.exists(path):
            raise ManifestNotFoundError(checkpoint_id)

        with error_context("manifest_builder", "load", checkpoint_id=checkpoint_id):
            async with aiofiles.open(path, 'r', encoding='utf-8') as f:
                content = await f.read()

        try:
            return Manifest.from_dict(json.loads(content))
        except (ValueError, KeyError, TypeError) as e:
            raise ManifestDeserializationError(str(e)) from e


__all__ = [
    "ManifestBuilder",
    "FileCallback",
]
