"""
Track and checkpoint metadata for VibeSnap.

This module provides:
- The SQLite schema for tracks and checkpoints
- Checkpoint id generation
- Track head bookkeeping and time-based checkpoint lookup
"""

import hashlib
import sqlite3
import time
from pathlib import Path
from typing import Optional, List

from ..models.snapshot import Checkpoint, Track
from ..storage.database import Database
from ..utils.logging import get_logger
from ..utils.errors import (
    TrackExistsError,
    TrackNotFoundError,
    CheckpointNotFoundError,
    error_context,
)

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS tracks (
    name TEXT PRIMARY KEY,
    head TEXT
);

CREATE TABLE IF NOT EXISTS checkpoints (
    id TEXT PRIMARY KEY,
    track TEXT,
    parent TEXT,
    timestamp INTEGER,
    note TEXT,
    is_auto INTEGER DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_checkpoints_track_time ON checkpoints(track, timestamp);
"""

_CHECKPOINT_COLUMNS = "id, track, parent, timestamp, note, is_auto"


def generate_checkpoint_id(track: str, timestamp_ns: Optional[int] = None) -> str:
    """Derive a checkpoint id from the track name and a nanosecond timestamp.

    Returns the first six bytes of the SHA-256 digest as uppercase hex.
    """
    if timestamp_ns is None:
        timestamp_ns = time.time_ns()
    digest = hashlib.sha256(f"{track}{timestamp_ns}".encode("utf-8")).digest()
    return digest[:6].hex().upper()


class CheckpointGraph:
    """Tracks, checkpoints and their parent links."""

    def __init__(self, db_path: Path):
        self.db = Database(db_path)

    async def initialize(self) -> None:
        """Create tables if needed."""
        with error_context("checkpoint_graph", "initialize"):
            await self.db.executescript(SCHEMA)

    async def close(self) -> None:
        await self.db.close()

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # Tracks

    async def create_track(self, name: str, head: Optional[str] = None) -> Track:
        """Create a track whose head is ``head`` (may be None for an empty track)

        Raises:
            TrackExistsError: if the name is taken
            CheckpointNotFoundError: if ``head`` names an unknown checkpoint
        """
        with error_context("checkpoint_graph", "create_track", track=name):
            if await self.db.fetchone("SELECT 1 FROM tracks WHERE name = ?", (name,)):
                raise TrackExistsError(name)
            if head is not None:
                await self.get_checkpoint(head)
            try:
                await self.db.execute(
                    "INSERT INTO tracks(name, head) VALUES (?, ?)", (name, head)
                )
            except sqlite3.IntegrityError as e:
                raise TrackExistsError(name) from e

        logger.info("track_created", track=name, head=head)
        return Track(name=name, head=head)

    async def ensure_track(self, name: str) -> None:
        with error_context("checkpoint_graph", "ensure_track", track=name):
            await self.db.execute(
                "INSERT OR IGNORE INTO tracks(name, head) VALUES (?, NULL)", (name,)
            )

    async def track_head(self, name: str) -> Optional[str]:
        """Head checkpoint id of a track, None for an empty track.

        Raises:
            TrackNotFoundError: if there is no such track
        """
        with error_context("checkpoint_graph", "track_head", track=name):
            row = await self.db.fetchone("SELECT head FROM tracks WHERE name = ?", (name,))
        if row is None:
            raise TrackNotFoundError(name)
        return row[0]

    async def list_tracks(self) -> List[Track]:
        with error_context("checkpoint_graph", "list_tracks"):
            rows = await self.db.fetchall("SELECT name, head FROM tracks ORDER BY name")
        return [Track(name=name, head=head) for name, head in rows]

    # Checkpoints

    async def record_checkpoint(self, checkpoint: Checkpoint) -> Checkpoint:
        """Insert a checkpoint and make it the head of its track.

        Raises:
            CheckpointNotFoundError: if ``parent`` is set and not recorded
        """
        if checkpoint.parent is not None:
            await self.get_checkpoint(checkpoint.parent)

        with error_context("checkpoint_graph", "record_checkpoint", checkpoint_id=checkpoint.id):
            await self.db.execute(
                f"INSERT INTO checkpoints({_CHECKPOINT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    checkpoint.id,
                    checkpoint.track,
                    checkpoint.parent,
                    checkpoint.timestamp,
                    checkpoint.note,
                    int(checkpoint.is_auto),
                ),
            )
            await self.db.execute(
                "UPDATE tracks SET head = ? WHERE name = ?", (checkpoint.id, checkpoint.track)
            )

        logger.info(
            "checkpoint_recorded",
            checkpoint_id=checkpoint.id,
            track=checkpoint.track,
            parent=checkpoint.parent,
            is_auto=checkpoint.is_auto,
        )
        return checkpoint

    async def get_checkpoint(self, checkpoint_id: str) -> Checkpoint:
        with error_context("checkpoint_graph", "get_checkpoint", checkpoint_id=checkpoint_id):
            row = await self.db.fetchone(
                f"SELECT {_CHECKPOINT_COLUMNS} FROM checkpoints WHERE id = ?",
                (checkpoint_id,),
            )
        if row is None:
            raise CheckpointNotFoundError(f"Checkpoint not found: {checkpoint_id}")
        return Checkpoint.from_row(row)

    async def list_checkpoints(self, track: Optional[str] = None) -> List[Checkpoint]:
        """Checkpoints oldest first; rows sharing a timestamp keep insertion order."""
        sql = f"SELECT {_CHECKPOINT_COLUMNS} FROM checkpoints"
        params: tuple = ()
        if track is not None:
            sql += " WHERE track = ?"
            params = (track,)
        sql += " ORDER BY timestamp ASC, rowid ASC"

        with error_context("checkpoint_graph", "list_checkpoints", track=track):
            rows = await self.db.fetchall(sql, params)
        return [Checkpoint.from_row(row) for row in rows]

    async def find_at_or_before(self, track: str, timestamp: int) -> Checkpoint:
        """Most recent checkpoint on ``track`` no later than ``timestamp``"""
        with error_context("checkpoint_graph", "find_at_or_before", track=track):
            row = await self.db.fetchone(
                f"SELECT {_CHECKPOINT_COLUMNS} FROM checkpoints "
                "WHERE track = ? AND timestamp <= ? "
                "ORDER BY timestamp DESC, rowid DESC LIMIT 1",
                (track, timestamp),
            )
        if row is None:
            raise CheckpointNotFoundError(
                f"No checkpoint found on track '{track}' at or before the requested time"
            )
        return Checkpoint.from_row(row)

    async def find_after(self, track: str, timestamp: int) -> Checkpoint:
        """Earliest checkpoint on ``track`` strictly later than ``timestamp``"""
        with error_context("checkpoint_graph", "find_after", track=track):
            row = await self.db.fetchone(
                f"SELECT {_CHECKPOINT_COLUMNS} FROM checkpoints "
                "WHERE track = ? AND timestamp > ? "
                "ORDER BY timestamp ASC, rowid ASC LIMIT 1",
                (track, timestamp),
            )
        if row is None:
            raise CheckpointNotFoundError("Already at the latest checkpoint on this track")
        return Checkpoint.from_row(row)


__all__ = [
    "CheckpointGraph",
    "generate_checkpoint_id",
    "SCHEMA",
]
