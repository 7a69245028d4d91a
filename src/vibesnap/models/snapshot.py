"""
Data model for snapshots, checkpoints and tracks.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Optional, Dict, Any, List, Mapping, Generic, TypeVar, Tuple


T = TypeVar("T")


@dataclass(frozen=True)
class Manifest:
    """Immutable mapping of repository-relative posix path to blob hash."""
    files: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "files", MappingProxyType(dict(self.files)))

    def __len__(self) -> int:
        return len(self.files)

    def __contains__(self, path: object) -> bool:
        return path in self.files

    def get(self, path: str) -> Optional[str]:
        return self.files.get(path)

    def paths(self) -> List[str]:
        return sorted(self.files)

    def select(self, paths: List[str]) -> Tuple["Manifest", List[str]]:
        """Split into the manifest restricted to ``paths`` and the paths it lacks."""
        selected = {}
        missing = []
        for path in paths:
            if path in self.files:
                selected[path] = self.files[path]
            else:
                missing.append(path)
        return Manifest(selected), missing

    def to_dict(self) -> Dict[str, Any]:
        return {"files": dict(self.files)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Manifest':
        files = data["files"]
        if not isinstance(files, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in files.items()
        ):
            raise ValueError("'files' must map path strings to hash strings")
        return cls(files=files)


@dataclass(frozen=True)
class Checkpoint:
    """A recorded snapshot event."""
    id: str
    track: str
    parent: Optional[str]
    timestamp: int
    note: str
    is_auto: bool = False

    @classmethod
    def from_row(cls, row: Tuple) -> 'Checkpoint':
        """Build from an ``(id, track, parent, timestamp, note, is_auto)`` row."""
        id_, track, parent, timestamp, note, is_auto = row
        return cls(
            id=id_,
            track=track,
            parent=parent,
            timestamp=int(timestamp),
            note=note or "",
            is_auto=bool(is_auto),
        )


@dataclass
class Track:
    """Named line of history; ``head`` moves as checkpoints are recorded."""
    name: str
    head: Optional[str] = None


@dataclass(frozen=True)
class Head:
    """Repository-wide pointer to the current track and restored checkpoint."""
    track: str
    checkpoint: Optional[str] = None

    def render(self) -> str:
        if self.checkpoint:
            return f"{self.track} {self.checkpoint}\n"
        return f"{self.track}\n"


@dataclass
class Outcome(Generic[T]):
    """Result of a best-effort operation: a value plus the per-item warnings."""
    value: T
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings

    def warn(self, message: str) -> None:
        self.warnings.append(message)


@dataclass
class RestoreReport:
    """What a restore wrote to the working tree."""
    checkpoint_id: str
    restored: List[str] = field(default_factory=list)
    selective: bool = False
    aborted: bool = False
    head_updated: bool = False


@dataclass(frozen=True)
class TimelineEntry:
    """Checkpoint as shown on a track's timeline."""
    checkpoint: Checkpoint
    is_current: bool


__all__ = [
    "Manifest",
    "Checkpoint",
    "Track",
    "Head",
    "Outcome",
    "RestoreReport",
    "TimelineEntry",
]
