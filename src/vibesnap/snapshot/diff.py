"""
Line diffs between two manifests.

Texts are split on ``\\n`` only and lines are compared with their endings,
so a change of line terminator or of the final newline shows up as a
deleted and an inserted line. Endings are stripped only in ``DiffLine.text``.
"""

import difflib
from dataclasses import dataclass, field
from typing import Optional, List

from ..models.snapshot import Manifest
from ..storage.objects import ObjectStore
from ..utils.logging import get_logger
from ..utils.errors import ObjectNotFoundError

logger = get_logger(__name__)

CONTEXT_LINES = 3
SEPARATOR = "-" * 80


@dataclass(frozen=True)
class DiffLine:
    """One line of a diff; indexes are 0-based and None on the side lacking the line."""
    tag: str  # "equal", "delete" or "insert"
    old_index: Optional[int]
    new_index: Optional[int]
    text: str

    @property
    def sign(self) -> str:
        return {"delete": "-", "insert": "+"}.get(self.tag, " ")


@dataclass
class FileDiff:
    """Differences for one path."""
    path: str
    lines: List[DiffLine] = field(default_factory=list)
    groups: List[List[DiffLine]] = field(default_factory=list)

    @property
    def added(self) -> int:
        return sum(1 for line in self.lines if line.tag == "insert")

    @property
    def removed(self) -> int:
        return sum(1 for line in self.lines if line.tag == "delete")


@dataclass
class DiffReport:
    identical: bool
    files: List[FileDiff] = field(default_factory=list)

    @property
    def paths(self) -> List[str]:
        return [f.path for f in self.files]


def split_lines(text: str) -> List[str]:
    """Split on ``\\n`` keeping each terminator; a final unterminated line is kept as is."""
    lines = [line + "\n" for line in text.split("\n")]
    last = lines.pop()[:-1]
    if last:
        lines.append(last)
    return lines


def _strip_ending(line: str) -> str:
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


def _expand(opcodes, old: List[str], new: List[str]) -> List[DiffLine]:
    lines = []
    for tag, i1, i2, j1, j2 in opcodes:
        if tag == "equal":
            for offset in range(i2 - i1):
                lines.append(DiffLine("equal", i1 + offset, j1 + offset, _strip_ending(old[i1 + offset])))
            continue
        # A replace is reported as its deletions followed by its insertions
        if tag in ("delete", "replace"):
            for i in range(i1, i2):
                lines.append(DiffLine("delete", i, None, _strip_ending(old[i])))
        if tag in ("insert", "replace"):
            for j in range(j1, j2):
                lines.append(DiffLine("insert", None, j, _strip_ending(new[j])))
    return lines


def diff_text(path: str, old_text: str, new_text: str, context: int = CONTEXT_LINES) -> FileDiff:
    """Tag every line of two texts as equal, deleted or inserted.

    Matching uses ``difflib.SequenceMatcher`` with autojunk disabled. It
    finds longest matching blocks rather than a minimal edit script, so
    some edits come out longer than strictly necessary.
    """
    old = split_lines(old_text)
    new = split_lines(new_text)
    matcher = difflib.SequenceMatcher(None, old, new, autojunk=False)
    return FileDiff(
        path=path,
        lines=_expand(matcher.get_opcodes(), old, new),
        groups=[_expand(group, old, new) for group in matcher.get_grouped_opcodes(context)],
    )


class DiffEngine:
    """Compares manifests using blob content from the object store."""

    def __init__(self, store: ObjectStore, context: int = CONTEXT_LINES):
        self.store = store
        self.context = context

    async def read_text(self, content_hash: Optional[str]) -> str:
        """Decode a blob leniently; a missing entry reads as empty."""
        if content_hash is None:
            return ""
        try:
            data = await self.store.get(content_hash)
        except ObjectNotFoundError:
            logger.warning("diff_object_missing", hash=content_hash)
            return ""
        return data.decode("utf-8", errors="replace")

    async def diff(self, old: Manifest, new: Manifest, path: Optional[str] = None) -> DiffReport:
        """Diff two manifests, or one path within them."""
        if path is not None:
            old_text = await self.read_text(old.get(path))
            new_text = await self.read_text(new.get(path))
            if old_text == new_text:
                return DiffReport(identical=True)
            return DiffReport(
                identical=False,
                files=[diff_text(path, old_text, new_text, self.context)],
            )

        files = []
        for key in sorted(set(old.files) | set(new.files)):
            old_hash = old.get(key)
            new_hash = new.get(key)
            if old_hash == new_hash:
                continue
            files.append(diff_text(
                key,
                await self.read_text(old_hash),
                await self.read_text(new_hash),
                self.context,
            ))

        logger.debug("manifests_diffed", changed=len(files))
        return DiffReport(identical=not files, files=files)


__all__ = [
    "DiffEngine",
    "DiffReport",
    "FileDiff",
    "DiffLine",
    "diff_text",
    "split_lines",
    "CONTEXT_LINES",
]
