"""Ignore-pattern loading and matching."""

from pathlib import Path, PurePosixPath
from typing import List, Optional, Union

from ..utils.logging import get_logger

logger = get_logger(__name__)

REPO_DIR = ".vibe"
# Directories that are never captured, whatever the ignore file says
RESERVED_DIRS = (REPO_DIR, ".git")

IGNORE_FILES = (".gitignore", ".vibeignore")

DEFAULT_VIBEIGNORE = """\
# VibeSnap ignore patterns
# One pattern per line. A trailing / matches a directory, * is a wildcard.

# Dependencies and build output
node_modules/
vendor/
target/
dist/
build/

# Compiled files
*.o
*.exe
*.dll
*.so

# Logs and temporary files
*.log
*.tmp
*.temp

# OS files
.DS_Store
Thumbs.db

# Editors
.vscode/
.idea/
*.swp
*.swo
*~

# VibeSnap metadata
.vibe/
"""


def ignore_source(root: Path) -> Optional[Path]:
    """Ignore file in effect for ``root``, if any."""
    for name in IGNORE_FILES:
        candidate = Path(root) / name
        if candidate.exists():
            return candidate
    return None


def read_ignore_patterns(root: Path) -> List[str]:
    """Patterns from ``.gitignore`` if present, else ``.vibeignore``."""
    source = ignore_source(root)
    if source is None:
        return []

    patterns = []
    for line in source.read_text(encoding="utf-8", errors="replace").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            patterns.append(line)

    logger.debug("ignore_patterns_loaded", source=source.name, count=len(patterns))
    return patterns


def _matches_wildcard(text: str, pattern: str) -> bool:
    # Greedy left-to-right scan; no backtracking, so some multi-* patterns
    # with repeated literals can miss a match.
    parts = pattern.split("*")
    if len(parts) == 1:
        return text == pattern

    first, last = parts[0], parts[-1]
    if not text.startswith(first):
        return False
    pos = len(first)

    for part in parts[1:-1]:
        found = text.find(part, pos)
        if found < 0:
            return False
        pos = found + len(part)

    return text[pos:].endswith(last)


def matches_pattern(path: str, pattern: str) -> bool:
    """Match one root-relative posix path against one pattern."""
    if pattern.endswith("/"):
        directory = pattern[:-1]
        return path == directory or path.startswith(directory + "/")

    if "*" in pattern:
        return _matches_wildcard(path, pattern)

    return path == pattern


def is_ignored(path: str, patterns: List[str]) -> bool:
    """Whether a root-relative posix path is excluded."""
    first = path.split("/", 1)[0]
    if first in RESERVED_DIRS:
        return True
    return any(matches_pattern(path, pattern) for pattern in patterns)


class IgnoreFilter:
    """Ignore decisions for one repository root."""

    def __init__(self, root: Path, patterns: Optional[List[str]] = None):
        self.root = Path(root)
        self.patterns = list(patterns or [])

    @classmethod
    def from_root(cls, root: Path) -> 'IgnoreFilter':
        return cls(root, read_ignore_patterns(root))

    def relative(self, path: Union[str, Path]) -> Optional[str]:
        """Root-relative posix form of ``path``; None when it lies outside the root."""
        path = Path(path)
        if not path.is_absolute():
            return PurePosixPath(path.as_posix()).as_posix()
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return None

    def is_ignored(self, path: Union[str, Path]) -> bool:
        rel = self.relative(path)
        if rel is None or rel == ".":
            return False
        return is_ignored(rel, self.patterns)

    def is_ignored_tree(self, path: Union[str, Path]) -> bool:
        """Like ``is_ignored`` but also true when any parent directory is ignored."""
        rel = self.relative(path)
        if rel is None or rel == ".":
            return False
        parts = rel.split("/")
        for i in range(1, len(parts) + 1):
            if is_ignored("/".join(parts[:i]), self.patterns):
                return True
        return False


__all__ = [
    "IgnoreFilter",
    "read_ignore_patterns",
    "matches_pattern",
    "is_ignored",
    "ignore_source",
    "DEFAULT_VIBEIGNORE",
    "RESERVED_DIRS",
    "REPO_DIR",
]
