"""
Pytest configuration and shared fixtures for VibeSnap tests.
"""

import itertools
import pytest
from pathlib import Path
from typing import AsyncGenerator

from vibesnap.managers.snapshot import SnapshotManager
from vibesnap.snapshot.repository import Repository
from vibesnap.storage.objects import ObjectStore
from vibesnap.utils.config import VibeConfig


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch) -> Path:
    """Point the user configuration at a per-test file."""
    config_path = tmp_path / "home" / ".vibesnap" / "config.toml"
    monkeypatch.setenv("VIBESNAP_CONFIG", str(config_path))
    return config_path


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Working directory that is not a repository."""
    path = tmp_path / "work"
    path.mkdir()
    return path.resolve()


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    return path.resolve()


@pytest.fixture
async def repo_root(project_dir: Path) -> Path:
    """Initialised, empty repository."""
    await Repository.init(project_dir)
    return project_dir


@pytest.fixture
def repo(repo_root: Path) -> Repository:
    return Repository(repo_root)


@pytest.fixture
def object_store(tmp_path: Path) -> ObjectStore:
    return ObjectStore(tmp_path / "objects")


@pytest.fixture
async def manager(repo_root: Path) -> AsyncGenerator[SnapshotManager, None]:
    async with SnapshotManager.open(repo_root, VibeConfig(user="tester")) as m:
        yield m


@pytest.fixture
def write_file():
    """Write text under a root, creating parent directories."""
    def _write(root: Path, rel: str, content: str) -> Path:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path
    return _write


class FakeClock:
    """Stand-in for the ``time`` module with a manually advanced wall clock."""

    def __init__(self, start: int = 1_700_000_000):
        self.now = start
        self._ns = itertools.count(start * 1_000_000_000)

    def time(self) -> float:
        return float(self.now)

    def time_ns(self) -> int:
        return next(self._ns)

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock(monkeypatch) -> FakeClock:
    """Drive checkpoint timestamps recorded by SnapshotManager."""
    import vibesnap.managers.snapshot as snapshot_module

    fake = FakeClock()
    monkeypatch.setattr(snapshot_module, "time", fake)
    return fake
