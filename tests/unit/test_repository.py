"""
Tests for repository layout, root discovery and HEAD handling.
"""

import pytest
from pathlib import Path

from vibesnap.models.snapshot import Head
from vibesnap.snapshot.graph import CheckpointGraph
from vibesnap.snapshot.ignore import DEFAULT_VIBEIGNORE
from vibesnap.snapshot.repository import Repository
from vibesnap.utils.errors import NotInRepoError, RepoExistsError, InvalidHeadError


class TestRepositoryInit:
    """Test repository creation."""

    @pytest.mark.asyncio
    async def test_init_creates_layout(self, project_dir: Path):
        report = await Repository.init(project_dir)
        repo = Repository(project_dir)

        assert report.root == project_dir
        assert repo.objects_path.is_dir()
        assert repo.snapshots_path.is_dir()
        assert repo.db_path.exists()
        assert repo.head_path.read_text() == "main\n"

        async with CheckpointGraph(repo.db_path) as graph:
            assert await graph.track_head("main") is None

    @pytest.mark.asyncio
    async def test_init_writes_default_vibeignore(self, project_dir: Path):
        report = await Repository.init(project_dir)

        assert report.created_vibeignore
        assert report.ignore_file == ".vibeignore"
        assert (project_dir / ".vibeignore").read_text() == DEFAULT_VIBEIGNORE

    @pytest.mark.asyncio
    async def test_init_keeps_existing_gitignore(self, project_dir: Path):
        (project_dir / ".gitignore").write_text("dist/\n")

        report = await Repository.init(project_dir)

        assert not report.created_vibeignore
        assert report.ignore_file == ".gitignore"
        assert not (project_dir / ".vibeignore").exists()

    @pytest.mark.asyncio
    async def test_init_custom_default_track(self, project_dir: Path):
        await Repository.init(project_dir, default_track="trunk")
        assert Repository(project_dir).read_head() == Head("trunk")

    @pytest.mark.asyncio
    async def test_init_twice_fails(self, repo_root: Path):
        with pytest.raises(RepoExistsError):
            await Repository.init(repo_root)


class TestFindRoot:
    """Test upward root discovery."""

    @pytest.mark.asyncio
    async def test_finds_root_from_subdirectory(self, repo_root: Path):
        nested = repo_root / "a" / "b"
        nested.mkdir(parents=True)

        assert Repository.find_root(nested) == repo_root

    def test_not_in_repo(self, temp_dir: Path):
        with pytest.raises(NotInRepoError):
            Repository.find_root(temp_dir)


class TestHead:
    """Test the HEAD record."""

    @pytest.mark.asyncio
    async def test_write_and_read(self, repo: Repository):
        repo.write_head("main", "ABCDEF123456")
        assert repo.head_path.read_text() == "main ABCDEF123456\n"
        assert repo.read_head() == Head("main", "ABCDEF123456")

        repo.write_head("feature")
        assert repo.read_head() == Head("feature", None)

    @pytest.mark.asyncio
    async def test_missing_head_is_recreated(self, repo: Repository):
        repo.head_path.unlink()

        assert repo.read_head() == Head("main", None)
        assert repo.head_path.read_text() == "main\n"

    @pytest.mark.parametrize("content", ["", "   \n", "main ABC extra\n"])
    @pytest.mark.asyncio
    async def test_invalid_head(self, repo: Repository, content: str):
        repo.head_path.write_text(content)
        with pytest.raises(InvalidHeadError):
            repo.read_head()


class TestReset:
    """Test repository removal."""

    @pytest.mark.asyncio
    async def test_reset_removes_vibe_dir(self, repo_root: Path):
        assert Repository.reset(repo_root) is True
        assert not (repo_root / ".vibe").exists()

    def test_reset_without_repo(self, temp_dir: Path):
        assert Repository.reset(temp_dir) is False
