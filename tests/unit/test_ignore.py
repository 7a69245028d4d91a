"""
Tests for ignore-pattern loading and matching.
"""

import pytest
from pathlib import Path

from vibesnap.snapshot.ignore import (
    IgnoreFilter,
    read_ignore_patterns,
    matches_pattern,
    is_ignored,
)


class TestMatchesPattern:
    """Test single pattern matching."""

    @pytest.mark.parametrize("path,expected", [
        ("build", True),
        ("build/sub/file.txt", True),
        ("mybuild/file.txt", False),
        ("buildx", False),
        ("src/build/file.txt", False),
    ])
    def test_directory_pattern(self, path, expected):
        assert matches_pattern(path, "build/") is expected

    @pytest.mark.parametrize("path,expected", [
        ("a.log", True),
        ("dir/b.log", True),
        ("a.logx", False),
        ("log", False),
    ])
    def test_suffix_wildcard(self, path, expected):
        assert matches_pattern(path, "*.log") is expected

    def test_prefix_and_middle_parts(self):
        assert matches_pattern("test_one.py", "test_*.py")
        assert not matches_pattern("one_test.py", "test_*.py")
        assert matches_pattern("a-mid-b", "a*mid*b")
        assert not matches_pattern("a-b", "a*mid*b")

    def test_parts_do_not_overlap(self):
        assert not matches_pattern("ab", "ab*b")
        assert matches_pattern("abb", "ab*b")

    def test_exact_match(self):
        assert matches_pattern(".DS_Store", ".DS_Store")
        assert not matches_pattern("sub/.DS_Store", ".DS_Store")


class TestIsIgnored:
    """Test reserved directories and pattern lists."""

    def test_reserved_directories_always_ignored(self):
        assert is_ignored(".vibe", [])
        assert is_ignored(".vibe/objects/abc", [])
        assert is_ignored(".git/HEAD", [])
        assert not is_ignored(".vibeignore", [])
        assert not is_ignored(".gitignore", [])

    def test_any_pattern_matches(self):
        patterns = ["node_modules/", "*.tmp"]
        assert is_ignored("node_modules/pkg/index.js", patterns)
        assert is_ignored("x.tmp", patterns)
        assert not is_ignored("src/main.py", patterns)


class TestReadIgnorePatterns:
    """Test ignore file selection and parsing."""

    def test_no_ignore_file(self, temp_dir: Path):
        assert read_ignore_patterns(temp_dir) == []

    def test_vibeignore_parsed(self, temp_dir: Path):
        (temp_dir / ".vibeignore").write_text("# comment\n\n  build/  \n*.log\n#*.tmp\n")
        assert read_ignore_patterns(temp_dir) == ["build/", "*.log"]

    def test_gitignore_takes_priority(self, temp_dir: Path):
        (temp_dir / ".vibeignore").write_text("*.log\n")
        (temp_dir / ".gitignore").write_text("dist/\n")
        assert read_ignore_patterns(temp_dir) == ["dist/"]


class TestIgnoreFilter:
    """Test root-aware filtering."""

    def test_absolute_and_relative_paths(self, temp_dir: Path):
        ignore = IgnoreFilter(temp_dir, ["*.log"])

        assert ignore.is_ignored(temp_dir / "app.log")
        assert ignore.is_ignored("app.log")
        assert not ignore.is_ignored(temp_dir / "app.py")

    def test_root_and_outside_paths_not_ignored(self, temp_dir: Path, tmp_path: Path):
        ignore = IgnoreFilter(temp_dir, ["*"])

        assert not ignore.is_ignored(temp_dir)
        assert not ignore.is_ignored(tmp_path / "elsewhere" / "file.txt")

    def test_tree_check_covers_ancestors(self, temp_dir: Path):
        ignore = IgnoreFilter(temp_dir, ["cache"])

        assert not ignore.is_ignored(temp_dir / "cache" / "entry.bin")
        assert ignore.is_ignored_tree(temp_dir / "cache" / "entry.bin")
        assert ignore.is_ignored_tree(temp_dir / ".vibe" / "HEAD")
        assert not ignore.is_ignored_tree(temp_dir / "src" / "entry.bin")

    def test_from_root(self, temp_dir: Path):
        (temp_dir / ".vibeignore").write_text("secret.txt\n")
        ignore = IgnoreFilter.from_root(temp_dir)

        assert ignore.patterns == ["secret.txt"]
        assert ignore.is_ignored(temp_dir / "secret.txt")
