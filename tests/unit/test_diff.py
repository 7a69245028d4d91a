"""
Tests for manifest and text diffs.
"""

import pytest

from vibesnap.models.snapshot import Manifest
from vibesnap.cli.display import unified_lines, side_by_side_lines
from vibesnap.snapshot.diff import DiffEngine, diff_text, split_lines, SEPARATOR


@pytest.fixture
def engine(object_store) -> DiffEngine:
    return DiffEngine(object_store)


async def manifest_of(store, files):
    return Manifest({path: await store.put(content.encode()) for path, content in files.items()})


class TestDiffText:
    """Test line tagging."""

    def test_tags_and_indexes(self):
        fd = diff_text("f.txt", "a\nb\nc\n", "a\nB\nc\nd\n")

        assert [(l.tag, l.text) for l in fd.lines] == [
            ("equal", "a"),
            ("delete", "b"),
            ("insert", "B"),
            ("equal", "c"),
            ("insert", "d"),
        ]
        assert fd.lines[1].old_index == 1 and fd.lines[1].new_index is None
        assert fd.lines[2].old_index is None and fd.lines[2].new_index == 1
        assert fd.added == 2 and fd.removed == 1

    def test_groups_limit_context(self):
        old = "\n".join(str(i) for i in range(30))
        new_lines = [str(i) for i in range(30)]
        new_lines[2] = "two"
        new_lines[25] = "twenty-five"

        fd = diff_text("n.txt", old, "\n".join(new_lines))

        assert len(fd.groups) == 2
        first_equal = [l for l in fd.groups[0] if l.tag == "equal"]
        assert len(first_equal) <= 2 * 3

    def test_render_unified(self):
        fd = diff_text("f.txt", "a\nb\n", "a\nc\n")

        assert [t.plain for t in unified_lines(fd)] == ["--- a/f.txt", "+++ b/f.txt", "  a", "- b", "+ c"]

    def test_render_side_by_side(self):
        old = "\n".join(str(i) for i in range(30))
        new = old.replace("3", "three", 1).replace("27", "x")

        lines = [t.plain for t in side_by_side_lines(diff_text("n.txt", old, new))]

        assert lines[0] == "Diff for n.txt"
        assert SEPARATOR in lines
        assert "   3 - 3" in lines
        assert "     + three" in lines

    def test_split_lines_keeps_endings(self):
        assert split_lines("a\nb\r\nc") == ["a\n", "b\r\n", "c"]
        assert split_lines("a\n") == ["a\n"]
        assert split_lines("") == []
        assert split_lines("x\fy\n") == ["x\fy\n"]

    def test_line_ending_change_is_a_change(self):
        fd = diff_text("f.txt", "a\nb\n", "a\r\nb\r\n")

        assert [l.tag for l in fd.lines] == ["delete", "delete", "insert", "insert"]
        assert [l.text for l in fd.lines] == ["a", "b", "a", "b"]

    def test_trailing_newline_change_is_a_change(self):
        fd = diff_text("f.txt", "a", "a\n")

        assert [l.tag for l in fd.lines] == ["delete", "insert"]
        assert fd.added == 1 and fd.removed == 1


class TestDiffEngine:
    """Test diffs between manifests."""

    @pytest.mark.asyncio
    async def test_identical_manifests(self, engine, object_store):
        m = await manifest_of(object_store, {"a.txt": "a", "b.txt": "b"})

        report = await engine.diff(m, Manifest(dict(m.files)))

        assert report.identical
        assert report.files == []

    @pytest.mark.asyncio
    async def test_changed_added_and_removed(self, engine, object_store):
        old = await manifest_of(object_store, {"same.txt": "s", "mod.txt": "1\n", "gone.txt": "g\n"})
        new = await manifest_of(object_store, {"same.txt": "s", "mod.txt": "2\n", "new.txt": "n\n"})

        report = await engine.diff(old, new)

        assert not report.identical
        assert report.paths == ["gone.txt", "mod.txt", "new.txt"]
        gone = report.files[0]
        assert [l.tag for l in gone.lines] == ["delete"]
        new_file = report.files[2]
        assert [l.tag for l in new_file.lines] == ["insert"]

    @pytest.mark.asyncio
    async def test_single_path(self, engine, object_store):
        old = await manifest_of(object_store, {"a.txt": "x\n", "b.txt": "1\n"})
        new = await manifest_of(object_store, {"a.txt": "x\n", "b.txt": "2\n"})

        assert (await engine.diff(old, new, "a.txt")).identical
        report = await engine.diff(old, new, "b.txt")
        assert report.paths == ["b.txt"]

    @pytest.mark.asyncio
    async def test_single_path_missing_on_one_side(self, engine, object_store):
        old = await manifest_of(object_store, {})
        new = await manifest_of(object_store, {"c.txt": "hello\n"})

        report = await engine.diff(old, new, "c.txt")

        assert [l.tag for l in report.files[0].lines] == ["insert"]
        assert (await engine.diff(old, old, "c.txt")).identical

    @pytest.mark.asyncio
    async def test_binary_content_decoded_leniently(self, engine, object_store):
        bad = await object_store.put(b"\xff\xfe\n")
        good = await object_store.put(b"ok\n")

        report = await engine.diff(Manifest({"bin": bad}), Manifest({"bin": good}))

        assert "�" in report.files[0].lines[0].text

    @pytest.mark.asyncio
    async def test_line_ending_only_change(self, engine, object_store):
        old = Manifest({"f.txt": await object_store.put(b"a\nb\n")})
        new = Manifest({"f.txt": await object_store.put(b"a\r\nb\r\n")})

        for report in (await engine.diff(old, new), await engine.diff(old, new, "f.txt")):
            assert not report.identical
            tags = [l.tag for l in report.files[0].lines]
            assert "delete" in tags and "insert" in tags
