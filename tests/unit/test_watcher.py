"""
Tests for the auto-snapshot watcher and its single-instance lock.
"""

import asyncio
import os
import subprocess
import sys
import pytest

import vibesnap.watch.lock as lock_module
from vibesnap.utils.errors import WatcherAlreadyRunningError
from vibesnap.watch.lock import WatchLock, StopResult, read_pid, is_running
from vibesnap.watch.watcher import EventDebouncer, WatcherState, TIME_BASED, FILE_SAVE


class TestEventDebouncer:

    @pytest.mark.asyncio
    async def test_burst_becomes_one_sorted_batch(self):
        debouncer = EventDebouncer(window=0.05)

        for path in ["b.txt", "a.txt", "b.txt", "c.txt", "a.txt"]:
            debouncer.push(path)

        batch = await asyncio.wait_for(debouncer.queue.get(), timeout=2)
        assert batch == ["a.txt", "b.txt", "c.txt"]
        assert debouncer.queue.empty()

    @pytest.mark.asyncio
    async def test_separate_bursts(self):
        debouncer = EventDebouncer(window=0.05)

        debouncer.push("one")
        first = await asyncio.wait_for(debouncer.queue.get(), timeout=2)
        debouncer.push("two")
        second = await asyncio.wait_for(debouncer.queue.get(), timeout=2)

        assert (first, second) == (["one"], ["two"])

    @pytest.mark.asyncio
    async def test_cancel_drops_pending(self):
        debouncer = EventDebouncer(window=0.05)
        debouncer.push("x")
        debouncer.cancel()

        await asyncio.sleep(0.15)

        assert debouncer.queue.empty()


class TestAutoSnapshotWatcher:

    @pytest.fixture
    def watcher(self, manager):
        return manager.create_watcher(debounce=0.05)

    @pytest.mark.asyncio
    async def test_filter_batch(self, watcher, repo_root):
        batch = [
            str(repo_root),
            str(repo_root / ".vibe" / "vibe.db"),
            str(repo_root / "node_modules" / "pkg" / "index.js"),
            str(repo_root / "debug.log"),
            str(repo_root / "src" / "app.py"),
            "notes.md",
        ]

        assert watcher.filter_batch(batch) == [str(repo_root / "src" / "app.py"), "notes.md"]

    @pytest.mark.asyncio
    async def test_auto_checkpoint(self, manager, watcher, repo_root, write_file):
        write_file(repo_root, "a.txt", "a")
        manual = (await manager.snap(note="manual")).value

        checkpoint = await watcher.create_auto_checkpoint(TIME_BASED)

        assert checkpoint.is_auto
        assert checkpoint.parent == manual.id
        assert checkpoint.note.startswith("Time-based at ")
        assert manager.head().checkpoint == checkpoint.id
        assert await manager.graph.track_head("main") == checkpoint.id
        assert "a.txt" in await manager.load_manifest(checkpoint.id)
        assert watcher.last_checkpoint == checkpoint

    @pytest.mark.asyncio
    async def test_empty_tree_is_skipped(self, manager, watcher, repo_root):
        (repo_root / ".vibeignore").unlink()

        assert await watcher.create_auto_checkpoint(TIME_BASED) is None
        assert watcher.created_count == 0
        assert await manager.list_checkpoints() == []

    @pytest.mark.asyncio
    async def test_rapid_changes_give_one_checkpoint(self, manager, watcher, repo_root, write_file):
        write_file(repo_root, "a.txt", "a")
        task = asyncio.create_task(watcher.run_on_change(max_batches=1, observe=False))

        for _ in range(5):
            watcher.notify(str(repo_root / "a.txt"))
            await asyncio.sleep(0.01)
        await asyncio.wait_for(task, timeout=5)

        checkpoints = await manager.list_checkpoints()
        assert len(checkpoints) == 1
        assert checkpoints[0].is_auto
        assert checkpoints[0].note.startswith(f"{FILE_SAVE} at ")
        assert watcher.created_count == 1
        assert watcher.last_checkpoint == checkpoints[0]
        assert watcher.state is WatcherState.IDLE

    @pytest.mark.asyncio
    async def test_ignored_changes_are_dropped(self, manager, watcher, repo_root):
        task = asyncio.create_task(watcher.run_on_change(max_batches=1, observe=False))

        watcher.notify(str(repo_root / "build" / "out.o"))
        watcher.notify(str(repo_root / ".vibe" / "HEAD"))
        await asyncio.wait_for(task, timeout=5)

        assert await manager.list_checkpoints() == []

    @pytest.mark.asyncio
    async def test_interval_mode(self, manager, watcher):
        await asyncio.wait_for(watcher.run_interval(0.001, max_triggers=1), timeout=5)

        checkpoints = await manager.list_checkpoints()
        assert len(checkpoints) == 1
        assert checkpoints[0].note.startswith(f"{TIME_BASED} at ")

    @pytest.mark.asyncio
    async def test_failed_trigger_keeps_running(self, watcher, monkeypatch):
        async def boom(kind):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(watcher, "create_auto_checkpoint", boom)

        await asyncio.wait_for(watcher.run_interval(0.001, max_triggers=2), timeout=5)

        assert watcher.state is WatcherState.IDLE
        assert watcher.created_count == 0
        assert watcher.last_checkpoint is None

    @pytest.mark.asyncio
    @pytest.mark.slow
    async def test_observer_sees_file_writes(self, manager, watcher, repo_root, write_file):
        task = asyncio.create_task(watcher.run_on_change(max_batches=1))
        await asyncio.sleep(0.5)

        write_file(repo_root, "saved.txt", "content")
        await asyncio.wait_for(task, timeout=10)

        checkpoints = await manager.list_checkpoints()
        assert len(checkpoints) == 1
        assert "saved.txt" in await manager.load_manifest(checkpoints[0].id)


class TestWatchLock:

    def test_acquire_and_release(self, tmp_path):
        pid_file = tmp_path / "watch.pid"

        with WatchLock(pid_file) as lock:
            assert lock.acquired
            assert read_pid(pid_file) == os.getpid()

        assert not pid_file.exists()

    def test_second_instance_refused(self, tmp_path):
        pid_file = tmp_path / "watch.pid"
        WatchLock(pid_file).acquire()

        with pytest.raises(WatcherAlreadyRunningError):
            WatchLock(pid_file, pid=os.getpid() + 100000).acquire()

    def test_stale_marker_is_replaced(self, tmp_path, monkeypatch):
        pid_file = tmp_path / "watch.pid"
        pid_file.write_text("424242")
        monkeypatch.setattr(lock_module, "is_running", lambda pid: False)

        WatchLock(pid_file).acquire()

        assert read_pid(pid_file) == os.getpid()

    def test_release_leaves_foreign_marker(self, tmp_path):
        pid_file = tmp_path / "watch.pid"
        lock = WatchLock(pid_file)
        lock.acquire()
        pid_file.write_text("12345")

        lock.release()

        assert pid_file.exists()

    def test_read_pid_garbage(self, tmp_path):
        pid_file = tmp_path / "watch.pid"
        pid_file.write_text("not a pid")

        assert read_pid(pid_file) is None
        assert read_pid(tmp_path / "missing.pid") is None

    def test_is_running_self(self):
        assert is_running(os.getpid())

    def test_stop_not_running(self, tmp_path):
        assert WatchLock.stop(tmp_path / "watch.pid") is StopResult.NOT_RUNNING

    def test_stop_stale(self, tmp_path, monkeypatch):
        pid_file = tmp_path / "watch.pid"
        pid_file.write_text("424242")
        monkeypatch.setattr(lock_module, "is_running", lambda pid: False)

        assert WatchLock.stop(pid_file) is StopResult.STALE
        assert not pid_file.exists()

    @pytest.mark.slow
    def test_stop_live_process(self, tmp_path):
        pid_file = tmp_path / "watch.pid"
        proc = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
        try:
            pid_file.write_text(str(proc.pid))

            assert WatchLock.stop(pid_file) is StopResult.STOPPED
            assert not pid_file.exists()
        finally:
            if proc.poll() is None:
                proc.kill()
