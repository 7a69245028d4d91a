"""Single-instance guard for the background watcher."""

import os
from enum import Enum
from pathlib import Path
from typing import Optional
import psutil

from ..utils.logging import get_logger
from ..utils.errors import WatcherError, WatcherAlreadyRunningError, error_context

logger = get_logger(__name__)


class StopResult(Enum):
    """What ``WatchLock.stop`` found."""
    NOT_RUNNING = "not_running"
    STALE = "stale"
    STOPPED = "stopped"


def read_pid(pid_file: Path) -> Optional[int]:
    """PID recorded in the marker, or None when absent or unparsable."""
    try:
        return int(Path(pid_file).read_text(encoding="utf-8").strip())
    except FileNotFoundError:
        return None
    except ValueError:
        logger.warning("watch_pid_unparsable", path=str(pid_file))
        return None


def is_running(pid: int) -> bool:
    try:
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return psutil.pid_exists(pid)


class WatchLock:
    """PID marker file allowing one watcher per repository.

    A marker left by a dead process is stale and gets overwritten.
    """

    def __init__(self, pid_file: Path, pid: Optional[int] = None):
        self.pid_file = Path(pid_file)
        self.pid = pid or os.getpid()
        self.acquired = False

    def acquire(self) -> None:
        """Record our pid.

        Raises:
            WatcherAlreadyRunningError: if the recorded process is alive
        """
        existing = read_pid(self.pid_file)
        if existing is not None and existing != self.pid and is_running(existing):
            raise WatcherAlreadyRunningError(existing)
        if existing is not None and existing != self.pid:
            logger.info("stale_watch_lock_replaced", old_pid=existing)

        with error_context("watch_lock", "acquire", pid=self.pid):
            self.pid_file.parent.mkdir(parents=True, exist_ok=True)
            self.pid_file.write_text(str(self.pid), encoding="utf-8")
        self.acquired = True
        logger.debug("watch_lock_acquired", pid=self.pid)

    def release(self) -> None:
        """Remove the marker if it still records our pid."""
        if read_pid(self.pid_file) == self.pid:
            with error_context("watch_lock", "release", pid=self.pid):
                self.pid_file.unlink(missing_ok=True)
            logger.debug("watch_lock_released", pid=self.pid)
        self.acquired = False

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()

    @staticmethod
    def stop(pid_file: Path, timeout: float = 5.0) -> StopResult:
        """Terminate the watcher recorded in ``pid_file`` and remove the marker."""
        pid_file = Path(pid_file)
        if not pid_file.exists():
            return StopResult.NOT_RUNNING

        pid = read_pid(pid_file)
        if pid is None or not is_running(pid):
            pid_file.unlink(missing_ok=True)
            logger.info("stale_watch_lock_removed", pid=pid)
            return StopResult.STALE

        try:
            proc = psutil.Process(pid)
            proc.terminate()
            proc.wait(timeout=timeout)
        except psutil.NoSuchProcess:
            logger.debug("watcher_already_exited", pid=pid)
        except psutil.AccessDenied as e:
            raise WatcherError(f"Not permitted to stop watcher process {pid}", cause=e) from e
        except psutil.TimeoutExpired:
            logger.warning("watch_stop_timeout", pid=pid)

        pid_file.unlink(missing_ok=True)
        logger.info("watcher_stopped", pid=pid)
        return StopResult.STOPPED


__all__ = [
    "WatchLock",
    "StopResult",
    "read_pid",
    "is_running",
]
