"""Lock file shared by worker processes on one host.

The coordinator's threading.Lock only covers threads of a single process.
Workers that share a SQLite database also take a SubmissionLock, which
exists while its lock file exists. The file is created with
O_CREAT | O_EXCL so exactly one creator wins, and holds the owner's PID.
"""

import os
import threading
import time
import logging
from pathlib import Path
from contextlib import contextmanager
from typing import Optional

from ..errors import LockTimeout, SubmissionCancelled

logger = logging.getLogger(__name__)


class SubmissionLock:
    """Inter-process mutex for the submission critical section.

    Attributes:
        lock_path: Lock file location
        timeout: Default wait limit for acquire() (seconds)
        poll_interval: Sleep between creation attempts (seconds)
    """

    def __init__(
        self,
        lock_path: Path,
        timeout: float = 30.0,
        poll_interval: float = 0.05
    ):
        self.lock_path = Path(lock_path)
        self.timeout = timeout
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        self.poll_interval = poll_interval
        self._fd: Optional[int] = None

    @property
    def held(self) -> bool:
        """Whether this instance owns the lock file."""
        return self._fd is not None

    def _try_create(self) -> bool:
        try:
            fd = os.open(str(self.lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            return False

        os.write(fd, str(os.getpid()).encode())
        self._fd = fd
        return True

    def acquire(
        self,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> bool:
        """Block until the lock file is ours.

        Args:
            timeout: Wait limit in seconds (default: self.timeout)
            cancel_event: Stop waiting once this event is set

        Returns:
            True

        Raises:
            LockTimeout: The file still existed when the wait limit passed
            SubmissionCancelled: cancel_event was set during the wait
        """
        limit = self.timeout if timeout is None else timeout
        deadline = time.monotonic() + limit
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)

        while not self._try_create():
            if cancel_event is not None and cancel_event.is_set():
                raise SubmissionCancelled(f"Cancelled while waiting for {self.lock_path}")
            if time.monotonic() >= deadline:
                owner = self.owner_pid()
                raise LockTimeout(
                    f"{self.lock_path} still held (pid {owner}) after {limit} seconds"
                )
            time.sleep(self.poll_interval)

        logger.debug(f"Lock acquired: {self.lock_path}")
        return True

    def release(self):
        """Close and remove the lock file. No-op unless held."""
        if self._fd is None:
            return

        fd, self._fd = self._fd, None
        try:
            os.close(fd)
        except OSError as e:
            logger.warning(f"Could not close lock file descriptor: {e}")

        try:
            self.lock_path.unlink()
        except FileNotFoundError:
            logger.warning(f"Lock file vanished before release: {self.lock_path}")
        else:
            logger.debug(f"Lock released: {self.lock_path}")

    def owner_pid(self) -> Optional[int]:
        """PID recorded in the lock file, or None if absent or unreadable."""
        try:
            return int(self.lock_path.read_text().strip())
        except (OSError, ValueError):
            return None

    def is_locked(self) -> bool:
        """True while a lock file exists, whoever owns it (may be stale)."""
        return self.lock_path.exists()

    def force_unlock(self):
        """Delete a stale lock file left behind by a dead worker."""
        owner = self.owner_pid()
        try:
            self.lock_path.unlink()
        except FileNotFoundError:
            return
        logger.warning(f"Removed lock {self.lock_path} held by pid {owner}")

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False

    def __repr__(self) -> str:
        return f"SubmissionLock({self.lock_path}, held={self.held})"


@contextmanager
def submission_lock(lock_path: Path, timeout: float = 30.0):
    """Hold a SubmissionLock for the duration of a with-block.

    Usage:
        with submission_lock(data_dir / ".submit.lock"):
            ...

    Raises:
        LockTimeout: If the lock cannot be acquired
    """
    lock = SubmissionLock(lock_path, timeout=timeout)
    lock.acquire()
    try:
        yield lock
    finally:
        lock.release()
