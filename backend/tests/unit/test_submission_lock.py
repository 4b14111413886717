"""Unit tests for the inter-process submission lock."""

import os
import threading
import time

import pytest

from face_dedup.errors import LockTimeout, SubmissionCancelled
from face_dedup.storage import SubmissionLock, submission_lock


class TestSubmissionLock:
    """Tests for the file-based submission lock."""

    def test_lock_creation(self, tmp_path):
        """Test lock file creation."""
        lock_path = tmp_path / "test.lock"
        lock = SubmissionLock(lock_path, timeout=5.0)

        assert not lock.is_locked()
        assert not lock.held

        lock.acquire()
        assert lock.is_locked()
        assert lock.held
        assert lock_path.read_text() == str(os.getpid())

        lock.release()
        assert not lock.is_locked()
        assert not lock.held

    def test_lock_context_manager(self, tmp_path):
        """Test lock as context manager."""
        lock_path = tmp_path / "test.lock"

        with SubmissionLock(lock_path):
            assert lock_path.exists()

        assert not lock_path.exists()

    def test_creates_parent_directory(self, tmp_path):
        """Test missing lock directories are created."""
        lock_path = tmp_path / "nested" / "dir" / "test.lock"

        with SubmissionLock(lock_path):
            assert lock_path.exists()

    def test_lock_timeout(self, tmp_path):
        """Test second holder times out."""
        lock_path = tmp_path / "test.lock"
        lock1 = SubmissionLock(lock_path, timeout=0.3)
        lock1.acquire()

        lock2 = SubmissionLock(lock_path, timeout=0.3, poll_interval=0.02)
        start = time.monotonic()
        with pytest.raises(LockTimeout):
            lock2.acquire()

        assert time.monotonic() - start >= 0.3
        assert not lock2.held

        lock1.release()

    def test_timeout_override(self, tmp_path):
        """Test per-call timeout overrides the default."""
        lock_path = tmp_path / "test.lock"
        holder = SubmissionLock(lock_path)
        holder.acquire()

        waiter = SubmissionLock(lock_path, timeout=60.0, poll_interval=0.01)
        with pytest.raises(LockTimeout):
            waiter.acquire(timeout=0.05)

        holder.release()

    def test_cancel_while_waiting(self, tmp_path):
        """Test a set cancel event abandons the wait."""
        lock_path = tmp_path / "test.lock"
        holder = SubmissionLock(lock_path)
        holder.acquire()

        cancel = threading.Event()
        cancel.set()
        waiter = SubmissionLock(lock_path, timeout=5.0, poll_interval=0.01)

        with pytest.raises(SubmissionCancelled):
            waiter.acquire(cancel_event=cancel)

        assert lock_path.exists()
        holder.release()

    def test_waiter_acquires_after_release(self, tmp_path):
        """Test a waiting holder gets the lock once it is released."""
        lock_path = tmp_path / "test.lock"
        holder = SubmissionLock(lock_path)
        holder.acquire()

        acquired = threading.Event()

        def wait_for_lock():
            with SubmissionLock(lock_path, timeout=5.0, poll_interval=0.01):
                acquired.set()

        thread = threading.Thread(target=wait_for_lock)
        thread.start()

        time.sleep(0.1)
        assert not acquired.is_set()

        holder.release()
        thread.join(timeout=5.0)
        assert acquired.is_set()

    def test_release_without_acquire(self, tmp_path):
        """Test release is a no-op when not held."""
        lock_path = tmp_path / "test.lock"
        lock_path.write_text("other")

        SubmissionLock(lock_path).release()

        assert lock_path.exists()

    def test_force_unlock(self, tmp_path):
        """Test removing a stale lock."""
        lock_path = tmp_path / "test.lock"
        lock_path.write_text("12345")

        lock = SubmissionLock(lock_path, timeout=0.1)
        lock.force_unlock()

        assert not lock.is_locked()
        lock.acquire()
        lock.release()

    def test_owner_pid(self, tmp_path):
        """Test the recorded owner PID is readable, and None when unknown."""
        lock_path = tmp_path / "test.lock"
        lock = SubmissionLock(lock_path)

        assert lock.owner_pid() is None
        with lock:
            assert lock.owner_pid() == os.getpid()

        lock_path.write_text("garbage")
        assert lock.owner_pid() is None

    def test_submission_lock_helper(self, tmp_path):
        """Test submission_lock helper function."""
        lock_path = tmp_path / ".submit.lock"

        with submission_lock(lock_path) as lock:
            assert lock.held
            assert lock_path.exists()

        assert not lock_path.exists()

    def test_helper_releases_on_error(self, tmp_path):
        """Test the helper releases the lock when the body raises."""
        lock_path = tmp_path / ".submit.lock"

        with pytest.raises(RuntimeError):
            with submission_lock(lock_path):
                raise RuntimeError("boom")

        assert not lock_path.exists()

    def test_rejects_non_positive_poll_interval(self, tmp_path):
        """Test a zero or negative poll interval is refused up front."""
        with pytest.raises(ValueError):
            SubmissionLock(tmp_path / "test.lock", poll_interval=0)
        with pytest.raises(ValueError):
            SubmissionLock(tmp_path / "test.lock", poll_interval=-1)
