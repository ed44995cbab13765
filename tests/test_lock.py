"""Tests for host-scoped locks."""

from pathlib import Path

import pytest

from bridge.exceptions import BridgeError, LockError, LockTimeoutError
from bridge.lock import POLL_INTERVAL, HostLock, acquire_lock, lock_path


class TestLockPath:
    """Tests for lock file naming."""

    def test_format(self, tmp_path):
        assert lock_path("dev-box", "kernel", tmp_path) == tmp_path / "bridge-dev-box-kernel.lock"

    def test_default_directory(self):
        path = lock_path("dev-box", "default")
        assert path.name == "bridge-dev-box-default.lock"
        assert isinstance(path, Path)


class TestHostLock:
    """Tests for a single lock handle."""

    def test_try_acquire_and_release(self, tmp_path):
        lock = HostLock("dev-box", "default", tmp_path)
        assert lock.try_acquire() is True
        assert lock.is_held
        lock.release()
        assert not lock.is_held

    def test_second_handle_blocked(self, tmp_path):
        first = HostLock("dev-box", "default", tmp_path)
        second = HostLock("dev-box", "default", tmp_path)

        assert first.try_acquire()
        assert second.try_acquire() is False

        first.release()
        assert second.try_acquire() is True
        second.release()

    def test_try_acquire_when_held_is_noop(self, tmp_path):
        """A second attempt on the holding handle does not stack up."""
        lock = HostLock("dev-box", "default", tmp_path)
        assert lock.try_acquire()
        assert lock.try_acquire() is True
        lock.release()

        other = HostLock("dev-box", "default", tmp_path)
        assert other.try_acquire() is True
        other.release()

    def test_unopenable_lock_file(self, tmp_path):
        """A directory in place of the lock file is a LockError with context."""
        (tmp_path / "bridge-dev-box-default.lock").mkdir()
        lock = HostLock("dev-box", "default", tmp_path)

        with pytest.raises(LockError) as exc_info:
            lock.try_acquire()

        assert "Failed to open lock file" in str(exc_info.value)
        assert exc_info.value.context["hostname"] == "dev-box"
        assert exc_info.value.context["lock_name"] == "default"
        assert exc_info.value.context["path"] == str(lock.path)
        assert isinstance(exc_info.value.__cause__, OSError)
        assert not lock.is_held

    def test_release_idempotent(self, tmp_path):
        lock = HostLock("dev-box", "default", tmp_path)
        lock.try_acquire()
        lock.release()
        lock.release()
        assert not lock.is_held


class TestAcquireLock:
    """Tests for acquire_lock."""

    def test_uncontended(self, tmp_path, clock):
        """A free lock is taken without sleeping."""
        with acquire_lock("dev-box", "default", lock_dir=tmp_path, clock=clock, sleep=clock.sleep) as lock:
            assert lock.is_held
        assert not lock.is_held
        assert clock.sleeps == []

    def test_held_for_block(self, tmp_path, clock):
        """Other handles cannot take the lock while the block runs."""
        with acquire_lock("dev-box", "default", lock_dir=tmp_path, clock=clock, sleep=clock.sleep):
            assert HostLock("dev-box", "default", tmp_path).try_acquire() is False
        other = HostLock("dev-box", "default", tmp_path)
        assert other.try_acquire() is True
        other.release()

    def test_timeout(self, tmp_path, clock):
        """A busy lock is polled every two seconds until the timeout."""
        holder = HostLock("dev-box", "default", tmp_path)
        holder.try_acquire()

        with pytest.raises(LockTimeoutError) as exc_info:
            with acquire_lock(
                "dev-box", "default", timeout=6, lock_dir=tmp_path, clock=clock, sleep=clock.sleep
            ):
                pytest.fail("lock should not be acquired")

        assert clock.sleeps == [POLL_INTERVAL] * 3
        assert exc_info.value.hostname == "dev-box"
        assert exc_info.value.lock_name == "default"
        assert "after 6s" in str(exc_info.value)
        holder.release()

    def test_zero_timeout(self, tmp_path, clock):
        """A zero timeout fails on the first busy attempt without sleeping."""
        holder = HostLock("dev-box", "default", tmp_path)
        holder.try_acquire()

        with pytest.raises(LockTimeoutError):
            with acquire_lock(
                "dev-box", "default", timeout=0, lock_dir=tmp_path, clock=clock, sleep=clock.sleep
            ):
                pass

        assert clock.sleeps == []
        holder.release()

    def test_acquired_after_release(self, tmp_path, clock):
        """The waiter gets the lock once the holder lets go."""
        holder = HostLock("dev-box", "default", tmp_path)
        holder.try_acquire()

        def sleep(seconds):
            clock.sleep(seconds)
            holder.release()

        with acquire_lock(
            "dev-box", "default", timeout=60, lock_dir=tmp_path, clock=clock, sleep=sleep
        ) as lock:
            assert lock.is_held

        assert clock.sleeps == [POLL_INTERVAL]

    def test_waiting_is_logged(self, tmp_path, clock, caplog):
        holder = HostLock("dev-box", "kernel", tmp_path)
        holder.try_acquire()

        def sleep(seconds):
            clock.sleep(seconds)
            holder.release()

        with acquire_lock("dev-box", "kernel", lock_dir=tmp_path, clock=clock, sleep=sleep):
            pass

        assert "Waiting for lock 'kernel' on dev-box" in caplog.text

    def test_different_names_independent(self, tmp_path, clock):
        """Locks with different names never block each other."""
        with acquire_lock("dev-box", "kernel", lock_dir=tmp_path, clock=clock, sleep=clock.sleep):
            with acquire_lock(
                "dev-box", "docs", timeout=0, lock_dir=tmp_path, clock=clock, sleep=clock.sleep
            ) as lock:
                assert lock.is_held

    def test_different_hosts_independent(self, tmp_path, clock):
        with acquire_lock("host-a", "default", lock_dir=tmp_path, clock=clock, sleep=clock.sleep):
            with acquire_lock(
                "host-b", "default", timeout=0, lock_dir=tmp_path, clock=clock, sleep=clock.sleep
            ) as lock:
                assert lock.is_held

    def test_released_on_exception(self, tmp_path, clock):
        with pytest.raises(RuntimeError):
            with acquire_lock("dev-box", "default", lock_dir=tmp_path, clock=clock, sleep=clock.sleep):
                raise RuntimeError("boom")

        other = HostLock("dev-box", "default", tmp_path)
        assert other.try_acquire() is True
        other.release()

    def test_reacquire_inside_block_still_released(self, tmp_path, clock):
        with acquire_lock("dev-box", "default", lock_dir=tmp_path, clock=clock, sleep=clock.sleep) as lock:
            lock.try_acquire()

        other = HostLock("dev-box", "default", tmp_path)
        assert other.try_acquire() is True
        other.release()

    def test_creates_lock_directory(self, tmp_path, clock):
        lock_dir = tmp_path / "locks"
        with acquire_lock("dev-box", "default", lock_dir=lock_dir, clock=clock, sleep=clock.sleep):
            assert lock_dir.is_dir()

    def test_unopenable_lock_file_is_bridge_error(self, tmp_path, clock):
        (tmp_path / "bridge-dev-box-default.lock").mkdir()

        with pytest.raises(BridgeError):
            with acquire_lock("dev-box", "default", lock_dir=tmp_path, clock=clock, sleep=clock.sleep):
                pytest.fail("lock should not be acquired")
