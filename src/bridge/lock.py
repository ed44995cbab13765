"""Host-scoped exclusive locks.

A lock is identified by the pair (hostname, lock name) and backed by an
advisory file lock at ``/tmp/bridge-<hostname>-<lock_name>.lock``. Any
process using the same naming scheme contends on the same file, and
locks with different names never block each other.

Locks are not re-entrant. Acquiring a pair that the current process
already holds blocks until the timeout expires.
"""

import logging
import os
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator

from filelock import FileLock, Timeout

from .exceptions import LockError, LockTimeoutError
from .types import DEFAULT_LOCK_TIMEOUT

logger = logging.getLogger(__name__)

DEFAULT_LOCK_DIR = Path("/tmp") if os.name == "posix" else Path(tempfile.gettempdir())
POLL_INTERVAL = 2.0


def lock_path(hostname: str, lock_name: str, lock_dir: Path | None = None) -> Path:
    """Get the lock file path for a (hostname, lock name) pair.

    Example:
        >>> lock_path("dev-box", "default", Path("/tmp"))
        PosixPath('/tmp/bridge-dev-box-default.lock')
    """
    base_dir = lock_dir or DEFAULT_LOCK_DIR
    return base_dir / f"bridge-{hostname}-{lock_name}.lock"


class HostLock:
    """Exclusive lock on one (hostname, lock name) pair.

    Acquire through ``acquire_lock``; the lock is released when the
    ``with`` block exits, whether it returns, raises or is interrupted.

    Attributes:
        hostname: Host the lock protects
        lock_name: Name of the lock domain
        path: Backing lock file
    """

    def __init__(
        self,
        hostname: str,
        lock_name: str,
        lock_dir: Path | None = None,
    ) -> None:
        self.hostname = hostname
        self.lock_name = lock_name
        self.path = lock_path(hostname, lock_name, lock_dir)
        self._file_lock = FileLock(str(self.path))
        self._held = False

    @property
    def is_held(self) -> bool:
        """Whether this handle currently owns the lock."""
        return self._held

    def try_acquire(self) -> bool:
        """Make one non-blocking attempt to take the lock.

        Calling this on a handle that already holds the lock is a no-op.

        Raises:
            LockError: If the lock file cannot be opened
        """
        if self._held:
            return True
        try:
            self._file_lock.acquire(blocking=False)
        except Timeout:
            return False
        except OSError as e:
            raise LockError(
                f"Failed to open lock file: {self.path}: {e}",
                hostname=self.hostname,
                lock_name=self.lock_name,
                path=str(self.path),
            ) from e
        self._held = True
        return True

    def release(self) -> None:
        """Release the lock if held. Safe to call more than once."""
        if not self._held:
            return
        self._held = False
        self._file_lock.release()
        logger.debug(f"Released lock '{self.lock_name}' on {self.hostname}")


@contextmanager
def acquire_lock(
    hostname: str,
    lock_name: str,
    timeout: float = DEFAULT_LOCK_TIMEOUT,
    lock_dir: Path | None = None,
    poll_interval: float = POLL_INTERVAL,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[HostLock]:
    """Acquire an exclusive lock for hostname and lock name.

    Tries a non-blocking claim first. If the lock is busy, polls every
    ``poll_interval`` seconds until it is acquired or ``timeout`` seconds
    have passed.

    Args:
        hostname: Host the lock protects
        lock_name: Lock domain name
        timeout: Seconds to wait before giving up
        lock_dir: Directory holding lock files (defaults to /tmp)
        poll_interval: Seconds between attempts
        clock: Monotonic time source
        sleep: Sleep function

    Yields:
        The held HostLock

    Raises:
        LockTimeoutError: If the lock is still busy after timeout seconds
        LockError: If the lock file cannot be opened

    Example:
        with acquire_lock("dev-box", "kernel", timeout=60):
            run_remote_command(...)
    """
    lock = HostLock(hostname, lock_name, lock_dir)
    lock.path.parent.mkdir(parents=True, exist_ok=True)

    if lock.try_acquire():
        logger.info(f"Acquired lock '{lock_name}' on {hostname}")
    else:
        logger.warning(f"Waiting for lock '{lock_name}' on {hostname}...")
        start = clock()
        while True:
            if clock() - start >= timeout:
                raise LockTimeoutError(hostname, lock_name, timeout)

            sleep(poll_interval)

            if lock.try_acquire():
                logger.warning(f"Acquired lock '{lock_name}' on {hostname}")
                break

    try:
        yield lock
    finally:
        lock.release()
