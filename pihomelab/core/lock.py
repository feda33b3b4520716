"""Install lock so two installer runs never touch the same env files at once."""
import fcntl
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from pihomelab.core.logger import get_logger

logger = get_logger(__name__)

DEFAULT_LOCK_FILE = Path("/var/run/pi-homelab/install.lock")


class LockError(Exception):
    """Raised when the install lock cannot be acquired."""
    pass


class InstallLock:
    """flock-based lock held for the duration of an install run."""

    def __init__(self, lock_file: Optional[Path] = None, timeout: int = 0):
        """Initialize lock.

        Args:
            lock_file: Path to lock file (default: /var/run/pi-homelab/install.lock)
            timeout: Seconds to wait for the lock (0 = fail immediately)
        """
        self.lock_file = Path(lock_file) if lock_file else DEFAULT_LOCK_FILE
        self.timeout = timeout
        self.lock_fd = None

    def acquire(self) -> bool:
        """Acquire the lock, writing our PID and start time into the file.

        Raises:
            LockError: If another installer holds the lock
        """
        self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        self.lock_fd = open(self.lock_file, "a+")

        start_time = time.time()
        while True:
            try:
                fcntl.flock(self.lock_fd.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            except OSError:
                if time.time() - start_time >= self.timeout:
                    holder = self._read_holder()
                    self.lock_fd.close()
                    self.lock_fd = None
                    raise LockError(
                        f"Another pi-homelab install is in progress (PID {holder}).\n"
                        f"Wait for it to finish, or remove {self.lock_file} if stale."
                    )
                time.sleep(0.5)
                continue

            self.lock_fd.seek(0)
            self.lock_fd.truncate()
            self.lock_fd.write(f"{os.getpid()}\n")
            self.lock_fd.write(f"{time.strftime('%Y-%m-%d %H:%M:%S')}\n")
            self.lock_fd.flush()
            logger.debug(f"Acquired lock: {self.lock_file}")
            return True

    def release(self):
        """Release the lock and remove the lock file."""
        if self.lock_fd is None:
            return

        try:
            fcntl.flock(self.lock_fd.fileno(), fcntl.LOCK_UN)
            self.lock_fd.close()
            logger.debug(f"Released lock: {self.lock_file}")
        finally:
            self.lock_fd = None

        self.lock_file.unlink(missing_ok=True)

    def _read_holder(self) -> str:
        try:
            lines = self.lock_file.read_text().splitlines()
        except OSError:
            return "unknown"
        return lines[0].strip() if lines else "unknown"

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


@contextmanager
def install_lock(timeout: int = 0, lock_file: Optional[Path] = None):
    """Context manager holding the install lock.

    Usage:
        with install_lock():
            orchestrator.run()
    """
    lock = InstallLock(lock_file=lock_file, timeout=timeout)
    lock.acquire()
    try:
        yield lock
    finally:
        lock.release()
