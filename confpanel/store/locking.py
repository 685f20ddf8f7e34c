"""
Advisory file locking for the override store.

Readers take a shared lock and writers an exclusive lock on a sidecar
`<file>.lock`, so a writer's atomic rename never races a reader holding the
old inode's lock.
"""

import fcntl
import logging
import time
from pathlib import Path
from typing import Optional, TextIO

from ..errors import PersistenceError

logger = logging.getLogger(__name__)


class FileLock:
    """
    Context manager for advisory file locking.

    Args:
        file_path: File protected by the lock (the lock itself lives next to it)
        shared: Take a shared (read) lock instead of an exclusive one
        timeout: Maximum time to wait for the lock (seconds)
    """

    def __init__(self, file_path: Path, shared: bool = False, timeout: float = 10.0):
        self.file_path = Path(file_path)
        self.shared = shared
        self.timeout = timeout
        self.lock_file = self.file_path.with_suffix(self.file_path.suffix + ".lock")
        self.lock_fd: Optional[TextIO] = None

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()

    @property
    def acquired(self) -> bool:
        return self.lock_fd is not None

    def acquire(self) -> None:
        """
        Acquire the lock, polling until `timeout`.

        A reader that may not create the lock file (read-only directory) proceeds
        unlocked: nobody without write access can be writing the store either.

        Raises:
            PersistenceError: If the lock cannot be taken in time
        """
        if self.acquired:
            return

        try:
            self.lock_fd = open(self.lock_file, "a")
        except PermissionError:
            if self.shared:
                logger.debug(f"Cannot create {self.lock_file}, reading without lock")
                return
            raise PersistenceError(f"Cannot create lock file {self.lock_file}")
        except OSError as e:
            raise PersistenceError(f"Cannot create lock file {self.lock_file}: {e}") from e

        mode = fcntl.LOCK_SH if self.shared else fcntl.LOCK_EX
        start_time = time.monotonic()
        while True:
            try:
                fcntl.flock(self.lock_fd.fileno(), mode | fcntl.LOCK_NB)
                logger.debug(f"Acquired {'shared' if self.shared else 'exclusive'} lock: {self.lock_file}")
                return
            except BlockingIOError:
                if time.monotonic() - start_time > self.timeout:
                    self.lock_fd.close()
                    self.lock_fd = None
                    raise PersistenceError(f"Lock timeout after {self.timeout}s: {self.lock_file}")
                time.sleep(0.05)

    def release(self) -> None:
        if self.lock_fd is None:
            return
        fcntl.flock(self.lock_fd.fileno(), fcntl.LOCK_UN)
        self.lock_fd.close()
        self.lock_fd = None
        logger.debug(f"Released lock: {self.lock_file}")
