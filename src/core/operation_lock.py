"""Process-held exclusive lock for mount-changing operations.

At most one mutating operation may run per backup root. The lock is an
advisory ``fcntl.flock`` held for the whole operation, so a crashed
process releases it automatically.
"""

from __future__ import annotations

import fcntl
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from core.errors import StrataLockError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


@contextmanager
def operation_lock(lock_path: Path, operation: str) -> Iterator[None]:
    """Hold the operation lock for the duration of the context.

    Args:
        lock_path: Lock file path.
        operation: Operation name recorded in the lock file.

    Raises:
        StrataLockError: If another process holds the lock.
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock_file = open(lock_path, "a+", encoding="utf-8")
    try:
        try:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as error:
            holder = _read_holder(lock_path)
            raise StrataLockError(
                f"Another strata operation is running ({holder or 'unknown holder'}). "
                f"Wait for it to finish or remove a stale {lock_path} if no process holds it."
            ) from error
        lock_file.seek(0)
        lock_file.truncate(0)
        lock_file.write(f"pid={os.getpid()} operation={operation}\n")
        lock_file.flush()
        _LOGGER.debug("operation_lock_acquired", operation=operation, lock_path=str(lock_path))
        try:
            yield
        finally:
            lock_file.seek(0)
            lock_file.truncate(0)
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
    finally:
        lock_file.close()


def _read_holder(lock_path: Path) -> str:
    try:
        return lock_path.read_text(encoding="utf-8").strip()
    except OSError:
        return ""
