"""Unit tests for the operation lock."""

from __future__ import annotations

import fcntl

import pytest

from core.errors import StrataLockError
from core.operation_lock import operation_lock


def test_operation_lock_records_holder(tmp_path) -> None:
    """The lock file should name the running operation while held."""
    lock_path = tmp_path / "root" / ".strata.lock"

    with operation_lock(lock_path, "backup"):
        content = lock_path.read_text(encoding="utf-8")

    assert "operation=backup" in content
    assert lock_path.read_text(encoding="utf-8") == ""


def test_operation_lock_rejects_second_holder(tmp_path) -> None:
    """A second holder should fail fast instead of waiting."""
    lock_path = tmp_path / ".strata.lock"
    lock_path.touch()

    with open(lock_path, "a+", encoding="utf-8") as foreign:
        fcntl.flock(foreign.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        foreign.write("pid=4242 operation=merge\n")
        foreign.flush()
        with pytest.raises(StrataLockError, match="operation=merge"):
            with operation_lock(lock_path, "rollback"):
                pass


def test_operation_lock_releases_after_error(tmp_path) -> None:
    """An exception inside the context should still release the lock."""
    lock_path = tmp_path / ".strata.lock"

    with pytest.raises(RuntimeError):
        with operation_lock(lock_path, "merge"):
            raise RuntimeError("boom")

    with operation_lock(lock_path, "merge"):
        pass
