"""Bin inventory ledger.

This module records which bins exist and when each was created.
Every mutation rewrites the whole table atomically, so a crash leaves
either the old or the new inventory on disk, never a partial edit.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Iterable

from core.errors import StrataLedgerError, StrataNotFoundError
from core.logging_config import get_logger
from core.types import BinRecord
from store.ledger_io import read_ledger_file, write_ledger_file

_LOGGER = get_logger(__name__)


class BinLedger:
    """Durable id to creation-time map backed by a text table.

    The ledger provides no locking; callers hold the operation lock.
    """

    def __init__(self, ledger_path: Path) -> None:
        self._ledger_path = ledger_path

    @property
    def path(self) -> Path:
        return self._ledger_path

    def append(self, bin_id: int, created_at: datetime) -> BinRecord:
        """Add a new bin entry.

        Args:
            bin_id: New bin identity.
            created_at: Capture timestamp.

        Returns:
            The persisted record.

        Raises:
            StrataLedgerError: If the id already exists or the write fails.
        """
        records = read_ledger_file(self._ledger_path)
        if any(record.bin_id == bin_id for record in records):
            raise StrataLedgerError(
                f"Bin {bin_id} is already recorded in {self._ledger_path}."
            )
        record = BinRecord(bin_id=bin_id, created_at=created_at)
        write_ledger_file(self._ledger_path, records + [record])
        _LOGGER.info("ledger_appended", bin_id=bin_id, created_at=created_at.isoformat())
        return record

    def remove(self, bin_id: int) -> None:
        """Remove exactly one bin entry.

        Raises:
            StrataNotFoundError: If the id is not recorded.
        """
        self.remove_many((bin_id,))

    def remove_many(self, bin_ids: Iterable[int]) -> None:
        """Remove several entries in one atomic rewrite.

        Raises:
            StrataNotFoundError: If any id is not recorded.
        """
        targets = set(bin_ids)
        records = read_ledger_file(self._ledger_path)
        missing = targets - {record.bin_id for record in records}
        if missing:
            raise StrataNotFoundError(
                f"Bins {sorted(missing)} are not recorded in {self._ledger_path}."
            )
        remaining = [record for record in records if record.bin_id not in targets]
        write_ledger_file(self._ledger_path, remaining)
        _LOGGER.info("ledger_removed", bin_ids=sorted(targets))

    def list_records(self) -> list[BinRecord]:
        """Return records in chronological order, oldest first.

        Ties keep their on-disk order, which is append order.
        """
        records = read_ledger_file(self._ledger_path)
        return sorted(records, key=lambda record: record.created_at)

    def get(self, bin_id: int) -> BinRecord:
        """Return one record.

        Raises:
            StrataNotFoundError: If the id is not recorded.
        """
        for record in read_ledger_file(self._ledger_path):
            if record.bin_id == bin_id:
                return record
        raise StrataNotFoundError(f"Bin {bin_id} is not recorded in {self._ledger_path}.")

    def contains(self, bin_id: int) -> bool:
        return any(record.bin_id == bin_id for record in read_ledger_file(self._ledger_path))

    def bin_ids(self) -> set[int]:
        return {record.bin_id for record in read_ledger_file(self._ledger_path)}

    def count(self) -> int:
        return len(read_ledger_file(self._ledger_path))
