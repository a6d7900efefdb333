"""Paired bin directory and ledger lifecycle.

A bin directory and its ledger entry are created and destroyed
together. This module is the only place that touches both, and it
refuses to operate when the two have drifted apart.
"""

from __future__ import annotations

import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Iterable

from core.config import StrataConfig
from core.errors import (
    StrataIntegrityError,
    StrataLedgerError,
    StrataNotFoundError,
    StrataStoreError,
)
from core.logging_config import get_logger
from core.types import BinRecord, BinSummary
from store.allocator import allocate_bin_id, list_bin_directories
from store.ledger import BinLedger

_LOGGER = get_logger(__name__)


class BinStore:
    """Owner of bin directories and their ledger entries."""

    def __init__(self, config: StrataConfig, ledger: BinLedger | None = None) -> None:
        self._config = config
        self._ledger = ledger or BinLedger(config.ledger_path)

    @property
    def ledger(self) -> BinLedger:
        """Ledger recording every live bin."""
        return self._ledger

    def bin_path(self, bin_id: int) -> Path:
        """Return the directory of ``bin_id`` whether or not it exists."""
        return self._config.bins_root / str(bin_id)

    def chain(self) -> list[BinRecord]:
        """Return the chronological bin chain, oldest first."""
        return self._ledger.list_records()

    def verify_inventory(self) -> None:
        """Check that ledger entries and bin directories match one to one.

        Raises:
            StrataIntegrityError: If either side has ids the other lacks.
        """
        ledger_ids = self._ledger.bin_ids()
        directory_ids = list_bin_directories(self._config.bins_root)
        if ledger_ids == directory_ids:
            return
        missing_dirs = sorted(ledger_ids - directory_ids)
        orphan_dirs = sorted(directory_ids - ledger_ids)
        _LOGGER.error(
            "inventory_mismatch",
            missing_directories=missing_dirs,
            unrecorded_directories=orphan_dirs,
        )
        raise StrataIntegrityError(
            "Bin inventory is inconsistent: "
            f"ledger entries without directories {missing_dirs}, "
            f"directories without ledger entries {orphan_dirs}. "
            f"Reconcile {self._ledger.path} and {self._config.bins_root} by hand."
        )

    def create_bin(self, created_at: datetime) -> BinRecord:
        """Allocate an id, create its directory, then record it.

        Directory creation failure aborts before the ledger write; a
        ledger write failure removes the new directory again.

        Raises:
            StrataAllocationError: If no id is free.
            StrataStoreError: If the directory cannot be created.
            StrataLedgerError: If the ledger cannot be updated.
        """
        bin_id = allocate_bin_id(
            self._ledger, self._config.bins_root, self._config.high_water_mark
        )
        bin_dir = self.bin_path(bin_id)
        try:
            self._config.bins_root.mkdir(parents=True, exist_ok=True)
            bin_dir.mkdir(exist_ok=False)
        except OSError as error:
            raise StrataStoreError(
                f"Failed to create bin directory {bin_dir}: {error}. "
                "Check free space and permissions on the bins root."
            ) from error
        try:
            record = self._ledger.append(bin_id, created_at)
        except StrataLedgerError:
            shutil.rmtree(bin_dir, ignore_errors=True)
            _LOGGER.error("bin_creation_rolled_back", bin_id=bin_id)
            raise
        _LOGGER.info("bin_created", bin_id=bin_id, path=str(bin_dir))
        return record

    def require_bin(self, bin_id: int) -> BinRecord:
        """Return a bin's record if it exists in ledger and on disk.

        Raises:
            StrataNotFoundError: If either side lacks the id.
        """
        if not self.bin_path(bin_id).is_dir() or not self._ledger.contains(bin_id):
            raise StrataNotFoundError(
                f"Bin {bin_id} does not exist. Run 'strata report' to list live bins."
            )
        return self._ledger.get(bin_id)

    def discard_bin(self, bin_id: int) -> None:
        """Delete one bin: ledger entry first, then directory."""
        self.discard_bins((bin_id,))

    def discard_bins(self, bin_ids: Iterable[int]) -> None:
        """Delete several bins with one ledger rewrite before the directories.

        A crash between the two steps leaves orphaned directories rather
        than ledger entries pointing at nothing.

        Raises:
            StrataNotFoundError: If an id is not recorded.
            StrataStoreError: If a directory cannot be removed.
        """
        targets = tuple(bin_ids)
        self._ledger.remove_many(targets)
        for bin_id in targets:
            bin_dir = self.bin_path(bin_id)
            try:
                shutil.rmtree(bin_dir)
            except FileNotFoundError:
                continue
            except OSError as error:
                raise StrataStoreError(
                    f"Removed bin {bin_id} from the ledger but failed to delete {bin_dir}: "
                    f"{error}. Delete the directory by hand."
                ) from error
            _LOGGER.info("bin_discarded", bin_id=bin_id)

    def summarize(self, record: BinRecord) -> BinSummary:
        return BinSummary(
            bin_id=record.bin_id,
            created_at=record.created_at,
            size_bytes=directory_size(self.bin_path(record.bin_id)),
        )


def directory_size(root: Path) -> int:
    """Sum apparent sizes of every entry below ``root`` without following links."""
    if not root.exists():
        return 0
    total = 0
    for dir_path, dir_names, file_names in os.walk(root):
        for name in dir_names + file_names:
            try:
                total += os.lstat(os.path.join(dir_path, name)).st_size
            except FileNotFoundError:
                continue
    return total
