"""Shared typed models.

This module defines immutable data models used by the ledger, the
layer composer, the backup operations, and the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Literal

CaptureState = Literal["idle", "preparing", "capturing", "merge_check"]


@dataclass(frozen=True)
class BinRecord:
    """One ledger entry.

    Attributes:
        bin_id: Positive bin identity, also the bin directory name.
        created_at: UTC creation timestamp of the capture cycle.
    """

    bin_id: int
    created_at: datetime


@dataclass(frozen=True)
class MergeResult:
    """Outcome of one resquash.

    Attributes:
        merged_bin_ids: Bins folded into the seed, oldest first.
        seed_path: Path of the replaced seed archive.
    """

    merged_bin_ids: tuple[int, ...]
    seed_path: Path


@dataclass(frozen=True)
class BackupResult:
    """Outcome of one capture cycle.

    Attributes:
        bin_id: Bin created by this cycle, None when the seed was created.
        created_at: Creation timestamp of the new bin.
        seed_created: Whether this cycle built the initial seed.
        sync_status: Synchronizer exit status, 0 when no sync ran.
        merge: Merge triggered by the high-water mark, if any.
    """

    bin_id: int | None
    created_at: datetime | None
    seed_created: bool
    sync_status: int
    merge: MergeResult | None = None


@dataclass(frozen=True)
class RollbackView:
    """Read-only historical view produced by a rollback.

    Attributes:
        steps: Number of most recent bins excluded.
        kept_bin_ids: Bins composed over the seed, oldest first.
        as_of: Creation time of the newest kept bin, or SEED_EPOCH.
        mount_path: Where the view is mounted.
    """

    steps: int
    kept_bin_ids: tuple[int, ...]
    as_of: datetime
    mount_path: Path


@dataclass(frozen=True)
class RestoreCandidate:
    """One location where a restore path exists.

    Attributes:
        index: Chain position; 0 is the seed, 1 is the oldest bin.
        bin_id: Owning bin, None for the seed.
        timestamp: Bin creation time, or entry mtime for the seed.
        location: Path of the entry inside its layer.
    """

    index: int
    bin_id: int | None
    timestamp: datetime
    location: Path


@dataclass(frozen=True)
class RestoreResult:
    """Restored copy of one historical path."""

    candidate: RestoreCandidate
    composed_bin_ids: tuple[int, ...]
    destination: Path


@dataclass(frozen=True)
class BinSummary:
    """Size and age of one bin, shown before removal and in reports."""

    bin_id: int
    created_at: datetime
    size_bytes: int


@dataclass(frozen=True)
class InventoryReport:
    """Seed and bin usage summary."""

    seed_path: Path
    seed_size_bytes: int
    bins: tuple[BinSummary, ...]

    @property
    def total_bytes(self) -> int:
        """Combined size of the seed and all bins."""
        return self.seed_size_bytes + sum(item.size_bytes for item in self.bins)
