"""Bin id allocation."""

from __future__ import annotations

from pathlib import Path

from core.errors import StrataAllocationError
from store.ledger import BinLedger


def list_bin_directories(bins_root: Path) -> set[int]:
    """Return ids of numerically named directories under the bins root.

    Non-numeric entries such as the overlay work directory are ignored.
    """
    if not bins_root.is_dir():
        return set()
    bin_ids: set[int] = set()
    for entry in bins_root.iterdir():
        if entry.is_dir() and not entry.is_symlink() and entry.name.isdigit():
            bin_ids.add(int(entry.name))
    return bin_ids


def next_bin_id(taken_ids: set[int], max_bins: int) -> int:
    """Pick the lowest id in ``1..max_bins+1`` that is not taken.

    Raises:
        StrataAllocationError: If every candidate is taken.
    """
    for candidate in range(1, max_bins + 2):
        if candidate not in taken_ids:
            return candidate
    raise StrataAllocationError(
        f"No free bin id between 1 and {max_bins + 1}. "
        "Raise high_water_mark or merge bins; retrying will not help."
    )


def allocate_bin_id(ledger: BinLedger, bins_root: Path, max_bins: int) -> int:
    """Pick the next id absent from both the ledger and the bins root.

    Args:
        ledger: Bin inventory ledger.
        bins_root: Directory holding bin directories.
        max_bins: Configured high-water mark.

    Returns:
        Unused bin id.

    Raises:
        StrataAllocationError: If every candidate is taken.
    """
    return next_bin_id(ledger.bin_ids() | list_bin_directories(bins_root), max_bins)
