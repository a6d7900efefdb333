"""Inventory report of seed and bin usage."""

from __future__ import annotations

from core.config import StrataConfig
from core.types import InventoryReport
from store.bin_store import BinStore


def build_inventory_report(config: StrataConfig, store: BinStore) -> InventoryReport:
    """Summarize the seed and every live bin, oldest bin first."""
    seed_size = config.seed_path.stat().st_size if config.seed_path.is_file() else 0
    return InventoryReport(
        seed_path=config.seed_path,
        seed_size_bytes=seed_size,
        bins=tuple(store.summarize(record) for record in store.chain()),
    )
