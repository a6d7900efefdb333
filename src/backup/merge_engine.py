"""Merge/resquash engine.

This module folds the oldest bins into a new seed. The replacement is
built at a temporary path and renamed over the live seed, so the seed
is never observed half-written. Any build failure leaves the seed,
ledger, and bin directories exactly as they were.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Sequence

from core.config import StrataConfig
from core.constants import SEED_FROM_SOURCES
from core.errors import (
    StrataArgumentError,
    StrataConfigError,
    StrataMergeError,
    StrataNotFoundError,
)
from core.logging_config import get_logger
from core.types import BinRecord, MergeResult
from layers.composer import LayerComposer
from store.bin_store import BinStore
from tools.toolchain import ArchiveBuilder

_LOGGER = get_logger(__name__)


class MergeEngine:
    """Select, compose, archive, swap, and retire bins."""

    def __init__(
        self,
        config: StrataConfig,
        store: BinStore,
        composer: LayerComposer,
        archive_builder: ArchiveBuilder,
    ) -> None:
        self._config = config
        self._store = store
        self._composer = composer
        self._archive_builder = archive_builder

    def merge(self, count: int) -> MergeResult:
        """Merge the ``count`` oldest bins into the seed.

        ``SEED_FROM_SOURCES`` (-1) builds the initial seed straight from
        the configured sources instead.

        Raises:
            StrataArgumentError: If ``count`` is zero or below -1.
            StrataNotFoundError: If fewer than ``count`` bins exist.
            StrataMergeError: If the archive build or swap fails.
        """
        if count == SEED_FROM_SOURCES:
            return self.create_seed()
        if count < 1:
            raise StrataArgumentError(
                f"Merge count must be a positive number of bins, got {count}."
            )
        self._store.verify_inventory()
        chain = self._store.chain()
        if count > len(chain):
            raise StrataNotFoundError(
                f"Cannot merge {count} bins: only {len(chain)} live bins exist."
            )
        return self._merge_prefix(chain[:count])

    def merge_bins(self, bin_ids: Sequence[int]) -> MergeResult:
        """Merge an explicit set of bins that must be the oldest prefix.

        Raises:
            StrataNotFoundError: If any id is not a live bin.
            StrataArgumentError: If the ids are not the oldest bins.
        """
        self._store.verify_inventory()
        chain = self._store.chain()
        live_ids = {record.bin_id for record in chain}
        missing = sorted(set(bin_ids) - live_ids)
        if missing or not bin_ids:
            raise StrataNotFoundError(f"Bins {missing or list(bin_ids)} are not live bins.")
        prefix = chain[: len(set(bin_ids))]
        if {record.bin_id for record in prefix} != set(bin_ids):
            raise StrataArgumentError(
                f"Bins {sorted(set(bin_ids))} are not the oldest bins in the chain "
                f"({[record.bin_id for record in chain]}); only a contiguous oldest "
                "prefix can be folded into the seed."
            )
        return self._merge_prefix(prefix)

    def create_seed(self) -> MergeResult:
        """Build the first seed directly from the configured sources.

        Raises:
            StrataArgumentError: If a seed already exists.
            StrataConfigError: If no sources are configured.
            StrataMergeError: If the archive build fails.
        """
        if self._config.seed_path.exists():
            raise StrataArgumentError(
                f"A seed already exists at {self._config.seed_path}; "
                "initial seed creation only runs on an empty backup root."
            )
        if not self._config.sources:
            raise StrataConfigError("No sources configured. Add 'sources' to the config file.")
        self._config.seed_path.parent.mkdir(parents=True, exist_ok=True)
        self._build_replacement(
            list(self._config.sources), self._config.excludes, keep_paths=True
        )
        self._swap_seed()
        _LOGGER.info("seed_created", seed_path=str(self._config.seed_path))
        return MergeResult(merged_bin_ids=(), seed_path=self._config.seed_path)

    def _merge_prefix(self, records: Sequence[BinRecord]) -> MergeResult:
        bin_ids = tuple(record.bin_id for record in records)
        _LOGGER.info("merge_started", bin_ids=list(bin_ids))
        self._composer.unmount_union()
        self._composer.mount_seed()
        view = self._composer.compose(bin_ids)
        self._build_replacement([view], (), keep_paths=False)
        self._composer.teardown()
        self._swap_seed()
        self._store.discard_bins(bin_ids)
        _LOGGER.info("merge_completed", bin_ids=list(bin_ids), remaining=self._store.ledger.count())
        return MergeResult(merged_bin_ids=bin_ids, seed_path=self._config.seed_path)

    def _build_replacement(
        self,
        sources: list[str | Path],
        excludes: Sequence[str],
        keep_paths: bool,
    ) -> None:
        temp_path = self._config.seed_temp_path
        temp_path.unlink(missing_ok=True)
        status = self._archive_builder.build(
            sources, temp_path, self._config.block_size, excludes, keep_paths=keep_paths
        )
        if status != 0 or not temp_path.is_file():
            temp_path.unlink(missing_ok=True)
            _LOGGER.error("merge_build_failed", exit_status=status)
            raise StrataMergeError(
                f"Archive build failed with exit status {status}; the live seed "
                f"{self._config.seed_path} and all bins are unchanged."
            )

    def _swap_seed(self) -> None:
        temp_path = self._config.seed_temp_path
        try:
            os.replace(temp_path, self._config.seed_path)
        except OSError as error:
            raise StrataMergeError(
                f"Failed to move new seed {temp_path} over {self._config.seed_path}: {error}. "
                "The previous seed and all bins are unchanged."
            ) from error
        _LOGGER.info("seed_swapped", seed_path=str(self._config.seed_path))
