"""Backup orchestration for one capture cycle.

This module moves through ``preparing -> capturing -> merge_check`` and
back to ``idle``. Any failure returns to idle after best-effort cleanup;
a bin that did not finish capturing is discarded rather than kept.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from core.config import StrataConfig
from core.errors import (
    StrataConfigError,
    StrataMountError,
    StrataPartialBinError,
    StrataSyncAbortedError,
)
from core.logging_config import get_logger
from core.types import BackupResult, BinRecord, CaptureState, MergeResult
from backup.merge_engine import MergeEngine
from layers.composer import LayerComposer
from store.bin_store import BinStore
from tools.toolchain import FileSynchronizer

_LOGGER = get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BackupOrchestrator:
    """Stateful runner for one capture cycle."""

    def __init__(
        self,
        config: StrataConfig,
        store: BinStore,
        composer: LayerComposer,
        merge_engine: MergeEngine,
        synchronizer: FileSynchronizer,
        clock: Clock = utc_now,
    ) -> None:
        self._config = config
        self._store = store
        self._composer = composer
        self._merge_engine = merge_engine
        self._synchronizer = synchronizer
        self._clock = clock
        self._state: CaptureState = "idle"

    @property
    def state(self) -> CaptureState:
        return self._state

    def run(self) -> BackupResult:
        """Execute one capture cycle.

        Returns:
            Cycle outcome, including any merge it triggered.

        Raises:
            StrataError: Any failure, after cleanup has run. Interrupts such as
                ``KeyboardInterrupt`` get the same cleanup before propagating.
        """
        if not self._config.sources:
            raise StrataConfigError("No sources configured. Add 'sources' to the config file.")
        try:
            result = self._run_cycle()
        except BaseException as error:
            _LOGGER.error(
                "capture_failed",
                state=self._state,
                error_type=type(error).__name__,
                error=str(error),
            )
            self._composer.teardown_quietly()
            self._enter("idle")
            raise
        self._enter("idle")
        return result

    def _run_cycle(self) -> BackupResult:
        self._enter("preparing")
        self._composer.unmount_union()
        if not self._config.seed_path.exists():
            self._merge_engine.create_seed()
            return BackupResult(bin_id=None, created_at=None, seed_created=True, sync_status=0)
        self._store.verify_inventory()
        self._composer.mount_seed()
        existing_ids = [record.bin_id for record in self._store.chain()]
        record = self._store.create_bin(self._clock())

        self._enter("capturing")
        sync_status = self._capture(existing_ids, record)
        self._composer.unmount_union()

        self._enter("merge_check")
        merge = self._merge_if_needed()
        self._composer.teardown()
        _LOGGER.info(
            "capture_completed",
            bin_id=record.bin_id,
            sync_status=sync_status,
            merged_bin_ids=list(merge.merged_bin_ids) if merge else [],
        )
        return BackupResult(
            bin_id=record.bin_id,
            created_at=record.created_at,
            seed_created=False,
            sync_status=sync_status,
            merge=merge,
        )

    def _capture(self, existing_ids: list[int], record: BinRecord) -> int:
        try:
            view = self._composer.compose(existing_ids, writable_top=record.bin_id)
            sync_status = self._synchronizer.sync(
                self._config.sources, self._config.excludes, view
            )
        except BaseException:
            self._discard_partial_bin(record.bin_id)
            raise
        if sync_status in self._config.abort_exit_codes:
            self._discard_partial_bin(record.bin_id)
            raise StrataSyncAbortedError(
                f"Synchronizer aborted with exit status {sync_status}; "
                f"partial bin {record.bin_id} was discarded."
            )
        if sync_status != 0:
            _LOGGER.warning(
                "sync_incomplete_kept",
                bin_id=record.bin_id,
                sync_status=sync_status,
            )
        return sync_status

    def _discard_partial_bin(self, bin_id: int) -> None:
        """Drop a bin whose capture did not finish.

        The union is unmounted first since the bin is its upper layer. A
        failed unmount is retried once after a full teardown. When the
        bin still cannot be released its ledger entry is removed anyway,
        leaving an orphan directory that the integrity check refuses.

        Args:
            bin_id: Id of the bin being captured.

        Raises:
            StrataPartialBinError: If the union cannot be unmounted.
        """
        try:
            self._composer.unmount_union()
        except StrataMountError as error:
            _LOGGER.warning("partial_bin_unmount_retry", bin_id=bin_id, error=str(error))
            self._composer.teardown_quietly()
            try:
                self._composer.unmount_union()
            except StrataMountError as retry_error:
                self._store.ledger.remove(bin_id)
                _LOGGER.error("partial_bin_retained", bin_id=bin_id, error=str(retry_error))
                raise StrataPartialBinError(
                    f"Partial bin {bin_id} could not be discarded: {retry_error}. "
                    f"Unmount {self._composer.union_mount}, then delete "
                    f"{self._store.bin_path(bin_id)}."
                ) from retry_error
        self._store.discard_bin(bin_id)
        _LOGGER.warning("partial_bin_discarded", bin_id=bin_id)

    def _merge_if_needed(self) -> MergeResult | None:
        live_count = self._store.ledger.count()
        if live_count < self._config.high_water_mark:
            return None
        merge_count = live_count - self._config.low_water_mark
        _LOGGER.info(
            "merge_triggered",
            live_count=live_count,
            high_water_mark=self._config.high_water_mark,
            merge_count=merge_count,
        )
        return self._merge_engine.merge(merge_count)

    def _enter(self, state: CaptureState) -> None:
        self._state = state
        _LOGGER.debug("capture_state", state=state)
