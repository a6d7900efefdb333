"""Python SDK for backup operations.

This module exposes high-level APIs for capture, merge, rollback,
restore, and removal. Every operation that changes mounts or
inventory runs under the operation lock.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Sequence, TypeVar

from core.config import StrataConfig
from core.errors import (
    StrataArgumentError,
    StrataIntegrityError,
    StrataNotFoundError,
)
from core.operation_lock import operation_lock
from core.types import (
    BackupResult,
    BinRecord,
    InventoryReport,
    MergeResult,
    RestoreCandidate,
    RestoreResult,
    RollbackView,
)
from backup.merge_engine import MergeEngine
from backup.orchestrator import BackupOrchestrator, Clock, utc_now
from backup.removal import BinRemover, ConfirmRemoval
from backup.report import build_inventory_report
from backup.restore import RestoreResolver
from backup.rollback import RollbackResolver
from layers.composer import LayerComposer
from store.bin_store import BinStore
from tools.toolchain import Toolchain, build_default_toolchain

_ResultT = TypeVar("_ResultT")

# Raised before any inventory change; a view left by an earlier rollback stays mounted.
_REFUSAL_ERRORS = (StrataArgumentError, StrataIntegrityError, StrataNotFoundError)


class StrataClient:
    """Primary SDK entry point for backup workflows."""

    def __init__(
        self,
        config: StrataConfig | None = None,
        toolchain: Toolchain | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """Create SDK client.

        Args:
            config: Optional runtime configuration; loaded from the environment when omitted.
            toolchain: Optional external collaborators; mksquashfs/overlayfs/rsync by default.
            clock: Source of bin creation timestamps.
        """
        self._config = config or StrataConfig.from_env()
        self._toolchain = toolchain or build_default_toolchain(self._config)
        self._clock = clock
        self._store = BinStore(self._config)
        self._composer = LayerComposer(self._config, self._toolchain.mounts)
        self._merge_engine = MergeEngine(
            self._config, self._store, self._composer, self._toolchain.archive_builder
        )

    @property
    def config(self) -> StrataConfig:
        return self._config

    def backup(self) -> BackupResult:
        """Run one capture cycle, creating the seed on first use."""
        orchestrator = BackupOrchestrator(
            self._config,
            self._store,
            self._composer,
            self._merge_engine,
            self._toolchain.synchronizer,
            clock=self._clock,
        )
        return self._run_locked("backup", orchestrator.run)

    def merge(self, count: int) -> MergeResult:
        """Fold the ``count`` oldest bins into the seed."""
        return self._run_locked("merge", lambda: self._merge_engine.merge(count))

    def merge_bins(self, bin_ids: Sequence[int]) -> MergeResult:
        """Fold an explicit oldest-prefix set of bins into the seed."""
        return self._run_locked("merge", lambda: self._merge_engine.merge_bins(bin_ids))

    def resquash(self) -> MergeResult:
        """Fold every live bin into the seed."""

        def _resquash_all() -> MergeResult:
            live_count = self._store.ledger.count()
            if live_count == 0:
                raise StrataNotFoundError("No live bins to resquash into the seed.")
            return self._merge_engine.merge(live_count)

        return self._run_locked("resquash", _resquash_all)

    def rollback(self, steps: int) -> RollbackView:
        """Mount a read-only view ``steps`` captures in the past."""
        resolver = RollbackResolver(self._store, self._composer)
        return self._run_locked("rollback", lambda: resolver.rollback(steps))

    def find(self, path: str) -> list[RestoreCandidate]:
        """List restore candidates for ``path``, newest first."""
        resolver = RestoreResolver(self._config, self._store, self._composer)

        def _find_and_release() -> list[RestoreCandidate]:
            candidates = resolver.find(path)
            self._composer.teardown()
            return candidates

        return self._run_locked("find", _find_and_release, release_mounts=True)

    def restore(self, path: str, index: int, destination_dir: Path | None = None) -> RestoreResult:
        """Restore ``path`` as of candidate ``index`` into ``destination_dir``."""
        resolver = RestoreResolver(self._config, self._store, self._composer)
        target_dir = destination_dir or Path.cwd()
        return self._run_locked(
            "restore",
            lambda: resolver.restore(path, index, target_dir),
            release_mounts=True,
        )

    def remove_bin(
        self,
        bin_id: int,
        confirmed: bool = False,
        confirm: ConfirmRemoval | None = None,
    ) -> bool:
        """Discard one bin; returns False when the operator declines."""
        remover = BinRemover(self._store, self._composer)
        return self._run_locked("remove", lambda: remover.remove(bin_id, confirmed, confirm))

    def unmount(self) -> None:
        """Tear down the composed view and the seed mount."""
        self._run_locked("unmount", self._composer.teardown)

    def list_bins(self) -> list[BinRecord]:
        """Return the chronological bin chain, oldest first."""
        return self._store.chain()

    def report(self) -> InventoryReport:
        """Summarize seed and bin disk usage."""
        return build_inventory_report(self._config, self._store)

    def _run_locked(
        self,
        operation: str,
        action: Callable[[], _ResultT],
        release_mounts: bool = False,
    ) -> _ResultT:
        with operation_lock(self._config.lock_path, operation):
            try:
                return action()
            except _REFUSAL_ERRORS:
                if release_mounts:
                    self._composer.teardown_quietly()
                raise
            except BaseException:
                self._composer.teardown_quietly()
                raise
