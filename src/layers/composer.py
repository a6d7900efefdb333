"""Layer composer for seed and bin stacks.

Layers are stacked bottom to top as ``seed < bin[0] < ... < bin[n-1]``;
later layers shadow earlier ones. The composer layers on top of the
mounted seed, never the raw archive, and the union view is always
unmounted before the seed beneath it.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Sequence

from core.config import StrataConfig
from core.errors import (
    StrataError,
    StrataMountError,
    StrataMountOrderError,
    StrataNotFoundError,
)
from core.logging_config import get_logger
from tools.toolchain import MountFacility

_LOGGER = get_logger(__name__)


class LayerComposer:
    """Mount-state owner for the seed mount and the union view."""

    def __init__(self, config: StrataConfig, mounts: MountFacility) -> None:
        self._config = config
        self._mounts = mounts

    @property
    def union_mount(self) -> Path:
        return self._config.union_mount

    @property
    def seed_mount(self) -> Path:
        return self._config.seed_mount

    def is_seed_mounted(self) -> bool:
        return self._mounts.is_mounted(self._config.seed_mount)

    def is_union_mounted(self) -> bool:
        return self._mounts.is_mounted(self._config.union_mount)

    def mount_seed(self) -> Path:
        """Mount the seed archive read-only if it is not mounted yet.

        Returns:
            Seed mount point.

        Raises:
            StrataNotFoundError: If no seed archive exists.
            StrataMountError: If the mount is rejected.
        """
        seed_mount = self._config.seed_mount
        if self.is_seed_mounted():
            return seed_mount
        if not self._config.seed_path.is_file():
            raise StrataNotFoundError(
                f"Seed archive not found at {self._config.seed_path}. "
                "Run 'strata backup' once to create it."
            )
        seed_mount.mkdir(parents=True, exist_ok=True)
        status = self._mounts.mount_readonly(self._config.seed_path, seed_mount)
        if status != 0:
            self._detach_after_failure(seed_mount)
            raise StrataMountError(
                f"Failed to mount seed {self._config.seed_path} at {seed_mount} "
                f"(exit status {status})."
            )
        _LOGGER.info("seed_mounted", seed_path=str(self._config.seed_path))
        return seed_mount

    def compose(self, bin_ids: Sequence[int], writable_top: int | None = None) -> Path:
        """Stack bins over the mounted seed into the union view.

        Args:
            bin_ids: Read-only bins, oldest first.
            writable_top: Bin mounted as the writable upper layer, if any.

        Returns:
            Union mount point.

        Raises:
            StrataMountError: If the seed is not mounted, a union is
                already attached, the layer list is invalid, or the
                mount facility rejects it.
        """
        union_mount = self._config.union_mount
        if not self.is_seed_mounted():
            raise StrataMountError(
                f"Seed is not mounted at {self._config.seed_mount}; mount it before composing."
            )
        if self.is_union_mounted():
            raise StrataMountError(
                f"A composed view is already mounted at {union_mount}. Unmount it first."
            )
        lower_dirs = [self._config.seed_mount] + self._layer_dirs(bin_ids, writable_top)
        upper_dir = None
        work_dir = None
        if writable_top is not None:
            upper_dir = self._config.bins_root / str(writable_top)
            work_dir = self._reset_work_dir()
        union_mount.mkdir(parents=True, exist_ok=True)
        status = self._mounts.mount_overlay(lower_dirs, upper_dir, work_dir, union_mount)
        if status != 0:
            self._detach_after_failure(union_mount)
            raise StrataMountError(
                f"Failed to compose {len(bin_ids)} bins over the seed at {union_mount} "
                f"(exit status {status})."
            )
        _LOGGER.info(
            "union_mounted",
            bin_ids=list(bin_ids),
            writable_top=writable_top,
            mount_path=str(union_mount),
        )
        return union_mount

    def unmount_union(self) -> None:
        """Unmount the union view if it is attached.

        Raises:
            StrataMountError: If the unmount is rejected.
        """
        union_mount = self._config.union_mount
        if not self.is_union_mounted():
            return
        status = self._mounts.unmount(union_mount)
        if status != 0:
            raise StrataMountError(
                f"Failed to unmount composed view at {union_mount} (exit status {status}). "
                "Close any shells or programs using it and retry."
            )
        _LOGGER.info("union_unmounted", mount_path=str(union_mount))

    def unmount_seed(self) -> None:
        """Unmount the seed if it is attached.

        Raises:
            StrataMountOrderError: If the union view is still mounted.
            StrataMountError: If the unmount is rejected.
        """
        if self.is_union_mounted():
            raise StrataMountOrderError(
                f"Refusing to unmount the seed while {self._config.union_mount} "
                "is still composed on top of it."
            )
        seed_mount = self._config.seed_mount
        if not self.is_seed_mounted():
            return
        status = self._mounts.unmount(seed_mount)
        if status != 0:
            raise StrataMountError(
                f"Failed to unmount seed at {seed_mount} (exit status {status})."
            )
        _LOGGER.info("seed_unmounted", mount_path=str(seed_mount))

    def teardown(self) -> None:
        """Unmount the union view, then the seed."""
        self.unmount_union()
        self.unmount_seed()

    def teardown_quietly(self) -> None:
        """Best-effort teardown used on error paths; failures are logged."""
        try:
            self.teardown()
        except StrataError as error:
            _LOGGER.warning("unmount_failed", error=str(error))

    def _layer_dirs(self, bin_ids: Sequence[int], writable_top: int | None) -> list[Path]:
        if len(set(bin_ids)) != len(bin_ids):
            raise StrataMountError(f"Duplicate bins in layer list {list(bin_ids)}.")
        if writable_top is not None and writable_top in bin_ids:
            raise StrataMountError(
                f"Bin {writable_top} cannot be both a read-only layer and the writable top."
            )
        layer_dirs = [self._config.bins_root / str(bin_id) for bin_id in bin_ids]
        if writable_top is not None:
            layer_dirs_to_check = layer_dirs + [self._config.bins_root / str(writable_top)]
        else:
            layer_dirs_to_check = layer_dirs
        missing = [str(path) for path in layer_dirs_to_check if not path.is_dir()]
        if missing:
            raise StrataMountError(f"Layer directories are missing: {', '.join(missing)}.")
        return layer_dirs

    def _reset_work_dir(self) -> Path:
        work_dir = self._config.work_dir
        try:
            if work_dir.exists():
                shutil.rmtree(work_dir)
            work_dir.mkdir(parents=True)
        except OSError as error:
            raise StrataMountError(
                f"Failed to prepare overlay work directory {work_dir}: {error}."
            ) from error
        return work_dir

    def _detach_after_failure(self, target: Path) -> None:
        if self._mounts.is_mounted(target):
            self._mounts.unmount(target)
