"""Collaborator contracts and the default toolchain bundle."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

from core.config import StrataConfig
from tools.overlay import OverlayMountFacility
from tools.rsync import RsyncSynchronizer
from tools.squashfs import SquashfsArchiveBuilder


class ArchiveBuilder(Protocol):
    """Builds compressed read-only images such as the seed."""

    def build(
        self,
        source_paths: Sequence[str | Path],
        output_path: Path,
        block_size: int,
        excludes: Sequence[str],
        keep_paths: bool = False,
    ) -> int:
        """Write an image of ``source_paths`` to ``output_path``.

        Args:
            source_paths: Directories to pack.
            output_path: Image file to create.
            block_size: Image block size in bytes.
            excludes: Patterns left out of the image.
            keep_paths: Store sources under their full paths instead of
                their basenames.

        Returns:
            Tool exit status; zero on success.
        """
        ...


class MountFacility(Protocol):
    """Attaches and detaches images and union views."""

    def mount_readonly(self, image: Path, target: Path) -> int:
        """Mount ``image`` read-only at ``target`` and return the exit status."""
        ...

    def mount_overlay(
        self,
        lower_dirs: Sequence[Path],
        upper_dir: Path | None,
        work_dir: Path | None,
        target: Path,
    ) -> int:
        """Compose ``lower_dirs`` (bottom first) into one view at ``target``.

        Args:
            lower_dirs: Read-only layers ordered oldest to newest.
            upper_dir: Writable top layer, or None for a read-only view.
            work_dir: Scratch directory required with ``upper_dir``.
            target: Mount point.

        Returns:
            Tool exit status; zero on success.
        """
        ...

    def unmount(self, target: Path) -> int:
        """Detach ``target`` and return the exit status."""
        ...

    def is_mounted(self, target: Path) -> bool:
        """Return True when something is mounted at ``target``."""
        ...


class FileSynchronizer(Protocol):
    """Copies changed files from live sources into a writable view."""

    def sync(
        self, source_paths: Sequence[str], excludes: Sequence[str], destination: Path
    ) -> int:
        """Mirror ``source_paths`` under ``destination`` keeping full paths.

        Returns:
            Tool exit status; nonzero values may still leave a usable copy.
        """
        ...


@dataclass(frozen=True)
class Toolchain:
    """External collaborators consumed by the core."""

    archive_builder: ArchiveBuilder
    mounts: MountFacility
    synchronizer: FileSynchronizer


def build_default_toolchain(config: StrataConfig) -> Toolchain:
    """Build the mksquashfs, overlayfs, and rsync toolchain."""
    return Toolchain(
        archive_builder=SquashfsArchiveBuilder(compression=config.compression),
        mounts=OverlayMountFacility(),
        synchronizer=RsyncSynchronizer(),
    )
