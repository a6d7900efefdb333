"""Restore resolver.

A path is looked up in the mounted seed and in every bin directory.
Restoring from a chosen point composes the seed and every bin up to
and including that point, because a bin only holds the delta on top
of the layers below it.
"""

from __future__ import annotations

import os
import shutil
import stat
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

from core.config import StrataConfig
from core.constants import RESTORE_DATE_FORMAT
from core.errors import (
    StrataArgumentError,
    StrataNotFoundError,
    StrataStoreError,
)
from core.logging_config import get_logger
from core.types import RestoreCandidate, RestoreResult
from layers.composer import LayerComposer
from store.bin_store import BinStore

_LOGGER = get_logger(__name__)


class RestoreResolver:
    """Find historical copies of a path and restore one of them."""

    def __init__(self, config: StrataConfig, store: BinStore, composer: LayerComposer) -> None:
        self._config = config
        self._store = store
        self._composer = composer

    def find(self, path: str) -> list[RestoreCandidate]:
        """List every layer holding ``path``, newest first.

        Args:
            path: Absolute path as it existed on the backed-up system.

        Returns:
            Candidates sorted newest to oldest; the seed has index 0.

        Raises:
            StrataArgumentError: If the path is empty or escapes the root.
            StrataNotFoundError: If no layer holds the path.
        """
        relative_path = normalize_restore_path(path)
        self._store.verify_inventory()
        seed_mount = self._composer.mount_seed()
        candidates: list[RestoreCandidate] = []
        seed_entry = seed_mount / relative_path
        seed_stat = _entry_stat(seed_entry)
        if seed_stat is not None:
            candidates.append(
                RestoreCandidate(
                    index=0,
                    bin_id=None,
                    timestamp=datetime.fromtimestamp(seed_stat.st_mtime, tz=timezone.utc),
                    location=seed_entry,
                )
            )
        for position, record in enumerate(self._store.chain(), 1):
            bin_entry = self._store.bin_path(record.bin_id) / relative_path
            if _entry_stat(bin_entry) is not None:
                candidates.append(
                    RestoreCandidate(
                        index=position,
                        bin_id=record.bin_id,
                        timestamp=record.created_at,
                        location=bin_entry,
                    )
                )
        if not candidates:
            raise StrataNotFoundError(f"No backup layer contains '{path}'.")
        return sorted(candidates, key=lambda candidate: candidate.index, reverse=True)

    def restore(self, path: str, index: int, destination_dir: Path) -> RestoreResult:
        """Copy ``path`` as of candidate ``index`` into ``destination_dir``.

        The copy is named ``<basename>.<date>`` after the candidate's date.

        Raises:
            StrataArgumentError: If ``index`` is not a candidate or the
                destination name is taken.
            StrataNotFoundError: If the path is absent from the composed view.
        """
        candidates = self.find(path)
        candidate = next((item for item in candidates if item.index == index), None)
        if candidate is None:
            valid = ", ".join(str(item.index) for item in candidates)
            raise StrataArgumentError(
                f"Selection {index} is not a candidate for '{path}'. Choose one of: {valid}."
            )
        relative_path = normalize_restore_path(path)
        destination = destination_dir / (
            f"{relative_path.name}.{candidate.timestamp.strftime(RESTORE_DATE_FORMAT)}"
        )
        if os.path.lexists(destination):
            raise StrataArgumentError(
                f"Restore destination {destination} already exists. Move it aside and retry."
            )
        prefix_ids = tuple(record.bin_id for record in self._store.chain()[:index])
        self._composer.unmount_union()
        view = self._composer.compose(prefix_ids)
        source = view / relative_path
        if _entry_stat(source) is None:
            raise StrataNotFoundError(
                f"'{path}' is not visible in the view composed from bins {list(prefix_ids)}."
            )
        _copy_out(source, destination)
        self._composer.teardown()
        _LOGGER.info(
            "path_restored",
            path=path,
            index=index,
            composed_bin_ids=list(prefix_ids),
            destination=str(destination),
        )
        return RestoreResult(
            candidate=candidate,
            composed_bin_ids=prefix_ids,
            destination=destination,
        )


def normalize_restore_path(path: str) -> Path:
    """Turn an absolute or root-relative path into a layer-relative path."""
    relative = PurePosixPath(path.strip())
    parts = [part for part in relative.parts if part not in ("/", ".")]
    if not parts:
        raise StrataArgumentError("Restore path must name a file or directory.")
    if ".." in parts:
        raise StrataArgumentError(f"Restore path '{path}' must not contain '..'.")
    return Path(*parts)


def _entry_stat(entry: Path) -> os.stat_result | None:
    """Stat an entry without following links; overlay whiteouts count as absent."""
    try:
        entry_stat = os.lstat(entry)
    except (FileNotFoundError, NotADirectoryError):
        return None
    if stat.S_ISCHR(entry_stat.st_mode) and entry_stat.st_rdev == 0:
        return None
    return entry_stat


def _copy_out(source: Path, destination: Path) -> None:
    """Copy a file or tree out of the composed view.

    A partially written destination is removed before the error is
    raised so a retry does not collide with it.

    Args:
        source: Entry inside the composed view.
        destination: Path of the dated copy.

    Raises:
        StrataStoreError: If copying or ownership transfer fails.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    try:
        if source.is_dir() and not source.is_symlink():
            shutil.copytree(source, destination, symlinks=True)
            _copy_ownership(source, destination)
        else:
            shutil.copy2(source, destination, follow_symlinks=False)
    except (OSError, shutil.Error) as error:
        _remove_partial_copy(destination)
        raise StrataStoreError(
            f"Failed to copy {source} to {destination}: {error}."
        ) from error


def _remove_partial_copy(destination: Path) -> None:
    """Delete whatever a failed copy left at ``destination``."""
    if destination.is_dir() and not destination.is_symlink():
        shutil.rmtree(destination, ignore_errors=True)
    else:
        destination.unlink(missing_ok=True)
    _LOGGER.warning("partial_restore_removed", destination=str(destination))


def _copy_ownership(source_root: Path, destination_root: Path) -> None:
    """Mirror owner and group of every entry in a copied tree.

    Args:
        source_root: Directory inside the composed view.
        destination_root: Its freshly copied counterpart.
    """
    for dir_path, dir_names, file_names in os.walk(source_root):
        source_dir = Path(dir_path)
        target_dir = destination_root / source_dir.relative_to(source_root)
        _chown_like(source_dir, target_dir)
        for name in dir_names + file_names:
            _chown_like(source_dir / name, target_dir / name)


def _chown_like(source: Path, target: Path) -> None:
    """Give ``target`` the uid and gid of ``source`` without following links."""
    entry_stat = os.lstat(source)
    os.lchown(target, entry_stat.st_uid, entry_stat.st_gid)
