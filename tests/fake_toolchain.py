"""In-process stand-ins for mksquashfs, overlayfs, and rsync.

Mounts are simulated with plain directory copies so tests can run
without root. A fake image is a small file naming a snapshot
directory; a writable union copies new and changed files into its
upper directory when it is unmounted.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Sequence

from backup.client import StrataClient
from core.config import StrataConfig
from tools.toolchain import Toolchain

MOUNT_FAILURE_STATUS = 32


@dataclass
class FakeMount:
    """One simulated mount."""

    lower_dirs: list[Path]
    upper_dir: Path | None = None
    baseline: dict[str, bytes] = field(default_factory=dict)


class FakeArchiveBuilder:
    """Archive builder writing directory snapshots instead of squashfs images."""

    def __init__(self, image_store: Path, status: int = 0) -> None:
        self.image_store = image_store
        self.status = status
        self.calls: list[dict[str, object]] = []

    def build(
        self,
        source_paths: Sequence[str | Path],
        output_path: Path,
        block_size: int,
        excludes: Sequence[str],
        keep_paths: bool = False,
    ) -> int:
        self.calls.append(
            {
                "sources": [str(path) for path in source_paths],
                "output_path": output_path,
                "block_size": block_size,
                "excludes": list(excludes),
                "keep_paths": keep_paths,
            }
        )
        if self.status != 0:
            return self.status
        self.image_store.mkdir(parents=True, exist_ok=True)
        snapshot_dir = Path(tempfile.mkdtemp(prefix="image-", dir=self.image_store))
        ignore = shutil.ignore_patterns(*excludes) if excludes else None
        for source in source_paths:
            source_path = Path(source)
            if keep_paths:
                target = snapshot_dir / str(source_path).lstrip("/")
            else:
                target = snapshot_dir
            shutil.copytree(source_path, target, symlinks=True, ignore=ignore, dirs_exist_ok=True)
        output_path.write_text(str(snapshot_dir), encoding="utf-8")
        return 0


class FakeMountFacility:
    """Mount facility that materializes views as directory copies."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Path]] = []
        self.failures: dict[str, int] = {}
        self.failures_once: dict[str, int] = {}
        self.mounted: dict[Path, FakeMount] = {}

    def mount_readonly(self, image: Path, target: Path) -> int:
        self.calls.append(("mount_readonly", target))
        if "mount_readonly" in self.failures:
            return self.failures["mount_readonly"]
        snapshot_dir = Path(image.read_text(encoding="utf-8"))
        _clear_directory(target)
        shutil.copytree(snapshot_dir, target, symlinks=True, dirs_exist_ok=True)
        self.mounted[target] = FakeMount(lower_dirs=[image])
        return 0

    def mount_overlay(
        self,
        lower_dirs: Sequence[Path],
        upper_dir: Path | None,
        work_dir: Path | None,
        target: Path,
    ) -> int:
        self.calls.append(("mount_overlay", target))
        if "mount_overlay" in self.failures:
            return self.failures["mount_overlay"]
        _clear_directory(target)
        for layer in list(lower_dirs) + ([upper_dir] if upper_dir is not None else []):
            shutil.copytree(layer, target, symlinks=True, dirs_exist_ok=True)
        self.mounted[target] = FakeMount(
            lower_dirs=list(lower_dirs),
            upper_dir=upper_dir,
            baseline=_file_contents(target),
        )
        return 0

    def unmount(self, target: Path) -> int:
        if target not in self.mounted:
            return 0
        self.calls.append(("unmount", target))
        if "unmount" in self.failures_once:
            return self.failures_once.pop("unmount")
        if "unmount" in self.failures:
            return self.failures["unmount"]
        mount = self.mounted.pop(target)
        if mount.upper_dir is not None:
            _copy_changes(target, mount.upper_dir, mount.baseline)
        _clear_directory(target)
        return 0

    def is_mounted(self, target: Path) -> bool:
        return target in self.mounted


class FakeSynchronizer:
    """Synchronizer copying sources under their full paths."""

    def __init__(self, status: int = 0) -> None:
        self.status = status
        self.error: BaseException | None = None
        self.calls: list[tuple[tuple[str, ...], tuple[str, ...], Path]] = []

    def sync(self, source_paths: Sequence[str], excludes: Sequence[str], destination: Path) -> int:
        self.calls.append((tuple(source_paths), tuple(excludes), destination))
        ignore = shutil.ignore_patterns(*excludes) if excludes else None
        for source in source_paths:
            target = destination / source.lstrip("/")
            shutil.copytree(source, target, symlinks=True, ignore=ignore, dirs_exist_ok=True)
        if self.error is not None:
            raise self.error
        return self.status


class StepClock:
    """Deterministic clock advancing one hour per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self._next = start or datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        current = self._next
        self._next = current + timedelta(hours=1)
        return current


def build_test_config(tmp_path: Path, **overrides: object) -> StrataConfig:
    """Build a config rooted in ``tmp_path`` with one ``home`` source."""
    source_dir = tmp_path / "system" / "home"
    source_dir.mkdir(parents=True, exist_ok=True)
    payload: dict[str, object] = {
        "root": str(tmp_path / "backup"),
        "sources": [str(source_dir)],
        "high_water_mark": 5,
        "low_water_mark": 2,
    }
    payload.update(overrides)
    return StrataConfig.from_mapping(payload)


def build_fake_toolchain(tmp_path: Path) -> Toolchain:
    return Toolchain(
        archive_builder=FakeArchiveBuilder(tmp_path / "images"),
        mounts=FakeMountFacility(),
        synchronizer=FakeSynchronizer(),
    )


def build_test_client(tmp_path: Path, **overrides: object) -> tuple[StrataClient, Toolchain]:
    """Build a client over fake collaborators and a step clock."""
    config = build_test_config(tmp_path, **overrides)
    toolchain = build_fake_toolchain(tmp_path)
    return StrataClient(config, toolchain=toolchain, clock=StepClock()), toolchain


def source_root(config: StrataConfig) -> Path:
    return Path(config.sources[0])


def _clear_directory(target: Path) -> None:
    target.mkdir(parents=True, exist_ok=True)
    for entry in target.iterdir():
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()


def _file_contents(root: Path) -> dict[str, bytes]:
    contents: dict[str, bytes] = {}
    for dir_path, _, file_names in os.walk(root):
        for name in file_names:
            path = Path(dir_path) / name
            if path.is_file() and not path.is_symlink():
                contents[str(path.relative_to(root))] = path.read_bytes()
    return contents


def _copy_changes(view: Path, upper_dir: Path, baseline: dict[str, bytes]) -> None:
    for relative_name, data in _file_contents(view).items():
        if baseline.get(relative_name) == data:
            continue
        target = upper_dir / relative_name
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(view / relative_name, target)
