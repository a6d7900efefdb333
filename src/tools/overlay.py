"""Union mount facility backed by mount(8) and overlayfs."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Sequence

from tools.process import run_tool

_PROC_MOUNTS = Path("/proc/self/mounts")


class OverlayMountFacility:
    """Mount squashfs images and overlay unions.

    ``lower_dirs`` are always given bottom to top (seed first); overlayfs
    expects the reverse, so the order is flipped when building options.
    """

    def __init__(self, mounts_table: Path = _PROC_MOUNTS) -> None:
        self._mounts_table = mounts_table

    def mount_readonly(self, image: Path, target: Path) -> int:
        """Loop-mount a squashfs image read-only, creating ``target`` if needed."""
        target.mkdir(parents=True, exist_ok=True)
        return run_tool(
            ["mount", "-t", "squashfs", "-o", "loop,ro", str(image), str(target)],
            tool_name="mount",
        )

    def mount_overlay(
        self,
        lower_dirs: Sequence[Path],
        upper_dir: Path | None,
        work_dir: Path | None,
        target: Path,
    ) -> int:
        """Mount an overlay union; see ``build_overlay_command`` for the options."""
        target.mkdir(parents=True, exist_ok=True)
        return run_tool(build_overlay_command(lower_dirs, upper_dir, work_dir, target), "mount")

    def unmount(self, target: Path) -> int:
        """Unmount ``target``; succeeds without action when nothing is mounted."""
        if not self.is_mounted(target):
            return 0
        return run_tool(["umount", str(target)], tool_name="umount")

    def is_mounted(self, target: Path) -> bool:
        """Check the mount table for ``target``.

        Falls back to ``os.path.ismount`` when the table cannot be read.
        """
        wanted = os.path.realpath(target)
        try:
            content = self._mounts_table.read_text(encoding="utf-8")
        except OSError:
            return os.path.ismount(wanted)
        for line in content.splitlines():
            fields = line.split()
            if len(fields) >= 2 and _decode_mount_path(fields[1]) == wanted:
                return True
        return False


def build_overlay_command(
    lower_dirs: Sequence[Path],
    upper_dir: Path | None,
    work_dir: Path | None,
    target: Path,
) -> list[str]:
    """Build the mount argument vector for a composed view.

    A single read-only layer cannot form an overlay, so it is bind
    mounted read-only instead.
    """
    if upper_dir is None and len(lower_dirs) == 1:
        return ["mount", "--bind", "-o", "ro", str(lower_dirs[0]), str(target)]
    options = "lowerdir=" + ":".join(str(path) for path in reversed(lower_dirs))
    if upper_dir is not None:
        options += f",upperdir={upper_dir},workdir={work_dir}"
    return ["mount", "-t", "overlay", "overlay", "-o", options, str(target)]


def _decode_mount_path(raw_path: str) -> str:
    """Undo the octal escapes used in the kernel mount table."""
    return (
        raw_path.replace("\\040", " ")
        .replace("\\011", "\t")
        .replace("\\012", "\n")
        .replace("\\134", "\\")
    )
