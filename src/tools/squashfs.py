"""Archive builder backed by mksquashfs."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from tools.process import run_tool


class SquashfsArchiveBuilder:
    """Build read-only squashfs images.

    By default each source's contents land at the image root. With
    ``keep_paths`` the full source paths are kept, matching the
    synchronizer's relative layout inside bins.
    """

    def __init__(self, compression: str | None = None, executable: str = "mksquashfs") -> None:
        self._compression = compression
        self._executable = executable

    def build(
        self,
        source_paths: Sequence[str | Path],
        output_path: Path,
        block_size: int,
        excludes: Sequence[str],
        keep_paths: bool = False,
    ) -> int:
        """Write a new image at ``output_path`` and return the exit status."""
        return run_tool(
            build_mksquashfs_command(
                self._executable,
                source_paths,
                output_path,
                block_size,
                excludes,
                self._compression,
                keep_paths,
            ),
            tool_name="mksquashfs",
        )


def build_mksquashfs_command(
    executable: str,
    source_paths: Sequence[str | Path],
    output_path: Path,
    block_size: int,
    excludes: Sequence[str],
    compression: str | None,
    keep_paths: bool = False,
) -> list[str]:
    """Build the mksquashfs argument vector."""
    command = [executable, *[str(path) for path in source_paths], str(output_path)]
    command += ["-b", str(block_size), "-noappend"]
    if keep_paths:
        command.append("-no-strip")
    if compression:
        command += ["-comp", compression]
    if excludes:
        command += ["-wildcards", "-e", *excludes]
    return command
