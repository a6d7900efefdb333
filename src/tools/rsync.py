"""File synchronizer backed by rsync."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from tools.process import run_tool


class RsyncSynchronizer:
    """Copy source trees into a destination with their full paths kept.

    ``--relative`` stores ``/home/user`` as ``<destination>/home/user`` so
    restore lookups can use the original absolute path.
    """

    def __init__(self, executable: str = "rsync") -> None:
        self._executable = executable

    def sync(self, source_paths: Sequence[str], excludes: Sequence[str], destination: Path) -> int:
        """Synchronize sources into ``destination`` and return the exit status."""
        return run_tool(
            build_rsync_command(self._executable, source_paths, excludes, destination),
            tool_name="rsync",
        )


def build_rsync_command(
    executable: str,
    source_paths: Sequence[str],
    excludes: Sequence[str],
    destination: Path,
) -> list[str]:
    """Build the rsync argument vector."""
    command = [executable, "--archive", "--relative", "--delete", "--hard-links", "--xattrs"]
    command += [f"--exclude={pattern}" for pattern in excludes]
    command += list(source_paths)
    command.append(str(destination).rstrip("/") + "/")
    return command
