"""Blocking external command runner."""

from __future__ import annotations

import subprocess
import time
from typing import Sequence

from core.errors import StrataToolError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


def run_tool(argv: Sequence[str], tool_name: str) -> int:
    """Run one external command to completion and return its exit status.

    Output is passed through to the operator's terminal.

    Args:
        argv: Command and arguments; never run through a shell.
        tool_name: Short name used in log events.

    Returns:
        Process exit status.

    Raises:
        StrataToolError: If the executable cannot be started.
    """
    command = [str(part) for part in argv]
    _LOGGER.debug("tool_started", tool=tool_name, argv=command)
    started = time.monotonic()
    try:
        completed = subprocess.run(command, check=False)
    except (FileNotFoundError, PermissionError) as error:
        raise StrataToolError(
            f"Failed to start {tool_name} ('{command[0]}'): {error}. "
            f"Install {command[0]} and make sure it is on PATH."
        ) from error
    duration = round(time.monotonic() - started, 3)
    _LOGGER.info(
        "tool_finished",
        tool=tool_name,
        exit_status=completed.returncode,
        duration_seconds=duration,
    )
    return completed.returncode
