"""Privilege checks for commands that mount filesystems."""

from __future__ import annotations

import os

from core.errors import StrataPrivilegeError


def require_root(command: str) -> None:
    """Fail unless the effective user is root.

    Args:
        command: Command name used in the error message.

    Raises:
        StrataPrivilegeError: If the caller is not privileged.
    """
    if os.geteuid() != 0:
        raise StrataPrivilegeError(
            f"Command '{command}' mounts and unmounts filesystems and must run as root."
        )
