"""Unit tests for privilege checks."""

from __future__ import annotations

import pytest

from core import privileges
from core.errors import StrataPrivilegeError


def test_require_root_accepts_root(monkeypatch: pytest.MonkeyPatch) -> None:
    """Effective uid 0 should pass."""
    monkeypatch.setattr(privileges.os, "geteuid", lambda: 0)

    privileges.require_root("backup")


def test_require_root_rejects_regular_user(monkeypatch: pytest.MonkeyPatch) -> None:
    """Other users should get an error naming the command."""
    monkeypatch.setattr(privileges.os, "geteuid", lambda: 1000)

    with pytest.raises(StrataPrivilegeError, match="'merge'"):
        privileges.require_root("merge")
