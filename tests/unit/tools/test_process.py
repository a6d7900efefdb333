"""Unit tests for the external command runner."""

from __future__ import annotations

import sys

import pytest

from core.errors import StrataToolError
from tools.process import run_tool


def test_run_tool_returns_exit_status() -> None:
    """Non-zero statuses are returned, not raised."""
    status = run_tool([sys.executable, "-c", "raise SystemExit(23)"], tool_name="sample")

    assert status == 23


def test_run_tool_reports_missing_executable() -> None:
    """A missing executable should name the tool and the fix."""
    with pytest.raises(StrataToolError, match="Install strata-no-such-tool"):
        run_tool(["strata-no-such-tool"], tool_name="sample")
