"""Unit tests for mount table lookups and mount invocations."""

from __future__ import annotations

from pathlib import Path

import pytest

from tools import overlay
from tools.overlay import OverlayMountFacility


def _facility(tmp_path, lines: list[str]) -> OverlayMountFacility:
    table = tmp_path / "mounts"
    table.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return OverlayMountFacility(mounts_table=table)


def test_is_mounted_matches_mount_point(tmp_path) -> None:
    """A listed mount point should be reported as mounted."""
    target = tmp_path / "ro"
    target.mkdir()
    facility = _facility(tmp_path, [f"overlay {target} overlay ro,relatime 0 0"])

    assert facility.is_mounted(target)
    assert not facility.is_mounted(tmp_path / "other")


def test_is_mounted_decodes_escaped_spaces(tmp_path) -> None:
    """Mount points with spaces are octal-escaped in the table."""
    target = tmp_path / "backup root"
    target.mkdir()
    escaped = str(target).replace(" ", "\\040")
    facility = _facility(tmp_path, [f"/dev/loop0 {escaped} squashfs ro 0 0"])

    assert facility.is_mounted(target)


def test_unmount_skips_targets_that_are_not_mounted(
    tmp_path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Unmounting an idle mount point should succeed without running umount."""
    facility = _facility(tmp_path, [])
    calls: list[list[str]] = []
    monkeypatch.setattr(overlay, "run_tool", lambda argv, tool_name: calls.append(argv) or 0)

    status = facility.unmount(tmp_path / "ro")

    assert status == 0
    assert calls == []


def test_mount_readonly_uses_loop_device(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Seed images should be loop mounted read-only."""
    facility = _facility(tmp_path, [])
    calls: list[list[str]] = []
    monkeypatch.setattr(overlay, "run_tool", lambda argv, tool_name: calls.append(argv) or 0)
    target = tmp_path / ".seed"

    facility.mount_readonly(Path("/backup/seed.sfs"), target)

    assert calls == [["mount", "-t", "squashfs", "-o", "loop,ro", "/backup/seed.sfs", str(target)]]
    assert target.is_dir()
