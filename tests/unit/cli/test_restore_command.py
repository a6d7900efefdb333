"""Unit tests for the restore CLI command."""

from __future__ import annotations

import pytest

from backup.client import StrataClient
from cli.main import main
from core.config import StrataConfig
from tests.fake_toolchain import StepClock, build_fake_toolchain


@pytest.fixture(autouse=True)
def _as_root(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("core.privileges.os.geteuid", lambda: 0)


def _prepare(tmp_path):
    source = tmp_path / "system" / "home"
    source.mkdir(parents=True)
    config = StrataConfig.from_mapping(
        {"root": str(tmp_path / "backup"), "sources": [str(source)]}
    )
    toolchain = build_fake_toolchain(tmp_path)
    client = StrataClient(config, toolchain=toolchain, clock=StepClock())
    (source / "notes.txt").write_text("v0", encoding="utf-8")
    client.backup()
    (source / "notes.txt").write_text("v1", encoding="utf-8")
    client.backup()
    config_file = tmp_path / "strata.yaml"
    config_file.write_text(
        f"root: {config.root}\nsources:\n  - {source}\n", encoding="utf-8"
    )
    return config_file, client, source


def test_cli_restore_prompts_for_selection(tmp_path, capsys) -> None:
    """Without --select the candidates are listed and one is chosen."""
    config_file, client, source = _prepare(tmp_path)
    destination = tmp_path / "out"

    exit_code = main(
        [
            "--config",
            str(config_file),
            "restore",
            str(source / "notes.txt"),
            "--destination",
            str(destination),
        ],
        client_factory=lambda _: client,
        prompt=lambda _: "1",
    )
    output = capsys.readouterr().out

    assert exit_code == 0
    assert output.index("[1]") < output.index("[0]")
    assert (destination / "notes.txt.2024-03-01").read_text(encoding="utf-8") == "v1"


def test_cli_restore_with_select_skips_prompt(tmp_path, capsys) -> None:
    """--select restores directly."""
    config_file, client, source = _prepare(tmp_path)

    def _no_prompt(_: str) -> str:
        raise AssertionError("prompt should not be shown")

    exit_code = main(
        [
            "--config",
            str(config_file),
            "restore",
            str(source / "notes.txt"),
            "--select",
            "0",
            "--destination",
            str(tmp_path / "out"),
        ],
        client_factory=lambda _: client,
        prompt=_no_prompt,
    )

    assert exit_code == 0
    assert "composed_bins=-" in capsys.readouterr().out


def test_cli_restore_rejects_non_numeric_selection(tmp_path, capsys) -> None:
    """A typed answer that is not a number fails cleanly."""
    config_file, client, source = _prepare(tmp_path)

    exit_code = main(
        ["--config", str(config_file), "restore", str(source / "notes.txt")],
        client_factory=lambda _: client,
        prompt=lambda _: "latest",
    )

    assert exit_code == 1
    assert "Invalid selection 'latest'" in capsys.readouterr().err
