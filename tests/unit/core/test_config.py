"""Unit tests for core config parsing."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.config import StrataConfig
from core.constants import DEFAULT_ABORT_EXIT_CODES, DEFAULT_HIGH_WATER_MARK
from core.errors import StrataConfigError
from tests.fixture_paths import config_fixture


def test_from_file_reads_valid_config() -> None:
    """Config should load every documented field from YAML."""
    config = StrataConfig.from_file(config_fixture("valid"))

    assert config.root == Path("/srv/backup")
    assert config.sources == ("/home", "/etc")
    assert config.excludes == ("*.cache", "/home/*/tmp")
    assert (config.high_water_mark, config.low_water_mark) == (6, 3)
    assert config.block_size == 131072
    assert config.compression == "zstd"


def test_from_mapping_derives_layout_from_root(tmp_path) -> None:
    """Seed, bins, mounts, ledger, and lock should default under the root."""
    config = StrataConfig.from_mapping({"root": str(tmp_path)})

    assert config.seed_path == tmp_path / "seed.sfs"
    assert config.seed_temp_path == tmp_path / "seed.sfs.new"
    assert config.bins_root == tmp_path / ".bins"
    assert config.work_dir == tmp_path / ".bins" / ".work"
    assert config.seed_mount == tmp_path / ".seed"
    assert config.union_mount == tmp_path / "ro"
    assert config.ledger_path == tmp_path / ".binventory"
    assert config.lock_path == tmp_path / ".strata.lock"


def test_from_mapping_applies_defaults(tmp_path) -> None:
    """Missing optional fields should fall back to defaults."""
    config = StrataConfig.from_mapping({"root": str(tmp_path)})

    assert config.high_water_mark == DEFAULT_HIGH_WATER_MARK
    assert config.abort_exit_codes == DEFAULT_ABORT_EXIT_CODES
    assert config.sources == ()
    assert config.compression is None


def test_from_file_honors_root_override(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """STRATA_ROOT should replace the configured root."""
    monkeypatch.setenv("STRATA_ROOT", str(tmp_path))

    config = StrataConfig.from_file(config_fixture("valid"))

    assert config.root == tmp_path
    assert config.seed_path == tmp_path / "seed.sfs"


def test_from_env_reads_config_path(monkeypatch: pytest.MonkeyPatch) -> None:
    """STRATA_CONFIG should select the config file."""
    monkeypatch.delenv("STRATA_ROOT", raising=False)
    monkeypatch.setenv("STRATA_CONFIG", str(config_fixture("valid")))

    config = StrataConfig.from_env()

    assert config.root == Path("/srv/backup")


def test_from_file_rejects_unknown_fields() -> None:
    """Unknown keys should fail instead of being ignored."""
    with pytest.raises(StrataConfigError, match="retention_days"):
        StrataConfig.from_file(config_fixture("unknown_field"))


def test_from_file_rejects_low_mark_not_below_high() -> None:
    """A merge must leave fewer bins than the trigger count."""
    with pytest.raises(StrataConfigError, match="low_water_mark"):
        StrataConfig.from_file(config_fixture("inverted_water_marks"))


def test_from_file_rejects_non_mapping() -> None:
    """A YAML list is not a valid config document."""
    with pytest.raises(StrataConfigError, match="mapping"):
        StrataConfig.from_file(config_fixture("not_a_mapping"))


def test_from_file_rejects_missing_file(tmp_path) -> None:
    """A missing config file should name the path."""
    missing = tmp_path / "absent.yaml"

    with pytest.raises(StrataConfigError, match="absent.yaml"):
        StrataConfig.from_file(missing)


def test_from_file_rejects_invalid_yaml(tmp_path) -> None:
    """YAML syntax errors should surface as config errors."""
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("root: [unclosed\n", encoding="utf-8")

    with pytest.raises(StrataConfigError, match="parse YAML"):
        StrataConfig.from_file(config_file)


@pytest.mark.parametrize(
    "overrides",
    [
        {"high_water_mark": "7"},
        {"high_water_mark": True},
        {"low_water_mark": -1},
        {"block_size": 0},
        {"sources": "/home"},
        {"sources": ["home"]},
        {"excludes": [""]},
        {"abort_exit_codes": [0]},
        {"abort_exit_codes": ["23"]},
        {"compression": 9},
    ],
)
def test_from_mapping_rejects_invalid_values(tmp_path, overrides: dict[str, object]) -> None:
    """Malformed field values should fail validation."""
    payload: dict[str, object] = {"root": str(tmp_path)}
    payload.update(overrides)

    with pytest.raises(StrataConfigError):
        StrataConfig.from_mapping(payload)


def test_from_mapping_requires_root() -> None:
    """The backup root has no default."""
    with pytest.raises(StrataConfigError, match="root"):
        StrataConfig.from_mapping({"sources": ["/home"]})
