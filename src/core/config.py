"""Runtime configuration model for Strata.

This module owns all configuration file and environment parsing.
Other modules consume a typed config object instead of raw mappings.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Mapping, Sequence, cast

from core.constants import (
    BINS_DIR_NAME,
    DEFAULT_ABORT_EXIT_CODES,
    DEFAULT_BLOCK_SIZE,
    DEFAULT_CONFIG_PATH,
    DEFAULT_HIGH_WATER_MARK,
    DEFAULT_LOW_WATER_MARK,
    LEDGER_FILE_NAME,
    LOCK_FILE_NAME,
    SEED_FILE_NAME,
    SEED_MOUNT_DIR_NAME,
    SEED_TEMP_SUFFIX,
    UNION_MOUNT_DIR_NAME,
    WORK_DIR_NAME,
)
from core.errors import StrataConfigError, StrataDependencyError

_ALLOWED_KEYS = frozenset(
    {
        "root",
        "sources",
        "excludes",
        "high_water_mark",
        "low_water_mark",
        "abort_exit_codes",
        "block_size",
        "compression",
        "seed_path",
        "bins_root",
        "seed_mount",
        "union_mount",
        "ledger_path",
        "lock_path",
    }
)


@dataclass(frozen=True)
class StrataConfig:
    """Validated runtime configuration.

    Attributes:
        root: Backup root directory holding seed, bins, and mount points.
        sources: Absolute paths captured on every backup.
        excludes: Patterns skipped by the synchronizer and archive builder.
        high_water_mark: Live bin count at which a merge runs.
        low_water_mark: Live bin count left behind after a merge.
        abort_exit_codes: Synchronizer statuses that discard the new bin.
        block_size: Archive block size in bytes.
        compression: Optional archive compressor name.
        seed_path: Location of the read-only seed archive.
        bins_root: Directory holding numbered bin directories.
        seed_mount: Mount point of the seed archive.
        union_mount: Mount point of the composed view.
        ledger_path: Location of the bin inventory ledger.
        lock_path: Location of the operation lock file.
    """

    root: Path
    sources: tuple[str, ...]
    excludes: tuple[str, ...]
    high_water_mark: int
    low_water_mark: int
    abort_exit_codes: tuple[int, ...]
    block_size: int
    compression: str | None
    seed_path: Path
    bins_root: Path
    seed_mount: Path
    union_mount: Path
    ledger_path: Path
    lock_path: Path

    @property
    def work_dir(self) -> Path:
        """Overlay scratch directory, kept on the same filesystem as the bins."""
        return self.bins_root / WORK_DIR_NAME

    @property
    def seed_temp_path(self) -> Path:
        """Path where a replacement seed is built before the atomic swap."""
        return self.seed_path.with_name(self.seed_path.name + SEED_TEMP_SUFFIX)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> "StrataConfig":
        """Build config from a parsed mapping.

        Args:
            payload: Mapping with configuration keys.

        Returns:
            A validated config object.

        Raises:
            StrataConfigError: If keys or values are invalid.
        """
        _validate_keys(payload)
        raw_root = payload.get("root")
        if not isinstance(raw_root, (str, Path)) or not str(raw_root).strip():
            raise StrataConfigError(
                "Config field 'root' is required. Set it to the backup root directory."
            )
        root = Path(raw_root).expanduser().resolve()
        high_water_mark = _parse_int(payload, "high_water_mark", DEFAULT_HIGH_WATER_MARK)
        low_water_mark = _parse_int(payload, "low_water_mark", DEFAULT_LOW_WATER_MARK)
        _validate_water_marks(high_water_mark, low_water_mark)
        block_size = _parse_int(payload, "block_size", DEFAULT_BLOCK_SIZE)
        if block_size <= 0:
            raise StrataConfigError(
                f"Config field 'block_size' must be positive, got {block_size}."
            )
        bins_root = _parse_path(payload, "bins_root", root / BINS_DIR_NAME)
        return cls(
            root=root,
            sources=_parse_sources(payload),
            excludes=_parse_strings(payload, "excludes"),
            high_water_mark=high_water_mark,
            low_water_mark=low_water_mark,
            abort_exit_codes=_parse_exit_codes(payload),
            block_size=block_size,
            compression=_parse_optional_string(payload, "compression"),
            seed_path=_parse_path(payload, "seed_path", root / SEED_FILE_NAME),
            bins_root=bins_root,
            seed_mount=_parse_path(payload, "seed_mount", root / SEED_MOUNT_DIR_NAME),
            union_mount=_parse_path(payload, "union_mount", root / UNION_MOUNT_DIR_NAME),
            ledger_path=_parse_path(payload, "ledger_path", root / LEDGER_FILE_NAME),
            lock_path=_parse_path(payload, "lock_path", root / LOCK_FILE_NAME),
        )

    @classmethod
    def from_file(cls, config_path: str | Path) -> "StrataConfig":
        """Load config from a YAML file, honoring STRATA_ROOT.

        Args:
            config_path: YAML configuration file path.

        Returns:
            A validated config object.

        Raises:
            StrataConfigError: If the file is missing or invalid.
            StrataDependencyError: If PyYAML is unavailable.
        """
        payload = dict(_load_yaml_mapping(Path(config_path).expanduser()))
        root_override = os.getenv("STRATA_ROOT")
        if root_override:
            payload["root"] = root_override
        return cls.from_mapping(payload)

    @classmethod
    def from_env(cls) -> "StrataConfig":
        """Load config from the file named by STRATA_CONFIG.

        Returns:
            A validated config object.
        """
        config_path = os.getenv("STRATA_CONFIG", str(DEFAULT_CONFIG_PATH))
        return cls.from_file(config_path)


def _load_yaml_mapping(config_file: Path) -> Mapping[str, object]:
    """Read a YAML config file into a mapping.

    Args:
        config_file: Path of the YAML file.

    Returns:
        Top-level mapping of option names to raw values.

    Raises:
        StrataDependencyError: If PyYAML is not installed.
        StrataConfigError: If the file is missing, unreadable, or not a mapping.
    """
    try:
        import yaml  # type: ignore[import-untyped]
    except ImportError as error:  # pragma: no cover - dependency failure
        raise StrataDependencyError(
            "Config loading requires PyYAML. Install with 'pip install pyyaml'."
        ) from error
    if not config_file.exists():
        raise StrataConfigError(
            f"Config file does not exist at {config_file}. "
            "Pass --config or set STRATA_CONFIG to a valid YAML file."
        )
    try:
        payload = cast(object, yaml.safe_load(config_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise StrataConfigError(
            f"Failed to read config at {config_file}: {error}. Check file permissions."
        ) from error
    except yaml.YAMLError as error:
        raise StrataConfigError(
            f"Failed to parse YAML config at {config_file}: {error}. Fix YAML syntax and retry."
        ) from error
    if not isinstance(payload, Mapping):
        raise StrataConfigError(
            f"Config at {config_file} must be a mapping of option names to values."
        )
    return cast(Mapping[str, object], payload)


def _validate_keys(payload: Mapping[str, object]) -> None:
    """Reject option names the config does not know.

    Raises:
        StrataConfigError: If any key is unrecognized.
    """
    unknown_keys = sorted(str(key) for key in set(payload) - _ALLOWED_KEYS)
    if unknown_keys:
        raise StrataConfigError(f"Config contains unknown fields: {', '.join(unknown_keys)}.")


def _parse_int(payload: Mapping[str, object], field_name: str, default: int) -> int:
    """Parse an optional integer field.

    Args:
        payload: Raw config mapping.
        field_name: Field to read.
        default: Value used when the field is absent.

    Returns:
        Parsed integer.

    Raises:
        StrataConfigError: If the value is not an integer. Booleans are refused.
    """
    raw_value = payload.get(field_name)
    if raw_value is None:
        return default
    if isinstance(raw_value, bool) or not isinstance(raw_value, int):
        raise StrataConfigError(
            f"Config field '{field_name}' must be an integer, got '{raw_value}'."
        )
    return raw_value


def _validate_water_marks(high_water_mark: int, low_water_mark: int) -> None:
    """Require ``0 <= low_water_mark < high_water_mark``.

    Raises:
        StrataConfigError: If the marks leave no room to merge.
    """
    if low_water_mark < 0:
        raise StrataConfigError(
            f"Config field 'low_water_mark' must not be negative, got {low_water_mark}."
        )
    if low_water_mark >= high_water_mark:
        raise StrataConfigError(
            f"Config field 'low_water_mark' ({low_water_mark}) must be below "
            f"'high_water_mark' ({high_water_mark}) so merges can make room."
        )


def _parse_strings(payload: Mapping[str, object], field_name: str) -> tuple[str, ...]:
    """Parse an optional list of non-empty strings.

    Returns:
        Stripped entries, or an empty tuple when the field is absent.

    Raises:
        StrataConfigError: If the value is not a list of non-empty strings.
    """
    raw_value = payload.get(field_name)
    if raw_value is None:
        return ()
    if isinstance(raw_value, str) or not isinstance(raw_value, Sequence):
        raise StrataConfigError(f"Config field '{field_name}' must be a list of strings.")
    values = []
    for item in raw_value:
        if not isinstance(item, str) or not item.strip():
            raise StrataConfigError(
                f"Config field '{field_name}' contains an empty or non-string entry."
            )
        values.append(item.strip())
    return tuple(values)


def _parse_sources(payload: Mapping[str, object]) -> tuple[str, ...]:
    """Parse source directories, which must be absolute paths.

    Raises:
        StrataConfigError: If a source is relative.
    """
    sources = _parse_strings(payload, "sources")
    for source in sources:
        if not source.startswith("/"):
            raise StrataConfigError(
                f"Source path '{source}' must be absolute. Restore lookups depend on full paths."
            )
    return sources


def _parse_exit_codes(payload: Mapping[str, object]) -> tuple[int, ...]:
    """Parse the synchronizer exit statuses that abort a capture.

    Returns:
        Configured codes, or the defaults when the field is absent.

    Raises:
        StrataConfigError: If an entry is not a positive integer.
    """
    raw_value = payload.get("abort_exit_codes")
    if raw_value is None:
        return DEFAULT_ABORT_EXIT_CODES
    if isinstance(raw_value, str) or not isinstance(raw_value, Sequence):
        raise StrataConfigError("Config field 'abort_exit_codes' must be a list of integers.")
    codes = []
    for item in raw_value:
        if isinstance(item, bool) or not isinstance(item, int) or item <= 0:
            raise StrataConfigError(
                f"Config field 'abort_exit_codes' entry '{item}' must be a positive integer."
            )
        codes.append(item)
    return tuple(codes)


def _parse_optional_string(payload: Mapping[str, object], field_name: str) -> str | None:
    """Parse an optional string, treating blank values as unset."""
    raw_value = payload.get(field_name)
    if raw_value is None:
        return None
    if isinstance(raw_value, str):
        normalized_value = raw_value.strip()
        return normalized_value if normalized_value else None
    raise StrataConfigError(f"Config field '{field_name}' must be a string when provided.")


def _parse_path(payload: Mapping[str, object], field_name: str, default: Path) -> Path:
    """Parse an optional path field into an absolute path.

    Args:
        payload: Raw config mapping.
        field_name: Field to read.
        default: Path used when the field is absent.

    Returns:
        Expanded and resolved path.

    Raises:
        StrataConfigError: If the value is not a non-empty path string.
    """
    raw_value = payload.get(field_name)
    if raw_value is None:
        return default
    if not isinstance(raw_value, (str, Path)) or not str(raw_value).strip():
        raise StrataConfigError(f"Config field '{field_name}' must be a path string.")
    return Path(raw_value).expanduser().resolve()
