"""Core constants used across Strata modules.

This module centralizes file names, defaults, and sentinels.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

DEFAULT_CONFIG_PATH = Path("/etc/strata.yaml")
SEED_FILE_NAME = "seed.sfs"
SEED_TEMP_SUFFIX = ".new"
BINS_DIR_NAME = ".bins"
WORK_DIR_NAME = ".work"
SEED_MOUNT_DIR_NAME = ".seed"
UNION_MOUNT_DIR_NAME = "ro"
LEDGER_FILE_NAME = ".binventory"
LOCK_FILE_NAME = ".strata.lock"
DEFAULT_HIGH_WATER_MARK = 7
DEFAULT_LOW_WATER_MARK = 5
DEFAULT_BLOCK_SIZE = 65536
DEFAULT_ABORT_EXIT_CODES = (1, 2, 3, 5, 10, 11, 12, 20, 30, 35)
SEED_FROM_SOURCES = -1
SEED_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)
RESTORE_DATE_FORMAT = "%Y-%m-%d"
