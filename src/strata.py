"""Public SDK surface for Strata.

This module provides a stable import path for library users.
It re-exports the primary client and typed result models.
"""

from __future__ import annotations

from backup.client import StrataClient
from core.config import StrataConfig
from core.errors import StrataError
from core.types import (
    BackupResult,
    BinRecord,
    BinSummary,
    InventoryReport,
    MergeResult,
    RestoreCandidate,
    RestoreResult,
    RollbackView,
)
from tools.toolchain import Toolchain, build_default_toolchain

__all__ = [
    "BackupResult",
    "BinRecord",
    "BinSummary",
    "InventoryReport",
    "MergeResult",
    "RestoreCandidate",
    "RestoreResult",
    "RollbackView",
    "StrataClient",
    "StrataConfig",
    "StrataError",
    "Toolchain",
    "build_default_toolchain",
]
