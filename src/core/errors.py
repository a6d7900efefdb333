"""Strata exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations


class StrataError(Exception):
    """Base exception for all Strata failures."""


class StrataConfigError(StrataError):
    """Raised for invalid runtime configuration."""


class StrataDependencyError(StrataError):
    """Raised when a required runtime dependency is missing."""


class StrataLedgerError(StrataError):
    """Raised when the bin ledger cannot be read or written."""


class StrataIntegrityError(StrataError):
    """Raised when ledger entries and bin directories disagree."""


class StrataStoreError(StrataError):
    """Raised for bin directory creation and deletion failures."""


class StrataAllocationError(StrataError):
    """Raised when no unused bin id remains below the configured limit."""


class StrataMountError(StrataError):
    """Raised when a mount or unmount request is rejected."""


class StrataMountOrderError(StrataMountError):
    """Raised when the seed would be unmounted beneath a live union view."""


class StrataSyncAbortedError(StrataError):
    """Raised when the synchronizer reports an unrecoverable transfer failure."""


class StrataMergeError(StrataError):
    """Raised when building a replacement seed fails."""


class StrataArgumentError(StrataError):
    """Raised for invalid rollback counts, merge selections, or restore picks."""


class StrataNotFoundError(StrataError):
    """Raised when a bin, seed, or restore path does not exist."""


class StrataPrivilegeError(StrataError):
    """Raised when a root-only command runs without privileges."""


class StrataLockError(StrataError):
    """Raised when another operation already holds the operation lock."""


class StrataToolError(StrataError):
    """Raised when an external tool cannot be started."""


class StrataPartialBinError(StrataStoreError):
    """Raised when an interrupted capture leaves a bin that cannot be discarded."""
