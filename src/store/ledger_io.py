"""Ledger table parsing and atomic persistence helpers.

This module isolates the ``id:timestamp`` text format and the
temp-file-then-rename write path. It keeps the ledger class focused
on inventory semantics.
"""

from __future__ import annotations

import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from core.errors import StrataLedgerError
from core.types import BinRecord


def format_ledger(records: list[BinRecord]) -> str:
    """Render ledger records as one ``id:timestamp`` line each.

    Args:
        records: Records in on-disk order.

    Returns:
        Ledger file content.
    """
    lines = [f"{record.bin_id}:{record.created_at.timestamp():.6f}" for record in records]
    return "".join(line + "\n" for line in lines)


def parse_ledger(ledger_path: Path, content: str) -> list[BinRecord]:
    """Parse ledger file content.

    Args:
        ledger_path: Ledger path used in error messages.
        content: Raw file content.

    Returns:
        Records in on-disk order.

    Raises:
        StrataLedgerError: If a line is malformed or an id repeats.
    """
    records: list[BinRecord] = []
    seen_ids: set[int] = set()
    for line_number, line in enumerate(content.splitlines(), 1):
        if not line.strip():
            continue
        record = _parse_line(ledger_path, line.strip(), line_number)
        if record.bin_id in seen_ids:
            raise StrataLedgerError(
                f"Duplicate bin id {record.bin_id} in ledger at {ledger_path}:{line_number}. "
                "Repair the ledger by hand before running further operations."
            )
        seen_ids.add(record.bin_id)
        records.append(record)
    return records


def read_ledger_file(ledger_path: Path) -> list[BinRecord]:
    """Read ledger records, treating a missing file as empty."""
    if not ledger_path.exists():
        return []
    try:
        content = ledger_path.read_text(encoding="utf-8")
    except OSError as error:
        raise StrataLedgerError(f"Failed to read ledger at {ledger_path}: {error}.") from error
    return parse_ledger(ledger_path, content)


def write_ledger_file(ledger_path: Path, records: list[BinRecord]) -> None:
    """Atomically replace the ledger with the given records.

    The new content is written to a temp file in the same directory,
    fsync'd, and renamed over the ledger.

    Raises:
        StrataLedgerError: If the durable store cannot be updated.
    """
    content = format_ledger(records)
    temp_name: str | None = None
    try:
        ledger_path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=ledger_path.parent,
            prefix=f".{ledger_path.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            temp_name = handle.name
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_name, ledger_path)
        temp_name = None
    except OSError as error:
        raise StrataLedgerError(
            f"Failed to write ledger at {ledger_path}: {error}. "
            "Check free space and permissions on the backup root."
        ) from error
    finally:
        if temp_name is not None:
            Path(temp_name).unlink(missing_ok=True)


def _parse_line(ledger_path: Path, line: str, line_number: int) -> BinRecord:
    raw_id, separator, raw_timestamp = line.partition(":")
    if not separator:
        raise StrataLedgerError(
            f"Malformed ledger line at {ledger_path}:{line_number}: expected 'id:timestamp'."
        )
    try:
        bin_id = int(raw_id)
        timestamp = float(raw_timestamp)
    except ValueError as error:
        raise StrataLedgerError(
            f"Malformed ledger line at {ledger_path}:{line_number}: '{line}'. "
            "Expected a numeric bin id and epoch timestamp."
        ) from error
    if bin_id <= 0:
        raise StrataLedgerError(
            f"Invalid bin id {bin_id} at {ledger_path}:{line_number}: ids must be positive."
        )
    return BinRecord(bin_id=bin_id, created_at=datetime.fromtimestamp(timestamp, tz=timezone.utc))
