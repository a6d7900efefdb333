"""Restore command wiring for Strata CLI."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Callable

from backup.client import StrataClient
from core.errors import StrataArgumentError
from core.types import RestoreCandidate

PromptFn = Callable[[str], str]


def add_restore_command(subparsers: Any) -> None:
    """Register restore subcommand."""
    parser = subparsers.add_parser(
        "restore",
        help="Copy a path out of a chosen historical point",
    )
    parser.add_argument("path", help="Absolute path as it existed on the backed-up system")
    parser.add_argument(
        "--select",
        type=int,
        help="Candidate index to restore; prompts when omitted",
    )
    parser.add_argument(
        "--destination",
        default=".",
        help="Directory receiving the restored copy",
    )


def run_restore_command(
    client: StrataClient,
    args: argparse.Namespace,
    prompt: PromptFn = input,
) -> int:
    """List candidates, pick one, and restore it."""
    candidates = client.find(args.path)
    for line in render_candidates(candidates):
        print(line)
    index = args.select
    if index is None:
        index = _parse_selection(prompt("Restore which point? "))
    result = client.restore(args.path, index, Path(args.destination).expanduser().resolve())
    print(f"restored={result.destination}")
    print(f"composed_bins={','.join(str(item) for item in result.composed_bin_ids) or '-'}")
    return 0


def render_candidates(candidates: list[RestoreCandidate]) -> list[str]:
    """Format candidates newest first, one per line."""
    lines = []
    for candidate in candidates:
        owner = "seed" if candidate.bin_id is None else f"bin {candidate.bin_id}"
        lines.append(
            f"[{candidate.index}]\t{candidate.timestamp.isoformat()}\t{owner}\t{candidate.location}"
        )
    return lines


def _parse_selection(raw_value: str) -> int:
    try:
        return int(raw_value.strip())
    except ValueError as error:
        raise StrataArgumentError(
            f"Invalid selection '{raw_value.strip()}': enter one of the bracketed numbers."
        ) from error
