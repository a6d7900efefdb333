"""Strata CLI entry points.

This module exposes backup, merge, rollback, restore, and removal commands.
It maps argparse commands onto SDK calls.
"""

from __future__ import annotations

import argparse
import sys
from typing import Any, Callable, Sequence

from backup.client import StrataClient
from cli.restore_command import PromptFn, add_restore_command, run_restore_command
from core.config import StrataConfig
from core.constants import SEED_EPOCH
from core.errors import StrataError
from core.privileges import require_root
from core.types import BinSummary

_UNPRIVILEGED_COMMANDS = frozenset({"report"})


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(
        prog="strata",
        description="Incremental layered-snapshot backups",
    )
    parser.add_argument("--config", help="Override STRATA_CONFIG for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("backup", help="Capture changes into a new bin")
    _add_merge_command(subparsers)
    subparsers.add_parser("resquash", help="Fold every live bin into the seed")
    _add_rollback_command(subparsers)
    add_restore_command(subparsers)
    _add_remove_command(subparsers)
    subparsers.add_parser("unmount", help="Unmount the composed view and the seed")
    subparsers.add_parser("report", help="Show seed and bin disk usage")
    return parser


def main(
    argv: Sequence[str] | None = None,
    client_factory: Callable[[StrataConfig], StrataClient] = StrataClient,
    prompt: PromptFn = input,
) -> int:
    """Run the Strata CLI.

    Args:
        argv: Optional argument vector.
        client_factory: Builds the SDK client from the loaded config.
        prompt: Reads interactive answers.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        if args.command not in _UNPRIVILEGED_COMMANDS:
            require_root(args.command)
        client = client_factory(_load_config(args.config))
        return _dispatch(client, args, prompt)
    except StrataError as error:
        print(f"{type(error).__name__}: {error}", file=sys.stderr)
        return 1


def _load_config(config_path: str | None) -> StrataConfig:
    if config_path:
        return StrataConfig.from_file(config_path)
    return StrataConfig.from_env()


def _dispatch(client: StrataClient, args: argparse.Namespace, prompt: PromptFn) -> int:
    if args.command == "backup":
        return _run_backup_command(client)
    if args.command == "merge":
        return _run_merge_command(client, args)
    if args.command == "resquash":
        result = client.resquash()
        print(f"merged_bins={','.join(str(item) for item in result.merged_bin_ids)}")
        return 0
    if args.command == "rollback":
        return _run_rollback_command(client, args)
    if args.command == "restore":
        return run_restore_command(client, args, prompt)
    if args.command == "remove":
        return _run_remove_command(client, args, prompt)
    if args.command == "unmount":
        client.unmount()
        return 0
    if args.command == "report":
        return _run_report_command(client)
    raise StrataError(f"Unsupported command: {args.command}")


def _run_backup_command(client: StrataClient) -> int:
    """Handle backup command.

    Args:
        client: SDK client.

    Returns:
        Exit code.
    """
    result = client.backup()
    if result.seed_created:
        print(f"seed_created={client.config.seed_path}")
        return 0
    print(f"bin_id={result.bin_id}")
    print(f"sync_status={result.sync_status}")
    if result.merge is not None:
        print(f"merged_bins={','.join(str(item) for item in result.merge.merged_bin_ids)}")
    return 0


def _run_merge_command(client: StrataClient, args: argparse.Namespace) -> int:
    """Handle merge command.

    Args:
        client: SDK client.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    result = client.merge(args.count)
    merged = ",".join(str(item) for item in result.merged_bin_ids)
    print(f"merged_bins={merged or '-'}")
    print(f"seed_path={result.seed_path}")
    return 0


def _run_rollback_command(client: StrataClient, args: argparse.Namespace) -> int:
    """Handle rollback command.

    Args:
        client: SDK client.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    view = client.rollback(args.steps)
    as_of = "seed (creation time unknown)" if view.as_of == SEED_EPOCH else view.as_of.isoformat()
    print(f"as_of={as_of}")
    print(f"kept_bins={','.join(str(item) for item in view.kept_bin_ids) or '-'}")
    print(f"mount_path={view.mount_path}")
    return 0


def _run_remove_command(
    client: StrataClient,
    args: argparse.Namespace,
    prompt: PromptFn,
) -> int:
    """Handle remove command.

    Args:
        client: SDK client.
        args: Parsed CLI args.
        prompt: Reads the confirmation answer.

    Returns:
        Exit code.
    """

    def _confirm(summary: BinSummary) -> bool:
        print(
            f"bin {summary.bin_id}: {_format_size(summary.size_bytes)}, "
            f"created {summary.created_at.isoformat()}"
        )
        return prompt("Delete this bin? [y/N] ").strip().lower() in {"y", "yes"}

    removed = client.remove_bin(args.bin_id, confirmed=args.yes, confirm=_confirm)
    print(f"removed={'yes' if removed else 'no'}")
    return 0


def _run_report_command(client: StrataClient) -> int:
    """Handle report command.

    Args:
        client: SDK client.

    Returns:
        Exit code.
    """
    report = client.report()
    print(f"seed\t{_format_size(report.seed_size_bytes)}\t{report.seed_path}")
    for summary in report.bins:
        print(
            f"bin {summary.bin_id}\t"
            f"{_format_size(summary.size_bytes)}\t"
            f"{summary.created_at.isoformat()}"
        )
    print(f"total\t{_format_size(report.total_bytes)}")
    return 0


def _format_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    size = float(size_bytes)
    for unit in ("KiB", "MiB", "GiB"):
        size /= 1024
        if size < 1024:
            break
    return f"{size:.1f} {unit}"


def _add_merge_command(subparsers: Any) -> None:
    """Register merge subcommand."""
    parser = subparsers.add_parser("merge", help="Fold the oldest bins into the seed")
    parser.add_argument("count", type=int, help="Number of oldest bins to merge")


def _add_rollback_command(subparsers: Any) -> None:
    """Register rollback subcommand."""
    parser = subparsers.add_parser(
        "rollback",
        help="Mount a read-only view excluding the newest bins",
    )
    parser.add_argument("steps", type=int, help="Number of newest bins to exclude")


def _add_remove_command(subparsers: Any) -> None:
    """Register remove subcommand."""
    parser = subparsers.add_parser("remove", help="Delete one bin without merging it")
    parser.add_argument("bin_id", type=int, help="Bin id as shown by 'strata report'")
    parser.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
