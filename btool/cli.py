"""Command-line interface for btool."""

from __future__ import annotations

import argparse
import os
from collections.abc import Sequence

from .errors import BtoolError
from .listing import list_snaps
from .prune import PruneOptions, prune
from .restore import restore
from .snap import snap
from .snaps import get_sorted_snaps

_COMPLETION_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def snapshot_completions(directory: str | os.PathLike[str] | None = None) -> list[str]:
    """Return completion suggestions for snapshot identifiers.

    Each suggestion is the numeric ID, a tab, and a short description made of
    the hash prefix, the timestamp and the message. Failures yield no
    suggestions.
    """
    if directory is None or directory == "":
        try:
            directory = os.getcwd()
        except OSError:
            return []
    try:
        snaps = get_sorted_snaps(directory)
    except (OSError, BtoolError):
        return []
    return [
        f"{detail.id}\t{detail.hash[:7]} "
        f"{detail.timestamp.strftime(_COMPLETION_TIME_FORMAT)} - {detail.message}"
        for detail in snaps
    ]


def _run_snap(args: argparse.Namespace) -> None:
    snap(args.directory, args.message)


def _run_list(args: argparse.Namespace) -> None:
    list_snaps(args.directory)


def _run_restore(args: argparse.Namespace) -> None:
    output = args.output or args.directory
    restore(args.directory, args.snap_identifier, output)


def _run_prune(args: argparse.Namespace) -> None:
    prune(args.directory, PruneOptions(snap_identifier=args.snap_identifier))


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all btool subcommands."""
    parser = argparse.ArgumentParser(prog="btool")
    commands = parser.add_subparsers(dest="command", metavar="<command>")

    snap_parser = commands.add_parser("snap", help="Create a new snap for a directory.")
    snap_parser.add_argument("directory", nargs="?", default=".")
    snap_parser.add_argument(
        "-m", "--message", default="", help="A message to associate with the snap"
    )
    snap_parser.set_defaults(handler=_run_snap)

    list_parser = commands.add_parser("list", help="List all available snaps for a directory.")
    list_parser.add_argument("directory", nargs="?", default=".")
    list_parser.set_defaults(handler=_run_list)

    restore_parser = commands.add_parser(
        "restore",
        help="Restore a directory state from a snapshot.",
        description=(
            "Restores a snapshot to a specified directory. The target directory "
            "will be modified to match the state of the snapshot."
        ),
    )
    restore_parser.add_argument("snap_identifier", metavar="snap_id_or_hash")
    restore_parser.add_argument(
        "-d",
        "--directory",
        default=".",
        help="The directory containing the .btool database",
    )
    restore_parser.add_argument(
        "-o",
        "--output",
        default="",
        help="The directory to restore files to (defaults to source directory)",
    )
    restore_parser.set_defaults(handler=_run_restore)

    prune_parser = commands.add_parser(
        "prune",
        help="Remove snapshots older than the specified one.",
        description=(
            "Prunes the backup repository by removing all snapshots older than the "
            "specified snapshot and safely garbage-collecting all data that is no "
            "longer referenced by any of the kept snapshots."
        ),
    )
    prune_parser.add_argument("snap_identifier", metavar="snap-identifier")
    prune_parser.add_argument("directory", nargs="?", default=".")
    prune_parser.set_defaults(handler=_run_prune)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run btool with ``argv`` and return the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 0
    try:
        handler(args)
    except (BtoolError, OSError) as exc:
        print(exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())