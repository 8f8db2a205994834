"""The ``list`` command: show the snapshots of a directory."""

from __future__ import annotations

import math
import os
from datetime import datetime, timedelta, timezone

from .config import get_packs_dir
from .errors import BtoolError
from .snaps import get_sorted_snaps

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")
_ROW = "{:<10} {:<10} {:<28} {:<15} {:<15} {}"


def format_bytes(num_bytes: int, decimals: int = 2) -> str:
    """Render a byte count with a binary unit, e.g. ``1.50 KB``."""
    if num_bytes == 0:
        return "0 Bytes"
    decimals = max(decimals, 0)
    k = 1024
    index = min(int(math.floor(math.log(num_bytes) / math.log(k))), len(_SIZE_UNITS) - 1)
    value = num_bytes / math.pow(k, index)
    return f"{value:.{decimals}f} {_SIZE_UNITS[index]}"


def stored_objects_size(base_dir: str | os.PathLike[str]) -> int:
    """Return the total size of all packfiles of a repository."""
    try:
        with os.scandir(get_packs_dir(base_dir)) as entries:
            total = 0
            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    continue
                try:
                    total += entry.stat(follow_symlinks=False).st_size
                except OSError:
                    continue
            return total
    except FileNotFoundError:
        return 0


def _zone_name(moment: datetime) -> str:
    offset = moment.utcoffset() or timedelta(0)
    if offset == timedelta(0):
        return "UTC"
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{sign}{minutes // 60:02d}{minutes % 60:02d}"


def _format_timestamp(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return f"{moment.strftime('%Y-%m-%d %H:%M:%S')} {_zone_name(moment)}"


def list_snaps(target_directory: str | os.PathLike[str]) -> None:
    """Print a table of the snapshots of ``target_directory``."""
    target = os.path.abspath(target_directory)
    try:
        os.stat(target)
    except FileNotFoundError:
        raise BtoolError(f"target directory does not exist: {target}") from None

    try:
        snaps = get_sorted_snaps(target)
    except OSError as exc:
        raise BtoolError(f"failed to get snapshots: {exc}") from exc

    if not snaps:
        print(f'No snaps found for "{target}".')
        return

    try:
        total_stored = stored_objects_size(target)
    except OSError as exc:
        raise BtoolError(f"failed to calculate stored size: {exc}") from exc

    print(f'Snaps for "{target}":')
    print(_ROW.format("SNAPSHOT", "HASH", "TIMESTAMP", "SOURCE SIZE", "SNAP SIZE", "MESSAGE"))
    print(
        _ROW.format(
            "=======",
            "=======",
            "=======================",
            "=============",
            "=============",
            "=======",
        )
    )
    for detail in snaps:
        print(
            _ROW.format(
                str(detail.id),
                detail.hash[:7],
                _format_timestamp(detail.timestamp),
                format_bytes(detail.source_size, 2),
                format_bytes(detail.snap_size, 2),
                detail.message,
            )
        )

    print(f"\nTotal stored size of all objects: {format_bytes(total_stored, 2)}")