"""Reading and locating snapshot manifests."""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from .config import get_snaps_dir
from .errors import BtoolError, SnapNotFoundError
from .types import Snap

_SNAP_SUFFIX = ".json"
_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})"
)
_INTEGER = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


@dataclass(frozen=True)
class SnapDetail:
    """A snapshot manifest together with its hash (the manifest's file name)."""

    id: int
    hash: str
    timestamp: datetime
    message: str
    root_tree_hash: str
    source_size: int
    snap_size: int


def _parse_timestamp(text: str) -> datetime:
    match = _RFC3339.fullmatch(text)
    if match is None:
        raise ValueError(f"invalid RFC 3339 timestamp: {text!r}")
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    microsecond = int((fraction or "").ljust(6, "0")[:6])
    if zone == "Z":
        tzinfo = timezone.utc
    else:
        sign = -1 if zone[0] == "-" else 1
        offset = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
        tzinfo = timezone(sign * offset)
    return datetime(
        int(year),
        int(month),
        int(day),
        int(hour),
        int(minute),
        int(second),
        microsecond,
        tzinfo=tzinfo,
    )


def _read_snap(path: str, snap_hash: str) -> SnapDetail | None:
    try:
        with open(path, "rb") as handle:
            snap = Snap.from_dict(json.loads(handle.read()))
        timestamp = _parse_timestamp(snap.timestamp)
    except (OSError, ValueError):
        return None
    return SnapDetail(
        id=snap.id,
        hash=snap_hash,
        timestamp=timestamp,
        message=snap.message,
        root_tree_hash=snap.root_tree_hash,
        source_size=snap.source_size,
        snap_size=snap.snap_size,
    )


def get_sorted_snaps(base_dir: str | os.PathLike[str]) -> list[SnapDetail]:
    """Return every readable snapshot of a repository, ordered by ID.

    Unreadable or malformed manifests are skipped; a missing snaps
    directory means there are no snapshots.
    """
    snaps_dir = get_snaps_dir(base_dir)
    try:
        with os.scandir(snaps_dir) as entries:
            candidates = sorted(
                (entry.name, entry.path)
                for entry in entries
                if entry.name.endswith(_SNAP_SUFFIX) and not entry.is_dir()
            )
    except FileNotFoundError:
        return []

    details = (
        _read_snap(path, name[: -len(_SNAP_SUFFIX)]) for name, path in candidates
    )
    return sorted((detail for detail in details if detail is not None), key=lambda s: s.id)


def _parse_snap_id(text: str) -> int | None:
    if not _INTEGER.fullmatch(text):
        return None
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        return None
    return value


def find_snap(base_dir: str | os.PathLike[str], snap_identifier: str) -> SnapDetail:
    """Find a snapshot by numeric ID or by a unique hash prefix."""
    try:
        snaps = get_sorted_snaps(base_dir)
    except OSError as exc:
        raise BtoolError(f"failed to read snapshots: {exc}") from exc
    if not snaps:
        raise SnapNotFoundError("no snaps found to search from")

    snap_id = _parse_snap_id(snap_identifier)
    if snap_id is not None:
        found = next((snap for snap in snaps if snap.id == snap_id), None)
    else:
        matches = [snap for snap in snaps if snap.hash.startswith(snap_identifier)]
        if len(matches) > 1:
            raise BtoolError(
                f"ambiguous snap identifier '{snap_identifier}' matches multiple snapshots"
            )
        found = matches[0] if matches else None

    if found is None:
        raise SnapNotFoundError(
            f"no snap found with ID or hash prefix '{snap_identifier}'"
        )
    return found