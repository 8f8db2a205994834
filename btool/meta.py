"""Persistent snapshot ID counter."""

from __future__ import annotations

import os
import re
import threading

from .config import get_btool_dir
from .errors import BtoolError

_meta_lock = threading.Lock()
_INTEGER = re.compile(r"[+-]?[0-9]+")


def _meta_dir(base_dir: str | os.PathLike[str]) -> str:
    return os.path.join(get_btool_dir(base_dir), "meta")


def _counter_path(base_dir: str | os.PathLike[str]) -> str:
    return os.path.join(_meta_dir(base_dir), "counter")


def _read_next_id(base_dir: str | os.PathLike[str]) -> int:
    try:
        with open(_counter_path(base_dir), "rb") as handle:
            content = handle.read().decode("utf-8", "replace").strip()
    except FileNotFoundError:
        return 1
    if not content:
        return 1
    if not _INTEGER.fullmatch(content):
        raise BtoolError(f"corrupt counter file: invalid integer {content!r}")
    return int(content)


def get_next_snap_id(base_dir: str | os.PathLike[str]) -> int:
    """Return the ID the next snapshot will receive."""
    with _meta_lock:
        return _read_next_id(base_dir)


def increment_next_snap_id(base_dir: str | os.PathLike[str]) -> None:
    """Advance the persistent snapshot ID counter by one."""
    with _meta_lock:
        os.makedirs(_meta_dir(base_dir), mode=0o755, exist_ok=True)
        next_id = _read_next_id(base_dir) + 1
        with open(_counter_path(base_dir), "w", encoding="utf-8") as handle:
            handle.write(str(next_id))