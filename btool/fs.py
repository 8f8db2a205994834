"""File system helpers."""

from __future__ import annotations

import os
import shutil


def copy_file(src: str | os.PathLike[str], dst: str | os.PathLike[str]) -> None:
    """Copy ``src`` to ``dst``, overwriting it, and flush it to stable storage."""
    with open(src, "rb") as source, open(dst, "wb") as destination:
        shutil.copyfileobj(source, destination)
        destination.flush()
        os.fsync(destination.fileno())