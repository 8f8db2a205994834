"""SHA-256 content hashing."""

from __future__ import annotations

import hashlib
import os

_READ_SIZE = 64 * 1024


def get_hash(content: bytes) -> str:
    """Return the lowercase hex SHA-256 digest of ``content``."""
    return hashlib.sha256(content).hexdigest()


def get_file_hash(file_path: str | os.PathLike[str]) -> str:
    """Return the lowercase hex SHA-256 digest of a file, read in blocks."""
    hasher = hashlib.sha256()
    with open(file_path, "rb") as handle:
        for block in iter(lambda: handle.read(_READ_SIZE), b""):
            hasher.update(block)
    return hasher.hexdigest()