"""Content-defined chunking with a rolling Rabin fingerprint."""

from __future__ import annotations

import os
from collections.abc import Iterator

from .hasher import get_hash
from .types import Chunk

MIN_CHUNK_SIZE = 4 * 1024
AVG_CHUNK_SIZE = 8 * 1024
MAX_CHUNK_SIZE = 16 * 1024

# Fingerprint polynomial over GF(2), bit i holding the coefficient of x^i.
DEFAULT_POLY = 0xBFE6B8A5BF378D83
DEFAULT_WINDOW_SIZE = 64


def _poly_mod(value: int, poly: int) -> int:
    """Reduce ``value`` modulo ``poly``, both polynomials over GF(2)."""
    degree = poly.bit_length() - 1
    while value.bit_length() - 1 >= degree:
        value ^= poly << (value.bit_length() - 1 - degree)
    return value


class RabinTable:
    """Precomputed reduction tables for a rolling fingerprint over a fixed window."""

    def __init__(self, poly: int, window_size: int) -> None:
        degree = poly.bit_length() - 1
        if degree < 8:
            raise ValueError("fingerprint polynomial must have degree of at least 8")
        if window_size < 1:
            raise ValueError("window size must be positive")
        self.poly = poly
        self.window_size = window_size
        self.degree = degree
        # Reduction of the byte pushed above the top of the fingerprint.
        self.shift_table = tuple(_poly_mod(top << degree, poly) for top in range(256))
        # Contribution of the byte that leaves the window.
        self.out_table = tuple(
            _poly_mod(byte << (8 * window_size), poly) for byte in range(256)
        )


_RABIN_TABLE = RabinTable(DEFAULT_POLY, DEFAULT_WINDOW_SIZE)


def chunk_lengths(
    data: bytes | bytearray | memoryview,
    table: RabinTable | None = None,
    min_size: int = MIN_CHUNK_SIZE,
    avg_size: int = AVG_CHUNK_SIZE,
    max_size: int = MAX_CHUNK_SIZE,
) -> Iterator[int]:
    """Yield the lengths of the content-defined chunks of ``data``.

    A chunk ends where the fingerprint of the preceding window has all the
    bits of ``avg_size - 1`` clear, once it is at least ``min_size`` long; no
    chunk is longer than ``max_size``.  The final chunk holds the remainder.
    """
    if table is None:
        table = _RABIN_TABLE
    if not 0 < min_size <= avg_size <= max_size:
        raise ValueError("chunk sizes must satisfy 0 < min <= avg <= max")
    if avg_size & (avg_size - 1):
        raise ValueError("average chunk size must be a power of two")

    mask = avg_size - 1
    window = table.window_size
    degree = table.degree
    low_bits = (1 << degree) - 1
    shift_table = table.shift_table
    out_table = table.out_table
    total = len(data)
    pos = 0

    while pos < total:
        if total - pos <= min_size:
            yield total - pos
            return
        first_cut = pos + min_size
        limit = min(pos + max_size, total)

        # Only the last `window` bytes before a cut point matter, so warm the
        # fingerprint up just before the earliest possible cut.
        fingerprint = 0
        for j in range(max(0, first_cut - window), first_cut):
            shifted = (fingerprint << 8) | data[j]
            fingerprint = (shifted & low_bits) ^ shift_table[shifted >> degree]

        cut = limit
        for j in range(first_cut, limit):
            if fingerprint & mask == 0:
                cut = j
                break
            leaving = data[j - window] if j >= window else 0
            shifted = (fingerprint << 8) | data[j]
            fingerprint = (
                (shifted & low_bits) ^ shift_table[shifted >> degree] ^ out_table[leaving]
            )
        yield cut - pos
        pos = cut


def chunk_file(file_path: str | os.PathLike[str]) -> tuple[list[Chunk], int]:
    """Split a file into content-defined chunks.

    Returns the chunks, each with its data and hash, and the total size.
    """
    with open(file_path, "rb") as handle:
        content = handle.read()

    chunks: list[Chunk] = []
    offset = 0
    for length in chunk_lengths(content):
        piece = content[offset : offset + length]
        chunks.append(Chunk(hash=get_hash(piece), size=len(piece), data=piece))
        offset += length
    return chunks, offset