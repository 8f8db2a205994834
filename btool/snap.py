"""The ``snap`` command: record the current state of a directory."""

from __future__ import annotations

import os
import sys
from collections.abc import Iterable, Iterator, Mapping
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import partial

from .chunker import chunk_file
from .config import ensure_btool_dirs, get_snaps_dir, is_path_ignored
from .errors import BtoolError
from .hasher import get_hash
from .meta import get_next_snap_id, increment_next_snap_id
from .objectstore import ObjectStore
from .types import BLOB, TREE, ChunkRef, FileManifest, Snap, Tree, TreeEntry, to_json_bytes


@contextmanager
def _failing_as(description: str) -> Iterator[None]:
    """Re-raise any failure inside the block as a BtoolError with context."""
    try:
        yield
    except (OSError, ValueError, BtoolError) as exc:
        raise BtoolError(f"{description}: {exc}") from exc


def find_all_files(root_dir: str | os.PathLike[str]) -> list[str]:
    """Return every regular file under ``root_dir`` that is not ignored.

    Ignored directories are not descended into; paths come in name order.
    """
    root = os.fspath(root_dir)
    files: list[str] = []

    def walk(directory: str) -> None:
        with os.scandir(directory) as iterator:
            entries = sorted(iterator, key=lambda entry: entry.name)
        for entry in entries:
            if is_path_ignored(root, entry.path):
                continue
            if entry.is_dir(follow_symlinks=False):
                walk(entry.path)
            elif entry.is_file(follow_symlinks=False):
                files.append(entry.path)

    walk(root)
    return files


def _process_file(store: ObjectStore, path: str) -> tuple[str, str, int]:
    try:
        chunks, total_size = chunk_file(path)
        for chunk in chunks:
            store.write_object(chunk.data)
        manifest = FileManifest(
            chunks=[ChunkRef(hash=chunk.hash, size=chunk.size) for chunk in chunks],
            total_size=total_size,
        )
        manifest_hash = store.write_object(to_json_bytes(manifest))
    except (OSError, BtoolError) as exc:
        raise BtoolError(f"failed to process file {path}: {exc}") from exc
    return path, manifest_hash, total_size


def process_files(store: ObjectStore, files: Iterable[str]) -> tuple[dict[str, str], int]:
    """Chunk and store the given files in parallel.

    Returns a mapping from file path to manifest hash, and the total size
    of all the files.
    """
    paths = list(files)
    if not paths:
        return {}, 0
    with ThreadPoolExecutor(max_workers=os.cpu_count() or 1) as pool:
        results = list(pool.map(partial(_process_file, store), paths))
    file_hashes = {path: manifest_hash for path, manifest_hash, _ in results}
    total_size = sum(size for _, _, size in results)
    return file_hashes, total_size


def build_tree(
    store: ObjectStore,
    base_dir: str | os.PathLike[str],
    directory_path: str | os.PathLike[str],
    file_hashes: Mapping[str, str],
) -> str:
    """Store the tree object of ``directory_path`` and its sub-trees; return its hash."""
    base = os.fspath(base_dir)
    with os.scandir(directory_path) as iterator:
        dir_entries = list(iterator)

    entries: list[TreeEntry] = []
    for entry in dir_entries:
        if is_path_ignored(base, entry.path):
            continue
        mode = entry.stat(follow_symlinks=False).st_mode & 0o777
        if entry.is_dir(follow_symlinks=False):
            tree_hash = build_tree(store, base, entry.path, file_hashes)
            entries.append(TreeEntry(name=entry.name, hash=tree_hash, type=TREE, mode=mode))
        else:
            manifest_hash = file_hashes.get(entry.path)
            if manifest_hash is None:
                raise BtoolError(f"missing manifest hash for file: {entry.path}")
            entries.append(
                TreeEntry(name=entry.name, hash=manifest_hash, type=BLOB, mode=mode)
            )

    entries.sort(key=lambda entry: entry.name)
    return store.write_object(to_json_bytes(Tree(entries=entries)))


def snap(target_directory: str | os.PathLike[str], message: str = "") -> str:
    """Take a snapshot of ``target_directory`` and return the snapshot's hash."""
    target = os.path.abspath(target_directory)
    try:
        os.stat(target)
    except FileNotFoundError:
        raise BtoolError(f"target directory does not exist: {target}") from None

    print(f'📷 Starting snap for "{target}"...')

    with _failing_as("failed to ensure .btool directories"):
        ensure_btool_dirs(target)

    store = ObjectStore(target)

    with _failing_as("error finding files"):
        files = find_all_files(target)
    print(f"   - Found {len(files)} files to process...")

    with _failing_as("error processing files"):
        file_hashes, total_source_size = process_files(store, files)
    print("   - Finished processing files.")

    with _failing_as("error building directory tree"):
        root_tree_hash = build_tree(store, target, target, file_hashes)

    with _failing_as("failed to commit objects"):
        snap_size = store.commit()

    with _failing_as("failed to get next snapshot ID"):
        next_id = get_next_snap_id(target)

    manifest = Snap(
        id=next_id,
        timestamp=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        root_tree_hash=root_tree_hash,
        message=message,
        source_size=total_source_size,
        snap_size=snap_size,
    )
    snap_json = to_json_bytes(manifest, indent=2)
    snap_hash = get_hash(snap_json)
    with _failing_as("failed to write snap manifest"):
        with open(os.path.join(get_snaps_dir(target), f"{snap_hash}.json"), "wb") as handle:
            handle.write(snap_json)

    try:
        increment_next_snap_id(target)
    except (OSError, BtoolError) as exc:
        print(f"Warning: failed to increment snapshot counter: {exc}", file=sys.stderr)

    print("✅ Snap complete!")
    print(f"   - Snap Hash: {snap_hash}")
    print(f"   - Root Tree Hash: {root_tree_hash}")
    return snap_hash