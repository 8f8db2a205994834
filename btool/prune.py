"""The ``prune`` command: drop old snapshots and collect unreferenced data."""

from __future__ import annotations

import json
import os
import shutil
import sys
from dataclasses import dataclass

from .config import get_btool_dir, get_index_path, get_packs_dir, get_snaps_dir
from .errors import BtoolError
from .fs import copy_file
from .objectstore import ObjectStore
from .snaps import find_snap, get_sorted_snaps
from .types import FileManifest, PackIndex, Tree, dump_pack_index


@dataclass(frozen=True)
class PruneOptions:
    """Settings of a prune run."""

    snap_identifier: str


def _parse_tree(buffer: bytes) -> Tree | None:
    try:
        return Tree.from_dict(json.loads(buffer))
    except ValueError:
        return None


def _parse_manifest(buffer: bytes) -> FileManifest | None:
    try:
        return FileManifest.from_dict(json.loads(buffer))
    except ValueError:
        return None


def mark_reachable_objects(store: ObjectStore, start_hash: str, live_hashes: set[str]) -> None:
    """Add every object reachable from ``start_hash`` to ``live_hashes``.

    Trees lead to their entries, file manifests to their chunks; anything
    else is a chunk and a leaf. Hashes already in the set are not revisited.
    """
    stack = [start_hash]
    while stack:
        object_hash = stack.pop()
        if object_hash in live_hashes:
            continue
        live_hashes.add(object_hash)

        try:
            buffer = store.read_object(object_hash)
        except (OSError, BtoolError) as exc:
            raise BtoolError(
                f"failed to read object {object_hash} for marking: {exc}"
            ) from exc

        tree = _parse_tree(buffer)
        if tree is not None and tree.entries:
            stack.extend(entry.hash for entry in reversed(tree.entries))
            continue

        manifest = _parse_manifest(buffer)
        if manifest is not None and manifest.chunks:
            print(f"  - Scanning manifest {object_hash}...")
            live_hashes.update(chunk.hash for chunk in manifest.chunks)


def _remove_quietly(path: str, directory: bool = False) -> None:
    if directory:
        shutil.rmtree(path, ignore_errors=True)
        return
    try:
        os.remove(path)
    except OSError:
        pass


def prune(directory: str | os.PathLike[str], options: PruneOptions) -> int:
    """Remove the snapshots older than the chosen one and garbage-collect.

    Returns the number of snapshots deleted.
    """
    source = os.path.abspath(directory)
    print(
        f'🧹 Starting prune for "{source}", removing snaps older than '
        f"{options.snap_identifier}..."
    )
    store = ObjectStore(source)

    try:
        all_snaps = get_sorted_snaps(source)
    except OSError as exc:
        raise BtoolError(f"could not get snapshots: {exc}") from exc

    try:
        keep_from = find_snap(source, options.snap_identifier)
    except BtoolError as exc:
        raise BtoolError(
            f"failed to find snapshot {options.snap_identifier}: {exc}"
        ) from exc

    keep_index = next(
        (position for position, detail in enumerate(all_snaps) if detail.hash == keep_from.hash),
        None,
    )
    if keep_index is None:
        raise BtoolError("internal error: could not find specified snapshot in the timeline")

    snaps_to_keep = all_snaps[keep_index:]
    snaps_to_prune = all_snaps[:keep_index]
    if not snaps_to_prune:
        print("No snapshots older than the specified one to prune.")
        return 0

    # Mark phase.
    print("   - Marking live objects from snapshots to keep...")
    live_hashes: set[str] = set()
    for detail in snaps_to_keep:
        mark_reachable_objects(store, detail.root_tree_hash, live_hashes)

    # Sweep phase: rebuild the index and copy the packfiles still needed.
    print("   - Sweeping old objects and rebuilding index...")
    btool_dir = get_btool_dir(source)
    tmp_packs_dir = os.path.join(btool_dir, "packs.tmp")
    _remove_quietly(tmp_packs_dir, directory=True)
    os.makedirs(tmp_packs_dir, mode=0o755, exist_ok=True)

    try:
        current_index = store.get_index()
    except (OSError, BtoolError) as exc:
        raise BtoolError(f"failed to get current index for sweep: {exc}") from exc

    new_index: PackIndex = {}
    packs_to_keep: set[str] = set()
    for object_hash in sorted(live_hashes):
        entry = current_index.get(object_hash)
        if entry is None:
            print(
                f"Warning: Live object {object_hash} not found in the index during prune.",
                file=sys.stderr,
            )
            continue
        new_index[object_hash] = entry
        packs_to_keep.add(entry.pack_hash)

    packs_dir = get_packs_dir(source)
    for pack_hash in sorted(packs_to_keep):
        try:
            copy_file(os.path.join(packs_dir, pack_hash), os.path.join(tmp_packs_dir, pack_hash))
        except OSError as exc:
            raise BtoolError(f"failed to copy packfile {pack_hash}: {exc}") from exc

    # Finalisation: write the new index and swap it in with the new packs.
    print("   - Finalizing changes...")
    tmp_index_path = os.path.join(btool_dir, "index.tmp.json")
    with open(tmp_index_path, "wb") as handle:
        handle.write(dump_pack_index(new_index))

    index_path = get_index_path(source)
    bak_packs_dir = packs_dir + ".bak"
    bak_index_path = index_path + ".bak"
    _remove_quietly(bak_packs_dir, directory=True)
    _remove_quietly(bak_index_path)

    try:
        os.rename(packs_dir, bak_packs_dir)
    except FileNotFoundError:
        pass
    except OSError as exc:
        raise BtoolError(f"failed to backup old packs directory: {exc}") from exc
    try:
        os.rename(index_path, bak_index_path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        raise BtoolError(f"failed to backup old index file: {exc}") from exc

    try:
        os.rename(tmp_packs_dir, packs_dir)
    except OSError as exc:
        raise BtoolError(f"failed to activate new packs directory: {exc}") from exc
    try:
        os.rename(tmp_index_path, index_path)
    except OSError as exc:
        raise BtoolError(f"failed to activate new index file: {exc}") from exc

    _remove_quietly(bak_packs_dir, directory=True)
    _remove_quietly(bak_index_path)

    snaps_dir = get_snaps_dir(source)
    for detail in snaps_to_prune:
        _remove_quietly(os.path.join(snaps_dir, f"{detail.hash}.json"))

    print("✅ Prune complete!")
    print(f"   - Deleted {len(snaps_to_prune)} old snap(s).")
    return len(snaps_to_prune)