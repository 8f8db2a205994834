"""The ``restore`` command: rebuild a directory from a snapshot."""

from __future__ import annotations

import json
import os
import shutil
import sys
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass

from .config import BTOOL_DIR_NAME
from .errors import BtoolError
from .objectstore import ObjectStore
from .snaps import SnapDetail, find_snap
from .types import BLOB, TREE, FileManifest, Tree

_WRITE_FLAGS = os.O_WRONLY | os.O_CREAT | os.O_TRUNC | getattr(os, "O_BINARY", 0)


@dataclass(frozen=True)
class _FileJob:
    manifest_hash: str
    destination: str
    mode: int


def _restore_file(store: ObjectStore, job: _FileJob) -> None:
    """Reassemble one file from its manifest and chunks and write it to disk."""
    try:
        manifest_data = store.read_object(job.manifest_hash)
    except (OSError, BtoolError) as exc:
        raise BtoolError(
            f"failed to read manifest {job.manifest_hash} for {job.destination}: {exc}"
        ) from exc
    try:
        manifest = FileManifest.from_dict(json.loads(manifest_data))
    except ValueError as exc:
        raise BtoolError(
            f"failed to parse manifest {job.manifest_hash} for {job.destination}: {exc}"
        ) from exc

    pieces: list[bytes] = []
    for chunk_ref in manifest.chunks:
        try:
            pieces.append(store.read_object(chunk_ref.hash))
        except (OSError, BtoolError) as exc:
            raise BtoolError(
                f"failed to read chunk {chunk_ref.hash} for file {job.destination}: {exc}"
            ) from exc

    try:
        fd = os.open(job.destination, _WRITE_FLAGS, job.mode)
        with os.fdopen(fd, "wb") as handle:
            handle.write(b"".join(pieces))
    except OSError as exc:
        raise BtoolError(f"failed to write file {job.destination}: {exc}") from exc


def _restore_tree(
    store: ObjectStore,
    tree_hash: str,
    destination: str,
    submit: Callable[[_FileJob], None],
) -> None:
    """Recreate the directories of a tree and hand its files to ``submit``."""
    tree = Tree.from_dict(json.loads(store.read_object(tree_hash)))
    os.makedirs(destination, mode=0o755, exist_ok=True)

    for entry in tree.entries:
        full_path = os.path.join(destination, entry.name)
        if entry.type == BLOB:
            submit(_FileJob(manifest_hash=entry.hash, destination=full_path, mode=entry.mode))
        elif entry.type == TREE:
            _restore_tree(store, entry.hash, full_path, submit)
            try:
                os.chmod(full_path, entry.mode)
            except OSError as exc:
                print(
                    f"Warning: could not set mode on directory {full_path}: {exc}",
                    file=sys.stderr,
                )


def _reset_output_dir(output_dir: str, source_dir: str) -> None:
    """Empty ``output_dir``, sparing the repository when restoring in place."""
    in_place = os.path.normcase(output_dir) == os.path.normcase(source_dir)
    if in_place and os.path.isdir(output_dir):
        with os.scandir(output_dir) as iterator:
            entries = [entry for entry in iterator if entry.name != BTOOL_DIR_NAME]
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                shutil.rmtree(entry.path)
            else:
                os.remove(entry.path)
    else:
        try:
            shutil.rmtree(output_dir)
        except FileNotFoundError:
            pass
    os.makedirs(output_dir, mode=0o755, exist_ok=True)


def restore(
    source_dir: str | os.PathLike[str],
    snap_identifier: str,
    output_dir: str | os.PathLike[str] | None = None,
) -> SnapDetail:
    """Restore a snapshot of ``source_dir`` into ``output_dir``.

    The output directory (the source directory when omitted) is emptied
    first, so afterwards it holds exactly the snapshot's contents.
    Returns the restored snapshot.
    """
    source = os.path.abspath(source_dir)
    output = os.path.abspath(source_dir if output_dir is None else output_dir)
    store = ObjectStore(source)

    try:
        detail = find_snap(source, snap_identifier)
    except BtoolError as exc:
        raise BtoolError(
            f"failed to find snapshot {snap_identifier} to restore: {exc}"
        ) from exc

    try:
        info = os.stat(output)
    except FileNotFoundError:
        pass
    except OSError as exc:
        raise BtoolError(f"could not stat output directory: {exc}") from exc
    else:
        if not os.path.isdir(output):
            raise BtoolError(f"output path exists and is not a directory: {output}")
        del info

    try:
        _reset_output_dir(output, source)
    except OSError as exc:
        raise BtoolError(f"failed to clean output directory: {exc}") from exc

    print(f'💧 Restoring snap {detail.id} ({detail.hash[:7]}) to "{output}"...')

    futures: list[Future[None]] = []
    with ThreadPoolExecutor(max_workers=os.cpu_count() or 1) as pool:

        def submit(job: _FileJob) -> None:
            futures.append(pool.submit(_restore_file, store, job))

        try:
            _restore_tree(store, detail.root_tree_hash, output, submit)
        except (OSError, ValueError, BtoolError) as exc:
            raise BtoolError(f"failed during tree traversal: {exc}") from exc

    for future in futures:
        error = future.exception()
        if error is not None:
            raise BtoolError(f"a restore worker failed: {error}") from error

    print("✅ Restore complete!")
    return detail