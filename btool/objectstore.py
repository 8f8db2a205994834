"""Content-addressed object storage in packfiles with a central index."""

from __future__ import annotations

import json
import os
import threading
from typing import Any

from .config import get_index_path, get_packs_dir
from .errors import BtoolError, ObjectNotFoundError
from .hasher import get_hash
from .types import PackIndex, PackIndexEntry, dump_pack_index, load_pack_index


class ObjectStore:
    """Buffers new objects in memory and writes them as one packfile on commit.

    Create one store per command run; it is safe to share between threads.
    """

    def __init__(self, base_dir: str | os.PathLike[str]) -> None:
        self.base_dir = os.fspath(base_dir)
        self._lock = threading.Lock()
        self._index: PackIndex = {}
        self._pending: dict[str, bytes] = {}
        self._index_loaded = False

    def _load_index(self) -> None:
        if self._index_loaded:
            return
        try:
            with open(get_index_path(self.base_dir), "rb") as handle:
                content = handle.read()
        except FileNotFoundError:
            self._index_loaded = True
            return
        try:
            self._index.update(load_pack_index(content))
        except ValueError as exc:
            raise BtoolError(f"corrupt index file: {exc}") from exc
        self._index_loaded = True

    def write_object(self, data: bytes) -> str:
        """Queue ``data`` for the next commit and return its hash.

        Objects already stored or already queued are not queued again.
        """
        data = bytes(data)
        object_hash = get_hash(data)
        with self._lock:
            self._load_index()
            if object_hash not in self._index and object_hash not in self._pending:
                self._pending[object_hash] = data
        return object_hash

    def commit(self) -> int:
        """Write all queued objects to a new packfile and update the index.

        Returns the size of the packfile written, 0 if nothing was queued.
        """
        with self._lock:
            if not self._pending:
                return 0

            hashes = sorted(self._pending)
            pack = b"".join(self._pending[object_hash] for object_hash in hashes)
            pack_hash = get_hash(pack)

            new_entries: PackIndex = {}
            offset = 0
            for object_hash in hashes:
                length = len(self._pending[object_hash])
                new_entries[object_hash] = PackIndexEntry(
                    pack_hash=pack_hash, offset=offset, length=length
                )
                offset += length

            with open(os.path.join(get_packs_dir(self.base_dir), pack_hash), "wb") as handle:
                handle.write(pack)

            self._load_index()
            self._index.update(new_entries)
            with open(get_index_path(self.base_dir), "wb") as handle:
                handle.write(dump_pack_index(self._index))

            self._pending = {}
            return len(pack)

    def read_object(self, object_hash: str) -> bytes:
        """Return the content of an object, queued or stored."""
        with self._lock:
            pending = self._pending.get(object_hash)
            if pending is not None:
                return pending

            self._load_index()
            entry = self._index.get(object_hash)
            if entry is None:
                raise ObjectNotFoundError(object_hash)

            pack_path = os.path.join(get_packs_dir(self.base_dir), entry.pack_hash)
            with open(pack_path, "rb") as handle:
                handle.seek(entry.offset)
                data = handle.read(entry.length)
            if len(data) != entry.length:
                raise BtoolError(
                    f"short read of object {object_hash} from pack {entry.pack_hash}"
                )
            return data

    def read_object_json(self, object_hash: str) -> Any:
        """Return an object decoded from JSON."""
        return json.loads(self.read_object(object_hash))

    def get_index(self) -> PackIndex:
        """Return a copy of the pack index."""
        with self._lock:
            self._load_index()
            return dict(self._index)

    def pending_object_count(self) -> int:
        """Return how many objects wait for the next commit."""
        with self._lock:
            return len(self._pending)