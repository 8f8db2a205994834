"""Repository data model and its JSON encoding."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

BLOB = "blob"
TREE = "tree"

_JSON_ESCAPES = (
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("&", "\\u0026"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)


def _mapping(data: Any, what: str) -> Mapping[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError(f"expected a JSON object for {what}")
    return data


def _int(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field {key!r} must be an integer")
    return value


def _str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


def _list(data: Mapping[str, Any], key: str) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"field {key!r} must be an array")
    return value


@dataclass(frozen=True)
class ChunkRef:
    """Reference to a stored chunk: its hash and size."""

    hash: str
    size: int

    def to_dict(self) -> dict[str, Any]:
        return {"hash": self.hash, "size": self.size}

    @classmethod
    def from_dict(cls, data: Any) -> ChunkRef:
        data = _mapping(data, "chunk reference")
        return cls(hash=_str(data, "hash"), size=_int(data, "size"))


@dataclass(frozen=True)
class Chunk:
    """A piece of a file's data together with its hash and size."""

    hash: str
    size: int
    data: bytes = field(repr=False)


@dataclass
class FileManifest:
    """The ordered list of chunks that make up one file."""

    chunks: list[ChunkRef] = field(default_factory=list)
    total_size: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "chunks": [chunk.to_dict() for chunk in self.chunks],
            "totalSize": self.total_size,
        }

    @classmethod
    def from_dict(cls, data: Any) -> FileManifest:
        data = _mapping(data, "file manifest")
        return cls(
            chunks=[ChunkRef.from_dict(item) for item in _list(data, "chunks")],
            total_size=_int(data, "totalSize"),
        )


@dataclass(frozen=True)
class TreeEntry:
    """One named entry of a directory tree: a blob (file) or a tree."""

    name: str
    hash: str
    type: str
    mode: int

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "hash": self.hash, "type": self.type, "mode": self.mode}

    @classmethod
    def from_dict(cls, data: Any) -> TreeEntry:
        data = _mapping(data, "tree entry")
        return cls(
            name=_str(data, "name"),
            hash=_str(data, "hash"),
            type=_str(data, "type"),
            mode=_int(data, "mode"),
        )


@dataclass
class Tree:
    """A directory listing."""

    entries: list[TreeEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"entries": [entry.to_dict() for entry in self.entries]}

    @classmethod
    def from_dict(cls, data: Any) -> Tree:
        data = _mapping(data, "tree")
        return cls(entries=[TreeEntry.from_dict(item) for item in _list(data, "entries")])


@dataclass
class Snap:
    """The manifest of one snapshot."""

    id: int
    timestamp: str
    root_tree_hash: str
    message: str = ""
    source_size: int = 0
    snap_size: int = 0

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "rootTreeHash": self.root_tree_hash,
        }
        if self.message:
            result["message"] = self.message
        result["sourceSize"] = self.source_size
        if self.snap_size:
            result["snapSize"] = self.snap_size
        return result

    @classmethod
    def from_dict(cls, data: Any) -> Snap:
        data = _mapping(data, "snap")
        return cls(
            id=_int(data, "id"),
            timestamp=_str(data, "timestamp"),
            root_tree_hash=_str(data, "rootTreeHash"),
            message=_str(data, "message"),
            source_size=_int(data, "sourceSize"),
            snap_size=_int(data, "snapSize"),
        )


@dataclass(frozen=True)
class PackIndexEntry:
    """Location of one object inside a packfile."""

    pack_hash: str = ""
    offset: int = 0
    length: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"packHash": self.pack_hash, "offset": self.offset, "length": self.length}

    @classmethod
    def from_dict(cls, data: Any) -> PackIndexEntry:
        data = _mapping(data, "pack index entry")
        return cls(
            pack_hash=_str(data, "packHash"),
            offset=_int(data, "offset"),
            length=_int(data, "length"),
        )


PackIndex = dict[str, PackIndexEntry]


def _encode_default(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    if to_dict is None:
        raise TypeError(f"cannot encode {type(value).__name__} as JSON")
    return to_dict()


def to_json_bytes(value: Any, indent: int | None = None) -> bytes:
    """Encode a model object (or plain JSON data) as UTF-8 JSON bytes.

    Without ``indent`` the output is compact; ``<``, ``>`` and ``&`` are
    escaped so that identical objects always hash identically.
    """
    if indent is None:
        text = json.dumps(
            value, default=_encode_default, ensure_ascii=False, separators=(",", ":")
        )
    else:
        text = json.dumps(
            value,
            default=_encode_default,
            ensure_ascii=False,
            indent=indent,
            separators=(",", ": "),
        )
    for char, escape in _JSON_ESCAPES:
        text = text.replace(char, escape)
    # Undecodable file names arrive as lone surrogates; store them as U+FFFD.
    raw = text.encode("utf-8", "surrogateescape")
    return raw.decode("utf-8", "replace").encode("utf-8")


def load_pack_index(data: bytes | str) -> PackIndex:
    """Parse the JSON text of an index file."""
    parsed = json.loads(data)
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError("pack index must be a JSON object")
    return {key: PackIndexEntry.from_dict(value) for key, value in parsed.items()}


def dump_pack_index(index: Mapping[str, PackIndexEntry]) -> bytes:
    """Serialise a pack index as indented JSON with keys in sorted order."""
    ordered = {key: index[key].to_dict() for key in sorted(index)}
    return to_json_bytes(ordered, indent=2)