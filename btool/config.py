"""Repository layout and ignore rules."""

from __future__ import annotations

import itertools
import os
import re
import threading
from collections.abc import Iterable
from dataclasses import dataclass

BTOOL_DIR_NAME = ".btool"
OBJECTS_DIR_NAME = "objects"
SNAPS_DIR_NAME = "snaps"
PACKS_DIR_NAME = "packs"
BTOOL_IGNORE_FILENAME = ".btoolignore"
HASH_ALGORITHM = "sha256"

_DEFAULT_IGNORE_PATTERNS = (
    ".git/**",
    f"{BTOOL_DIR_NAME}/**",
    BTOOL_IGNORE_FILENAME,
)


def get_btool_dir(base_dir: str | os.PathLike[str]) -> str:
    """Return the path of the ``.btool`` directory under ``base_dir``."""
    return os.path.join(os.fspath(base_dir), BTOOL_DIR_NAME)


def get_objects_dir(base_dir: str | os.PathLike[str]) -> str:
    return os.path.join(get_btool_dir(base_dir), OBJECTS_DIR_NAME)


def get_snaps_dir(base_dir: str | os.PathLike[str]) -> str:
    return os.path.join(get_btool_dir(base_dir), SNAPS_DIR_NAME)


def get_packs_dir(base_dir: str | os.PathLike[str]) -> str:
    return os.path.join(get_btool_dir(base_dir), PACKS_DIR_NAME)


def get_index_path(base_dir: str | os.PathLike[str]) -> str:
    return os.path.join(get_btool_dir(base_dir), "index.json")


@dataclass(frozen=True)
class BtoolPaths:
    """The directories that make up a repository."""

    btool_dir: str
    objects_dir: str
    snaps_dir: str
    packs_dir: str


def ensure_btool_dirs(base_dir: str | os.PathLike[str]) -> BtoolPaths:
    """Create the repository directories if they are missing."""
    paths = BtoolPaths(
        btool_dir=get_btool_dir(base_dir),
        objects_dir=get_objects_dir(base_dir),
        snaps_dir=get_snaps_dir(base_dir),
        packs_dir=get_packs_dir(base_dir),
    )
    for directory in (paths.objects_dir, paths.snaps_dir, paths.packs_dir):
        os.makedirs(directory, mode=0o755, exist_ok=True)
    return paths


def _translate_segment(segment: str) -> str:
    out: list[str] = []
    i = 0
    length = len(segment)
    while i < length:
        char = segment[i]
        i += 1
        if char == "*":
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        elif char == "[":
            j = i
            if j < length and segment[j] in "!^":
                j += 1
            if j < length and segment[j] == "]":
                j += 1
            end = segment.find("]", j)
            if end == -1:
                out.append(re.escape(char))
                continue
            content = segment[i:end].replace("\\", "\\\\")
            if content.startswith("!"):
                content = "^" + content[1:]
            out.append(f"[{content}]")
            i = end + 1
        else:
            out.append(re.escape(char))
    return "".join(out)


def _translate(pattern: str) -> str:
    segments = [segment for segment in pattern.split("/") if segment]
    out: list[str] = []
    separator_pending = False
    for position, segment in enumerate(segments):
        is_last = position == len(segments) - 1
        if segment == "**":
            if is_last:
                out.append("(?:/.*)?" if separator_pending else ".*")
            else:
                out.append("/(?:.*/)?" if separator_pending else "(?:.*/)?")
            separator_pending = False
        else:
            if separator_pending:
                out.append("/")
            out.append(_translate_segment(segment))
            separator_pending = True
    return "".join(out)


@dataclass(frozen=True)
class _Rule:
    regex: re.Pattern[str]
    negate: bool

    def matches(self, path: str) -> bool:
        # A path matches if it or any directory containing it matches.
        prefixes = itertools.accumulate(path.split("/"), lambda a, b: f"{a}/{b}")
        return any(self.regex.fullmatch(prefix) for prefix in prefixes)


def _compile_rule(pattern: str) -> _Rule | None:
    pattern = pattern.strip()
    if not pattern or pattern.startswith("#"):
        return None
    negate = pattern.startswith("!")
    if negate:
        pattern = pattern[1:]
    pattern = pattern.rstrip("/")
    anchored = "/" in pattern
    pattern = pattern.lstrip("/")
    if not pattern:
        return None
    body = _translate(pattern)
    if not anchored:
        body = "(?:.*/)?" + body
    return _Rule(regex=re.compile(body, re.DOTALL), negate=negate)


@dataclass(frozen=True)
class IgnoreMatcher:
    """A compiled list of gitignore-style patterns; the last match wins."""

    rules: tuple[_Rule, ...] = ()

    @classmethod
    def from_patterns(cls, patterns: Iterable[str]) -> IgnoreMatcher:
        compiled = (_compile_rule(pattern) for pattern in patterns)
        return cls(rules=tuple(rule for rule in compiled if rule is not None))

    def match(self, path: str) -> bool | None:
        """Return True if ``path`` is ignored, False if re-included, None if no rule applies.

        ``path`` is relative to the matcher's base and uses forward slashes.
        """
        path = path.strip("/")
        result: bool | None = None
        for rule in self.rules:
            if rule.matches(path):
                result = not rule.negate
        return result


_ignore_cache: dict[str, IgnoreMatcher] = {}
_cache_lock = threading.Lock()


def _canonical(path: str | os.PathLike[str]) -> str:
    try:
        return os.path.realpath(path, strict=True)
    except OSError:
        return os.fspath(path)


def _clean_pattern(raw: str) -> str | None:
    trimmed = raw.strip()
    if not trimmed or trimmed.startswith("#"):
        return None
    trimmed = trimmed.replace("\\", "/")
    if trimmed.endswith("/") and not trimmed.endswith("**/"):
        trimmed += "**"
    return trimmed


def _load_ignore_matcher(base_dir: str) -> IgnoreMatcher:
    raw_patterns = list(_DEFAULT_IGNORE_PATTERNS)
    try:
        with open(os.path.join(base_dir, BTOOL_IGNORE_FILENAME), "rb") as handle:
            raw_patterns.extend(handle.read().decode("utf-8", "replace").split("\n"))
    except OSError:
        pass
    cleaned = (_clean_pattern(raw) for raw in raw_patterns)
    return IgnoreMatcher.from_patterns(p for p in cleaned if p is not None)


def is_path_ignored(base_dir: str | os.PathLike[str], path: str | os.PathLike[str]) -> bool:
    """Tell whether ``path`` is excluded by the ignore rules of ``base_dir``.

    The rules of each base directory are loaded once and cached.
    """
    with _cache_lock:
        canonical_base = _canonical(base_dir)
        matcher = _ignore_cache.get(canonical_base)
        if matcher is None:
            matcher = _load_ignore_matcher(canonical_base)
            _ignore_cache[canonical_base] = matcher
        canonical_path = _canonical(path)
        try:
            relative = os.path.relpath(canonical_path, canonical_base)
        except ValueError:
            return False
        return matcher.match(relative.replace(os.sep, "/")) is True


def reset_ignore_state() -> None:
    """Forget all cached ignore rules."""
    with _cache_lock:
        _ignore_cache.clear()