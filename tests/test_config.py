import os
from concurrent.futures import ThreadPoolExecutor

import pytest

from btool.config import (
    BTOOL_IGNORE_FILENAME,
    IgnoreMatcher,
    ensure_btool_dirs,
    get_btool_dir,
    get_index_path,
    get_objects_dir,
    get_packs_dir,
    get_snaps_dir,
    is_path_ignored,
    reset_ignore_state,
)


@pytest.fixture(autouse=True)
def _fresh_cache():
    reset_ignore_state()
    yield
    reset_ignore_state()


def _setup_ignore_test(tmp_path, ignore_content):
    canonical = os.path.realpath(tmp_path)
    with open(os.path.join(canonical, ".btoolignore"), "w", encoding="utf-8") as handle:
        handle.write(ignore_content)
    reset_ignore_state()
    return canonical


CASES = [
    ("Default .git directory ignore", "", ".git/config", True),
    ("Default .btool directory ignore", "", ".btool/objects", True),
    ("Default .btoolignore file ignore", "", ".btoolignore", True),
    ("Specific file match", "secret.txt", "secret.txt", True),
    ("Glob pattern match (*.log)", "*.log", "system.log", True),
    ("Glob pattern in subdir", "*.log", "logs/system.log", True),
    ("Directory pattern match (build/)", "build/", "build/asset.js", True),
    ("Directory pattern should match the directory itself", "build/", "build", True),
    ("Negation pattern (!)", "*.log\n!important.log", "important.log", False),
    (
        "Negation pattern should not affect other matches",
        "*.log\n!important.log",
        "unimportant.log",
        True,
    ),
    (
        "Comment and empty lines should be ignored",
        "# This is a comment\n\n  \n\n*.tmp",
        "some.tmp",
        True,
    ),
    ("Path not in ignore list", "*.log", "src/main.go", False),
    ("Path with Windows-style separators in pattern", "dist\\main.js", "dist/main.js", True),
]


@pytest.mark.parametrize(
    "ignore_content, path_to_check, should_be_ignored",
    [case[1:] for case in CASES],
    ids=[case[0] for case in CASES],
)
def test_is_path_ignored(tmp_path, ignore_content, path_to_check, should_be_ignored):
    test_dir = _setup_ignore_test(tmp_path, ignore_content)
    full_path = os.path.join(test_dir, *path_to_check.split("/"))
    os.makedirs(os.path.dirname(full_path), exist_ok=True)
    with open(full_path, "w", encoding="utf-8") as handle:
        handle.write("test")
    assert is_path_ignored(test_dir, full_path) is should_be_ignored


def test_ignore_caching(tmp_path):
    test_dir = _setup_ignore_test(tmp_path, "cache-test.txt")
    path_to_test = os.path.join(test_dir, "cache-test.txt")
    with open(path_to_test, "w", encoding="utf-8") as handle:
        handle.write("test")

    assert is_path_ignored(test_dir, path_to_test) is True
    os.remove(os.path.join(test_dir, BTOOL_IGNORE_FILENAME))
    assert is_path_ignored(test_dir, path_to_test) is True


def test_reset_ignore_state_reloads_rules(tmp_path):
    test_dir = _setup_ignore_test(tmp_path, "cache-test.txt")
    path_to_test = os.path.join(test_dir, "cache-test.txt")
    with open(path_to_test, "w", encoding="utf-8") as handle:
        handle.write("test")

    assert is_path_ignored(test_dir, path_to_test) is True
    os.remove(os.path.join(test_dir, BTOOL_IGNORE_FILENAME))
    reset_ignore_state()
    assert is_path_ignored(test_dir, path_to_test) is False


def test_ignore_concurrency(tmp_path):
    test_dir = _setup_ignore_test(tmp_path, "*.log")
    log_path = os.path.join(test_dir, "test.log")
    txt_path = os.path.join(test_dir, "test.txt")
    for path in (log_path, txt_path):
        with open(path, "w", encoding="utf-8") as handle:
            handle.write("x")

    def check(_):
        return is_path_ignored(test_dir, log_path), is_path_ignored(test_dir, txt_path)

    with ThreadPoolExecutor(max_workers=16) as pool:
        results = list(pool.map(check, range(100)))
    assert all(result == (True, False) for result in results)


def test_matcher_without_matching_rule_returns_none():
    matcher = IgnoreMatcher.from_patterns(["*.log"])
    assert matcher.match("notes.txt") is None


def test_matcher_last_rule_wins():
    matcher = IgnoreMatcher.from_patterns(["*.log", "!keep.log"])
    assert matcher.match("keep.log") is False
    assert matcher.match("drop.log") is True


def test_matcher_double_star_prefix():
    matcher = IgnoreMatcher.from_patterns(["**/cache"])
    assert matcher.match("a/b/cache/file") is True
    assert matcher.match("cache") is True
    assert matcher.match("cached") is None


def test_matcher_anchored_pattern_does_not_match_deeper():
    matcher = IgnoreMatcher.from_patterns(["dist/main.js"])
    assert matcher.match("dist/main.js") is True
    assert matcher.match("other/dist/main.js") is None


def test_matcher_character_class():
    matcher = IgnoreMatcher.from_patterns(["file[0-9].txt"])
    assert matcher.match("file7.txt") is True
    assert matcher.match("fileX.txt") is None


def test_path_helpers(tmp_path):
    base = str(tmp_path)
    assert get_btool_dir(base) == os.path.join(base, ".btool")
    assert get_objects_dir(base) == os.path.join(base, ".btool", "objects")
    assert get_snaps_dir(base) == os.path.join(base, ".btool", "snaps")
    assert get_packs_dir(base) == os.path.join(base, ".btool", "packs")
    assert get_index_path(base) == os.path.join(base, ".btool", "index.json")


def test_ensure_btool_dirs_is_idempotent(tmp_path):
    first = ensure_btool_dirs(tmp_path)
    second = ensure_btool_dirs(tmp_path)
    assert first == second
    for directory in (first.btool_dir, first.objects_dir, first.snaps_dir, first.packs_dir):
        assert os.path.isdir(directory)