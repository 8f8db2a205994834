import os
from concurrent.futures import ThreadPoolExecutor

import pytest

from btool.errors import BtoolError
from btool.meta import get_next_snap_id, increment_next_snap_id


def _counter_file(base):
    return os.path.join(base, ".btool", "meta", "counter")


def _write_counter(base, text):
    path = _counter_file(base)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(text)


def test_missing_counter_starts_at_one(tmp_path):
    assert get_next_snap_id(tmp_path) == 1


def test_increment_from_missing_counter(tmp_path):
    increment_next_snap_id(tmp_path)
    assert get_next_snap_id(tmp_path) == 2
    with open(_counter_file(tmp_path), encoding="utf-8") as handle:
        assert handle.read() == "2"


def test_empty_counter_is_one(tmp_path):
    _write_counter(tmp_path, "   \n")
    assert get_next_snap_id(tmp_path) == 1


def test_counter_whitespace_is_trimmed(tmp_path):
    _write_counter(tmp_path, "  7\n")
    assert get_next_snap_id(tmp_path) == 7
    increment_next_snap_id(tmp_path)
    assert get_next_snap_id(tmp_path) == 8


def test_corrupt_counter_raises(tmp_path):
    _write_counter(tmp_path, "abc")
    with pytest.raises(BtoolError, match="corrupt counter file"):
        get_next_snap_id(tmp_path)


def test_increment_on_corrupt_counter_raises(tmp_path):
    _write_counter(tmp_path, "not-a-number")
    with pytest.raises(BtoolError, match="corrupt counter file"):
        increment_next_snap_id(tmp_path)


def test_concurrent_increments_are_not_lost(tmp_path):
    count = 20
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda _: increment_next_snap_id(tmp_path), range(count)))
    assert get_next_snap_id(tmp_path) == count + 1