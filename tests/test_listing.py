import re

import pytest

from btool.config import reset_ignore_state
from btool.errors import BtoolError
from btool.listing import format_bytes, list_snaps, stored_objects_size
from btool.objectstore import ObjectStore
from btool.snap import snap
from btool.snaps import get_sorted_snaps


@pytest.mark.parametrize(
    ("num_bytes", "decimals", "expected"),
    [
        (0, 2, "0 Bytes"),
        (500, 2, "500.00 Bytes"),
        (1024, 2, "1.00 KB"),
        (1536, 2, "1.50 KB"),
        (1048576, 2, "1.00 MB"),
        (2048, 0, "2 KB"),
        (2048, -3, "2 KB"),
        (1024**5, 2, "1024.00 TB"),
    ],
)
def test_format_bytes(num_bytes, decimals, expected):
    assert format_bytes(num_bytes, decimals) == expected


def test_stored_objects_size_without_packs(tmp_path):
    assert stored_objects_size(str(tmp_path)) == 0


def test_stored_objects_size_matches_snap_size(tmp_path):
    reset_ignore_state()
    (tmp_path / "a.txt").write_bytes(b"some content to store")
    snap(str(tmp_path), "")
    snaps = get_sorted_snaps(str(tmp_path))
    assert snaps[0].snap_size > 0
    assert stored_objects_size(str(tmp_path)) == snaps[0].snap_size


def test_list_snapshots_and_snap_size(tmp_path, capsys):
    reset_ignore_state()
    file1 = tmp_path / "file1.txt"
    file1.write_bytes(b"version 1")
    snap(str(tmp_path), "first commit")
    file1.write_bytes(b"version 2 is a bit longer")
    snap(str(tmp_path), "second commit")
    capsys.readouterr()

    list_snaps(str(tmp_path))
    output = capsys.readouterr().out

    assert "Snaps for" in output
    assert "1         " in output
    assert "2         " in output

    lines = output.strip().split("\n")
    header = next(line for line in lines if "SNAPSHOT" in line and "HASH" in line)
    assert "SNAP SIZE" in header
    column = header.index("SNAP SIZE")

    snap2_line = next(line for line in lines if line.startswith("2         "))
    assert len(snap2_line) >= column + 15
    value = snap2_line[column : column + 15].strip()
    assert value != "0 Bytes"
    assert re.fullmatch(r"\d+\.\d{2} (Bytes|KB|MB|GB|TB)", value)
    assert snap2_line.endswith("second commit")


def test_list_row_layout(tmp_path, capsys):
    reset_ignore_state()
    (tmp_path / "f.txt").write_bytes(b"x")
    snap(str(tmp_path), "layout")
    capsys.readouterr()

    list_snaps(str(tmp_path))
    output = capsys.readouterr().out
    detail = get_sorted_snaps(str(tmp_path))[0]
    row = next(line for line in output.split("\n") if line.startswith("1         "))
    assert row[11:18] == detail.hash[:7]
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} UTC", row[22:50].strip())
    assert "Total stored size of all objects: " in output


def test_list_without_snaps(tmp_path, capsys):
    list_snaps(str(tmp_path))
    output = capsys.readouterr().out
    assert "No snaps found" in output


def test_list_nonexistent_directory(tmp_path):
    with pytest.raises(BtoolError, match="target directory does not exist"):
        list_snaps(str(tmp_path / "this_does_not_exist"))


def test_list_does_not_reset_state(tmp_path, capsys):
    reset_ignore_state()
    (tmp_path / "test.txt").write_bytes(b"file1")
    snap(str(tmp_path), "first snap")

    index1 = ObjectStore(str(tmp_path)).get_index()
    assert len(index1) > 0

    list_snaps(str(tmp_path))

    index2 = ObjectStore(str(tmp_path)).get_index()
    assert len(index2) == len(index1)