import pytest

from btool.fs import copy_file


def test_copy_file_creates_destination(tmp_path):
    src = tmp_path / "src.bin"
    dst = tmp_path / "dst.bin"
    content = bytes(range(256)) * 10
    src.write_bytes(content)
    copy_file(src, dst)
    assert dst.read_bytes() == content


def test_copy_file_overwrites_existing(tmp_path):
    src = tmp_path / "src.txt"
    dst = tmp_path / "dst.txt"
    src.write_bytes(b"new")
    dst.write_bytes(b"old content that is longer")
    copy_file(src, dst)
    assert dst.read_bytes() == b"new"


def test_copy_file_leaves_source_intact(tmp_path):
    src = tmp_path / "src.txt"
    dst = tmp_path / "dst.txt"
    src.write_bytes(b"keep me")
    copy_file(str(src), str(dst))
    assert src.read_bytes() == dst.read_bytes()


def test_copy_file_missing_source(tmp_path):
    with pytest.raises(FileNotFoundError):
        copy_file(tmp_path / "missing", tmp_path / "dst")