import pathlib

import pytest

from tz import WorkerPool, compress, decompress
from tz.archive import (
    ARCHIVE_HEADER,
    ArchiveEntry,
    ArchiveError,
    collect_entries,
    deserialize_tree,
    is_archive,
    pack_entries,
    parse_archive,
    serialize_tree,
)


def snapshot(root: pathlib.Path):
    """relative path -> bytes, or None for directories"""
    out = {}
    for p in root.rglob("*"):
        rp = p.relative_to(root).as_posix()
        out[rp] = None if p.is_dir() else p.read_bytes()
    return out


@pytest.fixture
def tree(tmp_path):
    root = tmp_path / "src"
    (root / "empty").mkdir(parents=True)
    (root / "f.txt").write_bytes(b"ab")
    return root


def test_layout_directories_before_files(tree):
    (tree / "sub").mkdir()
    (tree / "sub" / "z.bin").write_bytes(b"zz")
    buf = serialize_tree(tree)
    assert buf.startswith(ARCHIVE_HEADER)
    body = buf[len(ARCHIVE_HEADER):]
    assert body.index(b"empty:0\n") < body.index(b"f.txt:2\nab\n")
    assert body.index(b"sub:0\n") < body.index(b"f.txt:2\n")
    assert b"sub/z.bin:2\nzz\n" in body


def test_root_has_no_entry(tree):
    rels = [e.relative_path for e in collect_entries(tree)]
    assert sorted(rels) == ["empty", "f.txt"]


def test_directory_round_trip(tree, tmp_path):
    out = tmp_path / "out"
    with WorkerPool(jobs=2) as pool:
        packed = compress(serialize_tree(tree), pool)
        deserialize_tree(decompress(packed, pool), out)
    assert snapshot(out) == snapshot(tree)
    assert (out / "empty").is_dir()
    assert (out / "f.txt").read_bytes() == b"ab"


def test_binary_content_with_newlines_round_trips(tmp_path):
    root = tmp_path / "src"
    (root / "a" / "b").mkdir(parents=True)
    (root / "a" / "b" / "nl.bin").write_bytes(b"line1\nline2\n\n\x00\xff:3\n")
    (root / "a" / "only-nl").write_bytes(b"\n")
    (root / "big").write_bytes(bytes(range(256)) * 200)
    (root / "empty-file").write_bytes(b"")
    out = tmp_path / "out"
    deserialize_tree(decompress(compress(serialize_tree(root))), out)
    assert snapshot(out) == snapshot(root)
    assert (out / "empty-file").is_file()


def test_empty_file_versus_directory():
    buf = ARCHIVE_HEADER + b"d:0\ne:0\n\n"
    entries = parse_archive(buf)
    assert entries[0] == ArchiveEntry.directory("d")
    assert entries[1] == ArchiveEntry.file("e", b"")


def test_trailing_directory_at_end_of_buffer():
    assert parse_archive(ARCHIVE_HEADER + b"x/y:0\n") == [ArchiveEntry.directory("x/y")]
    assert parse_archive(ARCHIVE_HEADER + b"x/y:0") == [ArchiveEntry.directory("x/y")]


def test_malformed_lines_are_skipped():
    buf = ARCHIVE_HEADER + b"no colon here\na:b:c\n:5\nok:3\nabc\n"
    assert parse_archive(buf) == [ArchiveEntry.file("ok", b"abc")]


@pytest.mark.parametrize("size", [b"abc", b"-4", b"", b"\xc2\xb2"])
def test_unparsable_size_defaults_to_directory(size):
    entries = parse_archive(ARCHIVE_HEADER + b"p:" + size + b"\n")
    assert entries == [ArchiveEntry.directory("p")]


def test_truncated_content_is_an_error():
    with pytest.raises(ArchiveError):
        parse_archive(ARCHIVE_HEADER + b"f:10\nabc")


def test_missing_header():
    assert not is_archive(b"TZ_DIR_ARCHIVE")
    with pytest.raises(ArchiveError):
        parse_archive(b"plain bytes")


@pytest.mark.parametrize("rel", ["a:b", "new\nline", ""])
def test_unrepresentable_paths_are_rejected(rel):
    with pytest.raises(ArchiveError):
        pack_entries([ArchiveEntry.file(rel, b"x")])


@pytest.mark.parametrize("rel", ["../escape", "/abs/path", "a/../../b"])
def test_unsafe_paths_are_rejected_on_extract(tmp_path, rel):
    buf = pack_entries([ArchiveEntry.file(rel, b"x")])
    with pytest.raises(ArchiveError):
        deserialize_tree(buf, tmp_path / "out")


def test_filesystem_errors_propagate(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_bytes(b"")
    buf = pack_entries([ArchiveEntry.file("blocker/inner", b"x")])
    with pytest.raises(OSError):
        deserialize_tree(buf, tmp_path)


def test_collect_entries_requires_directory(tmp_path):
    f = tmp_path / "f"
    f.write_bytes(b"")
    with pytest.raises(NotADirectoryError):
        collect_entries(f)
