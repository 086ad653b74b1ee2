"""Directory archive: flatten a tree into one buffer for the pair codec, and back.

Layout::

    TZ_DIR_ARCHIVE:\\n
    <dir>:0\\n                  one line per directory, all before any file
    <file>:<size>\\n<content>\\n  size raw bytes, then one separator byte

File content is read back positionally using the declared size, so content
may contain any byte, newlines included. A ``path:0`` line directly followed
by the separator byte is an empty file; otherwise it is a directory.

Parsing is lenient: lines without exactly one colon are skipped, and a size
that is not a non-negative integer defaults to 0 (directory entry).
"""

from __future__ import annotations

import os
import pathlib
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, Union

ARCHIVE_HEADER = b"TZ_DIR_ARCHIVE:\n"
SEP = b"\n"
SEP_BYTE = SEP[0]

PathLike = Union[str, "os.PathLike[str]"]


class ArchiveError(ValueError):
    pass


@dataclass
class ArchiveEntry:
    relative_path: str
    is_directory: bool
    size: int = 0
    content: Optional[bytes] = None

    @classmethod
    def directory(cls, rel: str) -> "ArchiveEntry":
        return cls(relative_path=rel, is_directory=True)

    @classmethod
    def file(cls, rel: str, content: bytes) -> "ArchiveEntry":
        return cls(relative_path=rel, is_directory=False, size=len(content), content=bytes(content))


def is_archive(buf: bytes) -> bool:
    return bytes(buf[:len(ARCHIVE_HEADER)]) == ARCHIVE_HEADER


def relpath_str(root: pathlib.Path, p: pathlib.Path) -> str:
    return str(p.relative_to(root)).replace("\\", "/")


# -----------------------------
# Serialize
# -----------------------------
def collect_entries(root: PathLike) -> List[ArchiveEntry]:
    """
    Walk ``root`` top-down and return directory entries followed by file entries.

    A directory is always listed before its children. The root itself gets no
    entry; it is recreated as the extraction root. Siblings are sorted so that
    identical trees give identical archives.
    """
    root = pathlib.Path(root)
    if not root.is_dir():
        raise NotADirectoryError(str(root))
    dirs: List[ArchiveEntry] = []
    files: List[ArchiveEntry] = []
    for dp, dnames, fnames in os.walk(root):
        dnames.sort()
        base = pathlib.Path(dp)
        for d in dnames:
            dirs.append(ArchiveEntry.directory(relpath_str(root, base / d)))
        for n in sorted(fnames):
            p = base / n
            if not p.is_file():
                continue
            files.append(ArchiveEntry.file(relpath_str(root, p), p.read_bytes()))
    return dirs + files


def _check_rel(rel: str) -> None:
    if not rel:
        raise ArchiveError("empty entry path")
    if ":" in rel or "\n" in rel:
        raise ArchiveError(f"entry path cannot be stored (contains ':' or newline): {rel!r}")


def pack_entries(entries: Iterable[ArchiveEntry]) -> bytes:
    entries = list(entries)
    out = bytearray(ARCHIVE_HEADER)
    for e in entries:
        if e.is_directory:
            _check_rel(e.relative_path)
            out += os.fsencode(e.relative_path) + b":0" + SEP
    for e in entries:
        if not e.is_directory:
            _check_rel(e.relative_path)
            content = e.content or b""
            out += os.fsencode(e.relative_path) + b":" + str(len(content)).encode("ascii") + SEP
            out += content
            out += SEP
    return bytes(out)


def serialize_tree(root: PathLike) -> bytes:
    return pack_entries(collect_entries(root))


# -----------------------------
# Deserialize
# -----------------------------
def _parse_line(line: bytes) -> Optional[Tuple[str, Optional[int]]]:
    """Return (path, size) or None for a malformed line; size is None when unparsable."""
    parts = os.fsdecode(line).split(":")
    if len(parts) != 2 or not parts[0]:
        return None
    path, size_s = parts
    if size_s.isascii() and size_s.isdigit():
        return path, int(size_s)
    return path, None


def parse_archive(buf: bytes) -> List[ArchiveEntry]:
    if not is_archive(buf):
        raise ArchiveError("missing TZ_DIR_ARCHIVE header")
    buf = bytes(buf)
    n = len(buf)
    pos = len(ARCHIVE_HEADER)
    entries: List[ArchiveEntry] = []
    while pos < n:
        nl = buf.find(SEP, pos)
        if nl < 0:
            nl = n
        line = buf[pos:nl]
        pos = nl + 1
        parsed = _parse_line(line)
        if parsed is None:
            continue
        rel, size = parsed
        if size is None:
            entries.append(ArchiveEntry.directory(rel))
            continue
        if size == 0:
            if pos < n and buf[pos] == SEP_BYTE:
                pos += 1
                entries.append(ArchiveEntry.file(rel, b""))
            else:
                entries.append(ArchiveEntry.directory(rel))
            continue
        end = pos + size
        if end > n:
            raise ArchiveError(f"truncated content for {rel!r}: need {size} bytes, have {max(0, n - pos)}")
        entries.append(ArchiveEntry.file(rel, buf[pos:end]))
        pos = end
        if pos < n and buf[pos] == SEP_BYTE:
            pos += 1
    return entries


def _safe_target(out_root: pathlib.Path, rel: str) -> pathlib.Path:
    pp = pathlib.PurePosixPath(rel)
    if pp.is_absolute() or ".." in pp.parts:
        raise ArchiveError(f"unsafe entry path: {rel!r}")
    return out_root.joinpath(*pp.parts)


def unpack_entries(entries: Iterable[ArchiveEntry], out_root: PathLike) -> None:
    out_root = pathlib.Path(out_root)
    out_root.mkdir(parents=True, exist_ok=True)
    for e in entries:
        target = _safe_target(out_root, e.relative_path)
        if e.is_directory:
            target.mkdir(parents=True, exist_ok=True)
        else:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(e.content or b"")


def deserialize_tree(buf: bytes, out_root: PathLike) -> List[ArchiveEntry]:
    entries = parse_archive(buf)
    unpack_entries(entries, out_root)
    return entries
