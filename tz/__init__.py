"""tz: run-length codec with parallel chunking, plus a flat directory archive.

Typical use::

    from tz import WorkerPool, compress, decompress, serialize_tree

    with WorkerPool(jobs=4) as pool:
        packed = compress(serialize_tree("docs"), pool)
        raw = decompress(packed, pool)
"""

from .archive import (
    ARCHIVE_HEADER,
    ArchiveEntry,
    ArchiveError,
    collect_entries,
    deserialize_tree,
    is_archive,
    pack_entries,
    parse_archive,
    serialize_tree,
    unpack_entries,
)
from .codec import MAX_RUN, decode, decode_text, encode, iter_pairs
from .scheduler import DEF_THRESHOLD, WorkerPool, compress, decompress, decompress_text

__version__ = "0.1.0"

__all__ = [
    "ARCHIVE_HEADER",
    "ArchiveEntry",
    "ArchiveError",
    "DEF_THRESHOLD",
    "MAX_RUN",
    "WorkerPool",
    "collect_entries",
    "compress",
    "decode",
    "decode_text",
    "decompress",
    "decompress_text",
    "deserialize_tree",
    "encode",
    "is_archive",
    "iter_pairs",
    "pack_entries",
    "parse_archive",
    "serialize_tree",
    "unpack_entries",
]
