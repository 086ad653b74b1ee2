"""Pair codec: bytes <-> (count, value) pairs.

The compressed form is a flat sequence of 2-byte pairs ``(count, value)``
with no header. A run never exceeds ``MAX_RUN`` repeats; longer physical runs
are split into several pairs.

Decoding is lenient: a dangling trailing byte (odd-length stream) is dropped
and a zero count expands to nothing.
"""

from __future__ import annotations

from typing import Iterator, Tuple

MAX_RUN = 255
PAIR_SIZE = 2


def encode(data: bytes) -> bytes:
    out = bytearray()
    n = len(data)
    i = 0
    while i < n:
        b = data[i]
        j = i + 1
        limit = min(n, i + MAX_RUN)
        while j < limit and data[j] == b:
            j += 1
        out.append(j - i)
        out.append(b)
        i = j
    return bytes(out)


def iter_pairs(data: bytes) -> Iterator[Tuple[int, int]]:
    """Yield ``(count, value)`` for every complete pair in ``data``."""
    end = len(data) - (len(data) % PAIR_SIZE)
    for i in range(0, end, PAIR_SIZE):
        yield data[i], data[i + 1]


def decode(data: bytes) -> bytes:
    return b"".join(bytes((value,)) * count for count, value in iter_pairs(data))


def decode_text(data: bytes, encoding: str = "utf-8") -> str:
    # strict: UnicodeDecodeError propagates to the caller
    return decode(data).decode(encoding)
