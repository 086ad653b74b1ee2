"""Parallel chunk scheduler for the pair codec.

Inputs shorter than the threshold are coded in the calling thread. Larger
inputs are cut into contiguous chunks by raw offset, every chunk is coded
independently on a :class:`WorkerPool`, and the results are concatenated in
chunk order. Chunk boundaries are not run-aware: a run crossing a boundary
becomes two pairs, which costs ratio but never correctness since decoding is
pair-local.
"""

from __future__ import annotations

import concurrent.futures
import os
from typing import Callable, Iterable, List, Optional, TypeVar

from .codec import PAIR_SIZE, decode, encode

T = TypeVar("T")
R = TypeVar("R")

# -----------------------------
# Defaults / knobs
# -----------------------------
DEF_THRESHOLD = 10_000
DEF_JOBS = 0  # 0 = $TZ_JOBS, else half the cores
MIN_CHUNK = 1024
JOBS_ENV = "TZ_JOBS"


def auto_jobs() -> int:
    cpu = os.cpu_count() or 1
    return max(1, cpu // 2)


def jobs_from_env() -> Optional[int]:
    """
    Worker count from the TZ_JOBS environment variable.

    Returns None when the variable is unset, empty, negative or not an integer.
    """
    v = os.environ.get(JOBS_ENV)
    if not v:
        return None
    try:
        n = int(v.strip())
    except ValueError:
        return None
    if n < 0:
        return None
    return n


class WorkerPool:
    """
    Fixed-size executor owned by the top-level caller.

    The degree of parallelism is decided once, at construction, and never
    changes. Threads are used by default; ``processes=True`` switches to a
    process pool (the codec functions are module-level and picklable).
    """

    def __init__(self, jobs: int = DEF_JOBS, processes: bool = False) -> None:
        if jobs <= 0:
            env_jobs = jobs_from_env()
            jobs = env_jobs if env_jobs else auto_jobs()
        self.jobs = int(jobs)
        self.processes = bool(processes)
        if self.processes:
            self._executor: concurrent.futures.Executor = concurrent.futures.ProcessPoolExecutor(
                max_workers=self.jobs)
        else:
            self._executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=self.jobs, thread_name_prefix="tz")

    def map(self, fn: Callable[[T], R], items: Iterable[T]) -> List[R]:
        # Executor.map yields in submission order; a worker exception re-raises here.
        return list(self._executor.map(fn, items))

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "WorkerPool":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        kind = "process" if self.processes else "thread"
        return f"WorkerPool(jobs={self.jobs}, kind={kind})"


# -----------------------------
# Partitioning
# -----------------------------
def chunk_size_for(length: int, jobs: int) -> int:
    return max(length // max(1, jobs), MIN_CHUNK)


def split_chunks(data: bytes, chunk_size: int) -> List[bytes]:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be > 0")
    return [data[i:i + chunk_size] for i in range(0, len(data), chunk_size)]


def split_pairs(data: bytes, jobs: int) -> List[bytes]:
    """Split a pair stream into pair-aligned groups; a trailing odd byte is dropped."""
    usable = len(data) - (len(data) % PAIR_SIZE)
    step = chunk_size_for(usable, jobs)
    step -= step % PAIR_SIZE
    return split_chunks(data[:usable], step)


# -----------------------------
# Entry points
# -----------------------------
def compress(data: bytes, pool: Optional[WorkerPool] = None,
             threshold: int = DEF_THRESHOLD) -> bytes:
    data = bytes(data)
    if pool is None or len(data) < threshold:
        return encode(data)
    chunks = split_chunks(data, chunk_size_for(len(data), pool.jobs))
    return b"".join(pool.map(encode, chunks))


def decompress(data: bytes, pool: Optional[WorkerPool] = None,
               threshold: int = DEF_THRESHOLD) -> bytes:
    data = bytes(data)
    if pool is None or len(data) < threshold:
        return decode(data)
    return b"".join(pool.map(decode, split_pairs(data, pool.jobs)))


def decompress_text(data: bytes, pool: Optional[WorkerPool] = None,
                    threshold: int = DEF_THRESHOLD, encoding: str = "utf-8") -> str:
    return decompress(data, pool, threshold).decode(encoding)
