"""tz command line.

Commands:
  compress    file -> <file>.tz, directory -> <dirname>.tz (current directory)
  decompress  <name>.tz -> <name> next to it (directories are re-created)
  info        sizes, run statistics, entropy and a zstd reference size
  verify      decode in memory and compare with the source (blake3 digests)
  help        usage

Worker count: --jobs, else $TZ_JOBS, else half the available cores.
"""

from __future__ import annotations

import argparse
import math
import pathlib
import sys
import time
from typing import Dict, List, Optional, Tuple

import zstandard as zstd
from blake3 import blake3

from . import __version__
from .archive import ArchiveEntry, collect_entries, is_archive, pack_entries, parse_archive, unpack_entries
from .codec import MAX_RUN, iter_pairs
from .scheduler import DEF_JOBS, DEF_THRESHOLD, WorkerPool, compress, decompress

TZ_EXT = ".tz"
DEF_ZSTD_LEVEL = 3


class PhaseTimer:
    __slots__ = ("t0", "acc")

    def __init__(self) -> None:
        self.t0 = time.perf_counter()
        self.acc: Dict[str, float] = {}  # phase -> seconds

    def mark(self, phase: str) -> None:
        t = time.perf_counter()
        self.acc[phase] = self.acc.get(phase, 0.0) + (t - self.t0)
        self.t0 = t

    def report(self) -> str:
        items = sorted(self.acc.items(), key=lambda kv: (-kv[1], kv[0]))
        total = sum(v for _, v in items) or 1e-9
        return " | ".join(f"{k}={v:.3f}s({(100.0 * v / total):.1f}%)" for k, v in items)


# -----------------------------
# Helpers
# -----------------------------
def open_pool(args: argparse.Namespace) -> WorkerPool:
    pool = WorkerPool(jobs=args.jobs, processes=args.mp)
    print(f"Using {pool.jobs} {'process' if pool.processes else 'thread'}(s) for compression/decompression")
    return pool


def default_compress_target(path: pathlib.Path) -> pathlib.Path:
    if path.is_dir():
        return pathlib.Path(path.resolve().name + TZ_EXT)
    return pathlib.Path(str(path) + TZ_EXT)


def default_decompress_target(path: pathlib.Path) -> pathlib.Path:
    stem = path.name[:-len(TZ_EXT)]
    return path.parent / (stem or path.name + ".decompressed")


def shannon_entropy_8bit(data: bytes) -> float:
    if not data:
        return 0.0
    freq = [0] * 256
    for b in data:
        freq[b] += 1
    n = float(len(data))
    ent = 0.0
    for c in freq:
        if c:
            p = c / n
            ent -= p * math.log2(p)
    return ent / 8.0  # normalized ~[0,1]


def ratio_of(comp_len: int, raw_len: int) -> float:
    return comp_len / float(raw_len if raw_len else 1)


def read_tz(path: pathlib.Path) -> bytes:
    if not str(path).endswith(TZ_EXT):
        raise SystemExit(f"Only {TZ_EXT} files can be decompressed")
    return path.read_bytes()


# -----------------------------
# Commands
# -----------------------------
def cmd_compress(args: argparse.Namespace) -> None:
    src = pathlib.Path(args.path)
    out = pathlib.Path(args.output) if args.output else default_compress_target(src)
    pt = PhaseTimer() if args.profile else None
    t0 = time.time()

    if src.is_dir():
        entries = collect_entries(src)
        if pt: pt.mark("walk")
        if args.verbose:
            for e in entries:
                print(f"  + {e.relative_path}{'/' if e.is_directory else ''}  {e.size}")
        raw = pack_entries(entries)
        if pt: pt.mark("serialize")
        kind = f"directory ({sum(1 for e in entries if not e.is_directory)} file(s))"
    else:
        raw = src.read_bytes()
        if pt: pt.mark("read")
        kind = "file"

    with open_pool(args) as pool:
        comp = compress(raw, pool, threshold=args.threshold)
    if pt: pt.mark("encode")

    out.write_bytes(comp)
    if pt: pt.mark("write")

    t1 = time.time()
    print(f"[tz v{__version__}] OK: compressed {kind} to {out}")
    print(f"  raw={len(raw)} compressed={len(comp)} ratio={ratio_of(len(comp), len(raw)):.4f} time={t1 - t0:.2f}s")
    if pt: print("  profile: " + pt.report())


def cmd_decompress(args: argparse.Namespace) -> None:
    src = pathlib.Path(args.path)
    pt = PhaseTimer() if args.profile else None
    t0 = time.time()
    comp = read_tz(src)
    if pt: pt.mark("read")
    out = pathlib.Path(args.output) if args.output else default_decompress_target(src)

    with open_pool(args) as pool:
        raw = decompress(comp, pool, threshold=args.threshold)
    if pt: pt.mark("decode")

    if is_archive(raw):
        entries = parse_archive(raw)
        if pt: pt.mark("parse")
        unpack_entries(entries, out)
        if pt: pt.mark("write")
        if args.verbose:
            for e in entries:
                print(f"  - {e.relative_path}{'/' if e.is_directory else ''}  {e.size}")
        nfiles = sum(1 for e in entries if not e.is_directory)
        print(f"[tz v{__version__}] OK: decompressed directory to {out} ({nfiles} file(s), {len(entries) - nfiles} dir(s))")
    else:
        out.write_bytes(raw)
        if pt: pt.mark("write")
        print(f"[tz v{__version__}] OK: decompressed to {out}")

    t1 = time.time()
    print(f"  compressed={len(comp)} raw={len(raw)} time={t1 - t0:.2f}s")
    if pt: print("  profile: " + pt.report())


def run_stats(comp: bytes) -> Tuple[int, int, int]:
    """(pairs, longest run, pairs at the run cap)"""
    pairs = 0
    longest = 0
    capped = 0
    for count, _ in iter_pairs(comp):
        pairs += 1
        longest = max(longest, count)
        if count == MAX_RUN:
            capped += 1
    return pairs, longest, capped


def cmd_info(args: argparse.Namespace) -> None:
    src = pathlib.Path(args.path)
    comp = read_tz(src)
    with open_pool(args) as pool:
        raw = decompress(comp, pool, threshold=args.threshold)
    pairs, longest, capped = run_stats(comp)
    zref = len(zstd.ZstdCompressor(level=args.zstd_level).compress(raw))

    print(f"Archive: {src}")
    print(f"  compressed bytes: {len(comp)}" + ("  (dangling trailing byte ignored)" if len(comp) % 2 else ""))
    print(f"  raw bytes: {len(raw)}")
    print(f"  tz/raw ratio: {ratio_of(len(comp), len(raw)):.4f}")
    print(f"  pairs: {pairs}  mean run: {len(raw) / float(pairs or 1):.2f}  longest run: {longest}  capped runs: {capped}")
    print(f"  byte entropy: {shannon_entropy_8bit(raw):.4f}")
    print(f"  zstd(level={args.zstd_level}) reference: {zref} bytes  ratio={ratio_of(zref, len(raw)):.4f}")
    if is_archive(raw):
        entries = parse_archive(raw)
        nfiles = sum(1 for e in entries if not e.is_directory)
        print(f"  directory archive: {nfiles} file(s), {len(entries) - nfiles} dir(s), {sum(e.size for e in entries)} content bytes")
    else:
        print("  single file")


def digest_entries(entries: List[ArchiveEntry]) -> Dict[str, Optional[str]]:
    """relative path -> blake3 hex digest (None for directories)"""
    return {
        e.relative_path: (None if e.is_directory else blake3(e.content or b"").hexdigest())
        for e in entries
    }


def compare_digests(expected: Dict[str, Optional[str]], actual: Dict[str, Optional[str]]) -> List[str]:
    problems: List[str] = []
    for rp in sorted(expected.keys() | actual.keys()):
        if rp not in actual:
            problems.append(f"missing: {rp}")
        elif rp not in expected:
            problems.append(f"unexpected: {rp}")
        elif expected[rp] != actual[rp]:
            problems.append(f"differs: {rp}")
    return problems


def cmd_verify(args: argparse.Namespace) -> None:
    src = pathlib.Path(args.path)
    source = pathlib.Path(args.source)
    comp = read_tz(src)
    with open_pool(args) as pool:
        raw = decompress(comp, pool, threshold=args.threshold)

    if source.is_dir():
        if not is_archive(raw):
            raise SystemExit(f"verify FAILED: {src} is not a directory archive")
        problems = compare_digests(digest_entries(collect_entries(source)), digest_entries(parse_archive(raw)))
        what = "tree"
    else:
        problems = []
        if blake3(raw).hexdigest() != blake3(source.read_bytes()).hexdigest():
            problems.append(f"differs: {source.name}")
        what = "file"

    for p in problems:
        print(f"  {p}")
    if problems:
        raise SystemExit(f"verify FAILED: {len(problems)} mismatch(es) against {source}")
    print(f"OK: {src} matches {what} {source} (blake3)")


# -----------------------------
# Argument parsing
# -----------------------------
class ArgumentParser(argparse.ArgumentParser):
    """Usage errors print the help text and exit with status 1."""

    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_help(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_argparser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--jobs", "-j", type=int, default=DEF_JOBS,
                        help="parallel workers (0=auto: $TZ_JOBS or half the cores)")
    common.add_argument("--mp", action="store_true", default=False,
                        help="use a process pool instead of threads")
    common.add_argument("--threshold", type=int, default=DEF_THRESHOLD,
                        help="inputs shorter than this many bytes are coded sequentially")
    common.add_argument("--verbose", "-v", action="store_true", help="print per-entry lines")

    ap = ArgumentParser(prog="tz", description="Run-length compression of files and directories.",
                        epilog="examples:\n"
                               "  tz compress file.txt     creates file.txt.tz\n"
                               "  tz compress directory/   creates directory.tz\n"
                               "  tz decompress file.tz    extracts to file",
                        formatter_class=argparse.RawDescriptionHelpFormatter)
    ap.add_argument("--version", action="version", version=f"tz {__version__}")
    sub = ap.add_subparsers(dest="cmd", required=True, parser_class=ArgumentParser)

    pc = sub.add_parser("compress", parents=[common], help="compress a file or directory")
    pc.add_argument("path")
    pc.add_argument("--output", "-o", help="output path (default: <file>.tz or <dirname>.tz)")
    pc.add_argument("--profile", action="store_true", help="print per-phase timing breakdown")
    pc.set_defaults(func=cmd_compress)

    pd = sub.add_parser("decompress", parents=[common], help="decompress a .tz file")
    pd.add_argument("path")
    pd.add_argument("--output", "-o", help="output path (default: archive name without .tz)")
    pd.add_argument("--profile", action="store_true", help="print per-phase timing breakdown")
    pd.set_defaults(func=cmd_decompress)

    pi = sub.add_parser("info", parents=[common], help="show statistics for a .tz file")
    pi.add_argument("path")
    pi.add_argument("--zstd-level", type=int, default=DEF_ZSTD_LEVEL, help="level for the zstd reference size")
    pi.set_defaults(func=cmd_info)

    pv = sub.add_parser("verify", parents=[common], help="compare a .tz file with its source")
    pv.add_argument("path")
    pv.add_argument("source")
    pv.set_defaults(func=cmd_verify)

    ph = sub.add_parser("help", help="show this help")
    ph.set_defaults(func=None)

    return ap


def main(argv: Optional[List[str]] = None) -> None:
    ap = build_argparser()
    args = ap.parse_args(argv)
    if args.func is None:
        ap.print_help()
        return
    try:
        args.func(args)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
