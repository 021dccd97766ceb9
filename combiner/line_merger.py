#!/usr/bin/env python3
"""
line_merger.py - Merge Same-Named List Files from Two Directories

Not category aware: every list file name found in either directory gets one
output file holding the union of the literal (stripped) lines of both copies.
Comments are kept as ordinary lines; only blank lines are dropped.

Usage:
    python -m combiner.line_merger <dir1> <dir2> [output_dir]
"""
from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path

from combiner.config import DEFAULT_LIST_SUFFIX


DEFAULT_OUTPUT_DIR = "merged"


@dataclass
class MergeStats:
    """Statistics from a two-directory merge."""
    names_seen: int = 0
    files_written: int = 0
    files_empty: int = 0
    files_failed: int = 0
    lines_written: int = 0


def list_files(directory: Path, suffix: str = DEFAULT_LIST_SUFFIX) -> dict[str, list[Path]]:
    """
    Map lowercase list-file names to their paths (non-recursive).

    Names that differ only in case (Ads.txt, ads.txt) share one entry.
    A missing or unreadable directory yields an empty mapping.
    """
    files: dict[str, list[Path]] = {}
    try:
        entries = sorted(directory.iterdir())
    except OSError as e:
        print(f"Warning: cannot list {directory}: {e}", file=sys.stderr)
        return files

    for path in entries:
        name = path.name.lower()
        if name.endswith(suffix) and path.is_file():
            files.setdefault(name, []).append(path)
    return files


def read_lines(paths: list[Path], lines: set[str]) -> None:
    """Add the stripped, non-empty lines of every file to a set."""
    for path in paths:
        try:
            with open(path, encoding="utf-8-sig", errors="replace") as f:
                for line in f:
                    line = line.strip()
                    if line:
                        lines.add(line)
        except OSError as e:
            print(f"Warning: could not read {path}: {e}", file=sys.stderr)


def write_lines(path: Path, lines: set[str]) -> None:
    """Write lines sorted, via a temp file renamed into place."""
    temp_path = path.with_suffix(".tmp")
    try:
        with open(temp_path, "w", encoding="utf-8", newline="\n") as f:
            for line in sorted(lines):
                f.write(line + "\n")
        temp_path.replace(path)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise


def merge_directories(
    dir1: str | Path,
    dir2: str | Path,
    output_dir: str | Path,
    suffix: str = DEFAULT_LIST_SUFFIX,
) -> MergeStats:
    """
    Union same-named list files from two directories.

    Args:
        dir1: First source directory (read first)
        dir2: Second source directory
        output_dir: Where merged files are written
        suffix: List-file extension, matched case-insensitively

    Returns:
        MergeStats; names whose merged set is empty produce no file
    """
    suffix = suffix.lower()
    first = list_files(Path(dir1), suffix)
    second = list_files(Path(dir2), suffix)
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    stats = MergeStats()
    for name in sorted(first.keys() | second.keys()):
        stats.names_seen += 1
        lines: set[str] = set()
        read_lines(first.get(name, []), lines)
        read_lines(second.get(name, []), lines)

        if not lines:
            stats.files_empty += 1
            continue

        try:
            write_lines(output_path / name, lines)
        except OSError as e:
            print(f"Warning: could not write {output_path / name}: {e}", file=sys.stderr)
            stats.files_failed += 1
            continue

        stats.files_written += 1
        stats.lines_written += len(lines)

    return stats


def main() -> int:
    """Main entry point."""
    if len(sys.argv) < 3:
        print("Usage: python -m combiner.line_merger <dir1> <dir2> [output_dir]")
        return 2

    dir1 = sys.argv[1]
    dir2 = sys.argv[2]
    output_dir = sys.argv[3] if len(sys.argv) > 3 else DEFAULT_OUTPUT_DIR

    print(f"🔄 Merging {dir1} + {dir2} -> {output_dir}")
    stats = merge_directories(dir1, dir2, output_dir)

    print(f"   Names:   {stats.names_seen:>10,}")
    print(f"   Written: {stats.files_written:>10,} files, {stats.lines_written:,} lines")
    if stats.files_empty:
        print(f"   Empty:   {stats.files_empty:>10,}")
    if stats.files_failed:
        print(f"⚠️  Failed:  {stats.files_failed:>10,}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
