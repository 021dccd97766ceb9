"""
writer.py - Size-Bounded Partition Writer

Flushes one category bucket to disk as DNS-blackhole lines:

    # Ads Part 1
    0.0.0.0 ads.example.com
    0.0.0.0 tracker.example.net
    ...

When split output is enabled the category is spread over ads1.txt, ads2.txt,
... and each partition's domain lines stay within max_partition_bytes (the
header is not counted). A single line larger than the threshold is still
written whole, alone in its partition. Without splitting, everything goes to
ads.txt under a "# Ads" header.

Domains are written in sorted order so the split points are reproducible.
Every partition is written to a .tmp file first and renamed into place.
"""
from __future__ import annotations

import contextlib
import sys
from pathlib import Path
from typing import Iterable, NamedTuple, TextIO

from combiner.config import DEFAULT_MAX_PARTITION_BYTES


BLACKHOLE_IP = "0.0.0.0"


class PartitionResult(NamedTuple):
    """
    Result of writing one category.

    Attributes:
        category: Canonical category name
        written: Distinct domains emitted into completed partitions
        partitions: Output files, in partition order
        error: Write error that cut the category short, or None
    """
    category: str
    written: int
    partitions: list[Path]
    error: str | None = None


def display_title(category: str) -> str:
    """
    Turn a category name into a header title.

    Separators become spaces and each word gets an upper-case first letter.
    The rest of the word is left alone.

    Example:
        >>> display_title("DNS_Over_HTTPS")
        'DNS Over HTTPS'
        >>> display_title("ads-and_trackers")
        'Ads And Trackers'
    """
    words = category.replace("_", " ").replace("-", " ").split(" ")
    return " ".join(word[:1].upper() + word[1:] for word in words)


def partition_path(output_dir: Path, category: str, index: int, split: bool) -> Path:
    if split:
        return output_dir / f"{category}{index}.txt"
    return output_dir / f"{category}.txt"


def partition_header(title: str, index: int, split: bool) -> str:
    if split:
        return f"# {title} Part {index}\n"
    return f"# {title}\n"


def format_line(domain: str) -> str:
    return f"{BLACKHOLE_IP} {domain}\n"


class _Partition:
    """One open output partition, committed by renaming its temp file."""

    def __init__(self, path: Path, header: str) -> None:
        self.path = path
        self.temp_path = path.with_suffix(".tmp")
        self.size = 0
        self.lines = 0
        self._file: TextIO = open(self.temp_path, "w", encoding="utf-8", newline="\n")
        self._file.write(header)

    def write(self, line: str, size: int) -> None:
        self._file.write(line)
        self.size += size
        self.lines += 1

    def commit(self) -> None:
        self._file.close()
        # ads + part 11 and ads1 + part 1 both land on ads11.txt
        if self.path.exists():
            print(f"Warning: overwriting existing output {self.path}", file=sys.stderr)
        self.temp_path.replace(self.path)

    def discard(self) -> None:
        with contextlib.suppress(OSError):
            self._file.close()
        with contextlib.suppress(OSError):
            self.temp_path.unlink()


def write_category(
    category: str,
    domains: Iterable[str],
    output_dir: str | Path,
    max_partition_bytes: int = DEFAULT_MAX_PARTITION_BYTES,
    split: bool = True,
) -> PartitionResult:
    """
    Write a category's domains into one or more partition files.

    Args:
        category: Canonical category name, used for file names and header
        domains: Unique domain entries for the category
        output_dir: Export directory (created if missing)
        max_partition_bytes: Upper bound on a partition's domain-line bytes
        split: False writes a single <category>.txt with no size bound

    Returns:
        PartitionResult; on a write error the partitions already committed
        are kept and the error is recorded instead of raised
    """
    output_path = Path(output_dir)
    title = display_title(category)
    partitions: list[Path] = []
    written = 0
    index = 1
    current: _Partition | None = None

    try:
        output_path.mkdir(parents=True, exist_ok=True)
        current = _Partition(
            partition_path(output_path, category, index, split),
            partition_header(title, index, split),
        )

        for domain in sorted(domains):
            line = format_line(domain)
            size = len(line.encode("utf-8"))

            # Threshold only gates adding to a partition that already has lines
            if split and current.lines and current.size + size > max_partition_bytes:
                current.commit()
                partitions.append(current.path)
                written += current.lines
                index += 1
                current = _Partition(
                    partition_path(output_path, category, index, split),
                    partition_header(title, index, split),
                )

            current.write(line, size)

        current.commit()
        partitions.append(current.path)
        written += current.lines

    except OSError as e:
        if current is not None:
            current.discard()
        print(f"Warning: could not write category {category!r}: {e}", file=sys.stderr)
        return PartitionResult(category, written, partitions, str(e))

    return PartitionResult(category, written, partitions)
