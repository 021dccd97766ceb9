"""
aggregator.py - Merge Source Directories into Category Buckets

Reads every list file in every source directory, routes it through the
category normalizer, and collects its domains into one set per canonical
category.

Line handling:
    "0.0.0.0 ads.example.com"   ->  "ads.example.com"
    "127.0.0.1  Tracker.NET"    ->  "tracker.net"
    "plain.example.org"         ->  "plain.example.org"
    "# comment" / ""            ->  skipped

Only the last whitespace-separated field of a line is kept. No further
normalization is done, so "example.com" and "example.com." are two entries.
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable, NamedTuple

from combiner.config import CombinerConfig
from combiner.normalizer import normalize_category


# Outcome statuses
MERGED = "merged"
EXCLUDED = "excluded"
SKIPPED = "skipped"


class SourceOutcome(NamedTuple):
    """
    What happened to one source file or directory during aggregation.

    Attributes:
        path: File or directory that was looked at
        category: Canonical category, or None for directory-level outcomes
        status: "merged", "excluded" or "skipped"
        lines: Domain lines read from the file (before dedup)
        reason: Why the file was skipped, or None
    """
    path: Path
    category: str | None
    status: str
    lines: int = 0
    reason: str | None = None


class AggregateResult(NamedTuple):
    """Buckets plus the per-file outcomes that produced them."""
    buckets: dict[str, set[str]]
    outcomes: list[SourceOutcome]


def extract_domain(line: str) -> str | None:
    """
    Pull the domain entry out of one raw line.

    Args:
        line: Raw line, possibly with surrounding whitespace

    Returns:
        Lowercase last field, or None for blank and comment lines

    Example:
        >>> extract_domain("0.0.0.0 Foo.com")
        'foo.com'
        >>> extract_domain("# 0.0.0.0 foo.com") is None
        True
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return None
    fields = line.split()
    if not fields:
        return None
    return fields[-1].lower()


def _warn(outcome: SourceOutcome) -> None:
    print(f"Warning: skipped {outcome.path}: {outcome.reason}", file=sys.stderr)


def read_domains(path: Path, bucket: set[str]) -> int:
    """
    Add every domain in a file to a bucket.

    Returns the number of domain lines read. OSError/UnicodeError propagate
    to the caller; lines read before the error stay in the bucket.
    """
    count = 0
    with open(path, encoding="utf-8-sig", errors="replace") as f:
        for line in f:
            domain = extract_domain(line)
            if domain is None:
                continue
            bucket.add(domain)
            count += 1
    return count


def _list_dir(directory: Path) -> list[Path]:
    return sorted(directory.iterdir(), key=lambda p: p.name)


def aggregate(source_dirs: Iterable[str | Path], config: CombinerConfig) -> AggregateResult:
    """
    Build canonical category buckets from all source directories.

    Missing directories, unreadable files and excluded files never abort the
    run; each one is recorded as a SourceOutcome.

    Args:
        source_dirs: Directories to scan, in order
        config: Exclusion set and category merge table

    Returns:
        AggregateResult with category -> set of domains
    """
    buckets: dict[str, set[str]] = {}
    outcomes: list[SourceOutcome] = []

    for source_dir in source_dirs:
        directory = Path(source_dir)
        try:
            entries = _list_dir(directory)
        except OSError as e:
            outcome = SourceOutcome(directory, None, SKIPPED, reason=f"cannot list directory ({e.strerror or e})")
            outcomes.append(outcome)
            _warn(outcome)
            continue

        for path in entries:
            assignment = normalize_category(path.name, config)

            if not assignment.included:
                outcomes.append(SourceOutcome(path, assignment.category, EXCLUDED))
                continue

            if not path.is_file():
                outcome = SourceOutcome(path, assignment.category, SKIPPED, reason="not a regular file")
                outcomes.append(outcome)
                _warn(outcome)
                continue

            bucket = buckets.setdefault(assignment.category, set())
            try:
                count = read_domains(path, bucket)
            except (OSError, UnicodeError) as e:
                outcome = SourceOutcome(path, assignment.category, SKIPPED, reason=str(e))
                outcomes.append(outcome)
                _warn(outcome)
                continue

            outcomes.append(SourceOutcome(path, assignment.category, MERGED, lines=count))

    return AggregateResult(buckets, outcomes)
