#!/usr/bin/env python3
"""
pipeline.py

Main processing pipeline for the category blocklist export.

Usage:
    python -m combiner.pipeline [--workdir Temp] [--outdir master_export]
                                [--config config.json] [--skip-fetch]
                                [--no-split] [--max-bytes N] [--timeout S]

Pipeline stages:
1. Fetch every configured source into <workdir>/<source name>
2. Merge all source files into canonical category buckets
3. Write each category as size-bounded 0.0.0.0 partitions
4. Print summary
"""
from __future__ import annotations

import argparse
import asyncio
import shutil
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path

from combiner.aggregator import EXCLUDED, MERGED, SKIPPED, aggregate
from combiner.config import CombinerConfig, ConfigError, load_config
from combiner.fetcher import DEFAULT_TIMEOUT, FetchResult, fetch_sources
from combiner.writer import PartitionResult, write_category


@dataclass
class RunStats:
    """Everything the summary reports for one run."""
    fetch_results: list[FetchResult] = field(default_factory=list)
    files_merged: int = 0
    files_excluded: int = 0
    files_skipped: int = 0
    lines_read: int = 0
    categories: int = 0
    partitions: int = 0
    categories_failed: int = 0
    total_domains: int = 0
    partition_results: list[PartitionResult] = field(default_factory=list)


def reset_dir(path: Path) -> None:
    """Remove a directory tree and recreate it empty."""
    shutil.rmtree(path, ignore_errors=True)
    path.mkdir(parents=True, exist_ok=True)


def source_dirs(config: CombinerConfig, workdir: Path) -> list[Path]:
    return [workdir / source.name for source in config.sources]


def run(
    config: CombinerConfig,
    workdir: str | Path,
    outdir: str | Path,
    fetch: bool = True,
    timeout: int = DEFAULT_TIMEOUT,
) -> RunStats:
    """
    Run the full pipeline.

    Args:
        config: Tables, thresholds and sources for this run
        workdir: Parent directory of the per-source input folders
        outdir: Export directory, emptied before writing
        fetch: False reuses whatever is already in the source folders
        timeout: Per-request fetch timeout in seconds

    Returns:
        RunStats for the summary
    """
    work_path = Path(workdir)
    out_path = Path(outdir)
    dirs = source_dirs(config, work_path)
    stats = RunStats()

    # =========================================================================
    # Stage 1: Fetch
    # =========================================================================
    if fetch:
        print("📥 Stage 1: Fetching sources...")
        for directory in dirs:
            reset_dir(directory)
        stats.fetch_results = asyncio.run(fetch_sources(config, work_path, timeout))
        ok = sum(1 for r in stats.fetch_results if r.success)
        print(f"   Fetched {ok}/{len(stats.fetch_results)} sources")
    else:
        print("⏭️  Stage 1: Fetch skipped, using existing source folders")

    # =========================================================================
    # Stage 2: Merge and normalize
    # =========================================================================
    print("\n🔄 Stage 2: Merging and normalizing...")
    stage2_start = time.time()

    result = aggregate(dirs, config)
    for outcome in result.outcomes:
        if outcome.status == MERGED:
            stats.files_merged += 1
            stats.lines_read += outcome.lines
        elif outcome.status == EXCLUDED:
            stats.files_excluded += 1
        elif outcome.status == SKIPPED:
            stats.files_skipped += 1

    stage2_time = time.time() - stage2_start
    print(f"   Merged {stats.files_merged} files into {len(result.buckets)} categories ({stage2_time:.1f}s)")

    # =========================================================================
    # Stage 3: Write partitions
    # =========================================================================
    print("\n💾 Stage 3: Writing partitions...")
    stage3_start = time.time()
    reset_dir(out_path)

    buckets = result.buckets
    for category in sorted(buckets):
        domains = buckets.pop(category)
        written = write_category(
            category,
            domains,
            out_path,
            config.max_partition_bytes,
            config.split_output,
        )
        stats.partition_results.append(written)
        stats.categories += 1
        stats.partitions += len(written.partitions)
        stats.total_domains += written.written
        if written.error:
            stats.categories_failed += 1

    stage3_time = time.time() - stage3_start
    print(f"   Wrote {stats.partitions} files for {stats.categories} categories ({stage3_time:.1f}s)")

    return stats


def print_summary(stats: RunStats) -> None:
    """Print formatted summary."""
    print("\n" + "=" * 60)
    print("📊 FINAL REPORT")
    print("=" * 60)

    if stats.fetch_results:
        print("\n🌐 Sources:")
        for r in stats.fetch_results:
            if r.success:
                extra = f", {r.files_failed} failed" if r.files_failed else ""
                print(f"   {r.source:<10} {r.files:>6,} files{extra}")
            else:
                print(f"   {r.source:<10} FAILED ({r.error})")

    print(f"\n📁 Files:")
    print(f"   Merged:    {stats.files_merged:>10,}")
    print(f"   Excluded:  {stats.files_excluded:>10,}")
    print(f"   Skipped:   {stats.files_skipped:>10,}")
    print(f"   Lines read:{stats.lines_read:>10,}")

    print(f"\n📦 Output:")
    print(f"   Categories: {stats.categories:>9,}")
    print(f"   Partitions: {stats.partitions:>9,}")
    if stats.categories_failed:
        print(f"   Failed:     {stats.categories_failed:>9,}")

    print(f"\n🛡️  Total unique domains protected: {stats.total_domains:,}")


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Build category-partitioned blackhole lists")
    parser.add_argument("--workdir", default="Temp", help="Parent directory for per-source folders")
    parser.add_argument("--outdir", default="master_export", help="Export directory")
    parser.add_argument("--config", help="JSON config file")
    parser.add_argument("--skip-fetch", action="store_true", help="Use existing source folders")
    parser.add_argument("--no-split", action="store_true", help="Write one file per category")
    parser.add_argument("--max-bytes", type=int, help="Max domain-line bytes per partition")
    parser.add_argument("--timeout", type=int, default=DEFAULT_TIMEOUT, help="Request timeout in seconds")

    args = parser.parse_args()

    try:
        config = load_config(args.config).with_overrides(
            max_partition_bytes=args.max_bytes,
            split_output=False if args.no_split else None,
        )
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    try:
        print("🚀 Starting category export pipeline...")
        print("-" * 60)

        start_time = time.time()
        stats = run(config, args.workdir, args.outdir, fetch=not args.skip_fetch, timeout=args.timeout)
        total_time = time.time() - start_time

        print_summary(stats)
        print(f"\n⏱️  Total time: {total_time:.1f}s")
        print(f"✨ Check './{args.outdir}' for partitioned lists.")

        return 0

    except Exception as e:
        print(f"\n❌ ERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
