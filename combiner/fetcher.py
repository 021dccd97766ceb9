#!/usr/bin/env python3
"""
fetcher.py - Raw List Fetchers (UT1 archive, GitHub list directories)

Produces the per-source input directories the aggregator reads: one .txt
file per raw category.

    ut1     Downloads the UT1 blacklists tar.gz and writes every
            "<root>/<category>/domains" member as <category>.txt
    github  Lists a repository directory through the contents API and
            downloads every .txt file it holds

Sources are fetched one after another with a per-request timeout and no
retries. A failed source is reported in its FetchResult and the run goes on
with whatever else arrived.

Usage:
    python -m combiner.fetcher --workdir Temp [--config config.json] [--timeout 300]
"""
from __future__ import annotations

import argparse
import asyncio
import shutil
import sys
import tarfile
import tempfile
import zlib
from pathlib import Path
from typing import NamedTuple

import aiofiles
import aiohttp

from combiner.config import CombinerConfig, ConfigError, SourceSpec, load_config


DEFAULT_TIMEOUT = 300
CHUNK_SIZE = 1024 * 1024

#: Member name suffix holding a UT1 category's domain list
UT1_DOMAINS_MEMBER = "/domains"

GITHUB_HEADERS = {"Accept": "application/vnd.github+json"}

FETCH_ERRORS = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
    OSError,
    tarfile.TarError,
    EOFError,
    zlib.error,
    # JSONDecodeError and UnicodeDecodeError on listing bodies
    ValueError,
)


class FetchResult(NamedTuple):
    """Result of fetching one source."""
    source: str
    url: str
    success: bool
    files: int = 0
    files_failed: int = 0
    error: str | None = None


async def download_to(
    session: aiohttp.ClientSession,
    url: str,
    path: Path,
    timeout: int,
    headers: dict[str, str] | None = None,
) -> None:
    """
    Stream a URL body into a file.

    Raises:
        aiohttp.ClientResponseError: On a non-200 response
    """
    async with session.get(
        url,
        headers=headers,
        timeout=aiohttp.ClientTimeout(total=timeout),
        allow_redirects=True,
    ) as response:
        if response.status != 200:
            raise aiohttp.ClientResponseError(
                response.request_info,
                response.history,
                status=response.status,
                message=f"HTTP {response.status}",
            )
        async with aiofiles.open(path, "wb") as f:
            async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                await f.write(chunk)


def ut1_category(member_name: str) -> str | None:
    """
    Category name of a UT1 archive member, or None if it is not a domain list.

    Example:
        >>> ut1_category("blacklists/Publicite/domains")
        'publicite'
        >>> ut1_category("blacklists/publicite/urls") is None
        True
    """
    if not member_name.endswith(UT1_DOMAINS_MEMBER):
        return None
    parts = member_name.split("/")
    if len(parts) < 3 or not parts[1]:
        return None
    return parts[1].lower()


def extract_ut1_archive(archive_path: Path, target_dir: Path, config: CombinerConfig) -> int:
    """
    Write each domains member of a UT1 tarball as <category>.txt.

    Blocking: tarfile has no async interface, so this runs after the
    download has finished. Returns the number of files written.
    """
    written = 0
    with tarfile.open(archive_path, "r:gz") as tar:
        for member in tar:
            if not member.isfile():
                continue
            category = ut1_category(member.name)
            if category is None:
                continue
            file_name = f"{category}{config.list_suffix}"
            if config.is_excluded(file_name):
                continue

            src = tar.extractfile(member)
            if src is None:
                continue
            with src:
                with open(target_dir / file_name, "wb") as dst:
                    shutil.copyfileobj(src, dst, CHUNK_SIZE)
            written += 1
    return written


async def fetch_ut1(
    session: aiohttp.ClientSession,
    source: SourceSpec,
    target_dir: Path,
    config: CombinerConfig,
    timeout: int = DEFAULT_TIMEOUT,
) -> FetchResult:
    """Download and unpack the UT1 archive into target_dir."""
    print(f"📥 Streaming UT1 archive: {source.url}")
    target_dir.mkdir(parents=True, exist_ok=True)
    try:
        with tempfile.TemporaryDirectory() as tmp:
            archive_path = Path(tmp) / "ut1.tar.gz"
            await download_to(session, source.url, archive_path, timeout)
            written = extract_ut1_archive(archive_path, target_dir, config)
    except FETCH_ERRORS as e:
        return FetchResult(source.name, source.url, success=False, error=_describe(e))

    return FetchResult(source.name, source.url, success=True, files=written)


async def fetch_github(
    session: aiohttp.ClientSession,
    source: SourceSpec,
    target_dir: Path,
    config: CombinerConfig,
    timeout: int = DEFAULT_TIMEOUT,
) -> FetchResult:
    """
    Download every list file of a GitHub directory listing into target_dir.

    Per-file download failures are counted in files_failed and do not fail
    the source; a failed or unparsable listing does.
    """
    print(f"📥 Fetching GitHub listing: {source.name}")
    target_dir.mkdir(parents=True, exist_ok=True)
    try:
        async with session.get(
            source.url,
            headers=GITHUB_HEADERS,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as response:
            if response.status != 200:
                return FetchResult(source.name, source.url, success=False, error=f"HTTP {response.status}")
            listing = await response.json(content_type=None)
    except FETCH_ERRORS as e:
        return FetchResult(source.name, source.url, success=False, error=_describe(e))

    if not isinstance(listing, list):
        return FetchResult(source.name, source.url, success=False, error="listing is not a JSON array")

    written = 0
    failed = 0
    for entry in listing:
        if not isinstance(entry, dict) or entry.get("type") != "file":
            continue
        file_name = str(entry.get("name", "")).lower()
        download_url = entry.get("download_url")
        if not file_name.endswith(config.list_suffix) or not download_url:
            continue
        if config.is_excluded(file_name):
            continue

        try:
            await download_to(session, download_url, target_dir / file_name, timeout)
        except FETCH_ERRORS as e:
            print(f"Warning: {source.name}/{file_name}: {_describe(e)}", file=sys.stderr)
            (target_dir / file_name).unlink(missing_ok=True)
            failed += 1
            continue
        written += 1

    return FetchResult(source.name, source.url, success=True, files=written, files_failed=failed)


def _describe(error: BaseException) -> str:
    if isinstance(error, asyncio.TimeoutError):
        return "Timeout"
    if isinstance(error, aiohttp.ClientResponseError):
        return f"HTTP {error.status}"
    return str(error) or type(error).__name__


FETCHERS = {
    "ut1": fetch_ut1,
    "github": fetch_github,
}


async def fetch_sources(
    config: CombinerConfig,
    workdir: Path,
    timeout: int = DEFAULT_TIMEOUT,
    session: aiohttp.ClientSession | None = None,
) -> list[FetchResult]:
    """
    Fetch every configured source into <workdir>/<source name>, sequentially.

    Args:
        config: Sources, exclusions and list suffix
        workdir: Parent of the per-source directories
        timeout: Per-request timeout in seconds
        session: Existing session to reuse (a new one is opened otherwise)

    Returns:
        One FetchResult per source, in configuration order
    """
    if session is None:
        async with aiohttp.ClientSession() as own_session:
            return await fetch_sources(config, workdir, timeout, own_session)

    results = []
    for source in config.sources:
        fetch = FETCHERS[source.kind]
        result = await fetch(session, source, workdir / source.name, config, timeout)
        if not result.success:
            print(f"Warning: source {source.name} skipped: {result.error}", file=sys.stderr)
        results.append(result)
    return results


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Fetch raw category lists")
    parser.add_argument("--workdir", default="Temp", help="Parent directory for per-source folders")
    parser.add_argument("--config", help="JSON config file")
    parser.add_argument("--timeout", type=int, default=DEFAULT_TIMEOUT, help="Request timeout in seconds")
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    results = asyncio.run(fetch_sources(config, Path(args.workdir), args.timeout))

    success = sum(1 for r in results if r.success)
    print(f"✅ Fetched: {success}/{len(results)} sources, {sum(r.files for r in results):,} files")
    for r in results:
        if not r.success:
            print(f"   - {r.source}: {r.error}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
