"""Async SBOM fetcher for scanning many repositories concurrently.

Uses ``aiohttp`` with a fixed pool of worker tasks pulling repositories
from a shared queue, so at most ``concurrency`` SBOM requests are in
flight at any moment.  A failed repository is reported and skipped;
it never stops the scan.

Usage from synchronous code::

    from sbomradar.async_downloaders import scan_all_parallel
    results = scan_all_parallel(repos, watchlist.index, config)
"""

from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass, field
from typing import Any

import aiohttp

from .config import ScanConfig
from .downloaders import Repository, github_headers
from .parsers import MatchKey, match_packages
from .report import MatchAccumulator


@dataclass
class ScanResults:
    """Container for the outcome of a full scan.

    Attributes:
        accumulator: (package, version) → repositories containing it.
        scanned: Number of repositories a scan was attempted for.
        errors: Repository full name → error indicator for failed fetches.
    """

    accumulator: MatchAccumulator = field(default_factory=MatchAccumulator)
    scanned: int = 0
    errors: dict[str, str] = field(default_factory=dict)


def _error_indicator(exc: BaseException) -> str:
    status = getattr(exc, "status", None)
    if status:
        return str(status)
    return str(exc) or type(exc).__name__


def _is_rate_limited(exc: BaseException) -> bool:
    """Return True for HTTP 429 or any response carrying ``Retry-After``."""
    if getattr(exc, "status", None) == 429:
        return True
    headers = getattr(exc, "headers", None)
    return bool(headers and headers.get("Retry-After"))


# ─── Per-repository fetch ────────────────────────────────────────────────────


async def fetch_sbom(session: aiohttp.ClientSession, api_url: str, repo: Repository) -> dict[str, Any]:
    """Fetch the SPDX SBOM of a repository's default branch head."""
    url = f"{api_url}/repos/{repo.full_name}/dependency-graph/sbom"
    async with session.get(url) as resp:
        resp.raise_for_status()
        return await resp.json(content_type=None)


async def scan_repository(
    session: aiohttp.ClientSession,
    config: ScanConfig,
    repo: Repository,
    index: dict[str, str],
) -> set[MatchKey]:
    """Fetch one repository's SBOM and match its packages.

    Returns:
        Distinct matched ``(package, version)`` keys for this repository.
    """
    data = await fetch_sbom(session, config.api_url, repo)
    sbom = data.get("sbom") if isinstance(data, dict) else None
    packages = sbom.get("packages") if isinstance(sbom, dict) else None
    if not isinstance(packages, list):
        return set()
    return match_packages(packages, index)


# ─── Worker pool ─────────────────────────────────────────────────────────────


async def _worker(
    queue: asyncio.Queue[Repository],
    session: aiohttp.ClientSession,
    config: ScanConfig,
    index: dict[str, str],
    results: ScanResults,
) -> None:
    while True:
        try:
            repo = queue.get_nowait()
        except asyncio.QueueEmpty:
            return
        try:
            keys = await scan_repository(session, config, repo, index)
            results.accumulator.add(repo.full_name, keys)
        except Exception as e:
            # 403 when the dependency graph is unavailable, 404 for empty or disabled repos
            indicator = _error_indicator(e)
            results.errors[repo.full_name] = indicator
            print(f"SBOM fetch failed for {repo.full_name}: {indicator}", file=sys.stderr)
            if _is_rate_limited(e):
                await asyncio.sleep(config.backoff_seconds)
        finally:
            results.scanned += 1
            queue.task_done()


async def scan_all(
    repos: list[Repository],
    index: dict[str, str],
    config: ScanConfig,
    session: aiohttp.ClientSession | None = None,
) -> ScanResults:
    """Scan all repositories with at most ``config.concurrency`` in flight.

    Args:
        repos: Repositories to scan.
        index: Watch-list index.
        config: Scan configuration.
        session: Optional pre-built session (tests); one is created otherwise.

    Returns:
        ``ScanResults`` once every repository has settled.
    """
    results = ScanResults()
    queue: asyncio.Queue[Repository] = asyncio.Queue()
    for repo in repos:
        queue.put_nowait(repo)

    async def _run(s: aiohttp.ClientSession) -> None:
        workers = [
            asyncio.create_task(_worker(queue, s, config, index, results))
            for _ in range(min(config.concurrency, len(repos)))
        ]
        await queue.join()
        await asyncio.gather(*workers)

    if session is not None:
        await _run(session)
    else:
        async with aiohttp.ClientSession(headers=github_headers(config.token)) as s:
            await _run(s)
    return results


def scan_all_parallel(repos: list[Repository], index: dict[str, str], config: ScanConfig) -> ScanResults:
    """Synchronous wrapper that runs the whole scan via asyncio.

    Example::

        results = scan_all_parallel(repos, watchlist.index, config)
        print(f"Matches: {len(results.accumulator.to_matches())}")
        if results.errors:
            print(f"Failed: {sorted(results.errors)}")
    """
    return asyncio.run(scan_all(repos, index, config))
