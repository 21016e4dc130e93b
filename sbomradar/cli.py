"""Command-line entry point.

Validates configuration before any network activity, lists the org's
repositories, runs the concurrent SBOM scan and writes the report.
"""

import argparse
import os
import sys
from pathlib import Path
from typing import Sequence

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from . import __version__
from .async_downloaders import scan_all_parallel
from .config import ScanConfig, build_config, load_config_file
from .downloaders import list_org_repos, requests_session, select_repos
from .report import build_report, write_json_report, write_markdown_report
from .watchlist import load_watchlist


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="sbomradar",
        description="Scan an organization's GitHub SBOMs for watched npm package versions.",
    )
    p.add_argument("--org", help="GitHub organization (default: $ORG)")
    p.add_argument("--in", dest="input_path", type=Path, help="Watch-list file (default: affected.txt)")
    p.add_argument("--out", dest="output_path", type=Path, help="JSON output file (default: matches.json)")
    p.add_argument("--report", dest="report_path", type=Path, help="Optional Markdown report file")
    p.add_argument("--config", type=Path, help="Optional YAML/JSON config file")
    p.add_argument("--include-forks", action="store_true", default=None, help="Scan forked repositories")
    p.add_argument("--include-archived", action="store_true", default=None, help="Scan archived repositories")
    p.add_argument("--concurrency", type=int, help="Maximum concurrent SBOM requests (default: 6)")
    p.add_argument("--api-url", help="GitHub API base URL (default: https://api.github.com)")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def _load_config(args: argparse.Namespace) -> ScanConfig | None:
    """Resolve config from file, environment and flags; None on a fatal error."""
    file_values = load_config_file(args.config) if args.config else {}

    org = args.org or file_values.get("org") or os.environ.get("ORG")
    if not org:
        print("Missing --org or environment ORG", file=sys.stderr)
        return None
    token = os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN") or file_values.get("token")
    if not token:
        print("Missing GITHUB_TOKEN env", file=sys.stderr)
        return None

    try:
        return build_config(
            file_values,
            org=org,
            token=token,
            input_path=args.input_path,
            output_path=args.output_path,
            report_path=args.report_path,
            include_forks=args.include_forks,
            include_archived=args.include_archived,
            concurrency=args.concurrency,
            api_url=args.api_url,
        )
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return None


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    args = _build_parser().parse_args(argv)

    try:
        config = _load_config(args)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Could not read config file: {e}", file=sys.stderr)
        return 1
    if config is None:
        return 1

    try:
        watchlist = load_watchlist(config.input_path)
    except OSError as e:
        print(f"Could not read watch list {config.input_path}: {e}", file=sys.stderr)
        return 1
    print(f"Loaded {len(watchlist)} watch-list entries ({len(watchlist.index)} packages) from {config.input_path}")

    session = requests_session(config.token)
    try:
        repos = list_org_repos(session, config)
    except Exception as e:
        print(f"Failed to list repositories for {config.org}: {e}", file=sys.stderr)
        return 1
    finally:
        session.close()

    to_scan = select_repos(repos, config)
    print(f"Found {len(repos)} repositories in {config.org}, scanning {len(to_scan)}")

    results = scan_all_parallel(to_scan, watchlist.index, config)
    if results.errors:
        print(f"  ⚠️ {len(results.errors)} repositories could not be scanned")

    matches = results.accumulator.to_matches()
    report = build_report(config, watchlist, len(to_scan), matches)
    write_json_report(config.output_path, report)
    if config.report_path:
        write_markdown_report(config.report_path, report)
        print(f"Wrote {config.report_path}")

    print(
        f"Wrote {config.output_path} with {len(matches)} distinct package@version matches "
        f"across {len(to_scan)} repos."
    )
    return 0
