"""Match aggregation and report output.

``MatchAccumulator`` merges per-repository findings; the writers render
the final JSON report and an optional Jinja2 Markdown summary.  The
Markdown template lives at ``sbomradar/templates/report.md.j2``.
"""

import datetime as dt
import json
import socket
from pathlib import Path
from typing import Any, Iterable

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .config import ScanConfig
from .parsers import MatchKey, npm_purl
from .watchlist import WatchList

_TEMPLATES_DIR = Path(__file__).parent / "templates"


class MatchAccumulator:
    """Global mapping of (package, version) → set of repository names."""

    def __init__(self) -> None:
        self._repos_by_key: dict[MatchKey, set[str]] = {}

    def add(self, repo: str, keys: Iterable[MatchKey]) -> None:
        """Record that *repo* contains every key in *keys*."""
        for key in keys:
            self._repos_by_key.setdefault(key, set()).add(repo)

    def to_matches(self) -> list[dict[str, Any]]:
        """Render sorted match records.

        Sorted by package, then version, both as plain strings.
        Repository lists are sorted too.
        """
        matches = [
            {"package": package, "version": version, "repositories": sorted(repos)}
            for (package, version), repos in self._repos_by_key.items()
            if repos
        ]
        matches.sort(key=lambda m: (m["package"], m["version"]))
        return matches


def _now_utc_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).replace(microsecond=0).isoformat()


def build_report(
    config: ScanConfig,
    watchlist: WatchList,
    repos_scanned: int,
    matches: list[dict[str, Any]],
) -> dict[str, Any]:
    """Assemble the JSON report object.

    Args:
        config: Scan configuration (provides the org name).
        watchlist: Loaded watch list (provides the entry count).
        repos_scanned: Number of repositories selected for scanning.
        matches: Output of ``MatchAccumulator.to_matches()``.

    Returns:
        Report dict ready for ``write_json_report``.
    """
    return {
        "org": config.org,
        "generated_at": _now_utc_iso(),
        "input_entries": len(watchlist),
        "repos_scanned": repos_scanned,
        "matches": matches,
        "host": socket.gethostname(),
    }


def _atomic_write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        f.write(text)
    tmp.replace(path)


def write_json_report(path: Path, report: dict[str, Any]) -> None:
    """Write the report as indented JSON."""
    _atomic_write(path, json.dumps(report, indent=2) + "\n")


def write_markdown_report(path: Path, report: dict[str, Any]) -> None:
    """Write a GitHub-renderable Markdown summary using Jinja2.

    Args:
        path: Output path for the markdown report.
        report: Report dict from ``build_report``.
    """
    matches = report.get("matches") or []
    rows = [
        {
            **m,
            "purl": npm_purl(m["package"], m["version"]) or "",
        }
        for m in matches
    ]
    affected_repos = sorted({r for m in matches for r in m["repositories"]})

    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=select_autoescape(default_for_string=False, default=False),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    template = env.get_template("report.md.j2")

    rendered = template.render(
        org=report.get("org", ""),
        generated_at=report.get("generated_at", ""),
        input_entries=report.get("input_entries", 0),
        repos_scanned=report.get("repos_scanned", 0),
        host=report.get("host", ""),
        rows=rows,
        affected_repos=affected_repos,
    )
    _atomic_write(path, rendered)
