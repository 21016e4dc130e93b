"""Unit tests for sbomradar.report — aggregation and report writers."""

import datetime as dt
import json
from pathlib import Path

from conftest import make_config
from sbomradar.report import (
    MatchAccumulator,
    build_report,
    write_json_report,
    write_markdown_report,
)
from sbomradar.watchlist import parse_watchlist

# ── MatchAccumulator ─────────────────────────────────────────────────────────


class TestMatchAccumulator:
    def test_union_per_key(self):
        acc = MatchAccumulator()
        acc.add("acme/a", [("left-pad", "1.0.0")])
        acc.add("acme/a", [("left-pad", "1.0.0")])
        acc.add("acme/b", [("left-pad", "1.0.0")])
        assert acc.to_matches() == [
            {"package": "left-pad", "version": "1.0.0", "repositories": ["acme/a", "acme/b"]}
        ]

    def test_empty_keys_add_nothing(self):
        acc = MatchAccumulator()
        acc.add("acme/a", set())
        assert acc.to_matches() == []

    def test_sorted_output(self):
        acc = MatchAccumulator()
        acc.add("acme/z", [("left-pad", "1.2.0"), ("@scope/name", "1.0.0")])
        acc.add("acme/a", [("left-pad", "1.10.0"), ("left-pad", "1.2.0")])
        assert acc.to_matches() == [
            {"package": "@scope/name", "version": "1.0.0", "repositories": ["acme/z"]},
            {"package": "left-pad", "version": "1.10.0", "repositories": ["acme/a"]},
            {"package": "left-pad", "version": "1.2.0", "repositories": ["acme/a", "acme/z"]},
        ]


# ── build_report ─────────────────────────────────────────────────────────────


class TestBuildReport:
    def test_fields(self):
        wl = parse_watchlist(["left-pad@1.3.0", "unused@2.0.0", "bad@latest"])
        matches = [{"package": "left-pad", "version": "1.1.0", "repositories": ["acme/a"]}]
        report = build_report(make_config(org="acme"), wl, 4, matches)
        assert report["org"] == "acme"
        assert report["input_entries"] == 2
        assert report["repos_scanned"] == 4
        assert report["matches"] == matches
        assert isinstance(report["host"], str) and report["host"]
        parsed = dt.datetime.fromisoformat(report["generated_at"])
        assert parsed.tzinfo is not None

    def test_unmatched_watch_entries_omitted(self):
        wl = parse_watchlist(["left-pad@1.3.0", "unused@2.0.0"])
        acc = MatchAccumulator()
        acc.add("acme/a", [("left-pad", "1.1.0")])
        report = build_report(make_config(), wl, 1, acc.to_matches())
        assert [m["package"] for m in report["matches"]] == ["left-pad"]


# ── writers ──────────────────────────────────────────────────────────────────


def _report() -> dict:
    return {
        "org": "acme",
        "generated_at": "2026-01-01T00:00:00+00:00",
        "input_entries": 2,
        "repos_scanned": 3,
        "matches": [
            {"package": "@scope/name", "version": "1.2.3", "repositories": ["acme/a", "acme/b"]},
            {"package": "left-pad", "version": "1.1.0", "repositories": ["acme/a"]},
        ],
        "host": "scanner-01",
    }


class TestWriteJsonReport:
    def test_round_trip(self, tmp_path: Path):
        out = tmp_path / "nested" / "matches.json"
        write_json_report(out, _report())
        assert json.loads(out.read_text(encoding="utf-8")) == _report()
        assert not (tmp_path / "nested" / "matches.json.tmp").exists()

    def test_indented(self, tmp_path: Path):
        out = tmp_path / "matches.json"
        write_json_report(out, _report())
        assert '\n  "org": "acme"' in out.read_text(encoding="utf-8")


class TestWriteMarkdownReport:
    def test_contents(self, tmp_path: Path):
        out = tmp_path / "report.md"
        write_markdown_report(out, _report())
        text = out.read_text(encoding="utf-8")
        assert "# SBOMRadar Report: acme" in text
        assert "pkg:npm/%40scope/name@1.2.3" in text
        assert "acme/a, acme/b" in text
        assert "- acme/b" in text

    def test_no_matches(self, tmp_path: Path):
        out = tmp_path / "report.md"
        report = _report()
        report["matches"] = []
        write_markdown_report(out, report)
        assert "No repository contains a watched package version." in out.read_text(encoding="utf-8")
