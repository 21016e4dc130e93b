"""Watch-list loading.

The watch list is a plain-text file with one npm package per line::

    # comment
    left-pad@1.3.0
    @scope/name@2.0.1

Lines are folded into an index of lowercased package name → highest
listed version, which the matcher treats as an inclusive ceiling.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, NamedTuple

from .parsers import compare_versions, is_valid_version


class WatchEntry(NamedTuple):
    name: str
    version: str


@dataclass
class WatchList:
    """A parsed watch list.

    Attributes:
        entries: Valid entries in file order (duplicates kept).
        index: Lowercased package name → ceiling version.
    """

    entries: list[WatchEntry] = field(default_factory=list)
    index: dict[str, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.entries)


def parse_line(line: str) -> WatchEntry | None:
    """Parse one ``name@version`` line.

    The line is split at its last ``@`` so scoped names such as
    ``@scope/name@1.2.3`` keep their leading ``@``.

    Returns:
        ``WatchEntry``, or None for blank, comment, or malformed lines.
    """
    s = line.strip()
    if not s or s.startswith("#"):
        return None
    at = s.rfind("@")
    if at <= 0:
        return None
    name = s[:at].strip()
    version = s[at + 1 :].strip()
    if not name or not version:
        return None
    return WatchEntry(name, version)


def build_watch_index(entries: Iterable[WatchEntry]) -> dict[str, str]:
    """Fold entries into a lowercased-name → maximum-version index.

    Entries whose version is not a semantic version are ignored.  When a
    name appears more than once, the highest version wins.
    """
    index: dict[str, str] = {}
    for name, version in entries:
        if not is_valid_version(version):
            continue
        key = name.lower()
        prev = index.get(key)
        if prev is None or compare_versions(version, prev) > 0:
            index[key] = version
    return index


def parse_watchlist(lines: Iterable[str]) -> WatchList:
    """Parse watch-list lines into a ``WatchList``."""
    entries: list[WatchEntry] = []
    for line in lines:
        entry = parse_line(line)
        if entry is None or not is_valid_version(entry.version):
            continue
        entries.append(entry)
    return WatchList(entries=entries, index=build_watch_index(entries))


def load_watchlist(path: Path) -> WatchList:
    """Load a watch list from a UTF-8 text file.

    A leading byte-order mark is dropped and undecodable bytes are
    replaced, so a stray bad byte only spoils its own line.

    Args:
        path: Path to the watch-list file.

    Returns:
        Parsed ``WatchList``.

    Raises:
        FileNotFoundError: if the file doesn't exist.
    """
    content = path.read_text(encoding="utf-8-sig", errors="replace")
    return parse_watchlist(content.splitlines())
