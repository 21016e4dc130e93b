"""SBOM package parsing and version matching logic.

Pure functions for normalizing SPDX package records, comparing semantic
versions, and matching packages against the watch-list index.
No I/O or network calls — all inputs are in-memory data structures.
"""

import re
from typing import Any, Iterable
from urllib.parse import unquote

import semver

NPM_PURL_PREFIX = "pkg:npm/"
MAX_VERSION_LENGTH = 256

_NPM_PURL_RE = re.compile(r"^pkg:npm/(.+)@(.+)$")

MatchKey = tuple[str, str]


def parse_version(text: Any) -> semver.Version | None:
    """Parse a strict semantic version string.

    Surrounding whitespace and a single leading ``v`` are tolerated;
    anything else must be a full ``major.minor.patch`` version with
    optional pre-release and build metadata.

    Args:
        text: Candidate version (may be None or a non-string).

    Returns:
        Parsed ``semver.Version``, or None if the text is not a valid version.
    """
    if not isinstance(text, str) or len(text) > MAX_VERSION_LENGTH:
        return None
    s = text.strip()
    if s.startswith("v"):
        s = s[1:]
    try:
        return semver.Version.parse(s)
    except (ValueError, TypeError):
        return None


def is_valid_version(text: Any) -> bool:
    """Return True if *text* parses as a semantic version."""
    return parse_version(text) is not None


def compare_versions(a: str, b: str) -> int:
    """Compare two version strings by semantic-version precedence.

    Build metadata does not take part in precedence.

    Raises:
        ValueError: if either string is not a valid version.
    """
    va, vb = parse_version(a), parse_version(b)
    if va is None or vb is None:
        raise ValueError(f"Not a semantic version: {a if va is None else b!r}")
    return va.compare(vb)


def _purl_name_version(purl: str) -> tuple[str, str] | None:
    m = _NPM_PURL_RE.match(purl)
    if not m:
        return None
    name = unquote(m.group(1))
    version = m.group(2)
    if not name or not is_valid_version(version):
        return None
    return name, version


def normalize_package(record: Any) -> tuple[str, str] | None:
    """Extract a ``(name, version)`` pair from one SPDX package record.

    Tries the declared ``name`` / ``versionInfo`` fields first, then falls
    back to the first npm package-URL in ``externalRefs``.  Records that
    yield no valid pair are skipped by returning None.

    Args:
        record: One element of an SPDX document's ``packages`` list.

    Returns:
        ``(name, version)`` tuple, or None.
    """
    if not isinstance(record, dict):
        return None

    name = record.get("name")
    name = str(name) if name is not None else ""
    version = record.get("versionInfo")
    version = str(version) if version is not None else ""
    if name and is_valid_version(version):
        return name, version

    refs = record.get("externalRefs")
    if not isinstance(refs, list):
        return None
    for ref in refs:
        if not isinstance(ref, dict) or ref.get("referenceType") != "purl":
            continue
        locator = ref.get("referenceLocator")
        if isinstance(locator, str) and locator.startswith(NPM_PURL_PREFIX):
            return _purl_name_version(locator)
    return None


def npm_purl(name: str, version: str) -> str | None:
    """Build the npm package-URL for a package.

    A scope's ``@`` is encoded as ``%40`` while the ``/`` is kept, e.g.
    ``@scope/name`` at ``1.2.3`` becomes ``pkg:npm/%40scope/name@1.2.3``.

    Returns:
        The package-URL, or None for a malformed scoped name.
    """
    if name.startswith("@"):
        scope, _, pkg = name[1:].partition("/")
        if not scope or not pkg:
            return None
        return f"{NPM_PURL_PREFIX}%40{scope}/{pkg}@{version}"
    return f"{NPM_PURL_PREFIX}{name}@{version}"


def version_matches(name: str, version: str, index: dict[str, str]) -> bool:
    """Decide whether a discovered package version is affected.

    A package matches when its lowercased name is in the index and its
    version is less than or equal to the indexed ceiling.

    Args:
        name: Package name as found in the SBOM.
        version: Exact version found in the SBOM.
        index: Watch-list index (lowercased name → ceiling version).

    Returns:
        True if the package version is at or below the ceiling.
    """
    ceiling = index.get(name.lower())
    if ceiling is None:
        return False
    found = parse_version(version)
    limit = parse_version(ceiling)
    if found is None or limit is None:
        return False
    return found.compare(limit) <= 0


def match_packages(packages: Iterable[Any], index: dict[str, str]) -> set[MatchKey]:
    """Match every package of one SBOM against the watch-list index.

    Args:
        packages: The SPDX ``packages`` list of a single repository.
        index: Watch-list index.

    Returns:
        Distinct ``(lowercased name, version)`` keys that matched.
    """
    found: set[MatchKey] = set()
    for record in packages:
        nv = normalize_package(record)
        if nv is None:
            continue
        name, version = nv
        if version_matches(name, version, index):
            found.add((name.lower(), version))
    return found
