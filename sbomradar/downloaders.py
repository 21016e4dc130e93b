"""HTTP helpers for the GitHub repository listing.

Listing runs once, synchronously, before the SBOM scan starts.  Each page
request is retried with exponential backoff; a listing that still fails
aborts the run.
"""

from dataclasses import dataclass
from typing import Any, Iterator

import requests
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from .config import ScanConfig

DEFAULT_HTTP_TIMEOUT = (10, 60)  # (connect, read)
GITHUB_API_VERSION = "2022-11-28"
USER_AGENT = "SBOMRadar/0.1 (+https://github.com/)"
PAGE_SIZE = 100


@dataclass(frozen=True)
class Repository:
    """The fields of an org repository the scan needs."""

    full_name: str
    name: str
    fork: bool = False
    archived: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any], org: str) -> "Repository":
        name = str(data.get("name") or "")
        full_name = str(data.get("full_name") or f"{org}/{name}")
        return cls(
            full_name=full_name,
            name=name,
            fork=bool(data.get("fork")),
            archived=bool(data.get("archived")),
        )


def github_headers(token: str) -> dict[str, str]:
    """Build the request headers used for every GitHub API call."""
    return {
        "User-Agent": USER_AGENT,
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
        "Authorization": f"Bearer {token}",
    }


def requests_session(token: str) -> requests.Session:
    """Create a requests session with GitHub auth and headers.

    Args:
        token: GitHub token.

    Returns:
        Configured ``requests.Session``.
    """
    s = requests.Session()
    s.headers.update(github_headers(token))
    return s


def _is_transient(exc: BaseException) -> bool:
    """Client errors other than 429 fail the same way on every attempt."""
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        status = exc.response.status_code
        return status == 429 or status >= 500
    return True


@retry(
    retry=retry_if_exception(_is_transient),
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=1, min=1, max=30),
    reraise=True,
)
def get_page(session: requests.Session, url: str, params: dict[str, Any] | None = None) -> requests.Response:
    """Fetch one API page with retry logic.

    Args:
        session: Requests session.
        url: URL to fetch.
        params: Optional query parameters.

    Returns:
        The successful response.
    """
    r = session.get(url, params=params, timeout=DEFAULT_HTTP_TIMEOUT)
    r.raise_for_status()
    return r


def paginate(session: requests.Session, url: str, params: dict[str, Any] | None = None) -> Iterator[dict[str, Any]]:
    """Yield items across all pages of a list endpoint.

    Follows the ``Link: rel="next"`` header; the query parameters are
    only sent with the first request since the next URL carries them.
    """
    next_url: str | None = url
    next_params = params
    while next_url:
        r = get_page(session, next_url, next_params)
        data = r.json()
        if isinstance(data, list):
            for item in data:
                if isinstance(item, dict):
                    yield item
        next_url = r.links.get("next", {}).get("url")
        next_params = None


def list_org_repos(session: requests.Session, config: ScanConfig) -> list[Repository]:
    """List every repository of the configured organization.

    Args:
        session: Requests session.
        config: Scan configuration.

    Returns:
        All repositories, forks and archived ones included.
    """
    url = f"{config.api_url}/orgs/{config.org}/repos"
    params = {"type": "all", "per_page": PAGE_SIZE}
    return [Repository.from_api(item, config.org) for item in paginate(session, url, params)]


def select_repos(repos: list[Repository], config: ScanConfig) -> list[Repository]:
    """Drop forks and archived repositories unless the config includes them."""
    out: list[Repository] = []
    for repo in repos:
        if repo.fork and not config.include_forks:
            continue
        if repo.archived and not config.include_archived:
            continue
        out.append(repo)
    return out
