"""Shared helpers for SBOMRadar tests."""

import asyncio
from typing import Any
from unittest.mock import MagicMock

import aiohttp

from sbomradar.config import ScanConfig


def make_config(**overrides: Any) -> ScanConfig:
    values: dict[str, Any] = {"org": "acme", "token": "ghp_test"}
    values.update(overrides)
    return ScanConfig(**values)


def spdx_package(name: str, version: str = "", purl: str | None = None) -> dict[str, Any]:
    pkg: dict[str, Any] = {"name": name, "versionInfo": version}
    if purl is not None:
        pkg["externalRefs"] = [
            {"referenceCategory": "PACKAGE-MANAGER", "referenceType": "purl", "referenceLocator": purl}
        ]
    return pkg


def sbom_payload(*packages: dict[str, Any]) -> dict[str, Any]:
    return {"sbom": {"spdxVersion": "SPDX-2.3", "packages": list(packages)}}


def http_error(status: int, headers: dict[str, str] | None = None) -> aiohttp.ClientResponseError:
    return aiohttp.ClientResponseError(
        request_info=MagicMock(),
        history=(),
        status=status,
        message="error",
        headers=headers,
    )


class FakeResponse:
    def __init__(self, payload: Any = None, error: Exception | None = None, yield_control: bool = False):
        self.payload = payload
        self.error = error
        self.yield_control = yield_control

    def raise_for_status(self) -> None:
        if self.error is not None:
            raise self.error

    async def json(self, content_type: str | None = None) -> Any:
        if self.yield_control:
            await asyncio.sleep(0)
        return self.payload


class FakeSession:
    """Stands in for ``aiohttp.ClientSession`` keyed by SBOM URL.

    Tracks how many requests are open at once.
    """

    def __init__(self, responses: dict[str, FakeResponse]):
        self.responses = responses
        self.requested: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def get(self, url: str) -> "FakeSession._Request":
        self.requested.append(url)
        return FakeSession._Request(self, self.responses[url])

    class _Request:
        def __init__(self, session: "FakeSession", resp: FakeResponse):
            self.session = session
            self.resp = resp

        async def __aenter__(self) -> FakeResponse:
            self.session.in_flight += 1
            self.session.max_in_flight = max(self.session.max_in_flight, self.session.in_flight)
            if self.resp.yield_control:
                await asyncio.sleep(0)
            return self.resp

        async def __aexit__(self, *args: Any) -> None:
            self.session.in_flight -= 1


def sbom_url(full_name: str) -> str:
    return f"https://api.github.com/repos/{full_name}/dependency-graph/sbom"
