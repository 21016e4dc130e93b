"""Scan configuration using Pydantic.

A single ``ScanConfig`` is built at startup from an optional YAML/JSON
config file, the environment, and command-line flags, then passed
explicitly to the repository listing, the SBOM fetcher and the report
writer.
"""

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_API_URL = "https://api.github.com"


class ScanConfig(BaseModel):
    """Validated scan configuration.

    Example YAML::

        org: my-org
        input_path: affected.txt
        output_path: matches.json
        include_forks: false
        include_archived: false
        concurrency: 6

    Attributes:
        org: GitHub organization to scan.
        token: GitHub token with read access to the org's repositories.
        input_path: Watch-list file (``name@version`` per line).
        output_path: JSON report destination.
        report_path: Optional Markdown report destination.
        include_forks: Scan forked repositories too.
        include_archived: Scan archived repositories too.
        concurrency: Maximum SBOM requests in flight at once.
        api_url: GitHub REST API base URL.
        backoff_seconds: Pause after a rate-limited SBOM request.
    """

    org: str = Field(min_length=1)
    token: str = Field(min_length=1, repr=False)
    input_path: Path = Path("affected.txt")
    output_path: Path = Path("matches.json")
    report_path: Path | None = None
    include_forks: bool = False
    include_archived: bool = False
    concurrency: int = Field(default=6, ge=1, le=64)
    api_url: str = DEFAULT_API_URL
    backoff_seconds: float = Field(default=1.0, ge=0.0)

    @field_validator("org", "token", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("api_url")
    @classmethod
    def _normalize_api_url(cls, v: str) -> str:
        return v.rstrip("/") or DEFAULT_API_URL


def load_config_file(path: Path) -> dict[str, Any]:
    """Load raw configuration values from a YAML or JSON file.

    Args:
        path: Path to the config file.

    Returns:
        Dict of config values (empty if the file is empty).

    Raises:
        FileNotFoundError: if the file doesn't exist.
        ValueError: if the file does not contain a mapping.
    """
    suffix = path.suffix.lower()
    content = path.read_text(encoding="utf-8")

    if suffix in (".yaml", ".yml"):
        raw = yaml.safe_load(content) or {}
    elif suffix == ".json":
        raw = json.loads(content)
    else:
        try:
            raw = yaml.safe_load(content) or {}
        except yaml.YAMLError:
            raw = json.loads(content)

    if not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a mapping, got {type(raw).__name__}")
    return raw


def build_config(file_values: dict[str, Any] | None = None, **overrides: Any) -> ScanConfig:
    """Merge config-file values with explicit overrides and validate.

    Overrides whose value is None are ignored so unset CLI flags fall
    back to the config file, then to the model defaults.

    Raises:
        pydantic.ValidationError: if the merged values fail validation.
    """
    merged = dict(file_values or {})
    merged.update({k: v for k, v in overrides.items() if v is not None})
    return ScanConfig.model_validate(merged)
