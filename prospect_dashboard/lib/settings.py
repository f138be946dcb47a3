"""
Run configuration for the prospect dashboard.

Settings are read once from the process environment (after loading ``.env``
with python-dotenv) and passed explicitly to the fetcher and the writer.

Required:
    NOTION_API_KEY       Notion integration token
    NOTION_DATABASE_ID   ID of the prospects database

Optional:
    NOTION_API_URL       default https://api.notion.com/v1
    NOTION_VERSION       default 2022-06-28
    NOTION_TIMEOUT       request timeout in seconds, default 30
    DASHBOARD_OUTPUT     output HTML path, default index.html
    LOG_LEVEL            default INFO
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv

from prospect_dashboard.lib.errors import ConfigurationError

NOTION_API_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"
NOTION_PAGE_SIZE = 100
DEFAULT_TIMEOUT = 30.0
DEFAULT_OUTPUT = "index.html"

REQUIRED_VARS = ("NOTION_API_KEY", "NOTION_DATABASE_ID")


@dataclass(frozen=True)
class Settings:
    """Immutable configuration for a single dashboard run."""

    api_key: str
    database_id: str
    api_url: str = NOTION_API_URL
    notion_version: str = NOTION_VERSION
    timeout: float = DEFAULT_TIMEOUT
    page_size: int = NOTION_PAGE_SIZE
    output_path: Path = Path(DEFAULT_OUTPUT)
    log_level: str = "INFO"

    def __post_init__(self):
        missing = [
            var for var, value in zip(REQUIRED_VARS, (self.api_key, self.database_id))
            if not (value or "").strip()
        ]
        if missing:
            raise ConfigurationError(
                f"{' and '.join(missing)} must be set (environment or .env file)",
                missing=missing,
            )

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[Path] = None,
    ) -> "Settings":
        """Build settings from the environment.

        When *environ* is omitted, ``.env`` from the working directory (or
        *dotenv_path*) is loaded first, existing variables win, and
        ``os.environ`` is used.
        """
        if environ is None:
            load_dotenv(dotenv_path or find_dotenv(usecwd=True))
            environ = os.environ

        raw_timeout = environ.get("NOTION_TIMEOUT") or str(DEFAULT_TIMEOUT)
        try:
            timeout = float(raw_timeout)
        except ValueError:
            raise ConfigurationError(f"NOTION_TIMEOUT must be a number, got {raw_timeout!r}")
        if timeout <= 0:
            raise ConfigurationError(f"NOTION_TIMEOUT must be positive, got {raw_timeout!r}")

        return cls(
            api_key=(environ.get("NOTION_API_KEY") or "").strip(),
            database_id=(environ.get("NOTION_DATABASE_ID") or "").strip(),
            api_url=(environ.get("NOTION_API_URL") or NOTION_API_URL).rstrip("/"),
            notion_version=environ.get("NOTION_VERSION") or NOTION_VERSION,
            timeout=timeout,
            output_path=Path(environ.get("DASHBOARD_OUTPUT") or DEFAULT_OUTPUT),
            log_level=(environ.get("LOG_LEVEL") or "INFO").upper(),
        )

    @property
    def masked_api_key(self) -> str:
        """First ten characters of the token, for log output."""
        return f"{self.api_key[:10]}..."

    @property
    def query_url(self) -> str:
        return f"{self.api_url}/databases/{self.database_id}/query"
