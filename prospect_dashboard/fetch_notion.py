"""
Notion Prospect Fetcher
=======================

Connects to the Notion API with an integration token and pulls every page
of the prospects database. Pages are requested one at a time (100 records
per page) following ``next_cursor`` until ``has_more`` is false. A page that
claims more results without a cursor is treated as a failed request.

No retries: any failed page request aborts the run with SourceUnavailable
and everything accumulated so far is discarded.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from prospect_dashboard.lib.errors import SourceAuthError, SourceTimeoutError, SourceUnavailable
from prospect_dashboard.lib.settings import Settings

logger = logging.getLogger(__name__)


class NotionClient:
    """Notion database query client with cursor pagination."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {settings.api_key}",
            "Notion-Version": settings.notion_version,
            "Content-Type": "application/json",
        })

    def __enter__(self) -> "NotionClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    @staticmethod
    def _error_message(resp: requests.Response) -> str:
        """Pull Notion's error message out of a failed response, if any."""
        try:
            body = resp.json()
        except ValueError:
            return resp.text[:200]
        if isinstance(body, dict):
            return body.get("message") or body.get("code") or ""
        return ""

    def query_database(self, start_cursor: Optional[str] = None) -> Dict[str, Any]:
        """Request a single page of the database."""
        url = self.settings.query_url
        body: Dict[str, Any] = {"page_size": self.settings.page_size}
        if start_cursor:
            body["start_cursor"] = start_cursor

        try:
            resp = self.session.post(url, json=body, timeout=self.settings.timeout)
        except requests.Timeout as e:
            raise SourceTimeoutError(url, self.settings.timeout) from e
        except requests.RequestException as e:
            raise SourceUnavailable(f"POST {url} failed: {e}", url=url) from e

        if resp.status_code in (401, 403):
            raise SourceAuthError(url, resp.status_code, self._error_message(resp))
        if not resp.ok:
            reason = self._error_message(resp) or resp.reason
            raise SourceUnavailable(
                f"Notion API returned {resp.status_code}: {reason}",
                status_code=resp.status_code, url=url,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise SourceUnavailable(f"Notion API returned invalid JSON: {e}", url=url) from e
        if not isinstance(data, dict):
            raise SourceUnavailable("Notion API returned an unexpected payload", url=url)
        return data

    def fetch_all(self) -> List[dict]:
        """Fetch every page of the database, concatenated in request order."""
        logger.info("Fetching prospects from Notion database %s...", self.settings.database_id)
        all_results: List[dict] = []
        cursor = None
        page = 0
        while True:
            page += 1
            logger.info("Fetching page %d...", page)
            data = self.query_database(cursor)
            results = data.get("results") or []
            all_results.extend(results)
            logger.info("  %d records fetched (total: %d)", len(results), len(all_results))
            if not data.get("has_more"):
                break
            cursor = data.get("next_cursor")
            if not cursor:
                raise SourceUnavailable(
                    f"Notion API reported more results on page {page} but sent no next_cursor",
                    url=self.settings.query_url,
                )
        logger.info("Fetched %d records in %d page(s)", len(all_results), page)
        return all_results


def fetch_prospects(settings: Settings, session: Optional[requests.Session] = None) -> List[dict]:
    """Fetch all raw prospect pages for the configured database."""
    with NotionClient(settings, session=session) as client:
        return client.fetch_all()
