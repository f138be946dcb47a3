"""Tests for the Notion fetcher: pagination and failure propagation."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from prospect_dashboard.fetch_notion import NotionClient, fetch_prospects
from prospect_dashboard.lib.errors import (
    ConfigurationError,
    SourceAuthError,
    SourceTimeoutError,
    SourceUnavailable,
)
from prospect_dashboard.lib.settings import Settings

SETTINGS = Settings(api_key="secret_token", database_id="db123", timeout=12.0)
QUERY_URL = "https://api.notion.com/v1/databases/db123/query"


def _response(status_code=200, payload=None, reason="OK"):
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status_code
    resp.ok = status_code < 400
    resp.reason = reason
    if isinstance(payload, Exception):
        resp.json.side_effect = payload
        resp.text = "<html>gateway error</html>"
    else:
        resp.json.return_value = payload
        resp.text = str(payload)
    return resp


def _page(results, next_cursor=None):
    return {
        "object": "list",
        "results": results,
        "has_more": next_cursor is not None,
        "next_cursor": next_cursor,
    }


@pytest.fixture
def session():
    return requests.Session()


class TestNotionClient:
    def test_sets_auth_headers(self, session):
        client = NotionClient(SETTINGS, session=session)
        assert client.session.headers["Authorization"] == "Bearer secret_token"
        assert client.session.headers["Notion-Version"] == "2022-06-28"
        assert client.session.headers["Content-Type"] == "application/json"

    def test_single_page(self, session):
        with patch.object(session, "post", return_value=_response(payload=_page([{"id": "a"}]))) as post:
            records = NotionClient(SETTINGS, session=session).fetch_all()

        assert records == [{"id": "a"}]
        post.assert_called_once_with(QUERY_URL, json={"page_size": 100}, timeout=12.0)

    def test_follows_cursor_and_keeps_order(self, session):
        pages = [
            _response(payload=_page([{"id": "1"}, {"id": "2"}], next_cursor="cur-1")),
            _response(payload=_page([{"id": "3"}], next_cursor="cur-2")),
            _response(payload=_page([{"id": "4"}])),
        ]
        with patch.object(session, "post", side_effect=pages) as post:
            records = NotionClient(SETTINGS, session=session).fetch_all()

        assert [r["id"] for r in records] == ["1", "2", "3", "4"]
        bodies = [c.kwargs["json"] for c in post.call_args_list]
        assert bodies == [
            {"page_size": 100},
            {"page_size": 100, "start_cursor": "cur-1"},
            {"page_size": 100, "start_cursor": "cur-2"},
        ]

    def test_more_results_without_cursor_fails(self, session):
        payload = {"results": [{"id": "x"}], "has_more": True, "next_cursor": None}
        with patch.object(session, "post", return_value=_response(payload=payload)) as post:
            with pytest.raises(SourceUnavailable) as exc_info:
                NotionClient(SETTINGS, session=session).fetch_all()
        assert post.call_count == 1
        assert "next_cursor" in str(exc_info.value)

    def test_last_page_cursor_ignored(self, session):
        payload = {"results": [{"id": "x"}], "has_more": False, "next_cursor": "stale"}
        with patch.object(session, "post", return_value=_response(payload=payload)) as post:
            records = NotionClient(SETTINGS, session=session).fetch_all()
        assert len(records) == 1
        assert post.call_count == 1

    def test_empty_database(self, session):
        with patch.object(session, "post", return_value=_response(payload=_page([]))):
            assert NotionClient(SETTINGS, session=session).fetch_all() == []

    @pytest.mark.parametrize("status_code", [401, 403])
    def test_auth_failure(self, session, status_code):
        resp = _response(status_code, {"object": "error", "message": "API token is invalid."})
        with patch.object(session, "post", return_value=resp):
            with pytest.raises(SourceAuthError) as exc_info:
                NotionClient(SETTINGS, session=session).fetch_all()
        assert exc_info.value.status_code == status_code
        assert "API token is invalid." in str(exc_info.value)

    def test_unknown_database_surfaces_message(self, session):
        resp = _response(404, {"object": "error", "code": "object_not_found",
                               "message": "Could not find database with ID: db123."},
                         reason="Not Found")
        with patch.object(session, "post", return_value=resp):
            with pytest.raises(SourceUnavailable) as exc_info:
                NotionClient(SETTINGS, session=session).fetch_all()
        assert exc_info.value.status_code == 404
        assert "Could not find database" in str(exc_info.value)

    def test_mid_loop_failure_propagates_without_retry(self, session):
        responses = [
            _response(payload=_page([{"id": "1"}], next_cursor="cur-1")),
            _response(502, ValueError("no json"), reason="Bad Gateway"),
        ]
        with patch.object(session, "post", side_effect=responses) as post:
            with pytest.raises(SourceUnavailable) as exc_info:
                NotionClient(SETTINGS, session=session).fetch_all()
        assert post.call_count == 2
        assert "502" in str(exc_info.value)

    def test_connection_error(self, session):
        with patch.object(session, "post", side_effect=requests.ConnectionError("refused")):
            with pytest.raises(SourceUnavailable) as exc_info:
                NotionClient(SETTINGS, session=session).query_database()
        assert "refused" in str(exc_info.value)
        assert not isinstance(exc_info.value, SourceTimeoutError)

    def test_timeout(self, session):
        with patch.object(session, "post", side_effect=requests.Timeout("slow")):
            with pytest.raises(SourceTimeoutError) as exc_info:
                NotionClient(SETTINGS, session=session).query_database()
        assert exc_info.value.details["timeout"] == 12.0

    def test_invalid_json_body(self, session):
        with patch.object(session, "post", return_value=_response(200, ValueError("bad json"))):
            with pytest.raises(SourceUnavailable):
                NotionClient(SETTINGS, session=session).query_database()


class TestFetchProspects:
    def test_returns_pages_and_closes_session(self):
        session = MagicMock()
        session.headers = {}
        session.post.return_value = _response(payload=_page([{"id": "a"}, {"id": "b"}]))

        records = fetch_prospects(SETTINGS, session=session)

        assert [r["id"] for r in records] == ["a", "b"]
        session.close.assert_called_once()

    def test_closes_session_on_failure(self):
        session = MagicMock()
        session.headers = {}
        session.post.side_effect = requests.ConnectionError("down")

        with pytest.raises(SourceUnavailable):
            fetch_prospects(SETTINGS, session=session)
        session.close.assert_called_once()

    def test_missing_credentials_send_no_request(self):
        session = MagicMock()
        session.headers = {}

        with pytest.raises(ConfigurationError):
            fetch_prospects(Settings(api_key="", database_id=""), session=session)
        session.post.assert_not_called()
