"""Tests for the end-to-end update run and its exit codes."""

import json
from unittest.mock import patch

import pytest

from prospect_dashboard.lib.errors import SourceAuthError, SourceUnavailable
from prospect_dashboard.lib.settings import Settings
from prospect_dashboard.update_dashboard import build_parser, main, run

ENV = {"NOTION_API_KEY": "secret_abcdefghijklmnop", "NOTION_DATABASE_ID": "db123"}
FETCH = "prospect_dashboard.update_dashboard.fetch_prospects"


@pytest.fixture
def pages(make_page):
    return [
        make_page(status="Contrat signé", price=1500, channel="Instagram", calls=3),
        make_page(status="Réponse négative", refusal="Trop Cher", channel="Google"),
        make_page(status="Pas de réponse"),
    ]


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.output is None
        assert args.metrics_json is None
        assert args.log_level is None
        assert args.no_log_file is False

    def test_rejects_unknown_level(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--log-level", "LOUD"])


class TestRun:
    def test_writes_dashboard(self, tmp_path, pages):
        settings = Settings(api_key="k", database_id="db", output_path=tmp_path / "index.html")
        with patch(FETCH, return_value=pages) as fetch:
            snapshot = run(settings)

        fetch.assert_called_once_with(settings)
        assert snapshot.total == 3
        assert snapshot.success_rate == 33
        content = (tmp_path / "index.html").read_text(encoding="utf-8")
        assert content.startswith("<!DOCTYPE html>")

    def test_nothing_written_on_fetch_failure(self, tmp_path):
        target = tmp_path / "index.html"
        target.write_text("previous", encoding="utf-8")
        settings = Settings(api_key="k", database_id="db", output_path=target)
        with patch(FETCH, side_effect=SourceAuthError("https://api.notion.com/v1/x", 401)):
            with pytest.raises(SourceAuthError):
                run(settings)
        assert target.read_text(encoding="utf-8") == "previous"


class TestMain:
    def test_missing_configuration_exits_2(self, tmp_path, capsys):
        output = tmp_path / "index.html"
        env = {"NOTION_API_KEY": "", "NOTION_DATABASE_ID": ""}
        with patch.dict("os.environ", env), patch(FETCH) as fetch:
            code = main(["--output", str(output), "--no-log-file"])

        assert code == 2
        fetch.assert_not_called()
        assert not output.exists()
        err = capsys.readouterr().err
        assert "NOTION_API_KEY" in err
        assert "NOTION_DATABASE_ID" in err

    def test_success_exits_0(self, tmp_path, pages):
        output = tmp_path / "site" / "index.html"
        metrics = tmp_path / "metrics.json"
        with patch.dict("os.environ", ENV), patch(FETCH, return_value=pages):
            code = main(["--output", str(output), "--metrics-json", str(metrics),
                         "--no-log-file", "--log-level", "DEBUG"])

        assert code == 0
        assert "Dashboard Commercial" in output.read_text(encoding="utf-8")
        data = json.loads(metrics.read_text(encoding="utf-8"))
        assert data["total"] == 3
        assert data["refusal_reasons"] == {"Trop Cher": 1}

    def test_source_failure_exits_1(self, tmp_path, capsys):
        output = tmp_path / "index.html"
        with patch.dict("os.environ", ENV), \
                patch(FETCH, side_effect=SourceUnavailable("Notion API returned 502: Bad Gateway")):
            code = main(["--output", str(output), "--no-log-file"])

        assert code == 1
        assert not output.exists()
        assert "502" in capsys.readouterr().err

    def test_write_failure_exits_1(self, tmp_path, pages):
        with patch.dict("os.environ", ENV), patch(FETCH, return_value=pages):
            code = main(["--output", str(tmp_path), "--no-log-file"])
        assert code == 1
        assert tmp_path.is_dir()
