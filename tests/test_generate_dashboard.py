"""Tests for the HTML dashboard generator."""

import json
import re
from datetime import datetime

import pytest

from prospect_dashboard.generate_prospect_dashboard import (
    _fmt_currency,
    _fmt_number,
    _level_class,
    generate_dashboard,
)
from prospect_dashboard.prospect_analyzer import Prospect, Status, compute

NOW = datetime(2026, 3, 15, 9, 5, 7)
SIGNED = Status.SIGNED.value
DECLINED = Status.DECLINED.value

_METRICS_RE = re.compile(
    r'<script id="metrics-data" type="application/json">(.*?)</script>', re.S
)


def _embedded_metrics(html_doc):
    match = _METRICS_RE.search(html_doc)
    assert match, "metrics JSON block missing"
    return json.loads(match.group(1))


@pytest.fixture
def sample_snapshot():
    records = [
        Prospect(status=SIGNED, channel="Instagram", price_excl_tax=1800, call_count=2,
                 venues=("Rooftop",)),
        Prospect(status=SIGNED, channel="Google", price_excl_tax=2200, call_count=4),
        Prospect(status=SIGNED, channel="Salon", revenue_excl_tax=900),
        Prospect(status=DECLINED, channel="Google", refusal_reason="Trop Cher"),
        Prospect(status=DECLINED, refusal_reason="Date indisponible"),
        Prospect(status=Status.QUALIFIED.value, channel="Instagram"),
    ]
    return compute(records, now=NOW)


class TestFormatting:
    def test_number_grouping(self):
        assert _fmt_number(1500) == "1\u00a0500"
        assert _fmt_number(12.5) == "12,5"
        assert _fmt_number(None) == "0"

    def test_currency(self):
        assert _fmt_currency(2000) == "2\u00a0000\u00a0€"

    def test_level_class(self):
        assert _level_class(60) == "positive"
        assert _level_class(40) == "warning"
        assert _level_class(10) == "negative"
        assert _level_class(60, inverted=True) == "negative"


class TestGenerateDashboard:
    def test_document_structure(self, sample_snapshot):
        html_doc = generate_dashboard(sample_snapshot)
        assert html_doc.startswith("<!DOCTYPE html>")
        assert '<html lang="fr">' in html_doc
        assert "<title>Dashboard Commercial - 15/03/2026 09:05:07</title>" in html_doc
        assert html_doc.rstrip().endswith("</html>")

    def test_kpi_values_rendered(self, sample_snapshot):
        html_doc = generate_dashboard(sample_snapshot)
        assert "Taux de réussite" in html_doc
        assert "50%" in html_doc
        assert "1\u00a0633\u00a0€" in html_doc

    def test_embedded_metrics_match_snapshot(self, sample_snapshot):
        metrics = _embedded_metrics(generate_dashboard(sample_snapshot))
        assert metrics["total"] == 6
        assert metrics["success_rate"] == 50
        assert [name for name, _ in metrics["top_channels"]] == ["Google", "Instagram", "Salon"]
        assert metrics["last_update"] == "15/03/2026 09:05:07"

    def test_channel_chart_with_three_converting_channels(self, sample_snapshot):
        html_doc = generate_dashboard(sample_snapshot)
        assert "Instagram (50%)" in html_doc
        assert 'id="channel-ranking"' in html_doc
        assert "renderChannels" in html_doc

    def test_simple_stats_for_few_channels(self):
        snapshot = compute([Prospect(status=SIGNED, channel="Salon")], now=NOW)
        html_doc = generate_dashboard(snapshot)
        assert 'class="simple-stats"' in html_doc
        assert "1 conversion" in html_doc

    def test_no_conversion_message(self):
        snapshot = compute([Prospect(status=DECLINED, channel="Web")], now=NOW)
        html_doc = generate_dashboard(snapshot)
        assert "Aucune conversion enregistrée par canal" in html_doc

    def test_missing_channel_warning(self):
        records = [Prospect()] * 8 + [Prospect(channel="Web")] * 2
        html_doc = generate_dashboard(compute(records, now=NOW))
        assert 'class="warning-box"' in html_doc
        assert "80% des prospects n'ont pas de canal renseigné" in html_doc

    def test_no_warning_at_threshold(self):
        records = [Prospect()] * 7 + [Prospect(channel="Web")] * 3
        html_doc = generate_dashboard(compute(records, now=NOW))
        assert 'class="warning-box"' not in html_doc

    def test_refusal_table(self, sample_snapshot):
        html_doc = generate_dashboard(sample_snapshot)
        assert "Analyse des refus" in html_doc
        assert 'id="refusal-table"' in html_doc
        assert "Date indisponible" in html_doc

    def test_refusal_section_omitted_without_refusals(self):
        snapshot = compute([Prospect(status=SIGNED)], now=NOW)
        html_doc = generate_dashboard(snapshot)
        assert "Analyse des refus" not in html_doc

    def test_pipeline_table_lists_every_stage(self, sample_snapshot):
        html_doc = generate_dashboard(sample_snapshot)
        assert 'id="pipeline-table"' in html_doc
        for stage in Status:
            assert stage.value in html_doc

    def test_unclassified_note(self):
        snapshot = compute([Prospect(status="Archivé")], now=NOW)
        html_doc = generate_dashboard(snapshot)
        assert "sans statut reconnu" in html_doc

    def test_user_text_is_escaped(self):
        hostile = "<script>alert(1)</script>"
        records = [Prospect(status=SIGNED, channel=hostile),
                   Prospect(status=DECLINED, refusal_reason=hostile)]
        html_doc = generate_dashboard(compute(records, now=NOW))
        assert hostile not in html_doc
        assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html_doc
        metrics = _embedded_metrics(html_doc)
        assert metrics["channel_stats"][hostile]["conversions"] == 1

    def test_empty_snapshot_renders(self):
        html_doc = generate_dashboard(compute([], now=NOW))
        assert "Aucune donnée" in html_doc
        assert "Aucune conversion enregistrée par canal" in html_doc
        assert _embedded_metrics(html_doc)["total"] == 0
