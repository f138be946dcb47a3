"""
Prospect Dashboard: Update Run
==============================
Fetches the Notion prospects database, computes the KPIs and rewrites the
static HTML dashboard in one pass.

Steps:
    1. Load settings   NOTION_API_KEY / NOTION_DATABASE_ID (fatal if missing)
    2. Fetch           every page of the database
    3. Analyze         MetricsSnapshot
    4. Generate        self-contained HTML
    5. Write           atomic replace of the output file

Nothing is written unless every step succeeds.

Usage:
    python main.py                              # writes index.html
    python main.py --output public/index.html
    python main.py --metrics-json metrics.json  # also dump the snapshot
    python main.py --log-level DEBUG --no-log-file
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from prospect_dashboard.fetch_notion import fetch_prospects
from prospect_dashboard.generate_prospect_dashboard import generate_dashboard
from prospect_dashboard.lib.errors import DashboardError
from prospect_dashboard.lib.logger import DEFAULT_LOG_DIR, PACKAGE_LOGGER, configure_logging
from prospect_dashboard.lib.settings import Settings
from prospect_dashboard.lib.utils import atomic_write_json, atomic_write_text
from prospect_dashboard.prospect_analyzer import MetricsSnapshot, compute, normalize_pages

logger = logging.getLogger(PACKAGE_LOGGER)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Regenerate the prospect dashboard from Notion")
    parser.add_argument(
        "--output",
        type=Path,
        help="HTML file to write (default: DASHBOARD_OUTPUT or index.html)",
    )
    parser.add_argument(
        "--metrics-json",
        type=Path,
        help="Also write the computed metrics snapshot to this JSON file",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--no-log-file",
        action="store_true",
        help="Log to the console only",
    )
    return parser


def run(settings: Settings, output: Optional[Path] = None,
        metrics_json: Optional[Path] = None) -> MetricsSnapshot:
    """Fetch, analyze, render and write. Raises DashboardError on failure."""
    output = output or settings.output_path
    logger.info("Configuration:")
    logger.info("  Database ID : %s", settings.database_id)
    logger.info("  API key     : %s", settings.masked_api_key)
    logger.info("  Output      : %s", output)

    pages = fetch_prospects(settings)
    snapshot = compute(normalize_pages(pages))
    html_content = generate_dashboard(snapshot)

    if metrics_json:
        atomic_write_json(snapshot.to_dict(), metrics_json)
        logger.info("Metrics written to %s", metrics_json)
    atomic_write_text(html_content, output)
    logger.info("Dashboard written to %s", output)
    return snapshot


def main(argv: Optional[List[str]] = None) -> int:
    """Entrypoint; returns the process exit status."""
    args = build_parser().parse_args(argv)
    log_dir = None if args.no_log_file else DEFAULT_LOG_DIR

    try:
        settings = Settings.from_env()
    except DashboardError as e:
        configure_logging(args.log_level or "INFO", log_dir)
        logger.error("Configuration error: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 2

    configure_logging(args.log_level or settings.log_level, log_dir)
    logger.info("=== Prospect dashboard update ===")

    try:
        run(settings, output=args.output, metrics_json=args.metrics_json)
    except DashboardError as e:
        logger.error("Dashboard update failed: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logger.info("=== Dashboard updated successfully ===")
    return 0


if __name__ == "__main__":
    sys.exit(main())
