"""Shared fixtures: Notion page builders and logger cleanup."""

import logging

import pytest


def notion_page(
    status=None,
    status_type="select",
    calls=None,
    price=None,
    revenue=None,
    final_price=None,
    venues=None,
    channel=None,
    request_date=None,
    refusal=None,
):
    """Build a raw Notion database page shaped like the API response."""
    props = {}
    if status is not None:
        props["Statut"] = {"type": status_type, status_type: {"name": status}}
    if calls is not None:
        props["Nombre d'appel"] = {"type": "number", "number": calls}
    if price is not None:
        props["Tarif HT"] = {"type": "number", "number": price}
    if revenue is not None:
        props["CA HT"] = {"type": "number", "number": revenue}
    if final_price is not None:
        props["Tarif final"] = {
            "type": "rich_text",
            "rich_text": [{"type": "text", "plain_text": final_price}],
        }
    if venues is not None:
        props["Lieu"] = {"type": "multi_select", "multi_select": [{"name": v} for v in venues]}
    if channel is not None:
        props["Canal d'acquisition"] = {"type": "select", "select": {"name": channel}}
    if request_date is not None:
        props["Date de demande"] = {"type": "date", "date": {"start": request_date, "end": None}}
    if refusal is not None:
        props["Raison de refus"] = {"type": "select", "select": {"name": refusal}}
    return {"object": "page", "id": "page-id", "properties": props}


@pytest.fixture
def make_page():
    return notion_page


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers installed by configure_logging so each test starts clean."""
    yield
    logger = logging.getLogger("prospect_dashboard")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
