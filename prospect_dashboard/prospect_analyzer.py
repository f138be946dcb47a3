"""
Prospect Metrics Analyzer
=========================
Normalises raw Notion pages into ``Prospect`` records and aggregates them
into a single immutable ``MetricsSnapshot``: conversion rates, average call
count, average deal price, venue performance, acquisition channels, monthly
trend, refusal reasons and the pipeline funnel.

Exports:
    Status, Prospect, MetricsSnapshot, compute, normalize_pages, round_half_up,
    STATUS_RESOLVERS, CHANNEL_RESOLVERS, PRICE_RESOLVERS, resolve_first
"""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from dataclasses import asdict, dataclass, fields, is_dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Notion property names
# ---------------------------------------------------------------------------
PROP_STATUS = "Statut"
PROP_CALLS = "Nombre d'appel"
PROP_PRICE = "Tarif HT"
PROP_REVENUE = "CA HT"
PROP_FINAL_PRICE = "Tarif final"
PROP_VENUES = "Lieu"
PROP_CHANNEL = "Canal d'acquisition"
PROP_REQUEST_DATE = "Date de demande"
PROP_REFUSAL_REASON = "Raison de refus"

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------


class Status(str, Enum):
    """Canonical pipeline stages, in funnel order."""

    PROSPECT = "Prospect"
    QUALIFIED = "Qualifié"
    AWAITING_VISIT = "Visite à planifier"
    VISITED = "Visite effectuée"
    SIGNED = "Contrat signé"
    DECLINED = "Réponse négative"
    NO_RESPONSE = "Pas de réponse"


_STATUS_BY_LABEL = {s.value: s for s in Status}

KNOWN_VENUES = ("Rooftop", "Tama")
MISSING_CHANNEL = "Non renseigné"
MISSING_REASON = "Non spécifié"
TOO_EXPENSIVE_REASON = "Trop Cher"

MONTH_ABBREVIATIONS = (
    "jan", "fév", "mar", "avr", "mai", "juin",
    "juil", "août", "sep", "oct", "nov", "déc",
)
TREND_MONTHS = 6

TOP_CHANNELS_LIMIT = 5
# Sentinel group leaves the ranking when this share of records has no channel
MISSING_CHANNEL_RANKING_CUTOFF = 0.8
MIN_CHANNEL_SIZE_FOR_RATE = 5

_DIGITS_RE = re.compile(r"\d+")

# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def _prop(page: dict, key: str) -> dict:
    """Safely retrieve a property object from a Notion page."""
    props = page.get("properties") if isinstance(page, dict) else None
    if not isinstance(props, dict):
        return {}
    value = props.get(key)
    return value if isinstance(value, dict) else {}


def _named(value: Any) -> Optional[str]:
    """``{"name": ...}`` option object -> name, or None."""
    if isinstance(value, dict):
        name = value.get("name")
        if isinstance(name, str) and name.strip():
            return name
    return None


def _number(prop: dict) -> Optional[float]:
    value = prop.get("number")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def _plain_text(prop: dict) -> str:
    """Concatenated plain text of a rich_text or title property."""
    for kind in ("rich_text", "title"):
        parts = prop.get(kind)
        if isinstance(parts, list) and parts:
            return "".join(
                p.get("plain_text") or "" for p in parts if isinstance(p, dict)
            )
    return ""


def _parse_date(prop: dict) -> Optional[date]:
    """Parse a Notion date property (``date.start``) to a calendar date."""
    value = prop.get("date")
    start = value.get("start") if isinstance(value, dict) else None
    if not isinstance(start, str) or len(start) < 10:
        return None
    try:
        return date.fromisoformat(start[:10])
    except ValueError:
        return None


def round_half_up(value: float, places: int = 0):
    """Round half away from zero; int for ``places == 0``."""
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return int(rounded) if places == 0 else float(rounded)


def _pct(part: float, whole: float) -> int:
    """Zero-safe integer percentage."""
    if not whole:
        return 0
    return round_half_up(part * 100 / whole)


# ---------------------------------------------------------------------------
# Field resolvers
# ---------------------------------------------------------------------------
Resolver = Callable[[Any], Any]


def resolve_first(resolvers: Iterable[Resolver], value: Any) -> Any:
    """Return the first truthy result of *resolvers* applied to *value*."""
    for resolver in resolvers:
        result = resolver(value)
        if result:
            return result
    return None


def select_name(prop: dict) -> Optional[str]:
    return _named(prop.get("select"))


def status_name(prop: dict) -> Optional[str]:
    return _named(prop.get("status"))


def first_multi_select_name(prop: dict) -> Optional[str]:
    options = prop.get("multi_select")
    if isinstance(options, list) and options:
        return _named(options[0])
    return None


def primary_price(prospect: "Prospect") -> Optional[float]:
    price = prospect.price_excl_tax
    return price if price and price > 0 else None


def secondary_price(prospect: "Prospect") -> Optional[float]:
    price = prospect.revenue_excl_tax
    return price if price and price > 0 else None


def text_price(prospect: "Prospect") -> Optional[int]:
    match = _DIGITS_RE.search(prospect.final_price_text or "")
    if match:
        price = int(match.group(0))
        return price if price > 0 else None
    return None


STATUS_RESOLVERS: Tuple[Resolver, ...] = (select_name, status_name)
CHANNEL_RESOLVERS: Tuple[Resolver, ...] = (select_name, first_multi_select_name)
PRICE_RESOLVERS: Tuple[Resolver, ...] = (primary_price, secondary_price, text_price)


# ============================================================================
# Records
# ============================================================================

@dataclass(frozen=True)
class Prospect:
    """One prospect row from the Notion database. Every field is optional."""

    status: Optional[str] = None
    call_count: Optional[int] = None
    price_excl_tax: Optional[float] = None
    revenue_excl_tax: Optional[float] = None
    final_price_text: str = ""
    venues: Tuple[str, ...] = ()
    channel: Optional[str] = None
    request_date: Optional[date] = None
    refusal_reason: Optional[str] = None

    @classmethod
    def from_notion_page(cls, page: dict) -> "Prospect":
        calls = _number(_prop(page, PROP_CALLS))
        venues = _prop(page, PROP_VENUES).get("multi_select")
        if not isinstance(venues, list):
            venues = []
        return cls(
            status=resolve_first(STATUS_RESOLVERS, _prop(page, PROP_STATUS)),
            call_count=int(calls) if calls is not None else None,
            price_excl_tax=_number(_prop(page, PROP_PRICE)),
            revenue_excl_tax=_number(_prop(page, PROP_REVENUE)),
            final_price_text=_plain_text(_prop(page, PROP_FINAL_PRICE)),
            venues=tuple(name for name in map(_named, venues) if name),
            channel=resolve_first(CHANNEL_RESOLVERS, _prop(page, PROP_CHANNEL)),
            request_date=_parse_date(_prop(page, PROP_REQUEST_DATE)),
            refusal_reason=select_name(_prop(page, PROP_REFUSAL_REASON)),
        )

    @property
    def stage(self) -> Optional[Status]:
        return _STATUS_BY_LABEL.get(self.status)

    @property
    def resolved_price(self) -> float:
        return resolve_first(PRICE_RESOLVERS, self) or 0


def normalize_pages(pages: Iterable[dict]) -> List[Prospect]:
    """Convert raw Notion pages to prospects, preserving order."""
    return [Prospect.from_notion_page(page) for page in pages]


# ============================================================================
# Snapshot
# ============================================================================

@dataclass(frozen=True)
class VenueStats:
    total: int = 0
    success: int = 0


@dataclass(frozen=True)
class ChannelStats:
    total: int = 0
    conversions: int = 0
    rate: int = 0


@dataclass(frozen=True)
class PipelineStage:
    count: int = 0
    total_price: float = 0
    percentage: int = 0


@dataclass(frozen=True)
class MetricsSnapshot:
    """Every statistic the dashboard needs, computed once per run.

    Mapping fields are read-only views; build them through ``compute``.
    """

    total: int
    success_rate: int
    failure_rate: int
    no_response_rate: int
    avg_calls: float
    avg_price: int
    venue_stats: Mapping[str, VenueStats]
    channel_stats: Mapping[str, ChannelStats]
    top_channels: Tuple[Tuple[str, int], ...]
    top_channels_by_rate: Tuple[Tuple[str, ChannelStats], ...]
    missing_channel_rate: int
    monthly_data: Mapping[str, int]
    refusal_reasons: Mapping[str, int]
    too_expensive_rate: int
    pipeline: Mapping[str, PipelineStage]
    unclassified_count: int
    generated_at: datetime

    @property
    def last_update(self) -> str:
        return self.generated_at.strftime("%d/%m/%Y %H:%M:%S")

    @property
    def active_rate(self) -> int:
        """Share of prospects neither signed, declined nor silent."""
        if not self.total:
            return 0
        return max(0, 100 - self.success_rate - self.failure_rate - self.no_response_rate)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation."""
        data = {f.name: _plain(getattr(self, f.name)) for f in fields(self)}
        data["generated_at"] = self.generated_at.isoformat()
        data["last_update"] = self.last_update
        return data


def _plain(value: Any) -> Any:
    """Read-only snapshot values -> dicts and lists."""
    if is_dataclass(value):
        return asdict(value)
    if isinstance(value, Mapping):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [_plain(item) for item in value]
    return value


# ============================================================================
# Aggregation
# ============================================================================

def _trend_months(now: datetime) -> List[str]:
    """Abbreviations of the six months ending at *now*'s month, oldest first."""
    return [
        MONTH_ABBREVIATIONS[(now.month - 1 - offset) % 12]
        for offset in range(TREND_MONTHS - 1, -1, -1)
    ]


def _rank_channels(
    channel_stats: Dict[str, ChannelStats],
    missing_count: int,
    total: int,
) -> Tuple[Tuple[str, int], ...]:
    """Top channels by conversion volume."""
    drop_missing = missing_count > total * MISSING_CHANNEL_RANKING_CUTOFF
    ranked = sorted(
        (
            (name, stats) for name, stats in channel_stats.items()
            if stats.conversions > 0 and not (drop_missing and name == MISSING_CHANNEL)
        ),
        key=lambda item: (-item[1].conversions, -item[1].total, item[0]),
    )
    return tuple((name, stats.conversions) for name, stats in ranked[:TOP_CHANNELS_LIMIT])


def _rank_channels_by_rate(
    channel_stats: Dict[str, ChannelStats],
) -> Tuple[Tuple[str, ChannelStats], ...]:
    """Top channels by conversion rate, among channels large enough to matter."""
    ranked = sorted(
        (
            (name, stats) for name, stats in channel_stats.items()
            if stats.total >= MIN_CHANNEL_SIZE_FOR_RATE and stats.conversions > 0
        ),
        key=lambda item: (-item[1].rate, -item[1].conversions, item[0]),
    )
    return tuple(ranked[:TOP_CHANNELS_LIMIT])


def compute(records: Sequence[Prospect], now: Optional[datetime] = None) -> MetricsSnapshot:
    """Aggregate *records* into a MetricsSnapshot. Never raises on bad data."""
    now = now or datetime.now().astimezone()
    total = len(records)
    logger.info("Computing KPIs over %d prospects...", total)
    if total == 0:
        logger.warning("No prospects to process")

    status_counts: Counter = Counter(r.stage for r in records)
    signed = status_counts[Status.SIGNED]
    declined = status_counts[Status.DECLINED]
    no_response = status_counts[Status.NO_RESPONSE]

    # Average call count, ignoring prospects never called
    calls = [r.call_count for r in records if r.call_count and r.call_count > 0]
    avg_calls = round_half_up(sum(calls) / len(calls), 1) if calls else 0.0
    logger.debug("Calls: %d prospects with calls, average %s", len(calls), avg_calls)

    # Average price over signed contracts with a usable price
    signed_prices = [
        p for p in (r.resolved_price for r in records if r.stage is Status.SIGNED) if p > 0
    ]
    avg_price = round_half_up(sum(signed_prices) / len(signed_prices)) if signed_prices else 0
    logger.debug("Price: %d signed contracts with a price, average %s", len(signed_prices), avg_price)

    # Venues
    venue_counts = {venue: [0, 0] for venue in KNOWN_VENUES}
    for r in records:
        for venue in set(r.venues):
            if venue in venue_counts:
                venue_counts[venue][0] += 1
                if r.stage is Status.SIGNED:
                    venue_counts[venue][1] += 1
    venue_stats = {
        venue: VenueStats(total=t, success=s) for venue, (t, s) in venue_counts.items()
    }

    # Acquisition channels
    channel_totals: Counter = Counter()
    channel_conversions: Counter = Counter()
    missing_channel_count = 0
    for r in records:
        channel = r.channel
        if not channel:
            missing_channel_count += 1
            channel = MISSING_CHANNEL
        channel_totals[channel] += 1
        if r.stage is Status.SIGNED:
            channel_conversions[channel] += 1
    channel_stats = {
        name: ChannelStats(
            total=count,
            conversions=channel_conversions[name],
            rate=_pct(channel_conversions[name], count),
        )
        for name, count in channel_totals.items()
    }
    for name, stats in channel_stats.items():
        logger.debug("Channel %s: %d conversions out of %d (%d%%)",
                     name, stats.conversions, stats.total, stats.rate)
    missing_channel_rate = _pct(missing_channel_count, total)
    if missing_channel_count:
        logger.info("Prospects without an acquisition channel: %d (%d%%)",
                    missing_channel_count, missing_channel_rate)
    top_channels = _rank_channels(channel_stats, missing_channel_count, total)
    top_channels_by_rate = _rank_channels_by_rate(channel_stats)

    # Monthly trend: bucketed by month of year only
    monthly_data = {month: 0 for month in _trend_months(now)}
    for r in records:
        if r.request_date is not None:
            key = MONTH_ABBREVIATIONS[r.request_date.month - 1]
            if key in monthly_data:
                monthly_data[key] += 1

    # Refusal reasons
    refusal_reasons: Counter = Counter(
        r.refusal_reason or MISSING_REASON for r in records if r.stage is Status.DECLINED
    )
    too_expensive_rate = _pct(refusal_reasons[TOO_EXPENSIVE_REASON], sum(refusal_reasons.values()))

    # Pipeline funnel
    stage_prices: Dict[Status, float] = {s: 0 for s in Status}
    for r in records:
        if r.stage is not None:
            stage_prices[r.stage] += r.resolved_price
    pipeline = {
        s.value: PipelineStage(
            count=status_counts[s],
            total_price=round(stage_prices[s], 2),
            percentage=_pct(status_counts[s], total),
        )
        for s in Status
    }
    unclassified_count = status_counts[None]
    if unclassified_count:
        unknown = sorted({r.status or "<vide>" for r in records if r.stage is None})
        logger.warning("%d prospects have no recognised status: %s",
                       unclassified_count, ", ".join(unknown))

    snapshot = MetricsSnapshot(
        total=total,
        success_rate=_pct(signed, total),
        failure_rate=_pct(declined, total),
        no_response_rate=_pct(no_response, total),
        avg_calls=avg_calls,
        avg_price=avg_price,
        venue_stats=MappingProxyType(venue_stats),
        channel_stats=MappingProxyType(channel_stats),
        top_channels=top_channels,
        top_channels_by_rate=top_channels_by_rate,
        missing_channel_rate=missing_channel_rate,
        monthly_data=MappingProxyType(monthly_data),
        refusal_reasons=MappingProxyType(dict(refusal_reasons.most_common())),
        too_expensive_rate=too_expensive_rate,
        pipeline=MappingProxyType(pipeline),
        unclassified_count=unclassified_count,
        generated_at=now,
    )

    logger.info("KPIs computed:")
    logger.info("  Success rate     : %d%% (%d/%d)", snapshot.success_rate, signed, total)
    logger.info("  Failure rate     : %d%%", snapshot.failure_rate)
    logger.info("  No response rate : %d%%", snapshot.no_response_rate)
    logger.info("  Average calls    : %s", snapshot.avg_calls)
    logger.info("  Average price    : %s EUR", snapshot.avg_price)
    logger.info("  Ranked channels  : %d", len(snapshot.top_channels))
    return snapshot
