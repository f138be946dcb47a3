"""
Prospect Dashboard Generator
============================
Turns a ``MetricsSnapshot`` into a self-contained HTML dashboard.

No external CDN dependencies -- all CSS, JS, and SVG charts are inline so the
page works offline and on any static host. The snapshot itself is embedded
as JSON; the inline script uses it to render the channel rankings.
"""

from __future__ import annotations

import html
import json
import logging
import math
from typing import Any, Callable, List, Tuple

from prospect_dashboard.prospect_analyzer import MetricsSnapshot, Status, round_half_up

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Colour palette
# ---------------------------------------------------------------------------
COLORS = {
    "bg":           "#0f172a",
    "card":         "#1e293b",
    "card_border":  "#334155",
    "text":         "#e2e8f0",
    "text_muted":   "#94a3b8",
    "accent":       "#38bdf8",
    "success":      "#10b981",
    "danger":       "#ef4444",
    "warning":      "#f59e0b",
    "info":         "#3b82f6",
    "surface2":     "#0f1729",
}

CHART_PALETTE = [
    "#10b981", "#3b82f6", "#8b5cf6", "#f59e0b", "#ef4444",
    "#38bdf8", "#f472b6", "#facc15", "#2dd4bf", "#c084fc",
]

STATUS_COLORS = {
    "Succès": COLORS["success"],
    "Échecs": COLORS["danger"],
    "Sans réponse": COLORS["warning"],
    "En cours": COLORS["info"],
}

# ---------------------------------------------------------------------------
# Utility helpers
# ---------------------------------------------------------------------------

def _esc(text: Any) -> str:
    """HTML-escape a value; converts None to empty string."""
    if text is None:
        return ""
    return html.escape(str(text))


def _fmt_number(value: Any) -> str:
    """Format a number with French digit grouping (1\u00a0500, 12,5), NBSP separated."""
    try:
        v = float(value)
    except (TypeError, ValueError):
        return "0"
    if v == int(v):
        text = f"{int(v):,}"
    else:
        text = f"{v:,.1f}"
    return text.replace(",", "\u00a0").replace(".", ",")


def _fmt_currency(value: Any) -> str:
    """Format a number as euros (1\u00a0500\u00a0€)."""
    return f"{_fmt_number(value)}\u00a0€"


def _fmt_pct(value: Any) -> str:
    try:
        return f"{float(value):.0f}%"
    except (TypeError, ValueError):
        return "0%"


def _color_at(idx: int) -> str:
    """Return a palette colour by index (wrapping)."""
    return CHART_PALETTE[idx % len(CHART_PALETTE)]


def _level_class(value: float, good: float = 50, fair: float = 30, inverted: bool = False) -> str:
    """CSS class for a rate: above *good* is positive, above *fair* is a warning."""
    if value > good:
        return "negative" if inverted else "positive"
    if value > fair:
        return "warning"
    return "positive" if inverted else "negative"


# ---------------------------------------------------------------------------
# SVG chart generators
# ---------------------------------------------------------------------------

def _svg_bar_chart(
    data: List[Tuple[str, float]],
    width: int = 500,
    height: int = 220,
    fmt: Callable[[Any], str] = _fmt_number,
) -> str:
    """Horizontal bar chart.  data = [(label, value), ...]."""
    if not data:
        return _no_data_svg(width, height)
    bar_height = 32
    gap = 8
    label_width = 170
    value_width = 60
    chart_width = width - label_width - value_width - 20
    max_val = max(v for _, v in data) or 1
    total_height = max(height, len(data) * (bar_height + gap) + 20)

    bars = []
    for i, (label, val) in enumerate(data):
        y = i * (bar_height + gap) + 10
        bar_w = max(2, (val / max_val) * chart_width)
        label_text = label[:22] + ".." if len(str(label)) > 24 else str(label)
        bars.append(f'''
        <text x="{label_width - 8}" y="{y + bar_height / 2 + 5}"
              text-anchor="end" fill="{COLORS['text_muted']}"
              font-size="12" font-family="system-ui, sans-serif">{_esc(label_text)}</text>
        <rect x="{label_width}" y="{y}" width="0" height="{bar_height}"
              rx="6" fill="{_color_at(i)}" opacity="0.85">
            <animate attributeName="width" from="0" to="{bar_w:.1f}"
                     dur="0.8s" begin="{i * 0.05}s" fill="freeze"/>
        </rect>
        <text x="{label_width + bar_w + 8:.1f}" y="{y + bar_height / 2 + 5}"
              fill="{COLORS['text']}" font-size="12" font-weight="600"
              font-family="system-ui, sans-serif">{_esc(fmt(val))}</text>''')

    return f'''<svg width="100%" viewBox="0 0 {width} {total_height}"
         xmlns="http://www.w3.org/2000/svg" role="img"
         aria-label="Bar chart">{''.join(bars)}
    </svg>'''


def _svg_grouped_bar_chart(
    categories: List[str],
    series: List[Tuple[str, List[float], str]],
    width: int = 500,
    height: int = 260,
) -> str:
    """Vertical grouped bars.  series = [(name, values per category, colour), ...]."""
    if not categories or not series:
        return _no_data_svg(width, height)
    pad_x, pad_top, pad_bottom = 40, 20, 50
    chart_w = width - pad_x * 2
    chart_h = height - pad_top - pad_bottom
    max_val = max((v for _, values, _ in series for v in values), default=0) or 1
    group_w = chart_w / len(categories)
    bar_w = min(48, (group_w * 0.7) / len(series))

    parts = []
    for tick in range(5):
        val = max_val * tick / 4
        y = pad_top + chart_h - chart_h * tick / 4
        parts.append(f'''<line x1="{pad_x}" y1="{y:.1f}" x2="{pad_x + chart_w}" y2="{y:.1f}"
              stroke="{COLORS['card_border']}" stroke-width="0.5" stroke-dasharray="4"/>
        <text x="{pad_x - 8}" y="{y + 4:.1f}" text-anchor="end"
              fill="{COLORS['text_muted']}" font-size="10"
              font-family="system-ui, sans-serif">{_fmt_number(round(val))}</text>''')

    for gi, category in enumerate(categories):
        group_x = pad_x + gi * group_w + (group_w - bar_w * len(series)) / 2
        for si, (name, values, color) in enumerate(series):
            val = values[gi] if gi < len(values) else 0
            bar_h = (val / max_val) * chart_h
            x = group_x + si * bar_w
            y = pad_top + chart_h - bar_h
            parts.append(f'''<rect x="{x:.1f}" y="{y:.1f}" width="{bar_w - 4:.1f}" height="{bar_h:.1f}"
              rx="4" fill="{color}" opacity="0.9"><title>{_esc(name)}: {_fmt_number(val)}</title></rect>''')
        parts.append(f'''<text x="{pad_x + gi * group_w + group_w / 2:.1f}" y="{pad_top + chart_h + 18}"
              text-anchor="middle" fill="{COLORS['text']}" font-size="12"
              font-family="system-ui, sans-serif">{_esc(category)}</text>''')

    legend = ''.join(
        f'''<span style="display:inline-flex;align-items:center;gap:6px;margin-right:16px">
            <span style="width:10px;height:10px;border-radius:2px;background:{color}"></span>
            {_esc(name)}</span>'''
        for name, _, color in series
    )
    return f'''<svg width="100%" viewBox="0 0 {width} {height}"
         xmlns="http://www.w3.org/2000/svg" role="img"
         aria-label="Grouped bar chart">{''.join(parts)}
    </svg>
    <div class="chart-legend">{legend}</div>'''


def _svg_donut(
    segments: List[Tuple[str, float]],
    size: int = 220,
    inner_ratio: float = 0.6,
    centre_value: str = "",
    centre_label: str = "",
) -> str:
    """Donut chart with legend."""
    if not segments or all(v == 0 for _, v in segments):
        return _no_data_svg(size, size)
    total = sum(v for _, v in segments) or 1
    cx, cy = size / 2, size / 2
    r = (size / 2) - 20
    ir = r * inner_ratio

    paths = []
    legend_items = []
    angle = -90  # start at top

    for i, (label, val) in enumerate(segments):
        pct = val / total
        sweep = min(pct * 360, 359.99)
        color = STATUS_COLORS.get(label, _color_at(i))
        legend_items.append(f'''
        <div style="display:flex;align-items:center;gap:6px;font-size:12px;color:{COLORS['text_muted']}">
            <span style="width:10px;height:10px;border-radius:50%;background:{color};flex-shrink:0"></span>
            {_esc(label)}: {_fmt_pct(val)}
        </div>''')
        if sweep < 0.5:
            continue
        large = 1 if sweep > 180 else 0
        start_rad = math.radians(angle)
        end_rad = math.radians(angle + sweep)

        x1 = cx + r * math.cos(start_rad)
        y1 = cy + r * math.sin(start_rad)
        x2 = cx + r * math.cos(end_rad)
        y2 = cy + r * math.sin(end_rad)
        ix1 = cx + ir * math.cos(end_rad)
        iy1 = cy + ir * math.sin(end_rad)
        ix2 = cx + ir * math.cos(start_rad)
        iy2 = cy + ir * math.sin(start_rad)

        d = (f"M {x1:.1f} {y1:.1f} "
             f"A {r:.1f} {r:.1f} 0 {large} 1 {x2:.1f} {y2:.1f} "
             f"L {ix1:.1f} {iy1:.1f} "
             f"A {ir:.1f} {ir:.1f} 0 {large} 0 {ix2:.1f} {iy2:.1f} Z")
        paths.append(f'''
        <path d="{d}" fill="{color}" stroke="{COLORS['bg']}" stroke-width="2">
            <title>{_esc(label)}: {_fmt_pct(val)}</title>
        </path>''')
        angle += sweep

    centre = f'''
        <text x="{cx}" y="{cy - 6}" text-anchor="middle"
              fill="{COLORS['text']}" font-size="22" font-weight="700"
              font-family="system-ui, sans-serif">{_esc(centre_value)}</text>
        <text x="{cx}" y="{cy + 14}" text-anchor="middle"
              fill="{COLORS['text_muted']}" font-size="11"
              font-family="system-ui, sans-serif">{_esc(centre_label)}</text>'''

    svg = f'''<svg width="{size}" height="{size}" viewBox="0 0 {size} {size}"
         xmlns="http://www.w3.org/2000/svg" role="img"
         aria-label="Donut chart">{''.join(paths)}{centre}
    </svg>'''
    legend = f'''<div style="display:flex;flex-wrap:wrap;justify-content:center;
                 gap:6px 16px;margin-top:8px;">{''.join(legend_items)}</div>'''
    return f'<div style="text-align:center">{svg}{legend}</div>'


def _svg_line_chart(
    data_points: List[Tuple[str, float]],
    width: int = 600,
    height: int = 250,
    color: str = "#3b82f6",
) -> str:
    """Line chart with area fill, y axis starting at zero.  data_points = [(label, value), ...]."""
    if not data_points or len(data_points) < 2:
        return _no_data_svg(width, height)
    values = [v for _, v in data_points]
    labels = [label for label, _ in data_points]
    mx = max(values) or 1
    pad_x, pad_y = 50, 30
    chart_w = width - pad_x * 2
    chart_h = height - pad_y * 2

    points = []
    for i, v in enumerate(values):
        x = pad_x + (i / (len(values) - 1)) * chart_w
        y = pad_y + chart_h - (v / mx) * chart_h
        points.append((x, y))

    polyline = ' '.join(f"{x:.1f},{y:.1f}" for x, y in points)
    fill_pts = (f"{points[0][0]:.1f},{pad_y + chart_h} {polyline} "
                f"{points[-1][0]:.1f},{pad_y + chart_h}")

    dots = ''.join(
        f'''<circle cx="{x:.1f}" cy="{y:.1f}" r="4" fill="{color}"
                stroke="{COLORS['bg']}" stroke-width="2"><title>{_esc(labels[i])}: {_fmt_number(values[i])}</title></circle>\n'''
        for i, (x, y) in enumerate(points)
    )
    x_labels = ''.join(
        f'''<text x="{x:.1f}" y="{pad_y + chart_h + 18}"
                text-anchor="middle" fill="{COLORS['text_muted']}" font-size="11"
                font-family="system-ui, sans-serif">{_esc(labels[i])}</text>\n'''
        for i, (x, _) in enumerate(points)
    )

    y_labels = ""
    for i in range(5):
        val = mx * i / 4
        y = pad_y + chart_h - (chart_h * i / 4)
        y_labels += f'''<text x="{pad_x - 8}" y="{y + 4}" text-anchor="end"
            fill="{COLORS['text_muted']}" font-size="10"
            font-family="system-ui, sans-serif">{_fmt_number(round(val, 1))}</text>
        <line x1="{pad_x}" y1="{y}" x2="{pad_x + chart_w}" y2="{y}"
              stroke="{COLORS['card_border']}" stroke-width="0.5" stroke-dasharray="4"/>\n'''

    return f'''<svg width="100%" viewBox="0 0 {width} {height}"
         xmlns="http://www.w3.org/2000/svg" role="img"
         aria-label="Line chart">
        <defs>
            <linearGradient id="lineGrad_monthly" x1="0" y1="0" x2="0" y2="1">
                <stop offset="0%" stop-color="{color}" stop-opacity="0.3"/>
                <stop offset="100%" stop-color="{color}" stop-opacity="0.02"/>
            </linearGradient>
        </defs>
        {y_labels}
        <polygon points="{fill_pts}" fill="url(#lineGrad_monthly)"/>
        <polyline points="{polyline}" fill="none" stroke="{color}"
                  stroke-width="2.5" stroke-linecap="round" stroke-linejoin="round"/>
        {dots}
        {x_labels}
    </svg>'''


def _svg_funnel(
    stages: List[Tuple[str, float, str]],
    width: int = 600,
    height: int = 420,
) -> str:
    """Pipeline funnel.  stages = [(label, value, caption), ...]."""
    if not stages or all(v == 0 for _, v, _ in stages):
        return _no_data_svg(width, height)
    n = len(stages)
    stage_h = height / n
    max_val = max(v for _, v, _ in stages) or 1
    min_width_pct = 0.25
    pad = 40

    shapes = []
    for i, (label, val, caption) in enumerate(stages):
        pct = max(val / max_val, min_width_pct)
        w = pct * (width - 2 * pad)
        x = (width - w) / 2
        y = i * stage_h
        shapes.append(f'''
        <rect x="{x:.0f}" y="{y + 2:.0f}" width="{w:.0f}" height="{stage_h - 4:.0f}"
              rx="6" fill="{_color_at(i)}" opacity="0.85"/>
        <text x="{width / 2}" y="{y + stage_h * 0.45:.0f}" text-anchor="middle"
              fill="white" font-size="13" font-weight="700"
              font-family="system-ui, sans-serif">{_esc(label)}: {_fmt_number(val)}</text>
        <text x="{width / 2}" y="{y + stage_h * 0.78:.0f}" text-anchor="middle"
              fill="rgba(255,255,255,0.75)" font-size="11"
              font-family="system-ui, sans-serif">{_esc(caption)}</text>''')

    return f'''<svg width="100%" viewBox="0 0 {width} {height}"
         xmlns="http://www.w3.org/2000/svg" role="img"
         aria-label="Pipeline funnel">{''.join(shapes)}
    </svg>'''


def _no_data_svg(width: int = 400, height: int = 200) -> str:
    """Placeholder SVG when no data is available."""
    return f'''<svg width="100%" viewBox="0 0 {width} {height}"
         xmlns="http://www.w3.org/2000/svg">
        <rect width="{width}" height="{height}" fill="{COLORS['surface2']}"
              rx="12" opacity="0.5"/>
        <text x="{width / 2}" y="{height / 2 + 5}" text-anchor="middle"
              fill="{COLORS['text_muted']}" font-size="14"
              font-family="system-ui, sans-serif">Aucune donnée</text>
    </svg>'''


# ---------------------------------------------------------------------------
# HTML component helpers
# ---------------------------------------------------------------------------

def _stat_card(
    title: str,
    value: str,
    subtitle: str = "",
    level: str = "neutral",
    progress: float = None,
) -> str:
    """KPI card with an optional progress bar."""
    progress_html = ""
    if progress is not None:
        width = min(max(progress, 0), 100)
        progress_html = f'''<div class="progress-bar">
            <div class="progress-fill" style="width:{width:.0f}%"></div>
        </div>'''
    subtitle_html = f'<div class="kpi-sublabel">{_esc(subtitle)}</div>' if subtitle else ""
    return f'''<div class="kpi-card">
        <div class="kpi-label">{_esc(title)}</div>
        <div class="kpi-value {level}">{_esc(value)}</div>
        {subtitle_html}
        {progress_html}
    </div>'''


def _data_table(headers: List[str], rows: List[List[str]], table_id: str) -> str:
    """Sortable data table. Cells must already be escaped."""
    if not rows:
        return '<div class="no-data">Aucune donnée</div>'
    header_cells = ''.join(
        f'<th onclick="sortTable(\'{table_id}\', {i})">{_esc(h)} '
        f'<span class="sort-hint">&#x25B2;&#x25BC;</span></th>'
        for i, h in enumerate(headers)
    )
    body_rows = ''.join(
        '<tr>' + ''.join(f'<td>{cell}</td>' for cell in row) + '</tr>\n'
        for row in rows
    )
    return f'''<div class="table-wrapper">
        <table id="{table_id}" class="data-table">
            <thead><tr>{header_cells}</tr></thead>
            <tbody>{body_rows}</tbody>
        </table>
    </div>'''


def _card(title: str, body: str, extra_class: str = "") -> str:
    return f'''<div class="chart-container {extra_class}">
        <h3 class="chart-title">{_esc(title)}</h3>
        {body}
    </div>'''


# ---------------------------------------------------------------------------
# Dashboard sections
# ---------------------------------------------------------------------------

def _build_kpi_section(snapshot: MetricsSnapshot) -> str:
    cards = [
        _stat_card("Taux de réussite", _fmt_pct(snapshot.success_rate),
                   level=_level_class(snapshot.success_rate),
                   progress=snapshot.success_rate),
        _stat_card("Nombre d'appels moyen", _fmt_number(snapshot.avg_calls),
                   "Par prospect contacté"),
        _stat_card("Tarif moyen", _fmt_currency(snapshot.avg_price),
                   "HT par contrat signé"),
        _stat_card("Total prospects", _fmt_number(snapshot.total), "Dans la base",
                   level=""),
        _stat_card('Taux "Prix trop cher"', _fmt_pct(snapshot.too_expensive_rate),
                   "Des refus",
                   level=_level_class(snapshot.too_expensive_rate, inverted=True)),
        _stat_card("Sans réponse", _fmt_pct(snapshot.no_response_rate),
                   "Des prospects", level="warning"),
    ]
    return f'<div class="kpi-grid">{"".join(cards)}</div>'


def _build_overview_section(snapshot: MetricsSnapshot) -> str:
    status_chart = _svg_donut(
        [
            ("Succès", snapshot.success_rate),
            ("Échecs", snapshot.failure_rate),
            ("Sans réponse", snapshot.no_response_rate),
            ("En cours", snapshot.active_rate),
        ],
        centre_value=_fmt_number(snapshot.total),
        centre_label="prospects",
    )
    venues = list(snapshot.venue_stats)
    venue_chart = _svg_grouped_bar_chart(
        venues,
        [
            ("Total demandes", [snapshot.venue_stats[v].total for v in venues], COLORS["info"]),
            ("Contrats signés", [snapshot.venue_stats[v].success for v in venues], COLORS["success"]),
        ],
    )
    monthly_chart = _svg_line_chart(list(snapshot.monthly_data.items()))
    return ''.join([
        _card("Répartition des statuts", status_chart),
        _card("Performance par lieu", venue_chart),
        _card("Évolution mensuelle", monthly_chart),
    ])


def _build_channel_section(snapshot: MetricsSnapshot) -> str:
    warning = ""
    if snapshot.missing_channel_rate > 70:
        warning = f'''<div class="warning-box">
            <p>{snapshot.missing_channel_rate}% des prospects n'ont pas de canal renseigné</p>
        </div>'''

    if len(snapshot.top_channels) > 2:
        data = [
            (f"{name} ({snapshot.channel_stats[name].rate}%)", conversions)
            for name, conversions in snapshot.top_channels
        ]
        body = _svg_bar_chart(data)
    elif snapshot.top_channels:
        converting = sorted(
            ((name, stats) for name, stats in snapshot.channel_stats.items() if stats.conversions > 0),
            key=lambda item: (-item[1].conversions, item[0]),
        )
        items = ''.join(
            f'''<div class="stat-item">
                <div class="stat-header">
                    <strong>{_esc(name)}</strong>
                    <span class="positive">{stats.conversions} conversion{"s" if stats.conversions > 1 else ""}</span>
                </div>
                <div class="stat-detail">Taux: {stats.rate}% ({stats.conversions}/{stats.total})</div>
            </div>'''
            for name, stats in converting
        )
        body = f'<div class="simple-stats">{items}</div>'
    else:
        body = ('<div class="no-data">Aucune conversion enregistrée par canal. '
                'Vérifiez que le champ "Canal d\'acquisition" est bien renseigné '
                'dans vos prospects.</div>')

    toggle = '''<div class="toggle-bar">
            <button class="toggle-btn active" data-view="volume" onclick="renderChannels('volume')">Volume</button>
            <button class="toggle-btn" data-view="rate" onclick="renderChannels('rate')">Taux de conversion</button>
        </div>
        <div id="channel-ranking" class="mini-bars"></div>'''
    return _card("Canaux d'acquisition", warning + body) + _card("Classement des canaux", toggle)


def _build_pipeline_section(snapshot: MetricsSnapshot) -> str:
    stages = [
        (label, stage.count, f"{stage.percentage}% · {_fmt_currency(stage.total_price)}")
        for label, stage in snapshot.pipeline.items()
    ]
    rows = [
        [_esc(label), _fmt_number(stage.count), _fmt_currency(stage.total_price),
         _fmt_pct(stage.percentage)]
        for label, stage in snapshot.pipeline.items()
    ]
    note = ""
    if snapshot.unclassified_count:
        note = f'''<p class="kpi-sublabel">{snapshot.unclassified_count} prospect(s)
            sans statut reconnu ne figurent pas dans le pipeline.</p>'''
    table = _data_table(["Étape", "Prospects", "Montant HT", "Part"], rows, "pipeline-table")
    return (_card("Pipeline commercial", _svg_funnel(stages))
            + _card("Détail du pipeline", table + note))


def _build_refusal_section(snapshot: MetricsSnapshot) -> str:
    if not snapshot.refusal_reasons:
        return ""
    total_refusals = sum(snapshot.refusal_reasons.values())
    rows = [
        [_esc(reason), _fmt_number(count),
         _fmt_pct(round_half_up(count * 100 / total_refusals))]
        for reason, count in sorted(snapshot.refusal_reasons.items(), key=lambda kv: -kv[1])
    ]
    table = _data_table(["Raison", "Nombre", "Pourcentage"], rows, "refusal-table")
    return f'<div class="data-section">{_card("Analyse des refus", table)}</div>'


# ---------------------------------------------------------------------------
# CSS / JS
# ---------------------------------------------------------------------------

def _build_css() -> str:
    """Build the complete CSS for the dashboard."""
    return f'''
    <style>
        :root {{
            --bg:          {COLORS['bg']};
            --card:        {COLORS['card']};
            --card-border: {COLORS['card_border']};
            --text:        {COLORS['text']};
            --text-muted:  {COLORS['text_muted']};
            --accent:      {COLORS['accent']};
            --success:     {COLORS['success']};
            --danger:      {COLORS['danger']};
            --warning:     {COLORS['warning']};
            --info:        {COLORS['info']};
            --radius:      14px;
            --shadow:      0 4px 24px rgba(0,0,0,0.3);
        }}
        *, *::before, *::after {{ box-sizing: border-box; margin: 0; padding: 0; }}
        body {{
            background: var(--bg);
            color: var(--text);
            font-family: 'Inter', 'Segoe UI', system-ui, -apple-system, sans-serif;
            line-height: 1.6;
            padding: 24px;
            -webkit-font-smoothing: antialiased;
        }}
        .dashboard {{ max-width: 1400px; margin: 0 auto; }}
        .header {{
            display: flex;
            justify-content: space-between;
            align-items: center;
            margin-bottom: 30px;
        }}
        h1 {{ font-size: 28px; font-weight: 800; }}
        .last-update {{ color: var(--text-muted); font-size: 14px; }}

        .kpi-grid {{
            display: grid;
            grid-template-columns: repeat(auto-fit, minmax(220px, 1fr));
            gap: 20px;
            margin-bottom: 32px;
        }}
        .kpi-card, .chart-container {{
            background: var(--card);
            border: 1px solid var(--card-border);
            border-radius: var(--radius);
            box-shadow: var(--shadow);
            padding: 24px;
        }}
        .kpi-label {{
            color: var(--text-muted);
            font-size: 12px;
            text-transform: uppercase;
            letter-spacing: 0.05em;
        }}
        .kpi-value {{ font-size: 34px; font-weight: 800; margin: 8px 0; }}
        .kpi-sublabel {{ color: var(--text-muted); font-size: 12px; margin-top: 4px; }}
        .positive {{ color: var(--success); }}
        .negative {{ color: var(--danger); }}
        .neutral {{ color: var(--info); }}
        .warning {{ color: var(--warning); }}
        .progress-bar {{
            height: 8px;
            background: var(--card-border);
            border-radius: 4px;
            overflow: hidden;
            margin-top: 12px;
        }}
        .progress-fill {{
            height: 100%;
            background: linear-gradient(90deg, var(--info), var(--success));
            border-radius: 4px;
        }}

        .chart-grid {{
            display: grid;
            grid-template-columns: repeat(auto-fit, minmax(420px, 1fr));
            gap: 24px;
            margin-bottom: 32px;
        }}
        .chart-title {{ font-size: 17px; font-weight: 600; margin-bottom: 18px; }}
        .chart-legend {{
            display: flex;
            justify-content: center;
            font-size: 12px;
            color: var(--text-muted);
            margin-top: 8px;
        }}

        .warning-box {{
            background: rgba(245, 158, 11, 0.12);
            border: 1px solid var(--warning);
            padding: 12px;
            border-radius: 8px;
            margin-bottom: 16px;
        }}
        .warning-box p {{ color: var(--warning); }}
        .no-data {{
            text-align: center;
            color: var(--text-muted);
            padding: 40px;
            font-style: italic;
        }}
        .simple-stats {{ padding: 8px 0; }}
        .stat-item {{
            margin-bottom: 12px;
            padding: 14px;
            background: rgba(255,255,255,0.03);
            border: 1px solid var(--card-border);
            border-radius: 8px;
        }}
        .stat-header {{ display: flex; justify-content: space-between; align-items: center; }}
        .stat-detail {{ margin-top: 6px; font-size: 13px; color: var(--text-muted); }}

        .toggle-bar {{ display: flex; gap: 8px; margin-bottom: 16px; }}
        .toggle-btn {{
            background: transparent;
            color: var(--text-muted);
            border: 1px solid var(--card-border);
            border-radius: 8px;
            padding: 6px 14px;
            font-size: 12px;
            cursor: pointer;
        }}
        .toggle-btn.active {{ color: var(--text); border-color: var(--accent); }}
        .mini-bar {{ margin-bottom: 10px; font-size: 13px; }}
        .mini-bar-head {{ display: flex; justify-content: space-between; color: var(--text-muted); }}
        .mini-bar-track {{
            height: 8px;
            background: var(--card-border);
            border-radius: 4px;
            overflow: hidden;
            margin-top: 4px;
        }}
        .mini-bar-fill {{ height: 100%; background: var(--accent); border-radius: 4px; }}

        .table-wrapper {{ overflow-x: auto; }}
        .data-table {{ width: 100%; border-collapse: collapse; font-size: 14px; }}
        .data-table th, .data-table td {{
            text-align: left;
            padding: 12px;
            border-bottom: 1px solid var(--card-border);
        }}
        .data-table th {{
            color: var(--text-muted);
            font-size: 12px;
            text-transform: uppercase;
            letter-spacing: 0.05em;
            cursor: pointer;
            user-select: none;
        }}
        .sort-hint {{ opacity: 0.4; font-size: 10px; }}
        .data-section {{ margin-bottom: 32px; }}
    </style>'''


def _build_js() -> str:
    """Build the interactive JavaScript (sortable tables, channel ranking)."""
    return '''
    <script>
    (function() {
        'use strict';
        var METRICS = JSON.parse(document.getElementById('metrics-data').textContent);

        // Sortable tables
        window.sortTable = function(tableId, colIdx) {
            var table = document.getElementById(tableId);
            if (!table) return;
            var tbody = table.querySelector('tbody');
            var rows = Array.from(tbody.querySelectorAll('tr'));
            var asc = table.getAttribute('data-sort-col') == colIdx
                      && table.getAttribute('data-sort-dir') !== 'asc';

            rows.sort(function(a, b) {
                var aText = a.children[colIdx] ? a.children[colIdx].textContent.trim() : '';
                var bText = b.children[colIdx] ? b.children[colIdx].textContent.trim() : '';
                var aNum = parseFloat(aText.replace(/[^0-9,\\-]/g, '').replace(',', '.'));
                var bNum = parseFloat(bText.replace(/[^0-9,\\-]/g, '').replace(',', '.'));
                if (!isNaN(aNum) && !isNaN(bNum)) {
                    return asc ? aNum - bNum : bNum - aNum;
                }
                return asc ? aText.localeCompare(bText) : bText.localeCompare(aText);
            });

            rows.forEach(function(row) { tbody.appendChild(row); });
            table.setAttribute('data-sort-col', colIdx);
            table.setAttribute('data-sort-dir', asc ? 'asc' : 'desc');
        };

        function renderMiniBars(containerId, items, suffix) {
            var el = document.getElementById(containerId);
            if (!el) return;
            el.textContent = '';
            if (!items.length) {
                var empty = document.createElement('div');
                empty.className = 'no-data';
                empty.textContent = 'Aucun canal significatif';
                el.appendChild(empty);
                return;
            }
            var max = Math.max.apply(null, items.map(function(i) { return i.value; })) || 1;
            items.forEach(function(item) {
                var row = document.createElement('div');
                row.className = 'mini-bar';
                var head = document.createElement('div');
                head.className = 'mini-bar-head';
                var label = document.createElement('span');
                label.textContent = item.label;
                var value = document.createElement('span');
                value.textContent = item.value + suffix + ' (' + item.detail + ')';
                head.appendChild(label);
                head.appendChild(value);
                var track = document.createElement('div');
                track.className = 'mini-bar-track';
                var fill = document.createElement('div');
                fill.className = 'mini-bar-fill';
                fill.style.width = (item.value / max * 100).toFixed(1) + '%';
                track.appendChild(fill);
                row.appendChild(head);
                row.appendChild(track);
                el.appendChild(row);
            });
        }

        window.renderChannels = function(view) {
            var items;
            if (view === 'rate') {
                items = METRICS.top_channels_by_rate.map(function(entry) {
                    var stats = entry[1];
                    return {label: entry[0], value: stats.rate,
                            detail: stats.conversions + '/' + stats.total};
                });
            } else {
                items = METRICS.top_channels.map(function(entry) {
                    var stats = METRICS.channel_stats[entry[0]] || {rate: 0, total: 0};
                    return {label: entry[0], value: entry[1],
                            detail: stats.rate + '% sur ' + stats.total};
                });
            }
            renderMiniBars('channel-ranking', items, view === 'rate' ? '%' : '');
            document.querySelectorAll('.toggle-btn').forEach(function(btn) {
                btn.classList.toggle('active', btn.getAttribute('data-view') === view);
            });
        };

        document.addEventListener('DOMContentLoaded', function() {
            renderChannels('volume');
        });
    })();
    </script>'''


# ---------------------------------------------------------------------------
# Main assembly
# ---------------------------------------------------------------------------

def _metrics_json(snapshot: MetricsSnapshot) -> str:
    """Snapshot JSON safe to embed inside a <script> element."""
    return json.dumps(snapshot.to_dict(), ensure_ascii=False, default=str).replace("</", "<\\/")


def generate_dashboard(snapshot: MetricsSnapshot) -> str:
    """Generate the complete HTML dashboard from a metrics snapshot."""
    logger.info("Building dashboard HTML...")
    timestamp = _esc(snapshot.last_update)
    signed = snapshot.pipeline.get(Status.SIGNED.value)
    footer_stats = " | ".join([
        f"Prospects : {_fmt_number(snapshot.total)}",
        f"Contrats signés : {_fmt_number(signed.count if signed else 0)}",
        f"Canaux : {_fmt_number(len(snapshot.channel_stats))}",
    ])

    html_doc = f'''<!DOCTYPE html>
<html lang="fr">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Dashboard Commercial - {timestamp}</title>
    {_build_css()}
</head>
<body>
    <div class="dashboard">
        <div class="header">
            <h1>Dashboard Commercial</h1>
            <div class="last-update">Dernière mise à jour : {timestamp}</div>
        </div>

        {_build_kpi_section(snapshot)}

        <div class="chart-grid">
            {_build_overview_section(snapshot)}
            {_build_channel_section(snapshot)}
            {_build_pipeline_section(snapshot)}
        </div>

        {_build_refusal_section(snapshot)}

        <footer class="kpi-sublabel">{_esc(footer_stats)}</footer>
    </div>

    <script id="metrics-data" type="application/json">{_metrics_json(snapshot)}</script>
    {_build_js()}
</body>
</html>'''

    logger.info("Generated %s characters of HTML", f"{len(html_doc):,}")
    return html_doc
