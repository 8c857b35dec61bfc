"""Static HTML dashboard generator — renders the ranking to a self-contained HTML file."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path

from jinja2 import Environment, FileSystemLoader
from markupsafe import escape

from kachisuji.db.models import ScoreBaseline
from kachisuji.schemas.decision import DecisionStats
from kachisuji.schemas.finder import FinderSettings
from kachisuji.schemas.strategy import CONDITIONAL, DECLINE, PRIORITY, RankingResult
from kachisuji.schemas.swot import SwotResult

_TEMPLATE_DIR = Path(__file__).parent / "templates"

JUDGMENT_CLASSES = {PRIORITY: "priority", CONDITIONAL: "conditional", DECLINE: "decline"}


def _md_to_html(text: str) -> str:
    """Bold, italics, bullet lists and paragraphs. Input must already be escaped."""
    text = re.sub(r"\*\*(.+?)\*\*", r"<strong>\1</strong>", text)
    text = re.sub(r"\*(.+?)\*", r"<em>\1</em>", text)

    result: list[str] = []
    in_ul = False
    for line in text.split("\n"):
        stripped = line.strip()
        if stripped.startswith("- "):
            if not in_ul:
                result.append("<ul>")
                in_ul = True
            result.append(f"<li>{stripped[2:]}</li>")
            continue
        if not stripped and in_ul:
            continue
        if in_ul:
            result.append("</ul>")
            in_ul = False
        if stripped:
            result.append(f"<p>{stripped}</p>")
    if in_ul:
        result.append("</ul>")
    return "\n".join(result)


def render_dashboard(
    ranking: RankingResult,
    *,
    finder: FinderSettings,
    baselines: list[ScoreBaseline] | None = None,
    decision_stats: DecisionStats | None = None,
    swot: SwotResult | None = None,
    company_name: str = "",
    generated_at: datetime | None = None,
) -> str:
    """Render the ranking (plus optional baseline trend, decision stats and SWOT) to HTML."""
    env = Environment(loader=FileSystemLoader(str(_TEMPLATE_DIR)), autoescape=True)
    template = env.get_template("dashboard.html")
    generated_at = generated_at or datetime.now(timezone.utc)

    strategies = [
        {**s.model_dump(mode="json"), "judgment_class": JUDGMENT_CLASSES.get(s.judgment, "decline")}
        for s in ranking.strategies
    ]
    # Oldest first so the trend reads left to right
    trend = [
        {
            "date": b.date.strftime("%Y-%m-%d %H:%M") if b.date else "",
            "top_score": b.top_score,
            "avg_score": b.avg_score,
            "improvement": b.improvement,
        }
        for b in reversed(baselines or [])
    ]

    return template.render(
        title=finder.name,
        company_name=company_name,
        generated_at=generated_at.isoformat(timespec="seconds"),
        result_label=finder.result_label,
        axes=[a.model_dump() for a in finder.score_axes],
        strategies=strategies,
        stats=ranking.stats.model_dump(),
        trend=trend,
        decision_stats=decision_stats.model_dump() if decision_stats else None,
        swot=swot.swot.model_dump() if swot else None,
        swot_summary_html=_md_to_html(str(escape(swot.summary))) if swot and swot.summary else "",
    )
