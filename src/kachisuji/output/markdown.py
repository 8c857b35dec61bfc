"""Markdown report builder — renders the ranking (plus an exploration / SWOT) to Markdown."""

from __future__ import annotations

from datetime import datetime, timezone

from kachisuji.db.models import Exploration
from kachisuji.schemas.finder import FinderSettings
from kachisuji.schemas.strategy import CONDITIONAL, DECLINE, PRIORITY, ExplorationOutput, RankingResult
from kachisuji.schemas.swot import Swot, SwotResult

JUDGMENT_ICONS = {PRIORITY: "🟢", CONDITIONAL: "🟡", DECLINE: "🔴"}

_SWOT_SECTIONS = (
    ("strengths", "強み (Strengths)"),
    ("weaknesses", "弱み (Weaknesses)"),
    ("opportunities", "機会 (Opportunities)"),
    ("threats", "脅威 (Threats)"),
)


def _cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


def render_ranking_table(ranking: RankingResult, finder: FinderSettings) -> str:
    """One row per strategy, one column per score axis of ``finder``."""
    axes = finder.score_axes
    header = "| # | 判定 | 総合 | 戦略 | " + " | ".join(a.label for a in axes) + " |"
    separator = "|---|------|------|------|" + "|".join(["---"] * len(axes)) + "|"
    rows = [header, separator]
    for s in ranking.strategies:
        icon = JUDGMENT_ICONS.get(s.judgment, "⚪")
        values = [
            f"{s.scores[a.key]:g}" if a.key in s.scores else "—"
            for a in axes
        ]
        rows.append(
            f"| {s.rank} | {icon} {s.judgment} | {s.total_score:.2f} | {_cell(s.name)} | "
            + " | ".join(values) + " |"
        )
    return "\n".join(rows) + "\n"


def _render_swot(swot: Swot) -> list[str]:
    lines: list[str] = []
    for field, label in _SWOT_SECTIONS:
        items = getattr(swot, field)
        if not items:
            continue
        lines.append(f"### {label}\n")
        for item in items:
            lines.append(f"- {item.text}" + (f" *({item.source})*" if item.source else ""))
        lines.append("")
    return lines


def render_markdown_report(
    ranking: RankingResult,
    *,
    finder: FinderSettings,
    exploration: Exploration | None = None,
    swot: SwotResult | None = None,
    company_name: str = "",
    generated_at: datetime | None = None,
) -> str:
    """Render a ranking report; the latest exploration and a SWOT analysis are optional extras."""
    generated_at = generated_at or datetime.now(timezone.utc)
    sections: list[str] = []

    title = f"# {finder.name} レポート"
    if company_name:
        title += f": {company_name}"
    sections.append(title + "\n")
    sections.append(f"*Generated: {generated_at.isoformat(timespec='seconds')}*\n")

    # Summary
    stats = ranking.stats
    sections.append("## サマリー\n")
    sections.append(f"- **{finder.result_label}数:** {stats.total_strategies}")
    sections.append(f"- **{PRIORITY}:** {stats.priority_count}")
    sections.append(f"- **{CONDITIONAL}:** {stats.conditional_count}")
    sections.append(f"- **{DECLINE}:** {stats.decline_count}")
    sections.append(f"- **平均スコア:** {stats.avg_score:.2f}")
    sections.append(f"- **最高スコア:** {stats.top_score:.2f}")
    sections.append("")

    # Score axes
    sections.append("## 評価軸\n")
    sections.append("| 軸 | 説明 | 重み |")
    sections.append("|----|------|------|")
    for axis in finder.score_axes:
        sections.append(f"| {axis.label} | {axis.description} | {axis.default_weight}% |")
    sections.append("")

    # Ranking
    sections.append(f"## {finder.result_label}ランキング\n")
    if ranking.strategies:
        sections.append(render_ranking_table(ranking, finder))
        for s in ranking.strategies:
            sections.append(f"### #{s.rank}: {s.name}\n")
            sections.append(f"**判定:** {s.judgment} | **総合スコア:** {s.total_score:.2f}\n")
            if s.reason:
                sections.append(f"{s.reason}\n")
            if s.how_to_obtain:
                sections.append(f"*実現方法: {s.how_to_obtain}*\n")
            sections.append(f"*問い: {s.question}*\n")
    else:
        sections.append("スコア付きの戦略はまだありません。\n")

    # Latest exploration
    if exploration is not None and exploration.result:
        output = ExplorationOutput.model_validate(exploration.result)
        sections.append(f"## 最新の{finder.explore_label}\n")
        sections.append(f"**問い:** {exploration.question}\n")
        if output.thinking_process:
            sections.append(f"{output.thinking_process}\n")
        for strategy in output.strategies:
            sections.append(f"- **{strategy.name}**: {strategy.reason}")
        sections.append("")
        if output.follow_up_questions:
            sections.append("### 次の問い\n")
            for q in output.follow_up_questions:
                sections.append(f"- {q}")
            sections.append("")

    # SWOT
    if swot is not None:
        sections.append("## SWOT分析\n")
        if swot.summary:
            sections.append(f"{swot.summary}\n")
        sections.extend(_render_swot(swot.swot))

    sections.append("---\n")
    sections.append(f"*Report generated by {finder.name}*")
    return "\n".join(sections)
