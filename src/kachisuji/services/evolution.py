"""Evolution workflow: collect adopted and top strategies, evolve them, store the result."""

from __future__ import annotations

import logging

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from kachisuji.agents.evolution.agent import EvolutionAgent
from kachisuji.db.models import Exploration, StrategyDecision
from kachisuji.errors import ValidationFailed
from kachisuji.rag.context import build_rag_context
from kachisuji.schemas.config import RagSettings
from kachisuji.schemas.decision import RANKING_PREFIX
from kachisuji.schemas.evolution import EvolveInfo, EvolveMode, EvolveResult, SourceStrategy
from kachisuji.schemas.finder import get_finder_settings
from kachisuji.schemas.strategy import Strategy
from kachisuji.scoring import (
    archive_top_strategies,
    calculate_total_score,
    get_top_strategies,
    record_baseline,
)
from kachisuji.shared.llm_client import LLMClient

logger = logging.getLogger(__name__)

MAX_TOP_SOURCES = 10
RECENT_EVOLUTIONS = 5


def _exploration_pk(exploration_id: str) -> int | None:
    raw = exploration_id.removeprefix(RANKING_PREFIX)
    return int(raw) if raw.isdigit() else None


def _find_strategy(exploration: Exploration | None, name: str) -> Strategy | None:
    if exploration is None or not isinstance(exploration.result, dict):
        return None
    for item in exploration.result.get("strategies") or []:
        if isinstance(item, dict) and item.get("name") == name:
            try:
                return Strategy.model_validate(item)
            except ValidationError:
                return None
    return None


def collect_sources(
    session: Session, *, user_id: str | None, finder_id: str | None = None,
) -> list[SourceStrategy]:
    """Adopted strategies first, then archived top strategies; de-duplicated by name."""
    sources: dict[str, SourceStrategy] = {}

    stmt = select(StrategyDecision).where(StrategyDecision.decision == "adopt")
    if user_id:
        stmt = stmt.where(StrategyDecision.user_id == user_id)
    for decision in session.scalars(stmt.order_by(StrategyDecision.updated_at.desc())):
        if decision.strategy_name in sources:
            continue
        pk = _exploration_pk(decision.exploration_id)
        strategy = _find_strategy(session.get(Exploration, pk) if pk else None, decision.strategy_name)
        sources[decision.strategy_name] = SourceStrategy(
            name=decision.strategy_name,
            reason=strategy.reason if strategy else (decision.reason or ""),
            how_to_obtain=strategy.how_to_obtain if strategy else "",
            total_score=calculate_total_score(strategy.scores) if strategy and strategy.scores else None,
            origin="adopted",
        )

    for top in get_top_strategies(session, limit=MAX_TOP_SOURCES, user_id=user_id, finder_id=finder_id):
        if top.name in sources:
            continue
        sources[top.name] = SourceStrategy(
            name=top.name,
            reason=top.reason or "",
            how_to_obtain=top.how_to_obtain or "",
            total_score=top.total_score,
            origin="top",
        )
    return list(sources.values())


def evolve_info(session: Session, *, user_id: str | None) -> EvolveInfo:
    stmt = select(StrategyDecision.strategy_name).where(StrategyDecision.decision == "adopt")
    if user_id:
        stmt = stmt.where(StrategyDecision.user_id == user_id)
    adopted = len(set(session.scalars(stmt)))
    top_count = len(get_top_strategies(session, limit=10_000, user_id=user_id))

    recent_stmt = select(Exploration).where(Exploration.kind == "evolution")
    if user_id:
        recent_stmt = recent_stmt.where(Exploration.user_id == user_id)
    recent = session.scalars(
        recent_stmt.order_by(Exploration.created_at.desc(), Exploration.id.desc()).limit(RECENT_EVOLUTIONS)
    )
    return EvolveInfo(
        can_evolve=adopted + top_count > 0,
        adopted_count=adopted,
        top_strategy_count=top_count,
        recent_evolutions=[
            {
                "id": e.id,
                "question": e.question,
                "created_at": e.created_at.isoformat() if e.created_at else None,
                "strategy_count": len((e.result or {}).get("strategies") or []),
            }
            for e in recent
        ],
    )


async def evolve(
    session: Session,
    client: LLMClient,
    mode: EvolveMode = EvolveMode.ALL,
    *,
    save: bool = True,
    finder_id: str | None = None,
    user_id: str | None = None,
    settings: RagSettings | None = None,
    web_texts: dict[str, str] | None = None,
) -> EvolveResult:
    """Evolve the user's adopted / top strategies.

    With ``save`` the evolved strategies are stored as an ``evolution``
    exploration (so they are ranked like any other), then top strategies
    are re-archived and a score baseline is recorded.
    """
    finder = get_finder_settings(finder_id)
    sources = collect_sources(session, user_id=user_id, finder_id=finder_id)
    if not sources:
        raise ValidationFailed("進化元となる採用済み戦略または高スコア戦略がありません")

    rag_context = await build_rag_context(
        session, client,
        query=" ".join(s.name for s in sources),
        web_texts=web_texts,
        settings=settings,
    )
    output = await EvolutionAgent(client, mode, finder).run(sources, rag_context=rag_context)
    for s in output.strategies:
        s.total_score = calculate_total_score(s.scores) if s.scores else None

    result = EvolveResult(
        strategies=output.strategies,
        thinking_process=output.thinking_process,
        source_count=len(sources),
    )
    if not save:
        return result

    exploration = Exploration(
        question=f"戦略進化（{mode.value}）",
        context="\n".join(f"- {s.name}" for s in sources),
        constraints=[],
        result={
            "strategies": [
                {**s.model_dump(mode="json"), "tags": [s.evolve_type]} for s in output.strategies
            ],
            "thinking_process": output.thinking_process,
            "follow_up_questions": [],
            "evolve_mode": mode.value,
        },
        status="completed",
        kind="evolution",
        finder_id=finder.id,
        user_id=user_id,
    )
    session.add(exploration)
    session.flush()

    archived = archive_top_strategies(session, user_id=user_id, finder_id=finder.id)
    record_baseline(session, run_id=f"evolution-{exploration.id}")
    session.commit()

    result.exploration_id = exploration.id
    result.archived_count = archived["archived"]
    logger.info(
        "Evolution %d: %d strategies from %d sources, %d archived",
        exploration.id, len(output.strategies), len(sources), archived["archived"],
    )
    return result
