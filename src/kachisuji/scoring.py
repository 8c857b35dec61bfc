"""Strategy scoring, judgment labels, ranking, archiving and score baselines."""

from __future__ import annotations

import logging
from typing import Iterable

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from kachisuji.db.models import Exploration, ScoreBaseline, TopStrategy
from kachisuji.schemas.finder import get_default_weights
from kachisuji.schemas.strategy import (
    CONDITIONAL,
    DECLINE,
    PRIORITY,
    RankedStrategy,
    RankingResult,
    RankingStats,
    Strategy,
)

logger = logging.getLogger(__name__)

PRIORITY_THRESHOLD = 4.0
CONDITIONAL_THRESHOLD = 3.0
# Any single axis at or below this vetoes the strategy
VETO_SCORE = 1
ARCHIVE_MIN_SCORE = 4.0
HIGH_SCORE_THRESHOLD = 3.5

# Used when no explicit weights are given and the scores use these keys
DEFAULT_WEIGHTS: dict[str, float] = dict(get_default_weights("winning-strategy"))


def _numeric(scores: dict) -> dict[str, float]:
    return {
        k: float(v) for k, v in scores.items()
        if isinstance(v, (int, float)) and not isinstance(v, bool)
    }


def calculate_total_score(scores: dict, weights: dict[str, float] | None = None) -> float:
    """Weighted average of the numeric scores.

    Without explicit ``weights``: the winning-strategy defaults if any score
    key is one of theirs (other keys then weigh 0), else a plain mean.
    """
    values = _numeric(scores)
    if not values:
        return 0.0

    if weights is None:
        if any(k in DEFAULT_WEIGHTS for k in values):
            weights = DEFAULT_WEIGHTS
        else:
            weights = {k: 1.0 for k in values}

    weighted_sum = 0.0
    total_weight = 0.0
    for key, value in values.items():
        w = weights.get(key, 0)
        weighted_sum += value * w
        total_weight += w
    if total_weight == 0:
        return 0.0
    return weighted_sum / total_weight


def get_judgment(scores: dict, weights: dict[str, float] | None = None) -> str:
    values = _numeric(scores)
    if any(v <= VETO_SCORE for v in values.values()):
        return DECLINE
    total = calculate_total_score(values, weights)
    if total >= PRIORITY_THRESHOLD:
        return PRIORITY
    if total >= CONDITIONAL_THRESHOLD:
        return CONDITIONAL
    return DECLINE


def completed_explorations(
    session: Session,
    *,
    user_id: str | None = None,
    finder_id: str | None = None,
) -> list[Exploration]:
    stmt = select(Exploration).where(Exploration.status == "completed")
    if user_id:
        stmt = stmt.where(Exploration.user_id == user_id)
    if finder_id:
        stmt = stmt.where(Exploration.finder_id == finder_id)
    return list(session.scalars(stmt.order_by(Exploration.created_at.desc(), Exploration.id.desc())))


def iter_scored_strategies(
    explorations: Iterable[Exploration],
    weights: dict[str, float] | None = None,
) -> Iterable[RankedStrategy]:
    """Every strategy with scores, from completed explorations, unranked.

    Malformed result JSON is logged and skipped.
    """
    for exploration in explorations:
        if exploration.status != "completed" or not exploration.result:
            continue
        raw = exploration.result.get("strategies") if isinstance(exploration.result, dict) else None
        if not isinstance(raw, list):
            logger.warning("Exploration %s has no strategies list, skipping", exploration.id)
            continue
        for item in raw:
            try:
                strategy = Strategy.model_validate(item)
            except ValidationError as exc:
                logger.warning("Skipping malformed strategy in exploration %s: %s", exploration.id, exc)
                continue
            if not strategy.scores:
                continue
            yield RankedStrategy(
                exploration_id=exploration.id,
                name=strategy.name,
                reason=strategy.reason,
                how_to_obtain=strategy.how_to_obtain,
                total_score=calculate_total_score(strategy.scores, weights),
                scores=strategy.scores,
                question=exploration.question,
                exploration_date=exploration.created_at,
                judgment=get_judgment(strategy.scores, weights),
                tags=strategy.tags,
            )


def compute_stats(strategies: list[RankedStrategy]) -> RankingStats:
    if not strategies:
        return RankingStats()
    totals = [s.total_score for s in strategies]
    return RankingStats(
        total_strategies=len(strategies),
        priority_count=sum(1 for s in strategies if s.judgment == PRIORITY),
        conditional_count=sum(1 for s in strategies if s.judgment == CONDITIONAL),
        decline_count=sum(1 for s in strategies if s.judgment == DECLINE),
        avg_score=sum(totals) / len(totals),
        top_score=max(totals),
    )


def rank_strategies(
    explorations: Iterable[Exploration],
    *,
    weights: dict[str, float] | None = None,
    min_score: float = 0.0,
    judgment: str | None = None,
    limit: int = 50,
) -> RankingResult:
    """Filter, sort by total score and rank. Stats cover all matches, not just ``limit``."""
    strategies = [
        s for s in iter_scored_strategies(explorations, weights)
        if s.total_score >= min_score and (judgment is None or s.judgment == judgment)
    ]
    # Stable sort keeps newer explorations first on ties
    strategies.sort(key=lambda s: s.total_score, reverse=True)
    for i, s in enumerate(strategies, 1):
        s.rank = i
    return RankingResult(strategies=strategies[:limit], stats=compute_stats(strategies))


def archive_top_strategies(
    session: Session,
    *,
    min_score: float = ARCHIVE_MIN_SCORE,
    user_id: str | None = None,
    finder_id: str | None = None,
) -> dict[str, int]:
    """Copy high-scoring strategies into top_strategies, skipping ones already archived.

    Returns ``{"archived": new rows, "total": qualifying strategies}``.
    """
    candidates = [
        s for s in iter_scored_strategies(
            completed_explorations(session, user_id=user_id, finder_id=finder_id)
        )
        if s.total_score >= min_score and s.judgment != DECLINE
    ]

    existing_stmt = select(TopStrategy.exploration_id, TopStrategy.name)
    if user_id:
        existing_stmt = existing_stmt.where(TopStrategy.user_id == user_id)
    if finder_id:
        existing_stmt = existing_stmt.where(TopStrategy.finder_id == finder_id)
    existing = {(eid, name) for eid, name in session.execute(existing_stmt)}

    new = []
    for s in candidates:
        key = (s.exploration_id, s.name)
        if key in existing:
            continue
        existing.add(key)
        new.append(s)

    session.add_all(
        TopStrategy(
            exploration_id=s.exploration_id,
            name=s.name,
            reason=s.reason,
            how_to_obtain=s.how_to_obtain,
            total_score=s.total_score,
            scores=s.scores,
            question=s.question,
            judgment=s.judgment,
            user_id=user_id,
            finder_id=finder_id,
        )
        for s in new
    )
    session.flush()
    logger.info("Archived %d new top strategies (%d qualifying)", len(new), len(candidates))
    return {"archived": len(new), "total": len(candidates)}


def get_top_strategies(
    session: Session,
    *,
    limit: int = 50,
    user_id: str | None = None,
    finder_id: str | None = None,
) -> list[TopStrategy]:
    stmt = select(TopStrategy)
    if user_id:
        stmt = stmt.where(TopStrategy.user_id == user_id)
    if finder_id:
        stmt = stmt.where(TopStrategy.finder_id == finder_id)
    return list(session.scalars(stmt.order_by(TopStrategy.total_score.desc()).limit(limit)))


def record_baseline(session: Session, run_id: str | None = None) -> ScoreBaseline | None:
    """Snapshot current ranking stats; improvement is % change of top score vs the last snapshot."""
    totals = [s.total_score for s in iter_scored_strategies(completed_explorations(session))]
    if not totals:
        return None

    top = max(totals)
    previous = session.scalar(
        select(ScoreBaseline).order_by(ScoreBaseline.date.desc(), ScoreBaseline.id.desc()).limit(1)
    )
    improvement = None
    if previous is not None and previous.top_score > 0:
        improvement = (top - previous.top_score) / previous.top_score * 100

    baseline = ScoreBaseline(
        run_id=run_id,
        top_score=top,
        avg_score=sum(totals) / len(totals),
        total_strategies=len(totals),
        high_score_count=sum(1 for t in totals if t >= HIGH_SCORE_THRESHOLD),
        improvement=improvement,
    )
    session.add(baseline)
    session.flush()
    return baseline


def get_baseline_history(session: Session, limit: int = 30) -> list[ScoreBaseline]:
    return list(session.scalars(
        select(ScoreBaseline).order_by(ScoreBaseline.date.desc(), ScoreBaseline.id.desc()).limit(limit)
    ))
