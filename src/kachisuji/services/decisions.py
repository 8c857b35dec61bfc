"""Per-user adopt / reject / pending decisions on strategies."""

from __future__ import annotations

import logging
from collections import Counter

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from kachisuji.db.models import StrategyDecision
from kachisuji.errors import NotFoundError, PermissionDenied, ValidationFailed
from kachisuji.schemas.decision import (
    DECISION_VALUES,
    RANKING_PREFIX,
    DecisionRequest,
    DecisionStats,
    RejectReason,
)

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 100
TOP_REJECT_REASONS = 5


def record_decision(session: Session, request: DecisionRequest, *, user_id: str) -> StrategyDecision:
    """Insert or update the user's decision for (exploration, strategy)."""
    if not request.exploration_id or not request.strategy_name or not request.decision:
        raise ValidationFailed("exploration_id, strategy_name, decision は必須です")
    if request.decision not in DECISION_VALUES:
        raise ValidationFailed("decision は adopt, reject, pending のいずれかです")

    row = session.scalar(
        select(StrategyDecision).where(
            StrategyDecision.exploration_id == request.exploration_id,
            StrategyDecision.strategy_name == request.strategy_name,
            StrategyDecision.user_id == user_id,
        )
    )
    if row is None:
        row = StrategyDecision(
            exploration_id=request.exploration_id,
            strategy_name=request.strategy_name,
            user_id=user_id,
        )
        session.add(row)
    row.decision = request.decision
    row.reason = request.reason or None
    row.feasibility_note = request.feasibility_note or None
    session.commit()
    logger.info("Decision %s on %r by %s", row.decision, row.strategy_name, user_id)
    return row


def list_decisions(
    session: Session,
    *,
    user_id: str,
    exploration_id: str | None = None,
    decision: str | None = None,
    limit: int = DEFAULT_LIST_LIMIT,
) -> list[StrategyDecision]:
    """All of one exploration's decisions, or the latest ``limit`` (optionally by decision)."""
    stmt = (
        select(StrategyDecision)
        .where(StrategyDecision.user_id == user_id)
        .order_by(StrategyDecision.created_at.desc(), StrategyDecision.id.desc())
    )
    if exploration_id:
        return list(session.scalars(stmt.where(StrategyDecision.exploration_id == exploration_id)))
    if decision:
        stmt = stmt.where(StrategyDecision.decision == decision)
    return list(session.scalars(stmt.limit(limit)))


def decision_stats(session: Session, *, user_id: str) -> DecisionStats:
    counts = dict(session.execute(
        select(StrategyDecision.decision, func.count())
        .where(StrategyDecision.user_id == user_id)
        .group_by(StrategyDecision.decision)
    ).all())
    total = sum(counts.values())
    adopted = counts.get("adopt", 0)

    reasons = session.scalars(
        select(StrategyDecision.reason)
        .where(
            StrategyDecision.user_id == user_id,
            StrategyDecision.decision == "reject",
            StrategyDecision.reason.is_not(None),
        )
        .limit(DEFAULT_LIST_LIMIT)
    )
    top = Counter(r for r in reasons if r).most_common(TOP_REJECT_REASONS)

    return DecisionStats(
        total=total,
        adopted=adopted,
        rejected=counts.get("reject", 0),
        pending=counts.get("pending", 0),
        adoption_rate=round(adopted / total * 100, 1) if total else 0.0,
        top_reject_reasons=[RejectReason(reason=r, count=c) for r, c in top],
    )


def delete_decision(session: Session, decision_id: int, *, user_id: str) -> None:
    row = session.get(StrategyDecision, decision_id)
    if row is None:
        raise NotFoundError("採否記録が見つかりません")
    if row.user_id != user_id:
        raise PermissionDenied("他のユーザーの採否記録は削除できません")
    session.delete(row)
    session.commit()


def _delete_where(session: Session, *conditions) -> int:
    deleted = session.execute(delete(StrategyDecision).where(*conditions)).rowcount
    session.commit()
    return deleted


def delete_by_strategy(session: Session, exploration_id: str, strategy_name: str, *, user_id: str) -> int:
    return _delete_where(
        session,
        StrategyDecision.user_id == user_id,
        StrategyDecision.exploration_id == exploration_id,
        StrategyDecision.strategy_name == strategy_name,
    )


def clear_all(session: Session, *, user_id: str) -> int:
    return _delete_where(session, StrategyDecision.user_id == user_id)


def clear_ranking(session: Session, *, user_id: str) -> int:
    """Remove decisions made from the ranking view (exploration ids ``ranking-*``)."""
    return _delete_where(
        session,
        StrategyDecision.user_id == user_id,
        StrategyDecision.exploration_id.startswith(RANKING_PREFIX, autoescape=True),
    )
