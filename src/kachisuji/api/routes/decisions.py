"""
API routes for adopt / reject / pending decisions
"""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from kachisuji.api.deps import get_user_id
from kachisuji.db.database import get_db
from kachisuji.errors import ValidationFailed
from kachisuji.schemas.decision import DecisionOut, DecisionRequest
from kachisuji.services import decisions as decision_service

router = APIRouter(prefix="/api/decisions", tags=["decisions"])


@router.get("")
async def list_decisions(
    exploration_id: Optional[str] = None,
    decision: Optional[str] = None,
    stats: bool = False,
    limit: int = decision_service.DEFAULT_LIST_LIMIT,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    """List the caller's decisions, or their statistics with ``stats=true``"""
    if stats:
        return decision_service.decision_stats(db, user_id=user_id)
    rows = decision_service.list_decisions(
        db, user_id=user_id, exploration_id=exploration_id, decision=decision, limit=limit,
    )
    return {"decisions": [DecisionOut.model_validate(r) for r in rows]}


@router.post("", response_model=DecisionOut)
async def record_decision(
    request: DecisionRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    """Record (or change) a decision"""
    return decision_service.record_decision(db, request, user_id=user_id)


@router.delete("")
async def delete_decisions(
    id: Optional[int] = None,
    clear_all: bool = False,
    clear_ranking: bool = False,
    exploration_id: Optional[str] = None,
    strategy_name: Optional[str] = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    """Delete by id, by (exploration, strategy), or in bulk"""
    if clear_all:
        return {"success": True, "deleted": decision_service.clear_all(db, user_id=user_id)}
    if clear_ranking:
        return {"success": True, "deleted": decision_service.clear_ranking(db, user_id=user_id)}
    if id is not None:
        decision_service.delete_decision(db, id, user_id=user_id)
        return {"success": True, "deleted": 1}
    if exploration_id and strategy_name:
        deleted = decision_service.delete_by_strategy(db, exploration_id, strategy_name, user_id=user_id)
        return {"success": True, "deleted": deleted}
    raise ValidationFailed("id、または exploration_id と strategy_name を指定してください")
