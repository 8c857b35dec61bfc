"""
API routes for the strategy ranking, score weights and archived top strategies
"""
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from kachisuji.api.deps import get_config, get_user_id
from kachisuji.db.database import get_db
from kachisuji.errors import ValidationFailed
from kachisuji.schemas.config import AppConfig
from kachisuji.schemas.decision import ScoreConfigOut
from kachisuji.schemas.finder import get_default_weights, get_finder_settings
from kachisuji.schemas.strategy import JUDGMENTS, RankingResult
from kachisuji.scoring import (
    ARCHIVE_MIN_SCORE,
    archive_top_strategies,
    completed_explorations,
    get_top_strategies,
    rank_strategies,
)
from kachisuji.services import score_config as score_config_service

router = APIRouter(prefix="/api", tags=["ranking"])


class TopStrategyResponse(BaseModel):
    """Archived top strategy"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    exploration_id: int
    name: str
    reason: Optional[str] = None
    how_to_obtain: Optional[str] = None
    total_score: float
    scores: Dict[str, float] = {}
    question: str
    judgment: str
    finder_id: Optional[str] = None
    archived_at: Optional[datetime] = None


class TopStrategiesResponse(BaseModel):
    strategies: List[TopStrategyResponse]
    total: int


class ArchiveRequest(BaseModel):
    min_score: float = Field(default=ARCHIVE_MIN_SCORE)
    finder_id: Optional[str] = None


class ScoreConfigRequest(BaseModel):
    weights: dict
    finder_id: Optional[str] = None


@router.get("/ranking", response_model=RankingResult)
async def get_ranking(
    limit: int = 50,
    min_score: float = 0.0,
    judgment: Optional[str] = None,
    finder_id: Optional[str] = None,
    db: Session = Depends(get_db),
    config: AppConfig = Depends(get_config),
    user_id: str = Depends(get_user_id),
):
    """Rank the caller's scored strategies with their saved (or default) weights"""
    if judgment and judgment not in JUDGMENTS:
        raise ValidationFailed(f"judgment は {' / '.join(JUDGMENTS)} のいずれかです")
    finder = get_finder_settings(finder_id or config.finder_id)
    weights = (
        score_config_service.user_weights(db, user_id=user_id, finder_id=finder.id)
        or get_default_weights(finder.id)
    )
    explorations = completed_explorations(db, user_id=user_id, finder_id=finder.id)
    return rank_strategies(
        explorations, weights=weights, min_score=min_score, judgment=judgment or None, limit=limit,
    )


@router.get("/score-config", response_model=ScoreConfigOut)
async def get_score_config(
    finder_id: Optional[str] = None,
    db: Session = Depends(get_db),
    config: AppConfig = Depends(get_config),
    user_id: str = Depends(get_user_id),
):
    """Get the caller's score weights"""
    return score_config_service.get_score_config(
        db, user_id=user_id, finder_id=finder_id or config.finder_id,
    )


@router.post("/score-config", response_model=ScoreConfigOut)
async def save_score_config(
    request: ScoreConfigRequest,
    db: Session = Depends(get_db),
    config: AppConfig = Depends(get_config),
    user_id: str = Depends(get_user_id),
):
    """Save the caller's score weights"""
    return score_config_service.save_score_config(
        db, request.weights, user_id=user_id, finder_id=request.finder_id or config.finder_id,
    )


@router.delete("/score-config")
async def reset_score_config(
    finder_id: Optional[str] = None,
    db: Session = Depends(get_db),
    config: AppConfig = Depends(get_config),
    user_id: str = Depends(get_user_id),
):
    """Drop saved weights so the finder defaults apply again"""
    score_config_service.reset_score_config(db, user_id=user_id, finder_id=finder_id or config.finder_id)
    return {"success": True}


@router.get("/top-strategies", response_model=TopStrategiesResponse)
async def list_top_strategies(
    limit: int = 50,
    finder_id: Optional[str] = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    """List archived top strategies, best first"""
    strategies = get_top_strategies(db, limit=limit, user_id=user_id, finder_id=finder_id)
    return {"strategies": strategies, "total": len(strategies)}


@router.post("/top-strategies")
async def archive_strategies(
    request: Optional[ArchiveRequest] = None,
    db: Session = Depends(get_db),
    config: AppConfig = Depends(get_config),
    user_id: str = Depends(get_user_id),
):
    """Archive strategies scoring at least ``min_score``"""
    request = request or ArchiveRequest()
    result = archive_top_strategies(
        db,
        min_score=request.min_score,
        user_id=user_id,
        finder_id=request.finder_id or config.finder_id,
    )
    db.commit()
    return {
        "success": True,
        **result,
        "message": f"{result['archived']}件の新規高スコア戦略をアーカイブしました（合計: {result['total']}件）",
    }
