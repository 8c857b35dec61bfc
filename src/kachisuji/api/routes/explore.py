"""
API routes for strategy exploration and exploration history
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from kachisuji.api.deps import get_client, get_config, get_user_id
from kachisuji.db.database import get_db
from kachisuji.errors import KachisujiError, UpstreamError
from kachisuji.schemas.config import AppConfig
from kachisuji.schemas.strategy import ExploreRequest
from kachisuji.services import exploration as exploration_service
from kachisuji.shared.llm_client import LLMClient
from kachisuji.shared.web_fetcher import fetch_web_texts

router = APIRouter(prefix="/api", tags=["explore"])


class ExplorationResponse(BaseModel):
    """Exploration row with its parsed result"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    question: str
    context: Optional[str] = None
    constraints: list = []
    result: Optional[dict] = None
    status: str
    error: Optional[str] = None
    kind: str
    finder_id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None


@router.post("/explore", response_model=ExplorationResponse)
async def explore(
    request: ExploreRequest,
    web: bool = False,
    db: Session = Depends(get_db),
    client: LLMClient = Depends(get_client),
    config: AppConfig = Depends(get_config),
    user_id: str = Depends(get_user_id),
):
    """Run one exploration; ``web=true`` also folds in the configured web sources"""
    if request.finder_id is None:
        request = request.model_copy(update={"finder_id": config.finder_id})
    web_texts = await fetch_web_texts(config.web_sources) if web else None
    try:
        return await exploration_service.explore(
            db, client, request, user_id=user_id, settings=config.rag, web_texts=web_texts,
        )
    except KachisujiError:
        raise
    except Exception as e:
        raise UpstreamError(f"探索に失敗しました: {e}") from e


@router.get("/explore/{exploration_id}", response_model=ExplorationResponse)
async def get_exploration(
    exploration_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    """Get one of the caller's explorations by ID"""
    return exploration_service.get_exploration(db, exploration_id, user_id=user_id)


@router.delete("/explore/{exploration_id}")
async def delete_exploration(
    exploration_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    """Delete one of the caller's explorations"""
    exploration_service.delete_exploration(db, exploration_id, user_id=user_id)
    return {"success": True}


@router.get("/history", response_model=List[ExplorationResponse])
async def list_history(
    limit: int = 50,
    kind: Optional[str] = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    """List the caller's explorations, newest first"""
    return exploration_service.list_history(db, user_id=user_id, limit=limit, kind=kind)


@router.delete("/history")
async def clear_history(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    """Delete all of the caller's explorations"""
    deleted = exploration_service.clear_history(db, user_id=user_id)
    return {"success": True, "deleted": deleted}
