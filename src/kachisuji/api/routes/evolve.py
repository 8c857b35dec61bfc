"""
API routes for strategy evolution
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from kachisuji.api.deps import get_client, get_config, get_user_id
from kachisuji.db.database import get_db
from kachisuji.errors import KachisujiError, UpstreamError
from kachisuji.schemas.config import AppConfig
from kachisuji.schemas.evolution import EvolveInfo, EvolveMode, EvolveResult
from kachisuji.services import evolution as evolution_service
from kachisuji.shared.llm_client import LLMClient

router = APIRouter(prefix="/api/evolve", tags=["evolve"])


class EvolveRequest(BaseModel):
    mode: EvolveMode = EvolveMode.ALL
    save: bool = True
    finder_id: Optional[str] = None


@router.get("", response_model=EvolveInfo)
async def evolve_info(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    """Whether evolution can run, and recent evolution runs"""
    return evolution_service.evolve_info(db, user_id=user_id)


@router.post("", response_model=EvolveResult)
async def evolve(
    request: Optional[EvolveRequest] = None,
    db: Session = Depends(get_db),
    client: LLMClient = Depends(get_client),
    config: AppConfig = Depends(get_config),
    user_id: str = Depends(get_user_id),
):
    """Evolve the caller's adopted and top strategies"""
    request = request or EvolveRequest()
    try:
        return await evolution_service.evolve(
            db,
            client,
            request.mode,
            save=request.save,
            finder_id=request.finder_id or config.finder_id,
            user_id=user_id,
            settings=config.rag,
        )
    except KachisujiError:
        raise
    except Exception as e:
        raise UpstreamError(f"戦略進化に失敗しました: {e}") from e
