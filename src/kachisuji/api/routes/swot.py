"""
API route for SWOT analysis
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from kachisuji.api.deps import get_client, get_config
from kachisuji.db.database import get_db
from kachisuji.errors import KachisujiError, UpstreamError
from kachisuji.schemas.config import AppConfig
from kachisuji.schemas.swot import SwotRequest, SwotResult
from kachisuji.services import swot as swot_service
from kachisuji.shared.llm_client import LLMClient

router = APIRouter(prefix="/api", tags=["swot"])


@router.post("/swot-analyze", response_model=SwotResult)
async def swot_analyze(
    request: SwotRequest,
    db: Session = Depends(get_db),
    client: LLMClient = Depends(get_client),
    config: AppConfig = Depends(get_config),
):
    """Run a SWOT analysis for the given industry"""
    if not request.industry.strip() and config.industry:
        request = request.model_copy(update={"industry": config.industry})
    try:
        return await swot_service.analyze(db, client, request, settings=config.rag)
    except KachisujiError:
        raise
    except Exception as e:
        raise UpstreamError(f"SWOT分析に失敗しました: {e}") from e
