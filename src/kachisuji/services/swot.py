"""SWOT workflow: fill in core info from the database when the caller gives none."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from kachisuji.agents.swot.agent import SwotAgent
from kachisuji.db.models import CoreAsset, CoreService
from kachisuji.rag.context import build_rag_context
from kachisuji.schemas.config import RagSettings
from kachisuji.schemas.swot import SwotRequest, SwotResult
from kachisuji.services.exploration import format_assets, format_services
from kachisuji.shared.llm_client import LLMClient


def core_info_from_db(session: Session) -> str:
    services = format_services(list(session.scalars(select(CoreService).order_by(CoreService.id))))
    assets = format_assets(list(session.scalars(select(CoreAsset).order_by(CoreAsset.id))))
    return "\n".join(part for part in (services, assets) if part)


async def analyze(
    session: Session,
    client: LLMClient,
    request: SwotRequest,
    *,
    settings: RagSettings | None = None,
    use_documents: bool = True,
) -> SwotResult:
    if not request.core_info:
        request = request.model_copy(update={"core_info": core_info_from_db(session)})
    rag_context = ""
    if use_documents and request.industry.strip():
        rag_context = await build_rag_context(
            session, client, query=f"{request.industry} 強み 弱み 課題", settings=settings,
        )
    return await SwotAgent(client).run(request, rag_context=rag_context)
