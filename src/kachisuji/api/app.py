"""
FastAPI application factory
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from kachisuji.api.routes import core, decisions, evolve, explore, export, finders, rag, ranking, swot
from kachisuji.db.database import init_db, init_engine
from kachisuji.errors import KachisujiError, NotFoundError, PermissionDenied, UpstreamError, ValidationFailed
from kachisuji.rag.retrieval import configure_index
from kachisuji.schemas.config import AppConfig
from kachisuji.shared.llm_client import LLMClient

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (NotFoundError, 404),
    (PermissionDenied, 403),
    (ValidationFailed, 400),
    (UpstreamError, 502),
)


def _status_for(exc: KachisujiError) -> int:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return code
    return 500


def create_app(config: Optional[AppConfig] = None, client: Optional[LLMClient] = None) -> FastAPI:
    """Build the app; initialises the database from ``config.database_url``."""
    config = config or AppConfig()

    init_engine(config.database_url)
    init_db()
    configure_index(config.rag)

    app = FastAPI(
        title="Kachisuji Finder",
        description="Explore, score and evolve business strategies with RAG over company documents",
        version="0.1.0",
    )
    app.state.config = config
    app.state.client = client if client is not None else LLMClient()

    @app.exception_handler(KachisujiError)
    async def kachisuji_error_handler(request: Request, exc: KachisujiError):
        status_code = _status_for(exc)
        if status_code >= 500:
            logger.error("%s failed with %d: %s", request.url.path, status_code, exc)
        return JSONResponse(status_code=status_code, content={"error": str(exc)})

    for module in (explore, ranking, decisions, swot, evolve, rag, core, export, finders):
        app.include_router(module.router)

    return app
