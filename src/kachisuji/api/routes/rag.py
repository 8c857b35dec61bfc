"""
API routes for RAG documents: upload, list, delete, reprocess
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from kachisuji.api.deps import get_client, get_config
from kachisuji.db.database import get_db
from kachisuji.db.models import RagChunk, RagDocument
from kachisuji.errors import KachisujiError, NotFoundError, ValidationFailed
from kachisuji.rag.ingest import add_document, delete_document, process_all_documents, process_document
from kachisuji.schemas.config import AppConfig
from kachisuji.schemas.rag import IngestSummary, ProcessResult
from kachisuji.shared.document_reader import parse_document
from kachisuji.shared.llm_client import LLMClient

router = APIRouter(prefix="/api/rag", tags=["rag"])


class RagDocumentResponse(BaseModel):
    """Stored document without its full text"""
    id: int
    filename: str
    file_type: str
    scope: str
    content_length: int
    chunk_count: int
    metadata: Optional[dict] = None
    created_at: Optional[datetime] = None


class UploadResponse(BaseModel):
    success: bool = True
    document: RagDocumentResponse
    processing: ProcessResult


def _chunk_counts(db: Session) -> dict:
    return dict(db.execute(
        select(RagChunk.document_id, func.count()).group_by(RagChunk.document_id)
    ).all())


def _to_response(doc: RagDocument, chunk_count: int) -> RagDocumentResponse:
    return RagDocumentResponse(
        id=doc.id,
        filename=doc.filename,
        file_type=doc.file_type,
        scope=doc.scope,
        content_length=len(doc.content or ""),
        chunk_count=chunk_count,
        metadata=doc.metadata_json or None,
        created_at=doc.created_at,
    )


@router.get("", response_model=List[RagDocumentResponse])
async def list_documents(scope: Optional[str] = None, db: Session = Depends(get_db)):
    """List stored documents"""
    stmt = select(RagDocument).order_by(RagDocument.created_at.desc(), RagDocument.id.desc())
    if scope:
        stmt = stmt.where(RagDocument.scope == scope)
    counts = _chunk_counts(db)
    return [_to_response(doc, counts.get(doc.id, 0)) for doc in db.scalars(stmt)]


@router.post("", response_model=UploadResponse)
async def upload_document(
    file: UploadFile = File(...),
    scope: str = Form("shared"),
    db: Session = Depends(get_db),
    client: LLMClient = Depends(get_client),
    config: AppConfig = Depends(get_config),
):
    """Upload a document, then chunk and embed it"""
    if not file.filename:
        raise ValidationFailed("ファイルを選択してください")
    try:
        parsed = parse_document(file.filename, await file.read())
    except KachisujiError:
        raise
    except Exception as e:
        raise ValidationFailed(f"インポート中にエラーが発生しました: {e}") from e
    if not parsed.content.strip():
        raise ValidationFailed(f"テキストを抽出できませんでした: {file.filename}")

    doc = add_document(db, parsed, scope=scope)
    db.commit()
    result = await process_document(db, client, doc.id, config.rag)
    return UploadResponse(
        document=_to_response(doc, result.chunks_created),
        processing=result,
    )


@router.delete("")
async def remove_document(id: int, db: Session = Depends(get_db)):
    """Delete a document and its chunks"""
    if not delete_document(db, id):
        raise NotFoundError(f"ドキュメントが見つかりません: {id}")
    db.commit()
    return {"success": True}


@router.post("/reprocess", response_model=IngestSummary)
async def reprocess(
    db: Session = Depends(get_db),
    client: LLMClient = Depends(get_client),
    config: AppConfig = Depends(get_config),
):
    """Re-chunk and re-embed every stored document"""
    return await process_all_documents(db, client, config.rag)
