"""Assemble the RAG context block that is pasted into agent prompts."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from kachisuji.db.models import RagChunk, RagDocument
from kachisuji.rag.retrieval import format_chunks_for_prompt, retrieve_relevant_chunks
from kachisuji.schemas.config import RagSettings
from kachisuji.schemas.rag import RetrievalOptions
from kachisuji.shared.llm_client import LLMClient

logger = logging.getLogger(__name__)

MAX_TOTAL_DOC_CHARS = 400_000
MIN_PER_DOC_CHARS = 8_000
MAX_PER_DOC_CHARS = 40_000
ELISION = "\n\n...(中略)...\n\n"


def truncate_content(content: str, max_chars: int) -> str:
    """Keep the head (60%) and tail (40%); tables and totals often sit at the end."""
    if len(content) <= max_chars:
        return content
    head = int(max_chars * 0.6)
    tail = max_chars - head
    return content[:head] + ELISION + content[-tail:]


def per_document_budget(doc_count: int) -> int:
    if doc_count <= 0:
        return MAX_PER_DOC_CHARS
    return max(MIN_PER_DOC_CHARS, min(MAX_PER_DOC_CHARS, MAX_TOTAL_DOC_CHARS // doc_count))


def format_web_texts(web_texts: dict[str, str]) -> str:
    return "".join(f"\n\n### {name}:\n{text}" for name, text in web_texts.items() if text)


def format_all_documents(session: Session) -> str:
    docs = session.execute(
        select(RagDocument.filename, RagDocument.file_type, RagDocument.content).order_by(RagDocument.id)
    ).all()
    if not docs:
        return ""
    budget = per_document_budget(len(docs))
    text = "\n\n## 登録済みドキュメント:\n"
    for filename, file_type, content in docs:
        text += f"\n### {filename} ({file_type.upper()}):\n{truncate_content(content, budget)}\n"
    return text


async def build_rag_context(
    session: Session,
    client: LLMClient,
    *,
    query: str | None = None,
    web_texts: dict[str, str] | None = None,
    settings: RagSettings | None = None,
) -> str:
    """Web source text first, then company documents.

    With a query (and retrieval enabled, and chunks present) only the
    best-matching chunks are included; otherwise every document is included
    whole or head/tail truncated to its share of the budget.
    """
    settings = settings or RagSettings()
    context = format_web_texts(web_texts or {})

    has_chunks = session.scalar(select(RagChunk.id).limit(1)) is not None
    if query and settings.use_retrieval and has_chunks:
        chunks = await retrieve_relevant_chunks(
            session,
            client,
            RetrievalOptions(query=query, top_k=settings.top_k, max_chars=settings.max_chars),
        )
        if chunks:
            context += "\n\n" + format_chunks_for_prompt(chunks, header="関連する社内資料")
            logger.info("RAG context: %d retrieved chunks", len(chunks))
            return context

    context += format_all_documents(session)
    logger.info("RAG context: %d chars", len(context))
    return context
