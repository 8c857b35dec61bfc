"""Ingest pipeline: document -> chunks -> embeddings -> rag_chunks rows."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from pathlib import Path
from typing import Callable

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from kachisuji.db.models import RagChunk, RagDocument
from kachisuji.rag.chunker import chunk_document
from kachisuji.rag.embeddings import float32_to_base64, generate_embeddings
from kachisuji.rag.retrieval import invalidate_retrieval_cache
from kachisuji.schemas.config import RagSettings
from kachisuji.schemas.rag import IngestSummary, ParsedDocument, ProcessResult
from kachisuji.shared.document_reader import DocumentFolder
from kachisuji.shared.llm_client import LLMClient

logger = logging.getLogger(__name__)

# SQLite caps bound variables per statement
INSERT_BATCH_SIZE = 50
DEFAULT_CONCURRENCY = 3
# Metadata key marking documents that came from an ingested folder
SOURCE_ROOT_KEY = "source_root"

ProgressCallback = Callable[[str], None]


def content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def add_document(session: Session, parsed: ParsedDocument, scope: str = "shared") -> RagDocument:
    """Store a parsed document, replacing any existing one with the same filename and scope.

    Replacing drops the old chunks; call ``process_document`` afterwards.
    """
    doc = session.scalar(
        select(RagDocument).where(RagDocument.filename == parsed.filename, RagDocument.scope == scope)
    )
    if doc is None:
        doc = RagDocument(filename=parsed.filename, scope=scope)
        session.add(doc)
    else:
        session.execute(delete(RagChunk).where(RagChunk.document_id == doc.id))
        invalidate_retrieval_cache()

    doc.file_type = parsed.file_type
    doc.content = parsed.content
    doc.metadata_json = parsed.metadata
    doc.content_hash = content_hash(parsed.content)
    session.flush()
    logger.info("Stored document %s (id=%d, %d chars)", doc.filename, doc.id, len(doc.content))
    return doc


def delete_document(session: Session, document_id: int) -> bool:
    doc = session.get(RagDocument, document_id)
    if doc is None:
        return False
    session.delete(doc)
    session.flush()
    invalidate_retrieval_cache()
    return True


async def process_document(
    session: Session,
    client: LLMClient,
    document_id: int,
    settings: RagSettings | None = None,
) -> ProcessResult:
    """Re-chunk and re-embed one document. Errors are returned, not raised.

    All database writes happen after the embedding call so documents
    processed concurrently on one session never interleave their writes.
    """
    settings = settings or RagSettings()
    doc = session.get(RagDocument, document_id)
    if doc is None:
        return ProcessResult(document_id=document_id, filename="unknown", error="Document not found")

    filename = doc.filename
    try:
        raw_chunks = chunk_document(
            doc.content,
            filename,
            max_chars=settings.max_chunk_chars,
            min_chars=settings.min_chunk_chars,
            overlap=settings.overlap_chars,
        )
        embeddings = await generate_embeddings(client, [c.content for c in raw_chunks]) if raw_chunks else []

        session.execute(delete(RagChunk).where(RagChunk.document_id == document_id))
        rows = [
            RagChunk(
                document_id=document_id,
                chunk_index=chunk.chunk_index,
                content=chunk.content,
                embedding=float32_to_base64(embeddings[i]) if embeddings[i] else None,
                char_count=chunk.char_count,
                token_estimate=chunk.token_estimate,
                filename=filename,
                scope=doc.scope,
                doc_type=chunk.metadata.doc_type,
                dept_ids=chunk.metadata.dept_ids,
                tags=chunk.metadata.tags,
            )
            for i, chunk in enumerate(raw_chunks)
        ]
        for start in range(0, len(rows), INSERT_BATCH_SIZE):
            session.add_all(rows[start:start + INSERT_BATCH_SIZE])
            session.flush()
        session.commit()
    except Exception as exc:
        session.rollback()
        logger.error("%s: ingest failed: %s", filename, exc)
        return ProcessResult(document_id=document_id, filename=filename, error=str(exc))

    invalidate_retrieval_cache()
    emb_count = sum(1 for e in embeddings if e is not None)
    if not raw_chunks:
        logger.info("%s: no chunks generated (content too short?)", filename)
    else:
        logger.info("%s: %d chunks, %d embeddings", filename, len(raw_chunks), emb_count)
    return ProcessResult(
        document_id=document_id,
        filename=filename,
        chunks_created=len(raw_chunks),
        embeddings_generated=emb_count,
    )


async def _process_in_batches(
    session: Session,
    client: LLMClient,
    doc_ids: list[int],
    settings: RagSettings | None,
    summary: IngestSummary,
    *,
    concurrency: int,
    on_progress: ProgressCallback | None,
) -> None:
    for start in range(0, len(doc_ids), concurrency):
        batch = doc_ids[start:start + concurrency]
        results = await asyncio.gather(
            *(process_document(session, client, doc_id, settings) for doc_id in batch)
        )
        for r in results:
            summary.results.append(r)
            if r.error:
                summary.failed += 1
            else:
                summary.success += 1
        if on_progress:
            on_progress(f"{min(start + concurrency, len(doc_ids))}/{len(doc_ids)} documents")


async def process_all_documents(
    session: Session,
    client: LLMClient,
    settings: RagSettings | None = None,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    on_progress: ProgressCallback | None = None,
) -> IngestSummary:
    """Re-process every stored document, ``concurrency`` at a time."""
    doc_ids = list(session.scalars(select(RagDocument.id).order_by(RagDocument.id)))
    logger.info("Processing all %d documents", len(doc_ids))

    summary = IngestSummary(total=len(doc_ids))
    await _process_in_batches(
        session, client, doc_ids, settings, summary,
        concurrency=concurrency, on_progress=on_progress,
    )

    chunk_count = session.scalar(select(func.count()).select_from(RagChunk))
    embedded = session.scalar(
        select(func.count()).select_from(RagChunk).where(RagChunk.embedding.is_not(None))
    )
    logger.info(
        "Ingest complete: %d success, %d failed; %d chunks in DB, %d with embeddings",
        summary.success, summary.failed, chunk_count, embedded,
    )
    if not client.embeddings_available:
        logger.warning("Embedding model not configured, retrieval will use keyword matching")
    return summary


async def ingest_folder(
    session: Session,
    client: LLMClient,
    root: str | Path,
    settings: RagSettings | None = None,
    *,
    scope: str = "shared",
    concurrency: int = DEFAULT_CONCURRENCY,
    force: bool = False,
    on_progress: ProgressCallback | None = None,
) -> IngestSummary:
    """Parse, store and process every supported file under ``root``.

    Documents are tagged with the folder they came from. On later runs a
    file whose text hash matches the stored document (and which already
    has chunks) is listed in ``unchanged`` instead of being re-embedded,
    unless ``force`` is set; documents from this folder whose file is gone
    are deleted and listed in ``removed``. Files that fail to parse are
    listed in ``skipped``. Only processed files count towards ``total``.
    """
    folder = DocumentFolder(root)
    source_root = folder.root.as_posix()
    known = {
        doc.filename: doc
        for doc in session.scalars(select(RagDocument).where(RagDocument.scope == scope))
        if (doc.metadata_json or {}).get(SOURCE_ROOT_KEY) == source_root
    }
    chunked = set(session.scalars(select(RagChunk.document_id).distinct()))

    seen: set[str] = set()
    skipped: dict[str, str] = {}
    unchanged: list[str] = []
    doc_ids: list[int] = []

    for path in folder.iter_documents():
        rel = path.relative_to(folder.root).as_posix()
        seen.add(rel)
        try:
            parsed = folder.read(rel)
        except Exception as exc:
            logger.warning("Skipping %s: %s", rel, exc)
            skipped[rel] = str(exc)
            continue
        previous = known.get(parsed.filename)
        if (
            not force
            and previous is not None
            and previous.content_hash == content_hash(parsed.content)
            and previous.id in chunked
        ):
            logger.debug("Unchanged: %s", rel)
            unchanged.append(rel)
            continue
        parsed = parsed.model_copy(update={"metadata": {**parsed.metadata, SOURCE_ROOT_KEY: source_root}})
        doc_ids.append(add_document(session, parsed, scope=scope).id)

    removed = sorted(name for name in known if name not in seen)
    for name in removed:
        logger.info("Source file gone, deleting document %s", name)
        delete_document(session, known[name].id)
    session.commit()

    summary = IngestSummary(total=len(doc_ids), skipped=skipped, unchanged=unchanged, removed=removed)
    await _process_in_batches(
        session, client, doc_ids, settings, summary,
        concurrency=concurrency, on_progress=on_progress,
    )
    return summary
