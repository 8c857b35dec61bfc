"""Chunk retrieval: filter, score, boost and pack chunks into a character budget.

Scoring is a linear scan over every chunk in an in-memory index that is
reloaded from the database at most once per TTL.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from kachisuji.db.models import RagChunk
from kachisuji.rag.embeddings import (
    base64_to_float32,
    cosine_similarity,
    generate_single_embedding,
    keyword_similarity,
)
from kachisuji.schemas.config import RagSettings
from kachisuji.schemas.rag import RetrievalOptions, RetrievedChunk
from kachisuji.shared.llm_client import LLMClient

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 300
BUDGET_BOOST = 1.3
DEPT_MATCH_BOOST = 1.2


@dataclass
class IndexedChunk:
    id: int
    content: str
    embedding: list[float] | None
    filename: str
    scope: str
    doc_type: str | None
    dept_ids: list[str]
    tags: list[str]
    chunk_index: int
    char_count: int


class RetrievalIndex:
    """Decoded chunks cached for ``ttl_seconds``."""

    def __init__(self, ttl_seconds: float = CACHE_TTL_SECONDS) -> None:
        self.ttl_seconds = ttl_seconds
        self._chunks: list[IndexedChunk] | None = None
        self._loaded_at = 0.0

    def invalidate(self) -> None:
        self._chunks = None

    def load(self, session: Session) -> list[IndexedChunk]:
        now = time.monotonic()
        if self._chunks is not None and now - self._loaded_at < self.ttl_seconds:
            return self._chunks

        rows = session.scalars(select(RagChunk)).all()
        self._chunks = [
            IndexedChunk(
                id=row.id,
                content=row.content,
                embedding=base64_to_float32(row.embedding) if row.embedding else None,
                filename=row.filename,
                scope=row.scope,
                doc_type=row.doc_type,
                dept_ids=list(row.dept_ids or []),
                tags=list(row.tags or []),
                chunk_index=row.chunk_index,
                char_count=row.char_count,
            )
            for row in rows
        ]
        self._loaded_at = now
        logger.info(
            "Retrieval index loaded: %d chunks, %d with embeddings",
            len(self._chunks), sum(1 for c in self._chunks if c.embedding),
        )
        return self._chunks


_index = RetrievalIndex()


def configure_index(settings: RagSettings) -> RetrievalIndex:
    """Apply the configured TTL to the shared index."""
    _index.ttl_seconds = settings.cache_ttl_seconds
    return _index


def invalidate_retrieval_cache() -> None:
    """Call after chunks are written or deleted."""
    _index.invalidate()


def _to_result(chunk: IndexedChunk, score: float, content: str | None = None) -> RetrievedChunk:
    return RetrievedChunk(
        id=chunk.id,
        content=chunk.content if content is None else content,
        filename=chunk.filename,
        score=score,
        doc_type=chunk.doc_type,
        dept_ids=chunk.dept_ids,
        chunk_index=chunk.chunk_index,
    )


async def retrieve_relevant_chunks(
    session: Session,
    client: LLMClient,
    options: RetrievalOptions,
    *,
    index: RetrievalIndex | None = None,
) -> list[RetrievedChunk]:
    index = index or _index
    chunks = index.load(session)

    filtered = [c for c in chunks if c.scope in options.scope]
    if options.doc_types:
        filtered = [c for c in filtered if c.doc_type and c.doc_type in options.doc_types]
    if options.dept_ids:
        wanted = set(options.dept_ids)
        filtered = [c for c in filtered if "all" in c.dept_ids or wanted.intersection(c.dept_ids)]

    if not filtered:
        logger.info(
            "No chunks after filter (scope=%s, dept_ids=%s, doc_types=%s)",
            options.scope, options.dept_ids, options.doc_types,
        )
        return []

    query_embedding = None
    use_embeddings = client.embeddings_available and any(c.embedding for c in filtered)
    if use_embeddings:
        query_embedding = await generate_single_embedding(client, options.query)

    scored: list[tuple[IndexedChunk, float]] = []
    for chunk in filtered:
        if query_embedding and chunk.embedding:
            score = cosine_similarity(query_embedding, chunk.embedding)
        else:
            score = keyword_similarity(options.query, chunk.content)

        if chunk.doc_type == "budget":
            score *= BUDGET_BOOST
        if options.dept_ids and set(options.dept_ids).intersection(chunk.dept_ids):
            score *= DEPT_MATCH_BOOST
        scored.append((chunk, score))

    scored.sort(key=lambda pair: pair[1], reverse=True)

    results: list[RetrievedChunk] = []
    total_chars = 0
    for chunk, score in scored:
        if len(results) >= options.top_k:
            break
        if total_chars + chunk.char_count > options.max_chars:
            if not results:
                # Always return something: the best chunk, truncated
                results.append(_to_result(chunk, score, chunk.content[:options.max_chars]))
                break
            continue
        results.append(_to_result(chunk, score))
        total_chars += chunk.char_count

    logger.info(
        "query=%r -> %d chunks (%d chars), mode=%s",
        options.query[:50], len(results), total_chars,
        "embedding" if query_embedding else "keyword",
    )
    return results


def format_chunks_for_prompt(chunks: list[RetrievedChunk], header: str | None = None) -> str:
    """Group chunks by file (first-appearance order) and render as markdown."""
    if not chunks:
        return ""

    by_file: dict[str, list[RetrievedChunk]] = {}
    for chunk in chunks:
        by_file.setdefault(chunk.filename, []).append(chunk)

    text = f"## {header}\n\n" if header else ""
    for filename, file_chunks in by_file.items():
        file_chunks.sort(key=lambda c: c.chunk_index)
        text += f"### {filename}\n"
        text += "\n\n".join(c.content for c in file_chunks)
        text += "\n\n"
    return text
