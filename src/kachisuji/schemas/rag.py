"""Pydantic models for document ingestion and chunk retrieval."""

from pydantic import BaseModel


class ChunkMetadata(BaseModel):
    dept_ids: list[str] = []
    doc_type: str = "general"
    tags: list[str] = []


class RawChunk(BaseModel):
    content: str
    chunk_index: int
    char_count: int
    token_estimate: int
    metadata: ChunkMetadata


class ParsedDocument(BaseModel):
    filename: str
    file_type: str
    content: str
    metadata: dict = {}


class ProcessResult(BaseModel):
    document_id: int
    filename: str
    chunks_created: int = 0
    embeddings_generated: int = 0
    error: str | None = None


class IngestSummary(BaseModel):
    total: int = 0
    success: int = 0
    failed: int = 0
    results: list[ProcessResult] = []
    skipped: dict[str, str] = {}  # filename -> parse error
    unchanged: list[str] = []  # same text hash as the stored document
    removed: list[str] = []  # source file no longer in the folder


class RetrievalOptions(BaseModel):
    query: str
    scope: list[str] = ["shared"]
    dept_ids: list[str] | None = None
    doc_types: list[str] | None = None
    top_k: int = 20
    max_chars: int = 15_000


class RetrievedChunk(BaseModel):
    id: int
    content: str
    filename: str
    score: float
    doc_type: str | None = None
    dept_ids: list[str] = []
    chunk_index: int
