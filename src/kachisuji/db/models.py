"""
ORM models for core company data, RAG documents, explorations and scoring
"""
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from kachisuji.db.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CoreService(Base):
    """A service or product line the company already offers"""
    __tablename__ = "core_services"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    category = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    url = Column(String(1024), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class CoreAsset(Base):
    """A strength, capability or asset (people, IP, facilities, ...)"""
    __tablename__ = "core_assets"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    type = Column(String(100), nullable=False, default="other")
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class Constraint(Base):
    """A planning constraint; defaults are always added to exploration prompts"""
    __tablename__ = "constraints"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class RagDocument(Base):
    """Full text of an uploaded document"""
    __tablename__ = "rag_documents"
    __table_args__ = (UniqueConstraint("filename", "scope", name="uq_rag_document_filename_scope"),)

    id = Column(Integer, primary_key=True)
    filename = Column(String(512), nullable=False)
    file_type = Column(String(16), nullable=False)
    content = Column(Text, nullable=False)
    metadata_json = Column(JSON, nullable=True)
    scope = Column(String(64), nullable=False, default="shared")
    content_hash = Column(String(80), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    chunks = relationship(
        "RagChunk", back_populates="document", cascade="all, delete-orphan", passive_deletes=True,
    )


class RagChunk(Base):
    """A retrieval unit cut from a RagDocument"""
    __tablename__ = "rag_chunks"

    id = Column(Integer, primary_key=True)
    document_id = Column(Integer, ForeignKey("rag_documents.id", ondelete="CASCADE"), nullable=False, index=True)
    chunk_index = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    # base64 of little-endian float32; NULL when no embedding model is configured
    embedding = Column(Text, nullable=True)
    char_count = Column(Integer, nullable=False)
    token_estimate = Column(Integer, nullable=False)

    # Denormalised from the document so retrieval needs no join
    filename = Column(String(512), nullable=False)
    scope = Column(String(64), nullable=False, default="shared", index=True)

    doc_type = Column(String(32), nullable=True)
    dept_ids = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=False, default=list)

    document = relationship("RagDocument", back_populates="chunks")


class Exploration(Base):
    """One question put to the explorer (or one evolution run) and its result"""
    __tablename__ = "explorations"

    id = Column(Integer, primary_key=True)
    question = Column(Text, nullable=False)
    context = Column(Text, nullable=True)
    constraints = Column(JSON, nullable=False, default=list)
    result = Column(JSON, nullable=True)
    status = Column(String(16), nullable=False, default="pending")  # pending|running|completed|failed
    error = Column(Text, nullable=True)
    kind = Column(String(16), nullable=False, default="explore")  # explore|evolution
    finder_id = Column(String(64), nullable=True)
    user_id = Column(String(128), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class StrategyDecision(Base):
    """A user's adopt / reject / pending call on one strategy"""
    __tablename__ = "strategy_decisions"
    __table_args__ = (
        UniqueConstraint("exploration_id", "strategy_name", "user_id", name="uq_decision_strategy_user"),
    )

    id = Column(Integer, primary_key=True)
    # Not a foreign key: ranking decisions use synthetic ids like "ranking-12"
    exploration_id = Column(String(64), nullable=False)
    strategy_name = Column(String(512), nullable=False)
    decision = Column(String(16), nullable=False)  # adopt|reject|pending
    reason = Column(Text, nullable=True)
    feasibility_note = Column(Text, nullable=True)
    user_id = Column(String(128), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)


class TopStrategy(Base):
    """Archived high-scoring strategy"""
    __tablename__ = "top_strategies"

    id = Column(Integer, primary_key=True)
    exploration_id = Column(Integer, nullable=False)
    name = Column(String(512), nullable=False)
    reason = Column(Text, nullable=True)
    how_to_obtain = Column(Text, nullable=True)
    total_score = Column(Float, nullable=False)
    scores = Column(JSON, nullable=False, default=dict)
    question = Column(Text, nullable=False)
    judgment = Column(String(16), nullable=False)
    user_id = Column(String(128), nullable=True, index=True)
    finder_id = Column(String(64), nullable=True)
    archived_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class ScoreBaseline(Base):
    """Snapshot of ranking statistics, used to track improvement over time"""
    __tablename__ = "score_baselines"

    id = Column(Integer, primary_key=True)
    run_id = Column(String(64), nullable=True)
    top_score = Column(Float, nullable=False)
    avg_score = Column(Float, nullable=False)
    total_strategies = Column(Integer, nullable=False)
    high_score_count = Column(Integer, nullable=False)
    improvement = Column(Float, nullable=True)  # % vs previous top score
    date = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class UserScoreConfig(Base):
    """Per-user, per-finder score axis weights"""
    __tablename__ = "user_score_configs"
    __table_args__ = (UniqueConstraint("user_id", "finder_id", name="uq_score_config_user_finder"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(String(128), nullable=False)
    finder_id = Column(String(64), nullable=False)
    weights = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
