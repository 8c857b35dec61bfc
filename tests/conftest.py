"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Callable
from unittest.mock import AsyncMock

import pytest

from kachisuji.db.database import get_session, init_db, init_engine
from kachisuji.db.models import Exploration
from kachisuji.rag.retrieval import invalidate_retrieval_cache
from kachisuji.shared.llm_client import DryRunClient, LLMClient

# Scores on the winning-strategy axes; totals 4.30 and 3.65 with default weights
HIGH_SCORES = {
    "revenuePotential": 4, "timeToRevenue": 5, "competitiveAdvantage": 4,
    "executionFeasibility": 5, "hqContribution": 4, "mergerSynergy": 3,
}
MID_SCORES = {
    "revenuePotential": 5, "timeToRevenue": 2, "competitiveAdvantage": 4,
    "executionFeasibility": 3, "hqContribution": 3, "mergerSynergy": 4,
}
VETO_SCORES = {**HIGH_SCORES, "executionFeasibility": 1}


@pytest.fixture
def tmp_config(tmp_path: Path) -> Path:
    """Write a minimal valid config YAML and return its path."""
    cfg = tmp_path / "kachisuji.yml"
    cfg.write_text(
        """\
database_url: "sqlite:///{db}"
company_name: "テスト海運"
industry: "海運"
output_directory: "{out}"
""".format(db=(tmp_path / "test.db").as_posix(), out=(tmp_path / "output").as_posix()),
        encoding="utf-8",
    )
    return cfg


@pytest.fixture
def db():
    """Fresh in-memory database per test."""
    init_engine("sqlite://")
    init_db()
    invalidate_retrieval_cache()
    session = get_session()
    yield session
    session.close()
    invalidate_retrieval_cache()


@pytest.fixture
def mock_llm_client() -> LLMClient:
    """Return an LLMClient with a mocked OpenAI SDK underneath."""
    client = LLMClient.__new__(LLMClient)
    client._client = AsyncMock()
    client.azure = False
    client.model = "test-model"
    client.embedding_model = None
    return client


@pytest.fixture
def dry_client() -> DryRunClient:
    return DryRunClient()


@pytest.fixture
def add_exploration(db) -> Callable[..., Exploration]:
    """Factory storing a completed exploration with the given strategies."""

    def _add(
        strategies: list[dict],
        *,
        question: str = "新規事業は？",
        user_id: str | None = "local",
        finder_id: str = "winning-strategy",
        status: str = "completed",
        kind: str = "explore",
    ) -> Exploration:
        exploration = Exploration(
            question=question,
            constraints=[],
            result={"strategies": strategies, "thinking_process": "", "follow_up_questions": []},
            status=status,
            kind=kind,
            finder_id=finder_id,
            user_id=user_id,
        )
        db.add(exploration)
        db.commit()
        return exploration

    return _add
