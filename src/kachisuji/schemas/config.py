"""Configuration schema — validates kachisuji.yml."""

from pydantic import BaseModel, model_validator

from kachisuji.schemas.finder import FINDER_SETTINGS


class WebSource(BaseModel):
    """An external page (HTML or PDF) folded into every RAG context."""

    name: str
    url: str


class RagSettings(BaseModel):
    """Chunking and retrieval tuning."""

    max_chunk_chars: int = 1500
    min_chunk_chars: int = 100
    overlap_chars: int = 150

    top_k: int = 20
    max_chars: int = 15_000
    cache_ttl_seconds: int = 300

    # When False (or no chunks exist yet) whole documents are truncated into
    # the prompt instead of retrieving chunks for the question.
    use_retrieval: bool = True

    @model_validator(mode="after")
    def check_chunk_bounds(self) -> "RagSettings":
        if self.min_chunk_chars >= self.max_chunk_chars:
            raise ValueError("min_chunk_chars must be smaller than max_chunk_chars")
        if self.overlap_chars >= self.max_chunk_chars:
            raise ValueError("overlap_chars must be smaller than max_chunk_chars")
        return self


class AppConfig(BaseModel):
    """Top-level configuration loaded from kachisuji.yml.

    Every field has a default so the tool runs without a config file.
    API keys are never stored here — they come from the environment.
    """

    database_url: str = "sqlite:///./kachisuji.db"

    # Which finder's score axes and preset questions to use
    finder_id: str = "winning-strategy"

    # There is no login; every row is owned by this id unless the API
    # caller sends an X-User-Id header.
    user_id: str = "local"

    company_name: str = ""
    industry: str = ""

    web_sources: list[WebSource] = []
    rag: RagSettings = RagSettings()

    output_directory: str = "./output"

    @model_validator(mode="after")
    def check_finder_exists(self) -> "AppConfig":
        if self.finder_id not in FINDER_SETTINGS:
            known = ", ".join(sorted(FINDER_SETTINGS))
            raise ValueError(f"Unknown finder_id: {self.finder_id} (known: {known})")
        return self
