"""Pydantic models for explored strategies and the ranking built from them."""

from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field, field_validator

# Judgment labels. Kept in Japanese because they are shown to users verbatim
# and stored in the top_strategies table.
PRIORITY = "優先投資"
CONDITIONAL = "条件付き"
DECLINE = "見送り"

JUDGMENTS = (PRIORITY, CONDITIONAL, DECLINE)


class Strategy(BaseModel):
    """A single winning strategy as returned by the explorer agent."""

    name: str
    reason: str = ""
    how_to_obtain: str = Field(
        default="", validation_alias=AliasChoices("how_to_obtain", "howToObtain"),
    )
    metrics: str = ""
    confidence: str = ""  # "high" | "medium" | "low"
    tags: list[str] = []
    scores: dict[str, float] = {}  # axis key -> 1-5

    @field_validator("scores", mode="before")
    @classmethod
    def drop_non_numeric_scores(cls, v: object) -> object:
        if v is None:
            return {}
        if isinstance(v, dict):
            return {
                k: s for k, s in v.items()
                if isinstance(s, (int, float)) and not isinstance(s, bool)
            }
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_none_to_list(cls, v: object) -> object:
        return [] if v is None else v

    @field_validator("confidence", "reason", "metrics", "how_to_obtain", mode="before")
    @classmethod
    def coerce_none_to_empty(cls, v: object) -> object:
        return "" if v is None else v


class ExplorationOutput(BaseModel):
    """Parsed explorer response, stored as JSON in ``explorations.result``."""

    strategies: list[Strategy]
    thinking_process: str = Field(
        default="", validation_alias=AliasChoices("thinking_process", "thinkingProcess"),
    )
    follow_up_questions: list[str] = Field(
        default=[], validation_alias=AliasChoices("follow_up_questions", "followUpQuestions"),
    )


class ExploreRequest(BaseModel):
    question: str
    context: str = ""
    constraint_ids: list[int] = []
    finder_id: str | None = None


class RankedStrategy(BaseModel):
    rank: int = 0
    exploration_id: int
    name: str
    reason: str = ""
    how_to_obtain: str = ""
    total_score: float
    scores: dict[str, float]
    question: str
    exploration_date: datetime | None = None
    judgment: str
    tags: list[str] = []


class RankingStats(BaseModel):
    total_strategies: int = 0
    priority_count: int = 0
    conditional_count: int = 0
    decline_count: int = 0
    avg_score: float = 0.0
    top_score: float = 0.0


class RankingResult(BaseModel):
    strategies: list[RankedStrategy]
    stats: RankingStats = RankingStats()
