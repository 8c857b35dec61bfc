"""Pydantic models for strategy evolution (mutation / crossover / refutation)."""

from __future__ import annotations

from enum import Enum

from pydantic import AliasChoices, BaseModel, Field, field_validator


class EvolveMode(str, Enum):
    MUTATION = "mutation"
    CROSSOVER = "crossover"
    REFUTATION = "refutation"
    ALL = "all"

    def allowed_types(self) -> set[str]:
        if self is EvolveMode.ALL:
            return {"mutation", "crossover", "refutation"}
        return {self.value}


class SourceStrategy(BaseModel):
    """An adopted or archived strategy handed to the evolution agent."""

    name: str
    reason: str = ""
    how_to_obtain: str = ""
    total_score: float | None = None
    origin: str = ""  # "adopted" | "top"


class EvolvedStrategy(BaseModel):
    name: str
    reason: str = ""
    how_to_obtain: str = Field(
        default="", validation_alias=AliasChoices("how_to_obtain", "howToObtain"),
    )
    metrics: str = ""
    source_strategies: list[str] = Field(
        default=[], validation_alias=AliasChoices("source_strategies", "sourceStrategies"),
    )
    evolve_type: str = Field(
        validation_alias=AliasChoices("evolve_type", "evolveType"),
    )
    improvement: str = ""
    scores: dict[str, float] = {}
    total_score: float | None = None

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


class EvolveOutput(BaseModel):
    """Parsed evolution agent response."""

    strategies: list[EvolvedStrategy]
    thinking_process: str = Field(
        default="", validation_alias=AliasChoices("thinking_process", "thinkingProcess"),
    )


class EvolveResult(BaseModel):
    strategies: list[EvolvedStrategy]
    thinking_process: str = ""
    source_count: int = 0
    archived_count: int | None = None
    exploration_id: int | None = None


class EvolveInfo(BaseModel):
    can_evolve: bool
    adopted_count: int
    top_strategy_count: int
    recent_evolutions: list[dict] = []
