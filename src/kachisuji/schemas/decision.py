"""Pydantic models for adopt / reject / pending decisions and score weights."""

from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

DECISION_VALUES = ("adopt", "reject", "pending")

# Decisions made from the ranking view carry a synthetic exploration id
RANKING_PREFIX = "ranking-"


class DecisionRequest(BaseModel):
    exploration_id: str = Field(
        default="", validation_alias=AliasChoices("exploration_id", "explorationId"),
    )
    strategy_name: str = Field(
        default="", validation_alias=AliasChoices("strategy_name", "strategyName"),
    )
    decision: str = ""
    reason: str | None = None
    feasibility_note: str | None = Field(
        default=None, validation_alias=AliasChoices("feasibility_note", "feasibilityNote"),
    )


class DecisionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    exploration_id: str
    strategy_name: str
    decision: str
    reason: str | None = None
    feasibility_note: str | None = None
    user_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RejectReason(BaseModel):
    reason: str
    count: int


class DecisionStats(BaseModel):
    total: int = 0
    adopted: int = 0
    rejected: int = 0
    pending: int = 0
    adoption_rate: float = 0.0  # percent, one decimal
    top_reject_reasons: list[RejectReason] = []


class ScoreConfigOut(BaseModel):
    finder_id: str
    weights: dict[str, float]
    is_default: bool
    updated_at: datetime | None = None
