"""Per-user score axis weights, falling back to the finder defaults."""

from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from kachisuji.db.models import UserScoreConfig
from kachisuji.errors import ValidationFailed
from kachisuji.schemas.decision import ScoreConfigOut
from kachisuji.schemas.finder import DEFAULT_FINDER_ID, get_default_weights

MIN_WEIGHT = 0
MAX_WEIGHT = 100


def _find(session: Session, user_id: str, finder_id: str) -> UserScoreConfig | None:
    return session.scalar(
        select(UserScoreConfig).where(
            UserScoreConfig.user_id == user_id, UserScoreConfig.finder_id == finder_id,
        )
    )


def get_score_config(session: Session, *, user_id: str, finder_id: str | None = None) -> ScoreConfigOut:
    finder_id = finder_id or DEFAULT_FINDER_ID
    row = _find(session, user_id, finder_id)
    if row is None:
        return ScoreConfigOut(
            finder_id=finder_id, weights=get_default_weights(finder_id), is_default=True,
        )
    return ScoreConfigOut(
        finder_id=finder_id, weights=row.weights, is_default=False, updated_at=row.updated_at,
    )


def validate_weights(weights: dict) -> dict[str, float]:
    for key, value in weights.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not MIN_WEIGHT <= value <= MAX_WEIGHT:
            raise ValidationFailed(f"重みは0〜100の数値で指定してください ({key}: {value})")
    return {k: float(v) for k, v in weights.items()}


def save_score_config(
    session: Session, weights: dict, *, user_id: str, finder_id: str | None = None,
) -> ScoreConfigOut:
    finder_id = finder_id or DEFAULT_FINDER_ID
    clean = validate_weights(weights)
    row = _find(session, user_id, finder_id)
    if row is None:
        row = UserScoreConfig(user_id=user_id, finder_id=finder_id)
        session.add(row)
    row.weights = clean
    session.commit()
    return ScoreConfigOut(finder_id=finder_id, weights=clean, is_default=False, updated_at=row.updated_at)


def reset_score_config(session: Session, *, user_id: str, finder_id: str | None = None) -> None:
    session.execute(
        delete(UserScoreConfig).where(
            UserScoreConfig.user_id == user_id,
            UserScoreConfig.finder_id == (finder_id or DEFAULT_FINDER_ID),
        )
    )
    session.commit()


def user_weights(session: Session, *, user_id: str, finder_id: str | None = None) -> dict[str, float] | None:
    """Saved weights, or None when the user has not customised them."""
    row = _find(session, user_id, finder_id or DEFAULT_FINDER_ID)
    return dict(row.weights) if row is not None else None
