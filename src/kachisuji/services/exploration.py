"""Exploration workflow: gather company data, build RAG context, run the explorer, persist."""

from __future__ import annotations

import logging

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from kachisuji.agents.strategy_explorer.agent import StrategyExplorerAgent
from kachisuji.db.models import Constraint, CoreAsset, CoreService, Exploration
from kachisuji.errors import NotFoundError, PermissionDenied, ValidationFailed
from kachisuji.rag.context import build_rag_context
from kachisuji.schemas.config import RagSettings
from kachisuji.schemas.finder import get_finder_settings
from kachisuji.schemas.strategy import ExploreRequest
from kachisuji.shared.llm_client import LLMClient

logger = logging.getLogger(__name__)


def format_services(services: list[CoreService]) -> str:
    lines = []
    for s in services:
        line = f"- {s.name}"
        if s.category:
            line += f" ({s.category})"
        if s.description:
            line += f": {s.description}"
        lines.append(line)
    return "\n".join(lines)


def format_assets(assets: list[CoreAsset]) -> str:
    return "\n".join(
        f"- {a.name} [{a.type}]" + (f": {a.description}" if a.description else "")
        for a in assets
    )


def format_constraints(constraints: list[Constraint]) -> str:
    return "\n".join(
        f"- {c.name}" + (f": {c.description}" if c.description else "")
        for c in constraints
    )


def load_constraints(session: Session, constraint_ids: list[int]) -> list[Constraint]:
    """Default constraints plus any explicitly selected ones."""
    cond = Constraint.is_default.is_(True)
    if constraint_ids:
        cond = or_(cond, Constraint.id.in_(constraint_ids))
    return list(session.scalars(select(Constraint).where(cond).order_by(Constraint.id)))


async def explore(
    session: Session,
    client: LLMClient,
    request: ExploreRequest,
    *,
    user_id: str | None = None,
    settings: RagSettings | None = None,
    web_texts: dict[str, str] | None = None,
) -> Exploration:
    """Run one exploration and store it.

    On an LLM or parse failure the row is kept with ``status="failed"``
    and the error is re-raised.
    """
    question = request.question.strip()
    if not question:
        raise ValidationFailed("問いを入力してください")

    finder = get_finder_settings(request.finder_id)
    services = list(session.scalars(select(CoreService).order_by(CoreService.id)))
    assets = list(session.scalars(select(CoreAsset).order_by(CoreAsset.id)))
    constraints = load_constraints(session, request.constraint_ids)

    exploration = Exploration(
        question=question,
        context=request.context or None,
        constraints=request.constraint_ids,
        status="running",
        kind="explore",
        finder_id=finder.id,
        user_id=user_id,
    )
    session.add(exploration)
    session.commit()

    try:
        rag_context = await build_rag_context(
            session, client, query=question, web_texts=web_texts, settings=settings,
        )
        agent = StrategyExplorerAgent(client, finder)
        output = await agent.run(
            question,
            context=request.context,
            services_text=format_services(services),
            assets_text=format_assets(assets),
            constraints_text=format_constraints(constraints),
            rag_context=rag_context,
        )
    except Exception as exc:
        logger.error("Exploration %d failed: %s", exploration.id, exc)
        exploration.status = "failed"
        exploration.error = str(exc)
        session.commit()
        raise

    exploration.result = output.model_dump(mode="json")
    exploration.status = "completed"
    session.commit()
    logger.info("Exploration %d completed with %d strategies", exploration.id, len(output.strategies))
    return exploration


def get_exploration(session: Session, exploration_id: int, *, user_id: str | None = None) -> Exploration:
    """With ``user_id``, another user's exploration raises PermissionDenied."""
    exploration = session.get(Exploration, exploration_id)
    if exploration is None:
        raise NotFoundError(f"Exploration not found: {exploration_id}")
    if user_id and exploration.user_id and exploration.user_id != user_id:
        raise PermissionDenied("他のユーザーの探索にはアクセスできません")
    return exploration


def list_history(
    session: Session,
    *,
    user_id: str | None = None,
    limit: int = 50,
    kind: str | None = None,
) -> list[Exploration]:
    stmt = select(Exploration)
    if user_id:
        stmt = stmt.where(Exploration.user_id == user_id)
    if kind:
        stmt = stmt.where(Exploration.kind == kind)
    return list(session.scalars(
        stmt.order_by(Exploration.created_at.desc(), Exploration.id.desc()).limit(limit)
    ))


def delete_exploration(session: Session, exploration_id: int, *, user_id: str | None = None) -> None:
    session.delete(get_exploration(session, exploration_id, user_id=user_id))
    session.commit()


def clear_history(session: Session, *, user_id: str | None = None) -> int:
    stmt = delete(Exploration)
    if user_id:
        stmt = stmt.where(Exploration.user_id == user_id)
    deleted = session.execute(stmt).rowcount
    session.commit()
    return deleted
