"""CRUD for core services, assets and constraints."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from kachisuji.db.models import Constraint, CoreAsset, CoreService
from kachisuji.errors import NotFoundError, ValidationFailed
from kachisuji.schemas.core import AssetIn, ConstraintIn, ServiceIn


def _clean(value: str | None) -> str | None:
    return (value or "").strip() or None


def _get(session: Session, model, item_id: int, label: str):
    row = session.get(model, item_id)
    if row is None:
        raise NotFoundError(f"{label}が見つかりません: {item_id}")
    return row


# -- services ------------------------------------------------------------

def list_services(session: Session) -> list[CoreService]:
    return list(session.scalars(
        select(CoreService).order_by(CoreService.created_at.desc(), CoreService.id.desc())
    ))


def _apply_service(row: CoreService, data: ServiceIn) -> None:
    if not data.name.strip():
        raise ValidationFailed("サービス名を入力してください")
    row.name = data.name.strip()
    row.category = _clean(data.category)
    row.description = _clean(data.description)
    row.url = _clean(data.url)


def create_service(session: Session, data: ServiceIn) -> CoreService:
    row = CoreService()
    _apply_service(row, data)
    session.add(row)
    session.commit()
    return row


def update_service(session: Session, service_id: int, data: ServiceIn) -> CoreService:
    row = _get(session, CoreService, service_id, "サービス")
    _apply_service(row, data)
    session.commit()
    return row


def delete_service(session: Session, service_id: int) -> None:
    session.delete(_get(session, CoreService, service_id, "サービス"))
    session.commit()


# -- assets --------------------------------------------------------------

def list_assets(session: Session) -> list[CoreAsset]:
    return list(session.scalars(
        select(CoreAsset).order_by(CoreAsset.created_at.desc(), CoreAsset.id.desc())
    ))


def _apply_asset(row: CoreAsset, data: AssetIn) -> None:
    if not data.name.strip():
        raise ValidationFailed("資産名を入力してください")
    if not data.type.strip():
        raise ValidationFailed("資産タイプを選択してください")
    row.name = data.name.strip()
    row.type = data.type.strip()
    row.description = _clean(data.description)


def create_asset(session: Session, data: AssetIn) -> CoreAsset:
    row = CoreAsset()
    _apply_asset(row, data)
    session.add(row)
    session.commit()
    return row


def update_asset(session: Session, asset_id: int, data: AssetIn) -> CoreAsset:
    row = _get(session, CoreAsset, asset_id, "資産")
    _apply_asset(row, data)
    session.commit()
    return row


def delete_asset(session: Session, asset_id: int) -> None:
    session.delete(_get(session, CoreAsset, asset_id, "資産"))
    session.commit()


# -- constraints ---------------------------------------------------------

def list_constraints(session: Session) -> list[Constraint]:
    return list(session.scalars(select(Constraint).order_by(Constraint.id)))


def create_constraint(session: Session, data: ConstraintIn) -> Constraint:
    if not data.name.strip():
        raise ValidationFailed("制約名を入力してください")
    row = Constraint(
        name=data.name.strip(), description=_clean(data.description), is_default=data.is_default,
    )
    session.add(row)
    session.commit()
    return row


def delete_constraint(session: Session, constraint_id: int) -> None:
    session.delete(_get(session, Constraint, constraint_id, "制約"))
    session.commit()
