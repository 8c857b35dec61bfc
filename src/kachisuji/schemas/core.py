"""Pydantic models for core company data (services, assets, constraints)."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ServiceIn(BaseModel):
    name: str = ""
    category: str | None = None
    description: str | None = None
    url: str | None = None


class ServiceOut(ServiceIn):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime | None = None


class AssetIn(BaseModel):
    name: str = ""
    type: str = ""
    description: str | None = None


class AssetOut(AssetIn):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime | None = None


class ConstraintIn(BaseModel):
    name: str = ""
    description: str | None = None
    is_default: bool = False


class ConstraintOut(ConstraintIn):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime | None = None
