"""
API routes for core company data: services, assets and constraints
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from kachisuji.db.database import get_db
from kachisuji.schemas.core import AssetIn, AssetOut, ConstraintIn, ConstraintOut, ServiceIn, ServiceOut
from kachisuji.services import core_data

router = APIRouter(prefix="/api/core", tags=["core"])


@router.get("/services", response_model=List[ServiceOut])
async def list_services(db: Session = Depends(get_db)):
    """List services"""
    return core_data.list_services(db)


@router.post("/services", response_model=ServiceOut)
async def create_service(data: ServiceIn, db: Session = Depends(get_db)):
    """Create a service"""
    return core_data.create_service(db, data)


@router.put("/services/{service_id}", response_model=ServiceOut)
async def update_service(service_id: int, data: ServiceIn, db: Session = Depends(get_db)):
    """Update a service"""
    return core_data.update_service(db, service_id, data)


@router.delete("/services/{service_id}")
async def delete_service(service_id: int, db: Session = Depends(get_db)):
    """Delete a service"""
    core_data.delete_service(db, service_id)
    return {"success": True}


@router.get("/assets", response_model=List[AssetOut])
async def list_assets(db: Session = Depends(get_db)):
    """List assets"""
    return core_data.list_assets(db)


@router.post("/assets", response_model=AssetOut)
async def create_asset(data: AssetIn, db: Session = Depends(get_db)):
    """Create an asset"""
    return core_data.create_asset(db, data)


@router.put("/assets/{asset_id}", response_model=AssetOut)
async def update_asset(asset_id: int, data: AssetIn, db: Session = Depends(get_db)):
    """Update an asset"""
    return core_data.update_asset(db, asset_id, data)


@router.delete("/assets/{asset_id}")
async def delete_asset(asset_id: int, db: Session = Depends(get_db)):
    """Delete an asset"""
    core_data.delete_asset(db, asset_id)
    return {"success": True}


@router.get("/constraints", response_model=List[ConstraintOut])
async def list_constraints(db: Session = Depends(get_db)):
    """List constraints"""
    return core_data.list_constraints(db)


@router.post("/constraints", response_model=ConstraintOut)
async def create_constraint(data: ConstraintIn, db: Session = Depends(get_db)):
    """Create a constraint"""
    return core_data.create_constraint(db, data)


@router.delete("/constraints/{constraint_id}")
async def delete_constraint(constraint_id: int, db: Session = Depends(get_db)):
    """Delete a constraint"""
    core_data.delete_constraint(db, constraint_id)
    return {"success": True}
