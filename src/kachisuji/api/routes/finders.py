"""
API route for the finder catalog
"""
from typing import List

from fastapi import APIRouter

from kachisuji.schemas.finder import FINDER_SETTINGS, FinderSettings

router = APIRouter(prefix="/api/finders", tags=["finders"])


@router.get("", response_model=List[FinderSettings])
async def list_finders():
    """List finders with their score axes and preset questions"""
    return list(FINDER_SETTINGS.values())
