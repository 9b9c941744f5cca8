from typing import List

from fastapi import APIRouter

from ..models import SPOT_CATEGORIES

router = APIRouter(prefix="/api/interests", tags=["interests"])


@router.get("/options", response_model=List[str])
async def interest_options():
    """Interests a user can pick; the same list as the spot categories"""
    return list(SPOT_CATEGORIES)


@router.get("/categories", response_model=List[str])
async def categories():
    return list(SPOT_CATEGORIES)
