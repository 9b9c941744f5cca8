from fastapi import APIRouter
from ..config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {"status": "ok", "app": settings.app_name, "debug": settings.debug}
