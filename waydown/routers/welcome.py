from fastapi import APIRouter

from ..config import settings

router = APIRouter(prefix="/api/welcome", tags=["welcome"])

FEATURES = [
    "Discover hidden spots shared by fellow travelers",
    "Follow explorers and get a feed tuned to your interests",
    "Find spots and people near you",
    "Like, review and report spots",
    "Share trips with the community",
]


@router.get("/")
async def welcome():
    return {
        "title": f"Welcome to {settings.app_name}",
        "description": "Explore off-the-beaten-path places, submit your own finds and connect with other travelers.",
        "features": FEATURES,
    }
