import logging

from fastapi import APIRouter, HTTPException

from ..schemas import ChatRequest
from ..services.ai_service import AIService, AIServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["ai"])


@router.post("/chat")
async def chat(payload: ChatRequest):
    try:
        reply = await AIService.chat(payload.message)
    except AIServiceError:
        raise HTTPException(status_code=500, detail="Error communicating with AI service")
    return {"message": reply}
