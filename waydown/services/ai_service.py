import logging
from typing import Any

import httpx

from ..config import settings

logger = logging.getLogger(__name__)


class AIServiceError(Exception):
    """The assistant webhook could not be reached or answered with an error"""


class AIService:
    @staticmethod
    async def chat(message: str) -> Any:
        """Forward a chat message to the assistant webhook and return its reply body"""
        try:
            async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
                response = await client.post(settings.ai_webhook_url, json={"message": message})
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"AI webhook request failed: {e}")
            raise AIServiceError(str(e)) from e

        try:
            return response.json()
        except ValueError:
            return response.text
