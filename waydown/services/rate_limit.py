import logging
import time
from typing import Dict, List

from fastapi import Depends, HTTPException, Request, status

from ..config import settings
from ..models import User
from .jwt_service import JWTService

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too Many Requests: Please try again later"


class RateLimiter:
    """
    Sliding-window request limiter used as a FastAPI dependency.

    The per-window limit is read from settings by attribute name on every
    call so tests and operators can change it at runtime. Keys are client IPs.
    """

    def __init__(self, name: str, limit_setting: str) -> None:
        self.name = name
        self.limit_setting = limit_setting
        self._log: Dict[str, List[float]] = {}
        self._last_sweep = 0.0

    @property
    def limit(self) -> int:
        return int(getattr(settings, self.limit_setting))

    def hit(self, key: str, now: float | None = None) -> bool:
        """Record a request for key; False when the window is already full"""
        now = time.monotonic() if now is None else now
        window_start = now - settings.rate_limit_window_seconds
        if now - self._last_sweep >= settings.rate_limit_window_seconds:
            self.sweep(window_start)
            self._last_sweep = now
        entries = [ts for ts in self._log.get(key, []) if ts > window_start]
        if len(entries) >= self.limit:
            self._log[key] = entries
            return False
        entries.append(now)
        self._log[key] = entries
        return True

    def sweep(self, window_start: float) -> int:
        """Forget keys with no request newer than window_start"""
        expired = [key for key, entries in self._log.items()
                   if not entries or entries[-1] <= window_start]
        for key in expired:
            del self._log[key]
        return len(expired)

    def tracked_keys(self) -> int:
        return len(self._log)

    def reset(self) -> None:
        self._log.clear()
        self._last_sweep = 0.0

    def _check(self, key: str) -> None:
        if not settings.rate_limit_enabled:
            return
        if not self.hit(key):
            logger.warning(f"Rate limit '{self.name}' exceeded for {key}")
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=RATE_LIMIT_MESSAGE,
            )

    async def __call__(self, request: Request) -> None:
        client_ip = request.client.host if request.client else "unknown"
        self._check(client_ip)


class UserRateLimiter(RateLimiter):
    """Same window, keyed by the authenticated user instead of the IP"""

    async def __call__(self, current_user: User = Depends(JWTService.get_current_user)) -> None:
        self._check(f"user:{current_user.id}")


general_limiter = RateLimiter("general", "general_requests_per_window")
strict_limiter = RateLimiter("strict", "strict_requests_per_window")
like_comment_limiter = UserRateLimiter(
    "like_comment", "like_comment_requests_per_window")
