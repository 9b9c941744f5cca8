import asyncio
import logging
from datetime import datetime, timezone, timedelta
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket

from ..config import settings

logger = logging.getLogger(__name__)

# Stale sockets are dropped after this long without a ping
STALE_AFTER = timedelta(minutes=2)
CLEANUP_INTERVAL_SECONDS = 30


def user_room(user_id: int) -> str:
    return f"user:{user_id}"


def spot_room(spot_id: int) -> str:
    return f"spot:{spot_id}"


def post_room(post_id: int) -> str:
    return f"post:{post_id}"


def frame(event: str, data: Dict[str, Any]) -> dict:
    return {
        "event": event,
        "data": data,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class ConnectionManager:
    """Tracks websockets per named room and fans out events to them."""

    def __init__(self) -> None:
        # room name -> sockets currently joined
        self.rooms: Dict[str, Set[WebSocket]] = {}
        # socket -> (user_id, last_ping)
        self.sockets: Dict[WebSocket, tuple[int, datetime]] = {}
        self.cleanup_task: Optional[asyncio.Task] = None
        self._shutdown = False

    async def connect(self, websocket: WebSocket, user_id: int) -> None:
        await websocket.accept()
        self.sockets[websocket] = (user_id, datetime.now(timezone.utc))
        logger.info(f"User {user_id} connected")

        if not self.cleanup_task or self.cleanup_task.done():
            self._shutdown = False
            self.cleanup_task = asyncio.create_task(
                self._cleanup_stale_connections())

    def disconnect(self, websocket: WebSocket) -> None:
        entry = self.sockets.pop(websocket, None)
        for name in list(self.rooms):
            members = self.rooms[name]
            members.discard(websocket)
            if not members:
                del self.rooms[name]
        if entry:
            logger.info(f"User {entry[0]} disconnected")

    def join(self, websocket: WebSocket, room: str) -> None:
        self.rooms.setdefault(room, set()).add(websocket)
        logger.info(f"User {self.user_of(websocket)} joined {room}")

    def leave(self, websocket: WebSocket, room: str) -> None:
        members = self.rooms.get(room)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self.rooms[room]
        logger.info(f"User {self.user_of(websocket)} left {room}")

    def user_of(self, websocket: WebSocket) -> Optional[int]:
        entry = self.sockets.get(websocket)
        return entry[0] if entry else None

    def members(self, room: str) -> Set[WebSocket]:
        return set(self.rooms.get(room, set()))

    def update_ping(self, websocket: WebSocket) -> None:
        user_id = self.user_of(websocket)
        if user_id is not None:
            self.sockets[websocket] = (user_id, datetime.now(timezone.utc))

    async def emit(self, room: str, event: str, data: Dict[str, Any]) -> int:
        """Send an event to every socket in a room; returns how many were targeted"""
        payload = frame(event, data)
        targets = list(self.rooms.get(room, set()))
        if targets:
            await asyncio.gather(
                *(self._send_with_timeout(ws, payload) for ws in targets),
                return_exceptions=True,
            )
        return len(targets)

    async def emit_to_user(self, user_id: int, event: str, data: Dict[str, Any]) -> int:
        return await self.emit(user_room(user_id), event, data)

    async def _send_with_timeout(self, websocket: WebSocket, payload: dict) -> None:
        """Send message with timeout to prevent blocking"""
        try:
            await asyncio.wait_for(websocket.send_json(payload), timeout=float(settings.ws_send_timeout_seconds))
        except asyncio.TimeoutError:
            logger.warning(
                f"WebSocket send timeout for user {self.user_of(websocket)}")
            self.disconnect(websocket)
        except Exception:
            # Remove stale connection
            self.disconnect(websocket)

    async def _cleanup_stale_connections(self) -> None:
        """Background task to close sockets that stopped pinging"""
        while not self._shutdown:
            await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)
            await self.drop_stale()
        logger.info("WebSocket cleanup task stopped")

    async def drop_stale(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        stale = [ws for ws, (_, last_ping) in self.sockets.items()
                 if now - last_ping > STALE_AFTER]
        for ws in stale:
            self.disconnect(ws)
            try:
                await ws.close(code=1000)
            except Exception:
                logger.debug("Stale websocket already closed")
        return len(stale)

    async def shutdown(self) -> None:
        """Stop the cleanup task"""
        self._shutdown = True
        if self.cleanup_task and not self.cleanup_task.done():
            self.cleanup_task.cancel()
            try:
                await self.cleanup_task
            except asyncio.CancelledError:
                pass
        logger.info("Connection manager shutdown complete")


manager = ConnectionManager()
