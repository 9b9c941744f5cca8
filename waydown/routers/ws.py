import json
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect

from ..database import AsyncSessionLocal
from ..services.jwt_service import JWTService
from ..services.realtime import frame, manager, post_room, spot_room, user_room

logger = logging.getLogger(__name__)

router = APIRouter()

# client message type -> (action, room builder, payload key holding the id)
ROOM_MESSAGES = {
    "joinSpot": ("join", spot_room, "spotId"),
    "leaveSpot": ("leave", spot_room, "spotId"),
    "joinPost": ("join", post_room, "postId"),
    "leavePost": ("leave", post_room, "postId"),
}


async def _authenticate(websocket: WebSocket) -> Optional[int]:
    """User id for the query-string token, None unless it names an existing user"""
    token = websocket.query_params.get("token")
    if not token:
        return None
    async with AsyncSessionLocal() as db:
        try:
            user = await JWTService.user_from_token(db, token)
        except HTTPException:
            return None
        return user.id


def _room_id(data: dict, key: str) -> Optional[int]:
    value = data.get(key)
    if value is None and isinstance(data.get("data"), dict):
        value = data["data"].get(key)
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@router.websocket("/ws")
async def realtime_ws(websocket: WebSocket):
    user_id = await _authenticate(websocket)
    if not user_id:
        await websocket.close(code=4401)
        return

    await manager.connect(websocket, user_id)
    try:
        await websocket.send_json(frame("connected", {"user_id": user_id}))
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except ValueError:
                await websocket.send_json(frame("error", {"message": "Invalid JSON"}))
                continue
            if not isinstance(data, dict):
                await websocket.send_json(frame("error", {"message": "Invalid message"}))
                continue

            msg_type = data.get("type")
            if msg_type == "ping":
                manager.update_ping(websocket)
                await websocket.send_json(frame("pong", {}))
                continue

            if msg_type == "joinUser":
                manager.join(websocket, user_room(user_id))
                await websocket.send_json(frame("joined", {"room": user_room(user_id)}))
                continue

            if msg_type == "leaveUser":
                manager.leave(websocket, user_room(user_id))
                await websocket.send_json(frame("left", {"room": user_room(user_id)}))
                continue

            if msg_type in ROOM_MESSAGES:
                action, room_for, key = ROOM_MESSAGES[msg_type]
                target = _room_id(data, key)
                if target is None:
                    await websocket.send_json(frame("error", {"message": f"{key} is required"}))
                    continue
                room = room_for(target)
                if action == "join":
                    manager.join(websocket, room)
                    await websocket.send_json(frame("joined", {"room": room}))
                else:
                    manager.leave(websocket, room)
                    await websocket.send_json(frame("left", {"room": room}))
                continue

            await websocket.send_json(frame("error", {"message": f"Unknown message type: {msg_type}"}))
    except WebSocketDisconnect:
        logger.debug(f"Socket closed by user {user_id}")
    finally:
        manager.disconnect(websocket)
