import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Notification, User
from .realtime import manager

logger = logging.getLogger(__name__)

# Per-type preference columns on User
_TYPE_TOGGLES = {
    "like": "notify_likes",
    "comment": "notify_comments",
    "follow": "notify_follows",
}


def wants_notifications(recipient: User, notification_type: Optional[str] = None) -> bool:
    if not recipient.notifications_enabled:
        return False
    toggle = _TYPE_TOGGLES.get(notification_type or "")
    return bool(getattr(recipient, toggle)) if toggle else True


class NotificationService:
    """Persists notifications and pushes the matching realtime event"""

    @staticmethod
    async def notify(
        db: AsyncSession,
        recipient: Optional[User],
        actor_id: Optional[int],
        notification_type: str,
        related_id: Optional[int],
        event: str,
        data: Dict[str, Any],
    ) -> Optional[Notification]:
        """
        Store a Notification for recipient and emit event to their user room.

        Nothing happens when the recipient is the actor or has turned
        notifications of this type off.
        """
        if recipient is None or recipient.id == actor_id:
            return None
        if not wants_notifications(recipient, notification_type):
            return None

        notification = Notification(
            user_id=recipient.id,
            type=notification_type,
            related_id=related_id,
            actor_id=actor_id,
        )
        db.add(notification)
        await db.commit()
        await manager.emit_to_user(recipient.id, event, data)
        logger.debug(
            f"Notified user {recipient.id} of {notification_type} ({event})")
        return notification

    @staticmethod
    async def emit_if_enabled(recipient: Optional[User], actor_id: Optional[int], event: str,
                              data: Dict[str, Any]) -> bool:
        """Emit an event without persisting it"""
        if recipient is None or recipient.id == actor_id:
            return False
        if not recipient.notifications_enabled:
            return False
        await manager.emit_to_user(recipient.id, event, data)
        return True
