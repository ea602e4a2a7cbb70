"""User notifications: persisted row plus a Socket.IO push."""

import logging
from typing import Optional, Callable, Awaitable, Dict, Any

from outreach.models import Notification

logger = logging.getLogger(__name__)


def campaign_link(campaign_id: int) -> str:
    return f"/campaigns/{campaign_id}"


def notification_payload(notification: Notification) -> Dict[str, Any]:
    return {
        "id": notification.id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "link": notification.link,
        "read": notification.read,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }


class Notifier:
    """
    Records notifications in the store and pushes them to connected clients.

    The push is best-effort: a failed emit is logged and never affects the
    workflow that raised the notification.
    """

    def __init__(self, store, emitter: Optional[Callable[..., Awaitable[None]]] = None):
        self.store = store
        if emitter is None:
            from outreach.websocket import emit_notification
            emitter = emit_notification
        self.emitter = emitter

    async def notify(
        self,
        type: str,
        title: str,
        message: str,
        campaign_id: Optional[int] = None
    ) -> Notification:
        link = campaign_link(campaign_id) if campaign_id is not None else None
        notification = self.store.create_notification(type, title, message, link)
        logger.info(f"🔔 {title}: {message}")

        try:
            await self.emitter(notification_payload(notification), campaign_id)
        except Exception as e:
            logger.warning(f"Failed to push notification {notification.id}: {e}")

        return notification
