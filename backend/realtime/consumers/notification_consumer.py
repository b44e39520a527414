"""Per-user notification stream."""

import logging
from typing import Any, Dict

from .base import BaseConsumer

logger = logging.getLogger(__name__)


class NotificationConsumer(BaseConsumer):
    """
    Forwards the user's notifications as they are created.

    Client messages:
        {"type": "ping"} -> {"type": "pong"}
    Server events (group `user_<id>`):
        notification_event -> {"type": "notification", "notification": {...}}
    """

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        if msg_type == "ping":
            await self.send_json({"type": "pong"})
            return
        await super().handle_message(msg_type, data)

    async def notification_event(self, event):
        await self.send_json({
            "type": "notification",
            "notification": event.get("notification", {}),
        })
