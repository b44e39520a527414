"""
Server -> client WebSocket pushes.

Every connected user sits in a personal group `user_<id>`; the helpers here
send events to that group from synchronous code (views, services, tasks).
"""

import logging
from typing import Any, Dict

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)


def user_group_name(user_id: int) -> str:
    return f"user_{user_id}"


def send_user_event(user_id: int, event_type: str, payload: Dict[str, Any]) -> bool:
    """
    Send an event to one user's personal group.

    Args:
        user_id: Target user's ID
        event_type: Handler name in the consumer (e.g. notification_event)
        payload: Event body, must be JSON-serialisable

    Returns:
        True if handed to the channel layer, False otherwise
    """
    if not user_id:
        return False

    channel_layer = get_channel_layer()
    if channel_layer is None:
        return False

    message = {"type": event_type, **payload}
    logger.debug("WS -> user_%s: %s", user_id, message)
    async_to_sync(channel_layer.group_send)(user_group_name(user_id), message)
    return True
