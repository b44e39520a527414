"""
Notification service - persisted in-app notifications with socket/push forwarding.
"""

from .dispatcher import (
    NotificationDispatcher,
    default_dispatcher,
    notify,
    notify_status_change,
    fan_out,
    serialize_notification,
    STATUS_TITLES,
    STATUS_MESSAGES,
)

__all__ = [
    "NotificationDispatcher",
    "default_dispatcher",
    "notify",
    "notify_status_change",
    "fan_out",
    "serialize_notification",
    "STATUS_TITLES",
    "STATUS_MESSAGES",
]
