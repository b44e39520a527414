"""
In-app notifications.

A notification is stored in the caller's transaction, so it exists exactly
when the state change it describes does. Once that transaction commits it is
forwarded to the user's socket group and handed to the push worker; both of
those are best effort.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from django.db import transaction

from notifications.models import Notification

logger = logging.getLogger(__name__)


STATUS_TITLES = {
    'negotiating': 'New offer received',
    'accepted': 'Ride accepted',
    'started': 'Ride started',
    'completed': 'Ride completed',
    'cancelled': 'Ride cancelled',
}

STATUS_MESSAGES = {
    'negotiating': 'A driver sent a price offer for your ride.',
    'accepted': 'Your offer was accepted. Head to the pickup point.',
    'started': 'Your ride has started. Enjoy the trip!',
    'completed': 'Your ride has been completed. Thank you for riding with us!',
    'cancelled': 'The ride was cancelled.',
}

DEFAULT_STATUS_TITLE = 'Ride update'
DEFAULT_STATUS_MESSAGE = 'Your ride status was updated.'


def serialize_notification(notification: Notification) -> Dict[str, Any]:
    return {
        "id": notification.id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "ride_id": notification.ride_id,
        "data": notification.data,
        "read": notification.read,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }


class NotificationDispatcher:
    """Creates notifications and forwards them after commit."""

    def notify(
        self,
        user_id: int,
        type: str,
        title: str,
        message: str,
        ride=None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        notification = Notification.objects.create(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            ride=ride,
            data=data or {},
        )
        transaction.on_commit(lambda: self.forward(notification))
        return notification

    def notify_status_change(self, ride, recipient_id: int, status: str, message: str = "") -> Optional[Notification]:
        """One notification to `recipient_id` describing the ride's new status."""
        if not recipient_id:
            return None
        return self.notify(
            recipient_id,
            'offer' if status == 'negotiating' else 'ride',
            STATUS_TITLES.get(status, DEFAULT_STATUS_TITLE),
            message or STATUS_MESSAGES.get(status, DEFAULT_STATUS_MESSAGE),
            ride=ride,
            data={"ride_id": ride.id, "status": status},
        )

    def fan_out(
        self,
        user_ids: Iterable[int],
        type: str,
        title: str,
        message: str,
        ride=None,
        data: Optional[Dict[str, Any]] = None,
    ) -> List[Notification]:
        return [
            self.notify(user_id, type, title, message, ride=ride, data=data)
            for user_id in dict.fromkeys(user_ids)
        ]

    def forward(self, notification: Notification):
        """Socket push and push-delivery enqueue; failures are logged only."""
        from realtime.notifications import send_user_event
        from notifications.tasks import deliver_push_notification

        try:
            send_user_event(
                notification.user_id,
                "notification_event",
                {"notification": serialize_notification(notification)},
            )
        except Exception:
            logger.exception("Failed to forward notification %s to socket", notification.id)

        try:
            deliver_push_notification.delay(notification.id)
        except Exception:
            logger.exception("Failed to enqueue push delivery for notification %s", notification.id)


default_dispatcher = NotificationDispatcher()


def notify(user_id, type, title, message, ride=None, data=None):
    return default_dispatcher.notify(user_id, type, title, message, ride=ride, data=data)


def notify_status_change(ride, recipient_id, status, message=""):
    return default_dispatcher.notify_status_change(ride, recipient_id, status, message=message)


def fan_out(user_ids, type, title, message, ride=None, data=None):
    return default_dispatcher.fan_out(user_ids, type, title, message, ride=ride, data=data)
