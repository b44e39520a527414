"""Celery tasks for notification delivery."""

import logging

import requests
from celery import shared_task
from django.conf import settings

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=30)
def deliver_push_notification(self, notification_id: int):
    """
    Hand a stored notification to the push gateway.

    No-op when PUSH_NOTIFICATIONS_URL is not configured. Gateway errors are
    retried a few times, then dropped; the in-app copy is unaffected.
    """
    from notifications.models import Notification

    url = getattr(settings, "PUSH_NOTIFICATIONS_URL", "")
    if not url:
        return False

    notification = Notification.objects.filter(id=notification_id).first()
    if notification is None:
        logger.warning("Notification %s not found for push delivery", notification_id)
        return False

    headers = {}
    api_key = getattr(settings, "PUSH_NOTIFICATIONS_KEY", "")
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"

    payload = {
        "user_id": notification.user_id,
        "title": notification.title,
        "body": notification.message,
        "data": {"notification_id": notification.id, "type": notification.type, **notification.data},
    }

    try:
        response = requests.post(url, json=payload, headers=headers, timeout=5)
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("Push delivery failed for notification %s: %s", notification_id, exc)
        if self.request.called_directly:
            return False
        raise self.retry(exc=exc)

    return True
