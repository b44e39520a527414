"""
Sweep for overdue price offers.

Used by the `process_offer_timeouts` management command on deployments that
run without a Celery worker (or to catch up after one was down).
"""

from typing import Tuple

from django.db import close_old_connections
from django.utils import timezone

from rides.models import PriceOffer


def process_offer_timeouts(limit: int = 500) -> Tuple[int, int]:
    """
    Expire pending offers whose `expires_at` has passed.

    Returns a tuple of (overdue_count, expired_count).
    """
    from services.ride_management import expire_offer

    overdue = list(
        PriceOffer.objects.filter(status="pending", expires_at__lte=timezone.now())
        .order_by("expires_at")
        .values_list("id", flat=True)[:limit]
    )

    expired_count = 0
    for offer_id in overdue:
        if expire_offer(offer_id):
            expired_count += 1

    # Close stale DB connections for long-running workers
    close_old_connections()
    return len(overdue), expired_count
