"""Celery tasks for ride-related background processing."""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def expire_price_offer_task(offer_id: int):
    """
    Expire a price offer once its deadline has passed.

    Scheduled with `eta=expires_at` when the offer is created. An offer that
    was accepted, rejected or withdrawn in the meantime is left alone.
    """
    from services.ride_management import expire_offer, OfferNotFoundError

    try:
        expired = expire_offer(offer_id)
    except OfferNotFoundError:
        logger.warning("Offer %s not found for expiry task", offer_id)
        return False

    if not expired:
        logger.info("Offer %s already answered or not yet due", offer_id)
    return expired
