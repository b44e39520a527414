"""Chat between the two participants of a ride."""

import logging
from typing import List, Optional

from common.exceptions import Forbidden, NotFound, ValidationError
from rides.models import Ride, RideMessage
from services.context import ServiceContext

logger = logging.getLogger(__name__)

MESSAGE_MAX_LENGTH = 1000


def _ride_for_participant(user, ride_id: int) -> Ride:
    ride = Ride.objects.filter(pk=ride_id).first()
    if ride is None:
        raise NotFound("Ride not found")
    if not ride.is_participant(user):
        raise Forbidden("You are not a participant of this ride")
    return ride


def list_messages(user, ride_id: int) -> List[RideMessage]:
    ride = _ride_for_participant(user, ride_id)
    return list(ride.messages.select_related('sender').order_by('created_at', 'id'))


def send_message(user, ride_id: int, text: str, context: Optional[ServiceContext] = None) -> RideMessage:
    ctx = context or ServiceContext.default()

    text = (text or "").strip()
    if not text:
        raise ValidationError("Message is required")
    if len(text) > MESSAGE_MAX_LENGTH:
        raise ValidationError(f"Messages cannot be longer than {MESSAGE_MAX_LENGTH} characters")

    ride = _ride_for_participant(user, ride_id)
    message = RideMessage.objects.create(ride=ride, sender=user, message=text)

    recipient_id = ride.counterparty_id(user)
    if recipient_id:
        ctx.notifier.notify(
            recipient_id,
            'message',
            f"Message from {user.username}",
            text[:120],
            ride=ride,
            data={"ride_id": ride.id, "message_id": message.id},
        )
    return message
