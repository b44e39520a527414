"""
SOS alerts and the contacts they are sent to.

Contacts do not have accounts, so an alert is recorded as one in-app
notification per contact on the raising user's feed plus a notification to
every staff user.
"""

import logging
from typing import List, Optional, Tuple

from django.contrib.auth import get_user_model
from django.db import transaction

from common.exceptions import Forbidden, NotFound, ValidationError
from rides.models import Ride
from safety.models import EmergencyAlert, EmergencyContact
from services.context import ServiceContext

logger = logging.getLogger(__name__)

User = get_user_model()

MAX_CONTACTS = 5
ALERT_HISTORY_LIMIT = 20


def list_contacts(user) -> List[EmergencyContact]:
    return list(EmergencyContact.objects.filter(user=user).order_by('created_at', 'id'))


def add_contact(user, name: str, phone: str, relationship: str = "") -> EmergencyContact:
    if EmergencyContact.objects.filter(user=user).count() >= MAX_CONTACTS:
        raise ValidationError(f"You can have at most {MAX_CONTACTS} emergency contacts")
    return EmergencyContact.objects.create(user=user, name=name, phone=phone, relationship=relationship or "")


def delete_contact(user, contact_id: int) -> None:
    deleted, _ = EmergencyContact.objects.filter(pk=contact_id, user=user).delete()
    if not deleted:
        raise NotFound("Contact not found")


@transaction.atomic
def raise_alert(user, type: str = 'sos', ride_id: Optional[int] = None, location_latitude=None,
                location_longitude=None, location_address: str = "", description: str = "",
                context: Optional[ServiceContext] = None) -> Tuple[EmergencyAlert, int]:
    """
    Record an alert and notify the user's contacts and the staff.

    Returns the alert and how many contacts were notified.
    """
    ctx = context or ServiceContext.default()

    ride = None
    if ride_id is not None:
        ride = Ride.objects.filter(pk=ride_id).first()
        if ride is None:
            raise NotFound("Ride not found")
        if not ride.is_participant(user):
            raise Forbidden("You are not a participant of this ride")

    alert = EmergencyAlert.objects.create(
        user=user,
        ride=ride,
        type=type or 'sos',
        location_latitude=location_latitude,
        location_longitude=location_longitude,
        location_address=location_address or "",
        description=description or "",
    )
    where = location_address or "unknown location"

    contacts = list_contacts(user)
    for contact in contacts:
        ctx.notifier.notify(
            user.pk,
            'emergency',
            'Emergency alert sent',
            f"{user.username} triggered SOS. Location: {where}",
            ride=ride,
            data={"alert_id": alert.id, "contact_name": contact.name, "contact_phone": contact.phone},
        )
    if contacts:
        alert.contacts_notified = True
        alert.save(update_fields=['contacts_notified'])

    staff_ids = list(User.objects.filter(is_staff=True, is_active=True).values_list('pk', flat=True))
    ctx.notifier.fan_out(
        staff_ids,
        'emergency',
        'SOS alert raised',
        f"User {user.username} raised an emergency alert at {where}",
        ride=ride,
        data={"alert_id": alert.id, "user_id": user.pk},
    )

    logger.warning("Emergency alert %s raised by user %s (ride=%s)", alert.id, user.pk, ride_id)
    return alert, len(contacts)


def list_alerts(user) -> List[EmergencyAlert]:
    return list(EmergencyAlert.objects.filter(user=user).order_by('-created_at', '-id')[:ALERT_HISTORY_LIMIT])


def update_alert_status(user, alert_id: int, status: str, context: Optional[ServiceContext] = None) -> EmergencyAlert:
    ctx = context or ServiceContext.default()

    if status not in dict(EmergencyAlert.STATUS_CHOICES):
        raise ValidationError(f"Invalid alert status '{status}'")
    alert = EmergencyAlert.objects.filter(pk=alert_id, user=user).first()
    if alert is None:
        raise NotFound("Alert not found")

    alert.status = status
    alert.resolved_at = ctx.now() if status == 'resolved' else None
    alert.save(update_fields=['status', 'resolved_at'])
    logger.info("Emergency alert %s is now %s", alert.id, status)
    return alert
