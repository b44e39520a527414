"""
Group rides: several passengers sharing one trip.

The creator is the first participant. Others join with the invite code
until `max_passengers` is reached, at which point the group is marked full.
"""

import logging
from typing import Any, Dict, Optional

from django.db import IntegrityError, transaction
from django.db.models import Q

from common.exceptions import Conflict, Forbidden, InvalidState, NotFound, ValidationError
from rides.models import GroupRide, GroupRideParticipant, Ride, generate_invite_code
from services.context import ServiceContext

logger = logging.getLogger(__name__)

MAX_GROUP_SIZE = 8

LOCATION_FIELDS = (
    'pickup_latitude', 'pickup_longitude', 'pickup_address',
    'dropoff_latitude', 'dropoff_longitude', 'dropoff_address',
)


def _unique_invite_code() -> str:
    code = generate_invite_code()
    while GroupRide.objects.filter(invite_code=code).exists():
        code = generate_invite_code()
    return code


def _location(stops: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    stops = stops or {}
    return {name: stops[name] for name in LOCATION_FIELDS if stops.get(name) not in (None, '')}


@transaction.atomic
def create_group_ride(user, ride_id: Optional[int] = None, max_passengers: int = 4,
                      split_method: str = 'equal', stops: Optional[Dict[str, Any]] = None) -> GroupRide:
    """
    Open a group and add the creator as its first participant.

    Raises:
        ValidationError: group size out of range
        NotFound: ride does not exist
        Forbidden: ride belongs to someone else
    """
    if not 2 <= max_passengers <= MAX_GROUP_SIZE:
        raise ValidationError(f"A group takes between 2 and {MAX_GROUP_SIZE} passengers")

    ride = None
    if ride_id is not None:
        ride = Ride.objects.filter(pk=ride_id).first()
        if ride is None:
            raise NotFound("Ride not found")
        if ride.passenger_id != user.pk:
            raise Forbidden("You can only share your own ride")

    group = GroupRide.objects.create(
        ride=ride,
        created_by=user,
        invite_code=_unique_invite_code(),
        max_passengers=max_passengers,
        split_method=split_method,
    )
    GroupRideParticipant.objects.create(group_ride=group, user=user, **_location(stops))
    logger.info("User %s opened group ride %s (%s)", user.pk, group.id, group.invite_code)
    return group


@transaction.atomic
def join_group_ride(user, invite_code: str, stops: Optional[Dict[str, Any]] = None,
                    context: Optional[ServiceContext] = None) -> GroupRideParticipant:
    """
    Raises:
        NotFound: unknown invite code
        InvalidState: invite expired or group full
        Conflict: user already in the group
    """
    ctx = context or ServiceContext.default()
    code = (invite_code or "").strip().upper()

    group = GroupRide.objects.select_for_update().filter(invite_code=code).first()
    if group is None:
        raise NotFound("Invalid invite code")
    if group.is_expired(ctx.now()):
        raise InvalidState("Invite code expired")
    if group.status != 'open':
        raise InvalidState("Group ride is full" if group.status == 'full' else f"Group ride is {group.status}")
    if group.participants.filter(user=user).exists():
        raise Conflict("Already joined this group ride")

    try:
        with transaction.atomic():
            participant = GroupRideParticipant.objects.create(group_ride=group, user=user, **_location(stops))
    except IntegrityError:
        raise Conflict("Already joined this group ride")

    if group.participants.count() >= group.max_passengers:
        group.status = 'full'
        group.save(update_fields=['status'])

    ctx.notifier.notify(
        group.created_by_id,
        'ride',
        'New group member',
        f"{user.username} joined your group ride",
        ride=group.ride,
        data={"group_ride_id": group.id},
    )
    return participant


def get_group_ride(invite_code: str) -> GroupRide:
    group = (
        GroupRide.objects.filter(invite_code=(invite_code or "").strip().upper())
        .prefetch_related('participants__user')
        .first()
    )
    if group is None:
        raise NotFound("Group ride not found")
    return group


def list_group_rides(user):
    """Groups the user created or joined, newest first."""
    return (
        GroupRide.objects.filter(Q(created_by=user) | Q(participants__user=user))
        .distinct()
        .prefetch_related('participants__user')
        .order_by('-created_at', '-id')
    )
