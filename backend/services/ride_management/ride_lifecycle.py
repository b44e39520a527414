"""
Core ride lifecycle operations.

Rides move pending -> negotiating -> accepted -> started -> completed, and
can be cancelled from any state before completion. Ride and PriceOffer rows
are only ever mutated through the functions in this module.

Every operation takes an optional `ServiceContext`; the notifier, wallet
ledger and clock are read from it rather than imported directly.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import F, Q

from common.exceptions import Forbidden, InvalidState, ValidationError
from drivers.models import DriverProfile
from rides.models import Ride, PriceOffer
from services.context import ServiceContext
from .exceptions import (
    ActiveRideExistsError,
    DriverNotAvailableError,
    DuplicateOfferError,
    FeeAlreadySettledError,
    InvalidStatusError,
    InvalidTransitionError,
    NotRideParticipantError,
    OfferExpiredError,
    OfferNotFoundError,
    RideNotAvailableError,
    RideNotFoundError,
)

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

# Status changes reachable through advance_status (cancellation is separate)
FORWARD_TRANSITIONS = {
    'accepted': 'started',
    'started': 'completed',
}


@dataclass
class RideResult:
    """Result object for ride operations."""
    success: bool
    ride: Optional[Ride] = None
    message: str = ""
    offer: Optional[PriceOffer] = None
    extra: Optional[Dict[str, Any]] = None


def _context(context: Optional[ServiceContext]) -> ServiceContext:
    return context or ServiceContext.default()


def _lock_ride(ride_id: int) -> Ride:
    try:
        return Ride.objects.select_for_update().get(pk=ride_id)
    except Ride.DoesNotExist:
        raise RideNotFoundError()


def _offer_ttl() -> timedelta:
    return timedelta(seconds=getattr(settings, "RIDE_OFFER_TTL_SECONDS", 300))


def _set_driver_availability(driver_id: Optional[int], status: str):
    if driver_id:
        DriverProfile.objects.filter(user_id=driver_id).update(status=status)


# ===================== Queries =====================

def check_active_ride(user) -> Optional[Ride]:
    """The passenger's ride that is not yet completed or cancelled."""
    return Ride.objects.filter(passenger=user, status__in=Ride.ACTIVE_STATUSES).first()


def get_current_ride(user) -> Optional[Ride]:
    """Active ride of a passenger, or the assigned ride of a driver."""
    return (
        Ride.objects.filter(
            Q(passenger=user, status__in=Ride.ACTIVE_STATUSES)
            | Q(driver=user, status__in=Ride.ASSIGNED_STATUSES)
        )
        .select_related('passenger', 'driver')
        .first()
    )


def list_rides_for_user(user, status: Optional[str] = None, limit: int = 10) -> List[Ride]:
    qs = Ride.objects.filter(Q(passenger=user) | Q(driver=user)).select_related('passenger', 'driver')
    if status and status != 'all':
        qs = qs.filter(status=Ride.normalize_status(status))
    return list(qs.order_by('-created_at')[:limit])


def get_ride_for_user(user, ride_id: int) -> Ride:
    """
    Participants always see the ride; approved drivers also see rides that
    are still open for offers.
    """
    try:
        ride = Ride.objects.select_related('passenger', 'driver').get(pk=ride_id)
    except Ride.DoesNotExist:
        raise RideNotFoundError()

    if ride.is_participant(user):
        return ride
    if ride.status in Ride.OPEN_STATUSES and _is_approved_driver(user):
        return ride
    raise NotRideParticipantError()


def list_offers(user, ride_id: int, context: Optional[ServiceContext] = None) -> List[PriceOffer]:
    """Live offers for the passenger's ride, cheapest first."""
    ctx = _context(context)
    try:
        ride = Ride.objects.get(pk=ride_id)
    except Ride.DoesNotExist:
        raise RideNotFoundError()

    if ride.passenger_id != user.pk:
        raise Forbidden("Only the ride's passenger can view its offers")

    return list(
        ride.offers.filter(
            Q(status='accepted') | Q(status='pending', expires_at__gt=ctx.now())
        )
        .select_related('driver', 'driver__driver_profile')
        .order_by('offered_price', 'created_at')
    )


def _is_approved_driver(user) -> bool:
    if not getattr(user, 'is_driver', False):
        return False
    try:
        return user.driver_profile.is_approved
    except DriverProfile.DoesNotExist:
        return False


# ===================== Passenger Operations =====================

def create_ride(
    passenger,
    pickup_latitude,
    pickup_longitude,
    dropoff_latitude,
    dropoff_longitude,
    pickup_address: str = "",
    dropoff_address: str = "",
    vehicle_type: str = "economy",
    payment_method: str = "pix",
    passenger_price_offer=None,
    notes: str = "",
    context: Optional[ServiceContext] = None,
    routing_provider=None,
) -> RideResult:
    """
    Create a new ride request and tell nearby drivers about it.

    Raises:
        Forbidden: If the user is not a passenger
        ActiveRideExistsError: If passenger already has an active ride
    """
    from drivers.services import find_nearby_drivers
    from services.pricing import estimate_trip, format_distance

    ctx = _context(context)

    if not passenger.is_passenger:
        raise Forbidden("Only passengers can request rides")

    # Outside the transaction: may call the routing provider
    estimate = estimate_trip(
        pickup_latitude, pickup_longitude, dropoff_latitude, dropoff_longitude,
        provider=routing_provider,
    )

    with transaction.atomic():
        # One active ride per passenger; the row lock serialises double submits
        get_user_model().objects.select_for_update().filter(pk=passenger.pk).first()
        if check_active_ride(passenger):
            raise ActiveRideExistsError("You already have an active ride request")

        ride = Ride.objects.create(
            passenger=passenger,
            pickup_latitude=pickup_latitude,
            pickup_longitude=pickup_longitude,
            pickup_address=pickup_address,
            dropoff_latitude=dropoff_latitude,
            dropoff_longitude=dropoff_longitude,
            dropoff_address=dropoff_address,
            vehicle_type=vehicle_type,
            distance_km=Decimal(str(round(estimate.distance_km, 2))),
            duration_minutes=estimate.duration_minutes,
            suggested_price=estimate.suggested_price,
            passenger_price_offer=passenger_price_offer,
            payment_method=payment_method,
            notes=notes,
            status='pending',
        )

        nearby = find_nearby_drivers(
            float(pickup_latitude),
            float(pickup_longitude),
            radius_km=getattr(settings, "NEW_RIDE_BROADCAST_RADIUS_KM", 5),
            vehicle_type=vehicle_type,
        )
        driver_ids = [d["driver_id"] for d in nearby if d["driver_id"] != passenger.pk]
        ctx.notifier.fan_out(
            driver_ids,
            'ride',
            'New ride available',
            f"From {pickup_address or 'pickup'} to {dropoff_address or 'dropoff'} "
            f"({format_distance(estimate.distance_km)}, suggested {estimate.suggested_price})",
            ride=ride,
            data={"ride_id": ride.id, "suggested_price": str(estimate.suggested_price)},
        )

    logger.info("Ride %s created by passenger %s; %s driver(s) notified", ride.id, passenger.pk, len(driver_ids))

    return RideResult(
        success=True,
        ride=ride,
        message="Ride created successfully",
        extra={"notified_drivers": len(driver_ids), "estimate": estimate.as_dict()},
    )


@transaction.atomic
def accept_offer(passenger, offer_id: int, context: Optional[ServiceContext] = None) -> RideResult:
    """
    Accept a driver's price offer.

    Offer accepted, sibling offers rejected, driver and final price set on
    the ride, ride accepted: either all of it is committed or none of it.
    """
    ctx = _context(context)
    now = ctx.now()

    try:
        offer = PriceOffer.objects.select_for_update().get(pk=offer_id)
    except PriceOffer.DoesNotExist:
        raise OfferNotFoundError()

    ride = _lock_ride(offer.ride_id)

    if ride.passenger_id != passenger.pk:
        raise Forbidden("Only the ride's passenger can accept offers")
    if offer.status != 'pending':
        raise InvalidState(f"This offer is already {offer.status}")
    if offer.is_expired(now):
        raise OfferExpiredError()
    if ride.status not in Ride.OPEN_STATUSES:
        raise RideNotAvailableError(f"Cannot accept offers - ride is {ride.status}")
    # Two rides accepting the same driver serialise on the driver row
    DriverProfile.objects.select_for_update().filter(user_id=offer.driver_id).first()
    if Ride.objects.filter(driver_id=offer.driver_id, status__in=Ride.ASSIGNED_STATUSES).exists():
        raise InvalidState("This driver is no longer available")

    try:
        with transaction.atomic():
            offer.status = 'accepted'
            offer.responded_at = now
            offer.save(update_fields=['status', 'responded_at', 'updated_at'])

            ride.offers.exclude(pk=offer.pk).exclude(status='rejected').update(
                status='rejected', responded_at=now
            )

            ride.driver_id = offer.driver_id
            ride.final_price = offer.offered_price
            ride.status = 'accepted'
            ride.accepted_at = now
            ride.save(update_fields=['driver', 'final_price', 'status', 'accepted_at', 'updated_at'])
    except IntegrityError:
        # one_accepted_offer_per_ride
        raise InvalidState("This ride already has an accepted offer")

    _set_driver_availability(offer.driver_id, 'busy')

    ctx.notifier.notify_status_change(ride, offer.driver_id, 'accepted')
    logger.info("Ride %s: offer %s accepted at %s", ride.id, offer.id, offer.offered_price)

    return RideResult(
        success=True,
        ride=ride,
        offer=offer,
        message="Offer accepted successfully",
    )


# ===================== Driver Operations =====================

@transaction.atomic
def submit_offer(
    driver,
    ride_id: int,
    offered_price,
    estimated_arrival_minutes: int = 5,
    message: str = "",
    context: Optional[ServiceContext] = None,
) -> RideResult:
    """
    Attach a driver's price offer to an open ride.

    Raises:
        DriverNotAvailableError: Not a driver, or not approved
        RideNotAvailableError: Ride no longer takes offers
        DuplicateOfferError: Driver already has a pending offer on the ride
    """
    ctx = _context(context)
    now = ctx.now()

    if not _is_approved_driver(driver):
        raise DriverNotAvailableError()

    price = Decimal(str(offered_price))
    if price <= 0:
        raise ValidationError("Offered price must be greater than zero")

    ride = _lock_ride(ride_id)

    if ride.passenger_id == driver.pk:
        raise Forbidden("You cannot make an offer on your own ride")
    if ride.status not in Ride.OPEN_STATUSES:
        raise RideNotAvailableError()
    if ride.offers.filter(driver=driver, status='pending', expires_at__gt=now).exists():
        raise DuplicateOfferError()

    # A stale pending offer would otherwise trip one_pending_offer_per_driver
    ride.offers.filter(driver=driver, status='pending').update(status='expired', responded_at=now)

    offer = PriceOffer.objects.create(
        ride=ride,
        driver=driver,
        offered_price=price,
        estimated_arrival_minutes=estimated_arrival_minutes,
        message=message,
        status='pending',
        expires_at=now + _offer_ttl(),
    )

    if ride.status == 'pending':
        ride.status = 'negotiating'
        ride.save(update_fields=['status', 'updated_at'])

    ctx.notifier.notify_status_change(
        ride,
        ride.passenger_id,
        'negotiating',
        message=f"{driver.username} offered {price} - arrives in {estimated_arrival_minutes} min",
    )

    _schedule_offer_expiry(offer)
    logger.info("Driver %s offered %s on ride %s", driver.pk, price, ride.id)

    return RideResult(
        success=True,
        ride=ride,
        offer=offer,
        message="Offer sent successfully",
    )


def _schedule_offer_expiry(offer: PriceOffer):
    from rides.tasks import expire_price_offer_task

    def enqueue():
        try:
            expire_price_offer_task.apply_async((offer.id,), eta=offer.expires_at)
        except Exception:
            logger.exception("Failed to schedule expiry for offer %s", offer.id)

    transaction.on_commit(enqueue)


@transaction.atomic
def expire_offer(offer_id: int, context: Optional[ServiceContext] = None) -> bool:
    """
    Expire a pending offer whose deadline has passed.

    A negotiating ride left without pending offers goes back to pending.
    Returns True if the offer was expired by this call.
    """
    ctx = _context(context)
    now = ctx.now()

    try:
        offer = PriceOffer.objects.select_for_update().get(pk=offer_id)
    except PriceOffer.DoesNotExist:
        raise OfferNotFoundError()

    if offer.status != 'pending' or not offer.is_expired(now):
        return False

    ride = _lock_ride(offer.ride_id)

    offer.status = 'expired'
    offer.responded_at = now
    offer.save(update_fields=['status', 'responded_at', 'updated_at'])

    if ride.status == 'negotiating' and not ride.offers.filter(status='pending').exists():
        ride.status = 'pending'
        ride.save(update_fields=['status', 'updated_at'])

    logger.info("Offer %s on ride %s expired", offer.id, ride.id)
    return True


# ===================== Shared Operations =====================

@transaction.atomic
def advance_status(actor, ride_id: int, status: str, reason: str = "",
                   context: Optional[ServiceContext] = None) -> RideResult:
    """
    Move a ride forward (accepted -> started -> completed).

    `cancelled` is delegated to cancel_ride. Unknown statuses raise
    InvalidStatusError, known but unreachable ones InvalidTransitionError;
    in both cases nothing is written.
    """
    ctx = _context(context)
    target = Ride.normalize_status(status)

    if target not in dict(Ride.STATUS_CHOICES):
        raise InvalidStatusError(f"Invalid status '{status}'")

    if target == 'cancelled':
        return cancel_ride(actor, ride_id, reason=reason, context=ctx)

    ride = _lock_ride(ride_id)

    if not ride.is_participant(actor):
        raise NotRideParticipantError()
    if FORWARD_TRANSITIONS.get(ride.status) != target:
        raise InvalidTransitionError(f"Cannot change ride from {ride.status} to {target}")
    if actor.pk != ride.driver_id:
        raise Forbidden(f"Only the assigned driver can mark the ride {target}")

    now = ctx.now()
    ride.status = target
    if target == 'started':
        ride.started_at = now
        ride.save(update_fields=['status', 'started_at', 'updated_at'])
    else:
        ride.completed_at = now
        ride.save(update_fields=['status', 'completed_at', 'updated_at'])
        _finish_ride(ride, ctx)

    ctx.notifier.notify_status_change(ride, ride.counterparty_id(actor), target)
    logger.info("Ride %s is now %s", ride.id, target)

    return RideResult(
        success=True,
        ride=ride,
        message=f"Ride {target}",
    )


def _finish_ride(ride: Ride, ctx: ServiceContext):
    from engagement.services import check_and_grant_achievements, complete_referral_for

    User = get_user_model()
    User.objects.filter(pk__in=[ride.passenger_id, ride.driver_id]).update(
        completed_rides=F('completed_rides') + 1
    )
    _set_driver_availability(ride.driver_id, 'available')

    if ride.payment_method == 'wallet' and ride.final_price:
        description = f"Ride #{ride.id}"
        ctx.ledger.append(ride.passenger_id, -ride.final_price, 'ride', description, 'ride', ride.id)
        ctx.ledger.append(ride.driver_id, ride.final_price, 'ride', description, 'ride', ride.id)

    for user in User.objects.filter(pk__in=[ride.passenger_id, ride.driver_id]):
        complete_referral_for(user, context=ctx)
        check_and_grant_achievements(user)


def compute_cancellation_fee(ride: Ride) -> Decimal:
    """Nothing before a driver is assigned, a share of the final price after."""
    if ride.status not in Ride.ASSIGNED_STATUSES or not ride.final_price:
        return Decimal("0.00")
    rate = Decimal(str(getattr(settings, "CANCELLATION_FEE_RATE", "0.10")))
    return (ride.final_price * rate).quantize(CENTS, rounding=ROUND_HALF_UP)


@transaction.atomic
def cancel_ride(actor, ride_id: int, reason: str = "",
                context: Optional[ServiceContext] = None) -> RideResult:
    """
    Cancel a ride on behalf of its passenger or assigned driver.

    The fee is recorded on the ride; charging it is settle_cancellation_fee's job.
    """
    ctx = _context(context)
    ride = _lock_ride(ride_id)

    if not ride.is_participant(actor):
        raise NotRideParticipantError()
    if ride.status not in Ride.ACTIVE_STATUSES:
        raise InvalidTransitionError(f"Cannot cancel - ride is already {ride.status}")

    now = ctx.now()
    fee = compute_cancellation_fee(ride)
    reason = reason or "No reason provided"

    ride.status = 'cancelled'
    ride.cancelled_by = actor
    ride.cancellation_reason = reason
    ride.cancellation_fee = fee
    ride.cancelled_at = now
    ride.final_price = None
    ride.save(update_fields=[
        'status', 'cancelled_by', 'cancellation_reason', 'cancellation_fee',
        'cancelled_at', 'final_price', 'updated_at',
    ])

    ride.offers.filter(status='pending').update(status='expired', responded_at=now)
    _set_driver_availability(ride.driver_id, 'available')

    ctx.notifier.notify_status_change(
        ride,
        ride.counterparty_id(actor),
        'cancelled',
        message=f"The ride was cancelled. Reason: {reason}",
    )
    logger.info("Ride %s cancelled by user %s (fee %s)", ride.id, actor.pk, fee)

    return RideResult(
        success=True,
        ride=ride,
        message="Ride cancelled successfully",
        extra={"cancellation_fee": fee},
    )


@transaction.atomic
def settle_cancellation_fee(actor, ride_id: int, context: Optional[ServiceContext] = None) -> RideResult:
    """Charge the party that cancelled and credit the other one."""
    ctx = _context(context)
    ride = _lock_ride(ride_id)

    if not ride.is_participant(actor):
        raise NotRideParticipantError()
    if ride.status != 'cancelled':
        raise InvalidState("Only cancelled rides have a cancellation fee")
    if ride.cancellation_fee_settled:
        raise FeeAlreadySettledError()
    if not ride.cancellation_fee or ride.cancellation_fee <= 0:
        raise InvalidState("This ride has no cancellation fee")

    payer_id = ride.cancelled_by_id
    payee_id = ride.driver_id if payer_id == ride.passenger_id else ride.passenger_id
    description = f"Cancellation fee - ride #{ride.id}"

    ctx.ledger.append(payer_id, -ride.cancellation_fee, 'ride', description, 'ride_cancellation', ride.id)
    ctx.ledger.append(payee_id, ride.cancellation_fee, 'ride', description, 'ride_cancellation', ride.id)

    ride.cancellation_fee_settled = True
    ride.save(update_fields=['cancellation_fee_settled', 'updated_at'])

    ctx.notifier.notify(
        payee_id,
        'payment',
        'Cancellation fee received',
        f"{ride.cancellation_fee} credited to your wallet for ride #{ride.id}",
        ride=ride,
        data={"ride_id": ride.id, "amount": str(ride.cancellation_fee)},
    )

    return RideResult(
        success=True,
        ride=ride,
        message="Cancellation fee settled",
        extra={"cancellation_fee": ride.cancellation_fee, "payer_id": payer_id, "payee_id": payee_id},
    )
