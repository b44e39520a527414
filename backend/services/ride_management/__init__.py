"""
Ride management service - Core ride lifecycle operations.

This module handles:
    - Creating ride requests
    - Driver price offers and their expiry
    - Accepting offers
    - Starting/completing rides
    - Cancelling rides and settling cancellation fees
    - Querying rides
"""

from .ride_lifecycle import (
    RideResult,
    create_ride,
    submit_offer,
    list_offers,
    accept_offer,
    advance_status,
    cancel_ride,
    compute_cancellation_fee,
    settle_cancellation_fee,
    expire_offer,
    get_current_ride,
    get_ride_for_user,
    list_rides_for_user,
)

from .exceptions import (
    RideNotFoundError,
    OfferNotFoundError,
    RideNotAvailableError,
    OfferExpiredError,
    InvalidTransitionError,
    InvalidStatusError,
    DriverNotAvailableError,
    NotRideParticipantError,
    ActiveRideExistsError,
    DuplicateOfferError,
    FeeAlreadySettledError,
)

__all__ = [
    # Lifecycle operations
    "RideResult",
    "create_ride",
    "submit_offer",
    "list_offers",
    "accept_offer",
    "advance_status",
    "cancel_ride",
    "compute_cancellation_fee",
    "settle_cancellation_fee",
    "expire_offer",
    "get_current_ride",
    "get_ride_for_user",
    "list_rides_for_user",
    # Exceptions
    "RideNotFoundError",
    "OfferNotFoundError",
    "RideNotAvailableError",
    "OfferExpiredError",
    "InvalidTransitionError",
    "InvalidStatusError",
    "DriverNotAvailableError",
    "NotRideParticipantError",
    "ActiveRideExistsError",
    "DuplicateOfferError",
    "FeeAlreadySettledError",
]
