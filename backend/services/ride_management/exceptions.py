"""Custom exceptions for ride management."""

from common.exceptions import (
    Conflict,
    Forbidden,
    InvalidState,
    NotFound,
    ValidationError,
)


class RideNotFoundError(NotFound):
    default_message = "Ride not found"


class OfferNotFoundError(NotFound):
    default_message = "Offer not found"


class RideNotAvailableError(InvalidState):
    """Raised when a ride is not in an available state for the operation."""
    default_message = "This ride is no longer open for offers"


class OfferExpiredError(InvalidState):
    default_message = "This offer has expired"


class InvalidTransitionError(InvalidState):
    """Raised when a known status cannot be reached from the current one."""
    default_message = "Invalid status transition"


class InvalidStatusError(ValidationError):
    """Raised when the requested status is not a ride status at all."""
    default_message = "Invalid status"


class DriverNotAvailableError(Forbidden):
    """Raised when the driver may not take rides (no profile, not approved)."""
    default_message = "Only approved drivers can make offers"


class NotRideParticipantError(Forbidden):
    default_message = "You are not a participant of this ride"


class ActiveRideExistsError(Conflict):
    """Raised when user already has an active ride."""
    default_message = "You already have an active ride"


class DuplicateOfferError(Conflict):
    default_message = "You already have a pending offer for this ride"


class FeeAlreadySettledError(Conflict):
    default_message = "Cancellation fee already settled"
