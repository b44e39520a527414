"""
Service error taxonomy and the DRF exception handler that renders it.

Services raise the classes below (or subclasses of them); views never build
error responses by hand. Every error reaches the client as::

    {"error": "<message>"}

with `errors` added for field-level validation failures and `retry_after`
for throttled requests.
"""

import logging
from typing import Any, Dict, Optional

from django.db import DatabaseError
from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for errors that map onto an HTTP status."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request could not be processed"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message, **self.extra}


class ValidationError(ServiceError):
    """Malformed or missing input."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request data"


class Unauthorized(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class Forbidden(ServiceError):
    """Authenticated but not entitled to act on the resource."""
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have permission to perform this action"


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(ServiceError):
    """Duplicate action (second rating, second referral, ...)."""
    status_code = status.HTTP_409_CONFLICT
    default_message = "This action was already performed"


class RateLimited(ServiceError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests. Please try again in a few seconds."


class TransientStoreError(ServiceError):
    """The data store is degraded; not retried by this layer."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Service temporarily unavailable"


class InvalidState(ServiceError):
    """Illegal lifecycle transition."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "This action is not allowed in the current state"


def _first_message(detail) -> str:
    if isinstance(detail, dict):
        for value in detail.values():
            return _first_message(value)
    if isinstance(detail, (list, tuple)) and detail:
        return _first_message(detail[0])
    return str(detail)


def api_exception_handler(exc, context):
    """Render every exception raised inside a DRF view as `{"error": ...}`."""
    view = context.get("view")
    request = context.get("request")
    operation = "%s %s" % (
        getattr(request, "method", "?"),
        view.__class__.__name__ if view is not None else "unknown",
    )

    if isinstance(exc, ServiceError):
        if exc.status_code >= 500:
            logger.error("%s failed: %s", operation, exc.message)
        return Response(exc.to_payload(), status=exc.status_code)

    if isinstance(exc, drf_exceptions.ValidationError):
        return Response(
            {"error": _first_message(exc.detail), "errors": exc.detail},
            status=status.HTTP_400_BAD_REQUEST,
        )

    if isinstance(exc, drf_exceptions.Throttled):
        response = drf_exception_handler(exc, context)
        retry_after = int(exc.wait) if exc.wait is not None else None
        response.data = {"error": RateLimited.default_message, "retry_after": retry_after}
        return response

    if isinstance(exc, (drf_exceptions.APIException, Http404)):
        response = drf_exception_handler(exc, context)
        if response is not None:
            detail = response.data.get("detail", response.data) if isinstance(response.data, dict) else response.data
            response.data = {"error": _first_message(detail)}
            return response

    if isinstance(exc, DatabaseError):
        logger.exception("%s failed: data store error", operation)
        return Response(
            {"error": TransientStoreError.default_message},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    logger.exception("%s failed with an unexpected error", operation)
    return Response(
        {"error": "Internal server error"},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
