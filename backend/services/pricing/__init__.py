"""
Pricing service - trip distance, duration and suggested fare.
"""

from .estimator import (
    haversine_km,
    TripEstimate,
    GoogleDistanceMatrixProvider,
    RoutingProviderError,
    estimate_trip,
    estimate_duration_minutes,
    suggest_price,
    format_distance,
    format_duration,
    get_routing_provider,
)

__all__ = [
    "haversine_km",
    "TripEstimate",
    "GoogleDistanceMatrixProvider",
    "RoutingProviderError",
    "estimate_trip",
    "estimate_duration_minutes",
    "suggest_price",
    "format_distance",
    "format_duration",
    "get_routing_provider",
]
