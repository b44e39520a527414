"""
Trip distance, duration and suggested price.

A routing provider (Google Distance Matrix) is consulted when configured;
whatever goes wrong with it, the straight-line estimate is used instead.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

import requests
from django.conf import settings

from common.utils.geo import haversine_km

logger = logging.getLogger(__name__)

BASE_FARE = Decimal("5.00")
PRICE_PER_KM = Decimal("2.50")
AVERAGE_SPEED_KMH = 30

SOURCE_PROVIDER = "routing_provider"
SOURCE_FALLBACK = "haversine"


@dataclass(frozen=True)
class TripEstimate:
    distance_km: float
    duration_minutes: int
    suggested_price: Decimal
    source: str = SOURCE_FALLBACK

    def as_dict(self):
        return {
            "distance_km": round(self.distance_km, 2),
            "duration_minutes": self.duration_minutes,
            "suggested_price": self.suggested_price,
            "distance_text": format_distance(self.distance_km),
            "duration_text": format_duration(self.duration_minutes),
            "source": self.source,
        }


class RoutingProviderError(Exception):
    """The routing provider gave no usable answer."""


class GoogleDistanceMatrixProvider:
    """Driving distance/duration from the Google Distance Matrix API."""

    url = "https://maps.googleapis.com/maps/api/distancematrix/json"

    def __init__(self, api_key: str, timeout: float = 5.0, session=None):
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def route(self, pickup: Tuple[float, float], dropoff: Tuple[float, float]) -> Tuple[float, int]:
        """Return (distance_km, duration_minutes) or raise RoutingProviderError."""
        params = {
            "origins": f"{pickup[0]},{pickup[1]}",
            "destinations": f"{dropoff[0]},{dropoff[1]}",
            "mode": "driving",
            "key": self.api_key,
        }
        try:
            response = self.session.get(self.url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise RoutingProviderError(str(exc)) from exc

        try:
            element = data["rows"][0]["elements"][0]
            if element.get("status") != "OK":
                raise RoutingProviderError(f"element status {element.get('status')}")
            distance_km = float(element["distance"]["value"]) / 1000
            duration_minutes = int(round(float(element["duration"]["value"]) / 60))
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise RoutingProviderError(f"malformed response: {exc}") from exc

        return distance_km, duration_minutes


def get_routing_provider() -> Optional[GoogleDistanceMatrixProvider]:
    api_key = getattr(settings, "GOOGLE_MAPS_API_KEY", "")
    if not api_key:
        return None
    return GoogleDistanceMatrixProvider(api_key, timeout=getattr(settings, "ROUTING_PROVIDER_TIMEOUT", 5.0))


def estimate_duration_minutes(distance_km: float) -> int:
    """Minutes at the average city speed of 30 km/h."""
    return int(round(distance_km / AVERAGE_SPEED_KMH * 60))


def suggest_price(distance_km: float) -> Decimal:
    """Base fare plus a per-kilometre rate, rounded to cents."""
    price = BASE_FARE + Decimal(str(distance_km)) * PRICE_PER_KM
    return price.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def estimate_trip(pickup_lat, pickup_lng, dropoff_lat, dropoff_lng, provider=None) -> TripEstimate:
    """
    Estimate a trip between two points.

    Args:
        provider: Object with a `route(pickup, dropoff)` method; defaults to the
            configured routing provider (None when no API key is set)

    Never raises for provider failures: they are logged and the Haversine
    estimate is returned.
    """
    pickup = (float(pickup_lat), float(pickup_lng))
    dropoff = (float(dropoff_lat), float(dropoff_lng))

    if provider is None:
        provider = get_routing_provider()

    if provider is not None:
        try:
            distance_km, duration_minutes = provider.route(pickup, dropoff)
            return TripEstimate(
                distance_km=distance_km,
                duration_minutes=duration_minutes,
                suggested_price=suggest_price(distance_km),
                source=SOURCE_PROVIDER,
            )
        except RoutingProviderError as exc:
            logger.warning("Routing provider failed, using straight-line estimate: %s", exc)

    distance_km = haversine_km(pickup[0], pickup[1], dropoff[0], dropoff[1])
    return TripEstimate(
        distance_km=distance_km,
        duration_minutes=estimate_duration_minutes(distance_km),
        suggested_price=suggest_price(distance_km),
    )


def format_distance(distance_km: float) -> str:
    if distance_km < 1:
        return f"{round(distance_km * 1000)}m"
    return f"{distance_km:.1f}km"


def format_duration(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes} min"
    hours, mins = divmod(minutes, 60)
    return f"{hours}h {mins}min"
