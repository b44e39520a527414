"""Common utility functions."""

from .geo import encode_geohash, haversine_km

__all__ = [
    "encode_geohash",
    "haversine_km",
]
