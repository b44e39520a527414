"""
Geographic utility functions.

This module provides core geospatial calculations used throughout the application.
"""

from math import radians, cos, sin, asin, sqrt

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points in kilometres (Haversine formula).

    Args:
        lat1: Latitude of first point in degrees
        lon1: Longitude of first point in degrees
        lat2: Latitude of second point in degrees
        lon2: Longitude of second point in degrees

    Returns:
        Distance in kilometres
    """
    lat1, lon1, lat2, lon2 = map(radians, [float(lat1), float(lon1), float(lat2), float(lon2)])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # sqrt(a) can round past 1.0 for antipodal points
    c = 2 * asin(min(1.0, sqrt(a)))
    return c * EARTH_RADIUS_KM


KM_PER_DEGREE_LAT = 111.0


def bounding_box(lat: float, lon: float, radius_km: float):
    """
    Lat/lng box that contains every point within `radius_km` of (lat, lon).

    Returns:
        (min_lat, max_lat, min_lon, max_lon). The longitude bounds are None
        when the box reaches a pole or wraps the antimeridian.
    """
    lat, lon = float(lat), float(lon)
    lat_delta = radius_km / KM_PER_DEGREE_LAT
    min_lat, max_lat = max(lat - lat_delta, -90.0), min(lat + lat_delta, 90.0)

    if min_lat <= -90.0 or max_lat >= 90.0:
        return min_lat, max_lat, None, None

    # Degrees of longitude shrink with cos(latitude); the edge nearest a pole is narrowest
    widest = max(abs(min_lat), abs(max_lat))
    lon_delta = radius_km / (KM_PER_DEGREE_LAT * cos(radians(widest)))
    min_lon, max_lon = lon - lon_delta, lon + lon_delta
    if min_lon < -180.0 or max_lon > 180.0:
        return min_lat, max_lat, None, None
    return min_lat, max_lat, min_lon, max_lon


# Base32 alphabet for geohash
_BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"


def encode_geohash(lat: float, lon: float, precision: int = 6) -> str:
    """
    Encode latitude/longitude to geohash string.

    Args:
        lat: Latitude (-90 to 90)
        lon: Longitude (-180 to 180)
        precision: Number of characters (1-12)

    Returns:
        Geohash string
    """
    lat, lon = float(lat), float(lon)
    lat_range = (-90.0, 90.0)
    lon_range = (-180.0, 180.0)

    geohash = []
    bits = [16, 8, 4, 2, 1]
    bit = 0
    ch = 0
    is_lon = True

    while len(geohash) < precision:
        if is_lon:
            mid = (lon_range[0] + lon_range[1]) / 2
            if lon >= mid:
                ch |= bits[bit]
                lon_range = (mid, lon_range[1])
            else:
                lon_range = (lon_range[0], mid)
        else:
            mid = (lat_range[0] + lat_range[1]) / 2
            if lat >= mid:
                ch |= bits[bit]
                lat_range = (mid, lat_range[1])
            else:
                lat_range = (lat_range[0], mid)

        is_lon = not is_lon

        if bit < 4:
            bit += 1
        else:
            geohash.append(_BASE32[ch])
            bit = 0
            ch = 0

    return "".join(geohash)
