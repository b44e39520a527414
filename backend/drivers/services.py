import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional

from django.utils import timezone
from datetime import timedelta

from drivers.models import DriverProfile
from rides.models import Ride
from common.utils.geo import bounding_box, encode_geohash, haversine_km

logger = logging.getLogger(__name__)

# Precision-5 geohash cells are roughly 4.9km x 4.9km
HOT_ZONE_PRECISION = 5
HOT_ZONE_LOOKBACK = timedelta(minutes=30)


# DRIVER STATUS UPDATE
def update_driver_status(profile: DriverProfile, new_status: str) -> DriverProfile:
    """Update driver availability status."""
    profile.status = new_status
    profile.save(update_fields=["status"])
    logger.info("Driver %s is now %s", profile.user_id, new_status)
    return profile


def update_driver_location(profile: DriverProfile, lat, lon) -> DriverProfile:
    """Store the driver's latest GPS position."""
    profile.current_latitude = lat
    profile.current_longitude = lon
    profile.last_location_update = timezone.now()
    profile.save(update_fields=["current_latitude", "current_longitude", "last_location_update"])
    return profile


def find_nearby_drivers(
    lat: float,
    lng: float,
    radius_km: float = 5.0,
    vehicle_type: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Available, approved drivers within `radius_km` of a point, closest first.

    Backs GET /api/drivers/nearby/.
    """
    qs = DriverProfile.objects.filter(
        status="available",
        verification_status="approved",
        current_latitude__isnull=False,
        current_longitude__isnull=False,
    ).select_related("user")

    min_lat, max_lat, min_lng, max_lng = bounding_box(lat, lng, radius_km)
    qs = qs.filter(current_latitude__range=(min_lat, max_lat))
    if min_lng is not None:
        qs = qs.filter(current_longitude__range=(min_lng, max_lng))

    if vehicle_type:
        qs = qs.filter(vehicle_type=vehicle_type)

    nearby = []
    for driver in qs:
        dist = haversine_km(lat, lng, driver.current_latitude, driver.current_longitude)
        if dist <= radius_km:
            nearby.append({
                "driver_id": driver.user_id,
                "username": driver.user.username,
                "rating": float(driver.user.rating),
                "total_rides": driver.user.total_rides,
                "vehicle_number": driver.vehicle_number,
                "vehicle_type": driver.vehicle_type,
                "latitude": float(driver.current_latitude),
                "longitude": float(driver.current_longitude),
                "distance_km": round(dist, 2),
                "last_updated": driver.last_location_update,
            })

    nearby.sort(key=lambda d: d["distance_km"])
    return nearby


def get_hot_zones_for_drivers(lat: float, lng: float, radius_km: float = 5.0) -> List[Dict[str, Any]]:
    """
    Group recent open ride requests by geohash cell around a driver.

    Each zone reports the demand (open rides), the mean pickup point and the
    driver's distance to it. Busiest zones first.
    """
    since = timezone.now() - HOT_ZONE_LOOKBACK
    open_rides = Ride.objects.filter(
        status__in=Ride.OPEN_STATUSES,
        created_at__gte=since,
    ).only("pickup_latitude", "pickup_longitude")

    cells = defaultdict(list)
    for ride in open_rides:
        ride_lat, ride_lng = float(ride.pickup_latitude), float(ride.pickup_longitude)
        if haversine_km(lat, lng, ride_lat, ride_lng) > radius_km:
            continue
        cells[encode_geohash(ride_lat, ride_lng, HOT_ZONE_PRECISION)].append((ride_lat, ride_lng))

    zones = []
    for geohash, points in cells.items():
        center_lat = sum(p[0] for p in points) / len(points)
        center_lng = sum(p[1] for p in points) / len(points)
        zones.append({
            "geohash": geohash,
            "latitude": round(center_lat, 6),
            "longitude": round(center_lng, 6),
            "demand": len(points),
            "distance_km": round(haversine_km(lat, lng, center_lat, center_lng), 2),
        })

    zones.sort(key=lambda z: (-z["demand"], z["distance_km"]))
    return zones
