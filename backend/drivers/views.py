from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from accounts.permissions import IsDriver
from common.exceptions import NotFound
from common.ratelimit import HotZonesRateThrottle, NearbyDriversRateThrottle
from drivers.models import DriverProfile
from drivers.serializers import (
    AreaQuerySerializer,
    DriverProfileSerializer,
    DriverStatusSerializer,
    LocationUpdateSerializer,
)
from rides.serializers import RideSerializer
from rides.models import Ride

from drivers import services


# Utility: the authenticated driver's profile
def require_driver_profile(user) -> DriverProfile:
    try:
        return user.driver_profile
    except DriverProfile.DoesNotExist:
        raise NotFound("Driver profile not found")


class DriverProfileView(APIView):
    permission_classes = [IsAuthenticated, IsDriver]

    def get(self, request):
        profile = require_driver_profile(request.user)
        serializer = DriverProfileSerializer(profile, context={"request": request})
        return Response(serializer.data)

    def patch(self, request):
        profile = require_driver_profile(request.user)
        serializer = DriverProfileSerializer(
            profile, data=request.data, partial=True, context={"request": request}
        )
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)


class DriverStatusView(APIView):
    permission_classes = [IsAuthenticated, IsDriver]

    def get(self, request):
        profile = require_driver_profile(request.user)
        return Response({"status": profile.status})

    def put(self, request):
        profile = require_driver_profile(request.user)

        serializer = DriverStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        new_status = serializer.validated_data["status"]

        services.update_driver_status(profile, new_status)

        return Response({
            "message": f"Status updated to {new_status}",
            "status": new_status
        })


class DriverLocationUpdateView(APIView):
    permission_classes = [IsAuthenticated, IsDriver]

    def get(self, request):
        profile = require_driver_profile(request.user)

        return Response({
            "latitude": float(profile.current_latitude) if profile.current_latitude is not None else None,
            "longitude": float(profile.current_longitude) if profile.current_longitude is not None else None,
            "last_updated": profile.last_location_update,
            "status": profile.status,
        })

    def post(self, request):
        profile = require_driver_profile(request.user)

        serializer = LocationUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        lat = serializer.validated_data["latitude"]
        lon = serializer.validated_data["longitude"]

        services.update_driver_location(profile, lat, lon)

        return Response({
            "message": "Location updated",
            "latitude": float(lat),
            "longitude": float(lon),
            "status": profile.status
        })


class NearbyDriversView(APIView):
    """
    GET ?lat=&lng=&radius=&vehicle_type=

    Available drivers around a pickup point, closest first.
    """
    permission_classes = [IsAuthenticated]
    throttle_classes = [NearbyDriversRateThrottle]

    def get(self, request):
        query = AreaQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        drivers = services.find_nearby_drivers(
            params["lat"],
            params["lng"],
            radius_km=params["radius"],
            vehicle_type=params.get("vehicle_type"),
        )

        return Response({
            "success": True,
            "drivers": drivers,
            "count": len(drivers),
            "search_radius_km": params["radius"],
        })


class HotZonesView(APIView):
    """GET ?lat=&lng=&radius= : areas with open ride demand around a driver."""
    permission_classes = [IsAuthenticated, IsDriver]
    throttle_classes = [HotZonesRateThrottle]

    def get(self, request):
        query = AreaQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        zones = services.get_hot_zones_for_drivers(params["lat"], params["lng"], params["radius"])
        return Response({"hot_zones": zones, "count": len(zones)})


class DriverCurrentRideView(APIView):
    permission_classes = [IsAuthenticated, IsDriver]

    def get(self, request):
        ride = Ride.objects.filter(
            driver=request.user, status__in=Ride.ASSIGNED_STATUSES
        ).select_related("passenger").first()
        if not ride:
            return Response({"has_active_ride": False, "message": "No active ride"})

        serializer = RideSerializer(ride, context={"request": request})
        return Response({"has_active_ride": True, "ride": serializer.data})


class DriverRideHistoryView(APIView):
    permission_classes = [IsAuthenticated, IsDriver]

    def get(self, request):
        completed = Ride.objects.filter(driver=request.user, status="completed")
        serializer = RideSerializer(completed, many=True, context={"request": request})

        return Response({"count": len(serializer.data), "rides": serializer.data})
