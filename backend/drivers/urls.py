from django.urls import path
from .views import (
    DriverProfileView,
    DriverStatusView,
    DriverLocationUpdateView,
    NearbyDriversView,
    HotZonesView,
    DriverCurrentRideView,
    DriverRideHistoryView,
)

app_name = "drivers"

urlpatterns = [
    # Passenger-facing search
    path("nearby/", NearbyDriversView.as_view(), name="nearby-drivers"),

    # Driver-only endpoints
    path("hot-zones/", HotZonesView.as_view(), name="hot-zones"),
    path("me/", DriverProfileView.as_view(), name="driver-profile"),
    path("me/status/", DriverStatusView.as_view(), name="driver-status"),
    path("me/location/", DriverLocationUpdateView.as_view(), name="driver-location"),
    path("me/current-ride/", DriverCurrentRideView.as_view(), name="driver-current-ride"),
    path("me/history/", DriverRideHistoryView.as_view(), name="driver-history"),
]
