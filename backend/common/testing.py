"""Object factories shared by the app test suites."""

from decimal import Decimal

from django.contrib.auth import get_user_model

from drivers.models import DriverProfile
from rides.models import Ride

User = get_user_model()

# Pickup/dropoff about 1.5 km apart in central Sao Paulo
PICKUP = (Decimal("-23.550000"), Decimal("-46.630000"))
DROPOFF = (Decimal("-23.560000"), Decimal("-46.640000"))


def make_passenger(username="passenger", **extra):
    return User.objects.create_user(username=username, password="pass1234", role="passenger", **extra)


def make_driver(username="driver", approved=True, status="available", location=PICKUP, vehicle_type="economy"):
    user = User.objects.create_user(username=username, password="driver1234", role="driver")
    DriverProfile.objects.create(
        user=user,
        vehicle_number=f"UP-{username}"[:20],
        vehicle_type=vehicle_type,
        verification_status="approved" if approved else "pending",
        status=status,
        current_latitude=location[0] if location else None,
        current_longitude=location[1] if location else None,
    )
    return user


def make_ride(passenger, status="pending", driver=None, final_price=None, **extra):
    """Insert a ride row directly, bypassing the lifecycle checks."""
    fields = dict(
        passenger=passenger,
        driver=driver,
        pickup_latitude=PICKUP[0],
        pickup_longitude=PICKUP[1],
        pickup_address="Praca da Se",
        dropoff_latitude=DROPOFF[0],
        dropoff_longitude=DROPOFF[1],
        dropoff_address="Avenida Paulista",
        status=status,
        final_price=final_price,
    )
    fields.update(extra)
    return Ride.objects.create(**fields)


class RecordingNotifier:
    """Stands in for NotificationDispatcher and keeps what it was asked to send."""

    def __init__(self):
        self.sent = []

    def notify(self, user_id, type, title, message, ride=None, data=None):
        self.sent.append({"user_id": user_id, "type": type, "title": title, "message": message, "ride": ride})

    def notify_status_change(self, ride, recipient_id, status, message=""):
        if recipient_id:
            self.sent.append({"user_id": recipient_id, "status": status, "ride": ride, "message": message})

    def fan_out(self, user_ids, type, title, message, ride=None, data=None):
        for user_id in user_ids:
            self.notify(user_id, type, title, message, ride=ride, data=data)

    def recipients(self):
        return [n["user_id"] for n in self.sent]
