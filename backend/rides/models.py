import secrets
from datetime import timedelta

from django.db import models
from django.db.models import Q
from django.conf import settings
from django.utils import timezone


class Ride(models.Model):
    """A passenger's ride request and its negotiated lifecycle."""

    STATUS_CHOICES = [
        ('pending', 'Waiting for Offers'),
        ('negotiating', 'Negotiating'),
        ('accepted', 'Accepted'),
        ('started', 'Started'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    # Legacy names for the started state still sent by older clients
    STATUS_ALIASES = {
        'on_way': 'started',
        'in_progress': 'started',
    }

    # Open for driver offers
    OPEN_STATUSES = ('pending', 'negotiating')
    # Driver assigned, ride not finished
    ASSIGNED_STATUSES = ('accepted', 'started')
    ACTIVE_STATUSES = OPEN_STATUSES + ASSIGNED_STATUSES
    TERMINAL_STATUSES = ('completed', 'cancelled')

    VEHICLE_TYPE_CHOICES = [
        ('economy', 'Economy'),
        ('comfort', 'Comfort'),
        ('premium', 'Premium'),
        ('suv', 'SUV'),
        ('van', 'Van'),
        ('moto', 'Motorcycle'),
    ]

    PAYMENT_METHOD_CHOICES = [
        ('pix', 'PIX'),
        ('credit_card', 'Credit Card'),
        ('debit_card', 'Debit Card'),
        ('cash', 'Cash'),
        ('wallet', 'Wallet'),
    ]

    # Foreign keys
    passenger = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='rides_as_passenger'
    )

    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='rides_as_driver'
    )

    # Pickup location
    pickup_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_address = models.TextField(blank=True, default='')

    # Dropoff location
    dropoff_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    dropoff_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    dropoff_address = models.TextField(blank=True, default='')

    vehicle_type = models.CharField(max_length=10, choices=VEHICLE_TYPE_CHOICES, default='economy')

    # Estimate captured at request time
    distance_km = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    duration_minutes = models.PositiveIntegerField(null=True, blank=True)
    suggested_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    # Negotiation
    passenger_price_offer = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    final_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default='pix')
    notes = models.CharField(max_length=200, blank=True, default='')

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending', db_index=True)

    # Cancellation
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    cancellation_reason = models.TextField(blank=True, default='')
    cancellation_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    cancellation_fee_settled = models.BooleanField(default=False)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'rides'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['passenger', 'status']),
            models.Index(fields=['driver', 'status']),
        ]

    @classmethod
    def normalize_status(cls, value: str) -> str:
        value = (value or '').strip().lower()
        return cls.STATUS_ALIASES.get(value, value)

    def is_participant(self, user) -> bool:
        return user.pk is not None and user.pk in (self.passenger_id, self.driver_id)

    def counterparty_id(self, user):
        """The other participant of the ride (None while no driver is assigned)."""
        if user.pk == self.passenger_id:
            return self.driver_id
        if user.pk == self.driver_id:
            return self.passenger_id
        return None

    def __str__(self):
        return f"Ride #{self.id} - {self.passenger} - {self.status}"


class PriceOffer(models.Model):
    """A driver's proposed price for a ride, subject to passenger acceptance."""

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('accepted', 'Accepted'),
        ('rejected', 'Rejected'),
        ('expired', 'Expired'),
    ]

    ride = models.ForeignKey(
        Ride,
        on_delete=models.PROTECT,
        related_name='offers'
    )

    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='price_offers'
    )

    offered_price = models.DecimalField(max_digits=10, decimal_places=2)
    estimated_arrival_minutes = models.PositiveIntegerField(default=5)
    message = models.CharField(max_length=150, blank=True, default='')

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending', db_index=True)

    expires_at = models.DateTimeField()
    responded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'price_offers'
        ordering = ['offered_price', 'created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['ride'],
                condition=Q(status='accepted'),
                name='one_accepted_offer_per_ride'
            ),
            models.UniqueConstraint(
                fields=['ride', 'driver'],
                condition=Q(status='pending'),
                name='one_pending_offer_per_driver'
            ),
        ]

    def is_expired(self, now=None) -> bool:
        return (now or timezone.now()) >= self.expires_at

    def __str__(self):
        return f"Offer #{self.id} - Ride {self.ride_id} -> Driver {self.driver_id} ({self.offered_price})"


def generate_invite_code() -> str:
    """Six upper-case characters, e.g. '4KQ9ZD'."""
    return secrets.token_hex(3).upper()


def default_group_expiry():
    return timezone.now() + timedelta(hours=24)


class GroupRide(models.Model):
    """Passengers sharing one trip, joined through an invite code."""

    STATUS_CHOICES = [
        ('open', 'Open'),
        ('full', 'Full'),
        ('cancelled', 'Cancelled'),
    ]

    SPLIT_METHOD_CHOICES = [
        ('equal', 'Equal'),
        ('distance', 'By Distance'),
    ]

    ride = models.ForeignKey(
        Ride,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='groups'
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='group_rides_created'
    )
    invite_code = models.CharField(max_length=12, unique=True)
    max_passengers = models.PositiveSmallIntegerField(default=4)
    split_method = models.CharField(max_length=10, choices=SPLIT_METHOD_CHOICES, default='equal')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='open')
    expires_at = models.DateTimeField(default=default_group_expiry)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'group_rides'
        ordering = ['-created_at', '-id']

    def is_expired(self, now=None) -> bool:
        return self.expires_at <= (now or timezone.now())

    def __str__(self):
        return f"Group {self.invite_code} ({self.status})"


class GroupRideParticipant(models.Model):
    group_ride = models.ForeignKey(GroupRide, on_delete=models.CASCADE, related_name='participants')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='group_ride_memberships'
    )
    status = models.CharField(max_length=10, default='accepted')

    pickup_latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    pickup_longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    pickup_address = models.TextField(blank=True, default='')
    dropoff_latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    dropoff_longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    dropoff_address = models.TextField(blank=True, default='')

    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'group_ride_participants'
        ordering = ['joined_at', 'id']
        constraints = [
            models.UniqueConstraint(fields=['group_ride', 'user'], name='one_membership_per_group_user'),
        ]

    def __str__(self):
        return f"{self.user} in {self.group_ride_id}"


class RideMessage(models.Model):
    """Chat line between the passenger and the driver of a ride."""
    ride = models.ForeignKey(Ride, on_delete=models.CASCADE, related_name='messages')
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='ride_messages'
    )
    message = models.TextField(max_length=1000)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'ride_messages'
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"Ride #{self.ride_id} - {self.sender}: {self.message[:30]}"
