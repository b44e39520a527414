import secrets

from django.conf import settings
from django.db import models
from django.contrib.auth.models import AbstractUser


def generate_referral_code() -> str:
    """Eight upper-case characters, e.g. 'K7Q2MX9A'."""
    return secrets.token_hex(4).upper()


class User(AbstractUser):
    """Extended user model with role selection and ride/rating counters"""
    ROLE_CHOICES = [
        ('passenger', 'Passenger'),
        ('driver', 'Driver'),
    ]

    # Role & basic info
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default='passenger')
    phone_number = models.CharField(max_length=15, blank=True)

    # Aggregates recomputed from ratings received
    rating = models.DecimalField(max_digits=3, decimal_places=2, default=0)
    total_rides = models.PositiveIntegerField(default=0)

    completed_rides = models.IntegerField(default=0)

    # Referral program
    referral_code = models.CharField(max_length=12, unique=True, null=True, blank=True)
    referred_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='referred_users'
    )

    class Meta:
        db_table = 'users'

    def save(self, *args, **kwargs):
        if not self.referral_code:
            code = generate_referral_code()
            while User.objects.filter(referral_code=code).exists():
                code = generate_referral_code()
            self.referral_code = code
        super().save(*args, **kwargs)

    @property
    def is_passenger(self) -> bool:
        return self.role == 'passenger'

    @property
    def is_driver(self) -> bool:
        return self.role == 'driver'

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"


class FavoritePlace(models.Model):
    """A saved address the user can pick as pickup or dropoff"""
    TYPE_CHOICES = [
        ('home', 'Home'),
        ('work', 'Work'),
        ('other', 'Other'),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='favorite_places'
    )
    name = models.CharField(max_length=60)
    address = models.TextField()
    latitude = models.DecimalField(max_digits=9, decimal_places=6)
    longitude = models.DecimalField(max_digits=9, decimal_places=6)
    type = models.CharField(max_length=10, choices=TYPE_CHOICES, default='other')
    icon = models.CharField(max_length=30, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'favorites'
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.user.username}: {self.name}"
