from django.conf import settings
from django.db import models


class EmergencyContact(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='emergency_contacts'
    )
    name = models.CharField(max_length=100)
    phone = models.CharField(max_length=20)
    relationship = models.CharField(max_length=50, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'emergency_contacts'
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.user}: {self.name}"


class EmergencyAlert(models.Model):
    """SOS raised by a user, optionally during a ride"""
    TYPE_CHOICES = [
        ('sos', 'SOS'),
        ('accident', 'Accident'),
        ('harassment', 'Harassment'),
        ('other', 'Other'),
    ]

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('resolved', 'Resolved'),
        ('false_alarm', 'False Alarm'),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='emergency_alerts'
    )
    ride = models.ForeignKey(
        'rides.Ride',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='emergency_alerts'
    )
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='sos')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')

    location_latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    location_longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    location_address = models.TextField(blank=True, default='')
    description = models.TextField(blank=True, default='')

    contacts_notified = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'emergency_alerts'
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.get_type_display()} by {self.user} ({self.status})"
