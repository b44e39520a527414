from django.conf import settings
from django.db import models


class Notification(models.Model):
    """Persistent in-app notification; also pushed over the user's socket."""
    TYPE_CHOICES = [
        ('offer', 'Offer'),
        ('ride', 'Ride'),
        ('payment', 'Payment'),
        ('promotion', 'Promotion'),
        ('social', 'Social'),
        ('message', 'Message'),
        ('emergency', 'Emergency'),
        ('system', 'System'),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications'
    )
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='system')
    title = models.CharField(max_length=120)
    message = models.TextField()
    ride = models.ForeignKey(
        'rides.Ride',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications'
    )
    data = models.JSONField(default=dict, blank=True)
    read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', 'read']),
        ]

    def __str__(self):
        return f"{self.user} - {self.title}"
