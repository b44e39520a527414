from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class Rating(models.Model):
    """A participant's review of the other participant after a completed ride"""
    ride = models.ForeignKey('rides.Ride', on_delete=models.CASCADE, related_name='ratings')
    reviewer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='ratings_given'
    )
    reviewed = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='ratings_received'
    )
    score = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    comment = models.TextField(blank=True, default='')
    tags = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'ratings'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['ride', 'reviewer'], name='one_rating_per_ride_reviewer'),
        ]

    def __str__(self):
        return f"Ride {self.ride_id}: {self.reviewer_id} -> {self.reviewed_id} ({self.score})"


class Referral(models.Model):
    """Links a new user to the user whose code they signed up with"""
    referrer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='referrals_made'
    )
    referred = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='referral'
    )
    code = models.CharField(max_length=12)
    bonus_amount = models.DecimalField(max_digits=10, decimal_places=2)
    is_completed = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'referrals'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.referrer} referred {self.referred}"


class UserAchievement(models.Model):
    ACHIEVEMENT_CHOICES = [
        ('first_ride', 'First Ride'),
        ('ten_rides', '10 Rides'),
        ('fifty_rides', '50 Rides'),
        ('top_rated', 'Top Rated'),
        ('first_referral', 'First Referral'),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='achievements'
    )
    code = models.CharField(max_length=30, choices=ACHIEVEMENT_CHOICES)
    unlocked_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'user_achievements'
        ordering = ['unlocked_at']
        constraints = [
            models.UniqueConstraint(fields=['user', 'code'], name='unique_achievement_per_user'),
        ]

    def __str__(self):
        return f"{self.user} - {self.get_code_display()}"


class Coupon(models.Model):
    """Promotional discount users claim by code"""
    DISCOUNT_TYPE_CHOICES = [
        ('percentage', 'Percentage'),
        ('fixed', 'Fixed amount'),
    ]

    code = models.CharField(max_length=30, unique=True)
    description = models.CharField(max_length=255, blank=True, default='')
    discount_type = models.CharField(max_length=12, choices=DISCOUNT_TYPE_CHOICES, default='percentage')
    discount_value = models.DecimalField(max_digits=10, decimal_places=2)
    min_ride_value = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    valid_until = models.DateTimeField()
    is_active = models.BooleanField(default=True)
    # None means unlimited
    max_uses = models.PositiveIntegerField(null=True, blank=True)
    current_uses = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'coupons'
        ordering = ['-created_at', '-id']

    def save(self, *args, **kwargs):
        self.code = (self.code or '').strip().upper()
        super().save(*args, **kwargs)

    def __str__(self):
        return self.code


class UserCoupon(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='coupons'
    )
    coupon = models.ForeignKey(Coupon, on_delete=models.CASCADE, related_name='claims')
    is_used = models.BooleanField(default=False)
    used_at = models.DateTimeField(null=True, blank=True)
    claimed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'user_coupons'
        ordering = ['-claimed_at']
        constraints = [
            models.UniqueConstraint(fields=['user', 'coupon'], name='one_claim_per_coupon_user'),
        ]

    def __str__(self):
        return f"{self.user} - {self.coupon}"
