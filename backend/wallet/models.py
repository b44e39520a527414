from django.conf import settings
from django.db import models


class WalletTransaction(models.Model):
    """
    One immutable entry of a user's wallet ledger.

    `sequence` numbers a user's entries 1, 2, 3, ... and is unique per user, so
    two writers racing for the same slot cannot both commit.
    """
    TYPE_CHOICES = [
        ('ride', 'Ride'),
        ('refund', 'Refund'),
        ('bonus', 'Bonus'),
        ('cashback', 'Cashback'),
        ('referral', 'Referral'),
        ('subscription', 'Subscription'),
        ('withdrawal', 'Withdrawal'),
        ('deposit', 'Deposit'),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='wallet_transactions'
    )
    sequence = models.PositiveIntegerField()
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    balance_after = models.DecimalField(max_digits=12, decimal_places=2)
    description = models.CharField(max_length=255, blank=True, default='')

    # Optional pointer at what caused the entry, e.g. ('ride', 42)
    reference_type = models.CharField(max_length=30, blank=True, default='')
    reference_id = models.CharField(max_length=64, blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'wallet_transactions'
        ordering = ['-sequence']
        constraints = [
            models.UniqueConstraint(fields=['user', 'sequence'], name='unique_wallet_sequence_per_user'),
        ]

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValueError("Wallet transactions are immutable")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Wallet transactions are immutable")

    def __str__(self):
        return f"{self.user} #{self.sequence}: {self.amount} ({self.type})"
