from decimal import Decimal

from rest_framework import serializers

from wallet.models import WalletTransaction


class WalletTransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = WalletTransaction
        fields = ['id', 'sequence', 'amount', 'type', 'balance_after', 'description',
                  'reference_type', 'reference_id', 'created_at']
        read_only_fields = fields


class WalletTransactionCreateSerializer(serializers.Serializer):
    """Signed amount: positive credits the wallet, negative debits it."""
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2,
        min_value=Decimal('-100000.00'), max_value=Decimal('100000.00'),
    )
    # Checked against the ledger's type list by the ledger itself
    type = serializers.CharField(max_length=20)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    reference_type = serializers.CharField(max_length=30, required=False, allow_blank=True, default='')
    reference_id = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True, default=None)
