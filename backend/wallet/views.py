from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.ratelimit import ReadRateThrottle, WriteRateThrottle
from services.notifications import notify
from services.wallet import default_ledger
from wallet.serializers import WalletTransactionCreateSerializer, WalletTransactionSerializer


class WalletView(APIView):
    """
    GET   latest 50 transactions and the current balance
    POST  {"amount", "type", "description", "reference_type", "reference_id"}
    """
    permission_classes = [IsAuthenticated]

    def get_throttles(self):
        if self.request.method == 'POST':
            return [WriteRateThrottle()]
        return [ReadRateThrottle()]

    def get(self, request):
        transactions = default_ledger.history(request.user, limit=50)
        return Response({
            "success": True,
            "transactions": WalletTransactionSerializer(transactions, many=True).data,
            "balance": default_ledger.get_balance(request.user),
        })

    def post(self, request):
        serializer = WalletTransactionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        entry = default_ledger.append(
            request.user,
            data['amount'],
            data['type'],
            description=data['description'],
            reference_type=data['reference_type'],
            reference_id=data['reference_id'],
        )

        credited = entry.amount > 0
        notify(
            request.user.pk,
            'payment',
            'Credit added' if credited else 'Debit made',
            f"{abs(entry.amount):.2f} {'added to' if credited else 'debited from'} your wallet",
            data={"transaction_id": entry.id},
        )

        return Response({
            "success": True,
            "transaction": WalletTransactionSerializer(entry).data,
            "new_balance": entry.balance_after,
        })
