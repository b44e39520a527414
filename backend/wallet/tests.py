from decimal import Decimal
from unittest.mock import patch

from django.core.cache import cache
from django.db import IntegrityError
from django.test import TestCase
from rest_framework.test import APIClient

from common.exceptions import Conflict, ValidationError
from common.testing import make_passenger
from notifications.models import Notification
from services.wallet import WalletLedger
from wallet.models import WalletTransaction


class WalletLedgerTests(TestCase):
    def setUp(self):
        self.user = make_passenger()
        self.ledger = WalletLedger()

    def test_balance_after_is_running_sum(self):
        amounts = [Decimal("50.00"), Decimal("-12.30"), Decimal("7.25"), Decimal("-45.00")]
        for amount in amounts:
            self.ledger.append(self.user, amount, 'deposit' if amount > 0 else 'withdrawal')

        entries = WalletTransaction.objects.filter(user=self.user).order_by('sequence')
        running = Decimal("0.00")
        for entry, amount in zip(entries, amounts):
            running += amount
            self.assertEqual(entry.balance_after, running)
        self.assertEqual(self.ledger.get_balance(self.user), Decimal("-0.05"))

    def test_sequence_strictly_increases(self):
        for _ in range(3):
            self.ledger.append(self.user, 1, 'bonus')
        sequences = list(WalletTransaction.objects.filter(user=self.user).order_by('created_at', 'id')
                         .values_list('sequence', flat=True))
        self.assertEqual(sequences, [1, 2, 3])

    def test_balance_is_zero_without_transactions(self):
        self.assertEqual(self.ledger.get_balance(self.user), Decimal("0.00"))

    def test_zero_amount_rejected(self):
        with self.assertRaises(ValidationError):
            self.ledger.append(self.user, 0, 'deposit')
        self.assertFalse(WalletTransaction.objects.exists())

    def test_unknown_type_rejected(self):
        with self.assertRaises(ValidationError):
            self.ledger.append(self.user, 10, 'lottery')

    def test_amount_sign_must_match_type(self):
        for amount, kind in ((Decimal("-5.00"), 'deposit'), (Decimal("-5.00"), 'referral'),
                             (Decimal("5.00"), 'withdrawal'), (Decimal("9.90"), 'subscription')):
            with self.assertRaises(ValidationError):
                self.ledger.append(self.user, amount, kind)
        self.assertFalse(WalletTransaction.objects.exists())

    def test_ride_and_refund_entries_move_either_way(self):
        self.ledger.append(self.user, Decimal("-12.00"), 'ride')
        self.ledger.append(self.user, Decimal("12.00"), 'ride')
        self.ledger.append(self.user, Decimal("-3.00"), 'refund')
        self.assertEqual(self.ledger.get_balance(self.user), Decimal("-3.00"))

    def test_history_newest_first(self):
        for amount in (1, 2, 3):
            self.ledger.append(self.user, amount, 'cashback')
        history = self.ledger.history(self.user, limit=2)
        self.assertEqual([e.amount for e in history], [Decimal("3.00"), Decimal("2.00")])

    def test_lost_sequence_race_is_retried(self):
        original_create = WalletTransaction.objects.create
        attempts = []

        def flaky_create(**kwargs):
            attempts.append(kwargs['sequence'])
            if len(attempts) == 1:
                raise IntegrityError("duplicate key value violates unique constraint")
            return original_create(**kwargs)

        with patch.object(WalletTransaction.objects, 'create', side_effect=flaky_create):
            with self.assertLogs('services.wallet.ledger', level='WARNING'):
                entry = self.ledger.append(self.user, 5, 'deposit')

        self.assertEqual(len(attempts), 2)
        self.assertEqual(entry.sequence, 1)

    def test_gives_up_with_conflict(self):
        with patch.object(WalletTransaction.objects, 'create', side_effect=IntegrityError("duplicate")):
            with self.assertLogs('services.wallet.ledger', level='WARNING'):
                with self.assertRaises(Conflict):
                    WalletLedger(max_attempts=2).append(self.user, 5, 'deposit')

    def test_rows_are_immutable(self):
        entry = self.ledger.append(self.user, 5, 'deposit')
        entry.amount = Decimal("500.00")
        with self.assertRaises(ValueError):
            entry.save()
        with self.assertRaises(ValueError):
            entry.delete()


class WalletAPITests(TestCase):
    def setUp(self):
        cache.clear()
        self.user = make_passenger()
        self.client = APIClient()
        self.client.force_authenticate(self.user)

    def test_post_transaction_returns_new_balance_and_notifies(self):
        response = self.client.post('/api/wallet/', {"amount": "25.50", "type": "deposit"}, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(Decimal(str(response.data["new_balance"])), Decimal("25.50"))
        notification = Notification.objects.get(user=self.user)
        self.assertEqual(notification.type, 'payment')
        self.assertEqual(notification.title, 'Credit added')

    def test_get_lists_transactions_and_balance(self):
        self.client.post('/api/wallet/', {"amount": "30", "type": "deposit"}, format='json')
        self.client.post('/api/wallet/', {"amount": "-10", "type": "withdrawal"}, format='json')

        response = self.client.get('/api/wallet/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data["transactions"]), 2)
        self.assertEqual(Decimal(str(response.data["balance"])), Decimal("20.00"))

    def test_invalid_payloads_are_400(self):
        zero = self.client.post('/api/wallet/', {"amount": "0", "type": "deposit"}, format='json')
        bad_type = self.client.post('/api/wallet/', {"amount": "5", "type": "gift"}, format='json')
        positive_withdrawal = self.client.post('/api/wallet/', {"amount": "5", "type": "withdrawal"}, format='json')

        self.assertEqual(zero.status_code, 400)
        self.assertEqual(bad_type.status_code, 400)
        self.assertEqual(positive_withdrawal.status_code, 400)
        self.assertIn("error", zero.json())
        self.assertFalse(WalletTransaction.objects.exists())

    def test_requires_authentication(self):
        response = APIClient().get('/api/wallet/')
        self.assertEqual(response.status_code, 401)
