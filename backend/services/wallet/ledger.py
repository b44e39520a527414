"""
Append-only wallet ledger.

Each user's entries carry a `sequence` (1, 2, 3, ...) that is unique per
user. Appending locks the user's row, reads the newest entry and inserts the
next one; if a concurrent writer still wins the slot the unique constraint
rejects the insert and the append is retried from a fresh read.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction

from common.exceptions import Conflict, ValidationError
from wallet.models import WalletTransaction

logger = logging.getLogger(__name__)

User = get_user_model()

TRANSACTION_TYPES = frozenset(code for code, _ in WalletTransaction.TYPE_CHOICES)

# Entry types with a fixed direction; ride and refund entries move either way
CREDIT_TYPES = frozenset({"deposit", "bonus", "cashback", "referral"})
DEBIT_TYPES = frozenset({"withdrawal", "subscription"})

CENTS = Decimal("0.01")


def _user_id(user) -> int:
    return getattr(user, "pk", user)


def _as_amount(amount) -> Decimal:
    try:
        value = Decimal(str(amount)).quantize(CENTS)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError("Amount must be a number")
    if not value.is_finite():
        raise ValidationError("Amount must be a number")
    return value


class WalletLedger:
    """
    Args:
        max_attempts: Inserts tried before giving up with Conflict
    """

    def __init__(self, max_attempts: int = 3):
        self.max_attempts = max_attempts

    def append(
        self,
        user,
        amount,
        type: str,
        description: str = "",
        reference_type: str = "",
        reference_id=None,
    ) -> WalletTransaction:
        value = _as_amount(amount)
        if value == 0:
            raise ValidationError("Amount must be non-zero")
        if type not in TRANSACTION_TYPES:
            raise ValidationError(f"Invalid transaction type '{type}'")
        if type in CREDIT_TYPES and value < 0:
            raise ValidationError(f"A {type} must be a positive amount")
        if type in DEBIT_TYPES and value > 0:
            raise ValidationError(f"A {type} must be a negative amount")

        user_id = _user_id(user)
        description = description or f"{type.capitalize()} transaction"

        for attempt in range(1, self.max_attempts + 1):
            try:
                with transaction.atomic():
                    # Serialises appends for this user on backends with row locks
                    locked = list(User.objects.select_for_update().filter(pk=user_id).values_list("pk", flat=True))
                    if not locked:
                        raise ValidationError("Unknown wallet owner")

                    last = (
                        WalletTransaction.objects.filter(user_id=user_id)
                        .order_by("-sequence")
                        .only("sequence", "balance_after")
                        .first()
                    )
                    previous_balance = last.balance_after if last else Decimal("0.00")
                    entry = WalletTransaction.objects.create(
                        user_id=user_id,
                        sequence=(last.sequence if last else 0) + 1,
                        amount=value,
                        type=type,
                        balance_after=previous_balance + value,
                        description=description,
                        reference_type=reference_type or "",
                        reference_id="" if reference_id is None else str(reference_id),
                    )
            except IntegrityError:
                logger.warning(
                    "Wallet append for user %s lost a sequence race (attempt %s/%s)",
                    user_id, attempt, self.max_attempts,
                )
                continue

            logger.info(
                "Wallet user=%s seq=%s amount=%s type=%s balance=%s",
                user_id, entry.sequence, entry.amount, entry.type, entry.balance_after,
            )
            return entry

        raise Conflict("Wallet is busy, please retry")

    def get_balance(self, user) -> Decimal:
        last = (
            WalletTransaction.objects.filter(user_id=_user_id(user))
            .order_by("-sequence")
            .values_list("balance_after", flat=True)
            .first()
        )
        return last if last is not None else Decimal("0.00")

    def history(self, user, limit: Optional[int] = 50) -> List[WalletTransaction]:
        qs = WalletTransaction.objects.filter(user_id=_user_id(user)).order_by("-sequence")
        if limit:
            qs = qs[:limit]
        return list(qs)


default_ledger = WalletLedger()


def append(user, amount, type, description="", reference_type="", reference_id=None):
    return default_ledger.append(
        user, amount, type,
        description=description, reference_type=reference_type, reference_id=reference_id,
    )


def get_balance(user) -> Decimal:
    return default_ledger.get_balance(user)


def history(user, limit=50):
    return default_ledger.history(user, limit=limit)
