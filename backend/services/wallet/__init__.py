"""
Wallet service - append-only ledger of balance-changing transactions.
"""

from .ledger import (
    WalletLedger,
    TRANSACTION_TYPES,
    default_ledger,
    append,
    get_balance,
    history,
)

__all__ = [
    "WalletLedger",
    "TRANSACTION_TYPES",
    "default_ledger",
    "append",
    "get_balance",
    "history",
]
