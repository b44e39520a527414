"""Collaborators handed to the ride lifecycle operations."""

from dataclasses import dataclass, field
from typing import Callable
from datetime import datetime

from django.utils import timezone

from services.notifications import NotificationDispatcher, default_dispatcher
from services.wallet import WalletLedger, default_ledger


@dataclass
class ServiceContext:
    """
    Explicit dependencies of a lifecycle operation.

    Tests pass their own notifier, ledger or clock; production code uses
    `ServiceContext.default()`.
    """
    notifier: NotificationDispatcher = field(default_factory=lambda: default_dispatcher)
    ledger: WalletLedger = field(default_factory=lambda: default_ledger)
    clock: Callable[[], datetime] = timezone.now

    @classmethod
    def default(cls) -> "ServiceContext":
        return cls()

    def now(self) -> datetime:
        return self.clock()
