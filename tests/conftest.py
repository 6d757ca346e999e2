"""Pytest configuration and fixtures."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from transfer_core.clock import FixedClock
from transfer_core.engine import TransferEngine
from transfer_core.exceptions import DeliveryError
from transfer_core.models import Account, AccountType, TransactionResult
from transfer_core.notifications.base import NotificationGateway
from transfer_core.store import InMemoryLedgerStore

NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


class RecordingGateway(NotificationGateway):
    """Gateway that remembers every notice it was asked to send."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[str, TransactionResult]] = []
        self.closed = False

    def notify(self, recipient_email: str, notice: TransactionResult) -> None:
        if self.fail:
            raise DeliveryError("mail server down")
        self.sent.append((recipient_email, notice))

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FixedClock:
    """Clock fixed at 2024-06-15 12:00 UTC."""
    return FixedClock(NOW)


@pytest.fixture
def store() -> InMemoryLedgerStore:
    """Create a fresh store for each test."""
    return InMemoryLedgerStore()


@pytest.fixture
def alice() -> Account:
    return Account(
        account_id="acct-alice",
        document="123.456.789-00",
        email="alice@example.com",
        full_name="Alice Souza",
        balance=Decimal("100.00"),
    )


@pytest.fixture
def bob() -> Account:
    return Account(
        account_id="acct-bob",
        document="987.654.321-00",
        email="bob@example.com",
        full_name="Bob Lima",
        balance=Decimal("10.00"),
    )


@pytest.fixture
def shop() -> Account:
    return Account(
        account_id="acct-shop",
        document="12.345.678/0001-90",
        email="shop@example.com",
        full_name="Loja Central LTDA",
        balance=Decimal("1000.00"),
        account_type=AccountType.MERCHANT,
    )


@pytest.fixture
def seeded_store(
    store: InMemoryLedgerStore, alice: Account, bob: Account, shop: Account
) -> InMemoryLedgerStore:
    """Store holding alice, bob and shop."""
    for account in (alice, bob, shop):
        store.add_account(account)
    return store


@pytest.fixture
def engine(seeded_store: InMemoryLedgerStore, clock: FixedClock) -> TransferEngine:
    """Engine without notifications over the seeded store."""
    return TransferEngine(seeded_store, clock=clock)
