"""Account model."""

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal

from transfer_core.exceptions import (
    InsufficientBalanceError,
    InvalidEntityStateError,
    InvalidTransferRequestError,
)
from transfer_core.models.base import ParticipantView, to_money
from transfer_core.models.enums import AccountType


@dataclass(frozen=True)
class Account:
    """Account holder with a non-negative balance.

    Instances are immutable snapshots. ``debit`` and ``credit`` return new
    snapshots; only the store decides whether a new snapshot becomes the
    committed state, and it bumps ``version`` when it does.

    ``can_originate`` is the capability checked by the transfer path. When
    not given it falls back to the account type's default.
    """

    account_id: str
    document: str
    email: str
    full_name: str
    balance: Decimal
    account_type: AccountType = AccountType.REGULAR
    can_originate: bool | None = None
    version: int = 0
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        balance = to_money(self.balance)
        if balance < 0:
            raise InvalidEntityStateError(
                f"Account {self.account_id} cannot have a negative balance ({balance})"
            )
        object.__setattr__(self, "balance", balance)
        object.__setattr__(self, "account_type", AccountType(self.account_type))
        if self.can_originate is None:
            object.__setattr__(self, "can_originate", self.account_type.can_originate_by_default)

    def has_balance_for(self, value: Decimal) -> bool:
        return self.balance >= to_money(value)

    def debit(self, value: Decimal) -> "Account":
        """Return a copy with ``value`` taken from the balance."""
        amount = _positive(value)
        if self.balance < amount:
            raise InsufficientBalanceError(
                f"Account {self.account_id} balance {self.balance} is below {amount}"
            )
        return replace(self, balance=self.balance - amount)

    def credit(self, value: Decimal) -> "Account":
        """Return a copy with ``value`` added to the balance."""
        return replace(self, balance=self.balance + _positive(value))

    def to_view(self) -> ParticipantView:
        return ParticipantView(full_name=self.full_name, email=self.email)


def _positive(value: Decimal) -> Decimal:
    amount = to_money(value, exact=True)
    if amount <= 0:
        raise InvalidTransferRequestError(f"Amount must be positive, got {amount}")
    return amount
