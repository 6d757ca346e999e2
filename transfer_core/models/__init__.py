"""Domain models for transfer-core."""

from transfer_core.models.account import Account
from transfer_core.models.base import CENT, MAX_MONEY, Event, ParticipantView, to_money
from transfer_core.models.enums import (
    AccountType,
    EligibilityReason,
    LookupField,
    ParticipantRole,
)
from transfer_core.models.transaction import TransactionRecord
from transfer_core.models.transfer import (
    DateRange,
    PayeeKey,
    TransactionResult,
    TransferRequest,
)

__all__ = [
    "CENT",
    "MAX_MONEY",
    "Account",
    "AccountType",
    "DateRange",
    "EligibilityReason",
    "Event",
    "LookupField",
    "ParticipantRole",
    "ParticipantView",
    "PayeeKey",
    "TransactionRecord",
    "TransactionResult",
    "TransferRequest",
    "to_money",
]
