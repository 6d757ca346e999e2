"""Transaction record model."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from transfer_core.exceptions import InvalidEntityStateError
from transfer_core.models.base import to_money


@dataclass(frozen=True)
class TransactionRecord:
    """Immutable record of one completed transfer."""

    payer_id: str
    payee_id: str
    value: Decimal
    timestamp: datetime
    transaction_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        value = to_money(self.value, exact=True)
        if value <= 0:
            raise InvalidEntityStateError(f"Transaction value must be positive, got {value}")
        if self.payer_id == self.payee_id:
            raise InvalidEntityStateError("Transaction payer and payee must differ")
        object.__setattr__(self, "value", value)

    def involves(self, account_id: str) -> bool:
        return account_id in (self.payer_id, self.payee_id)
