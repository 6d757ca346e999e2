"""Transfer request/result types and query ranges."""

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Iterator

from transfer_core.exceptions import (
    InvalidDateRangeError,
    InvalidEntityStateError,
    InvalidTransferRequestError,
)
from transfer_core.models.base import ParticipantView, to_money
from transfer_core.models.enums import LookupField

EPOCH_ORIGIN = datetime(1970, 1, 1)
END_OF_DAY = time(23, 59, 59, 999999)


@dataclass(frozen=True)
class PayeeKey:
    """Payee lookup key that may hold either a document or an email.

    Resolution order is fixed: the key is first matched against account
    documents, then against emails.
    """

    raw: str

    RESOLUTION_ORDER = (LookupField.DOCUMENT, LookupField.EMAIL)

    def __post_init__(self) -> None:
        if not isinstance(self.raw, str) or not self.raw.strip():
            raise InvalidTransferRequestError("Payee key must be a non-empty string")

    def candidates(self) -> Iterator[tuple[LookupField, str]]:
        """Yield ``(field, normalized value)`` pairs in resolution order."""
        for lookup_field in self.RESOLUTION_ORDER:
            yield lookup_field, normalize(lookup_field, self.raw)

    def __str__(self) -> str:
        return self.raw


def normalize(lookup_field: LookupField, value: str) -> str:
    """Normalize a document or email for matching."""
    value = value.strip()
    if lookup_field is LookupField.EMAIL:
        return value.lower()
    return value


@dataclass(frozen=True)
class TransferRequest:
    """Caller input for a transfer."""

    payee_key: PayeeKey
    value: Decimal

    def __post_init__(self) -> None:
        if isinstance(self.payee_key, str):
            object.__setattr__(self, "payee_key", PayeeKey(self.payee_key))
        try:
            value = to_money(self.value, exact=True)
        except InvalidEntityStateError as exc:
            raise InvalidTransferRequestError(str(exc)) from exc
        if value <= 0:
            raise InvalidTransferRequestError(f"Transfer value must be positive, got {value}")
        object.__setattr__(self, "value", value)


@dataclass(frozen=True)
class TransactionResult:
    """Outcome of a transfer, also used as the payee notice payload."""

    transaction_id: str
    value: Decimal
    payer: ParticipantView
    payee: ParticipantView
    timestamp: datetime


@dataclass(frozen=True)
class DateRange:
    """Optional calendar-date bounds for history queries.

    Both bounds are inclusive. A missing start means the epoch origin and a
    missing end means "now", so an open range never reaches into the future.
    """

    start: date | None = None
    end: date | None = None

    def __post_init__(self) -> None:
        if self.start is not None and self.end is not None and self.start > self.end:
            raise InvalidDateRangeError(f"Range start {self.start} is after end {self.end}")

    def resolve(self, now: datetime) -> tuple[datetime, datetime]:
        """Return ``(start, end)`` datetimes in the timezone of ``now``."""
        tz = now.tzinfo
        if self.start is not None:
            lower = datetime.combine(self.start, time.min, tzinfo=tz)
        else:
            lower = EPOCH_ORIGIN.replace(tzinfo=tz)
        if self.end is not None:
            upper = datetime.combine(self.end, END_OF_DAY, tzinfo=tz)
        else:
            upper = now
        return lower, upper
