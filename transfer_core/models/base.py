"""Base models shared across the package."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_EVEN, Decimal

from transfer_core.exceptions import InvalidEntityStateError

CENT = Decimal("0.01")
# Largest amount a NUMERIC(15, 2) column holds
MAX_MONEY = Decimal("9999999999999.99")


def to_money(value: Decimal | int | str, exact: bool = False) -> Decimal:
    """Coerce a value to a two-place Decimal.

    Floats are rejected: binary floating point cannot represent most
    monetary amounts exactly. With ``exact`` set, values carrying
    fractions of a cent are rejected instead of rounded.
    """
    if isinstance(value, (bool, float)):
        raise InvalidEntityStateError(f"Monetary values must be Decimal, int or str, got {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except ArithmeticError as exc:
        raise InvalidEntityStateError(f"Invalid monetary value {value!r}") from exc
    if not amount.is_finite() or abs(amount) > MAX_MONEY:
        raise InvalidEntityStateError(f"Invalid monetary value {value!r}")
    quantized = amount.quantize(CENT, rounding=ROUND_HALF_EVEN)
    if exact and quantized != amount:
        raise InvalidEntityStateError(f"Monetary value {value!r} has fractions of a cent")
    return quantized


@dataclass(frozen=True)
class ParticipantView:
    """Display-safe projection of an account."""

    full_name: str
    email: str


@dataclass
class Event:
    """Standard event envelope for streaming."""

    event_id: str
    event_type: str  # entity.action (e.g., transfer.received)
    event_time: datetime
    source: str
    subject: str  # Entity ID affected
    data: dict
    metadata: dict = field(default_factory=dict)
