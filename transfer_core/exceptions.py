"""Custom exception hierarchy for transfer-core."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from transfer_core.models.enums import EligibilityReason


class TransferCoreError(Exception):
    """Base exception for all transfer-core errors."""


class ConfigurationError(TransferCoreError):
    """Raised when configuration is invalid or missing."""


class InvalidEntityStateError(TransferCoreError):
    """Raised when an entity would be built or stored in an invalid state."""


class TransferError(TransferCoreError):
    """Base class for errors that abort a transfer."""


class InvalidTransferRequestError(TransferError):
    """Raised when a transfer request is malformed (e.g. non-positive value)."""


class PayeeNotFoundError(TransferError):
    """Raised when no account matches the payee key."""

    def __init__(self, key: str) -> None:
        super().__init__(f"No account found for payee key {key!r}")
        self.key = key


class SameParticipantError(TransferError):
    """Raised when payer and payee resolve to the same account."""

    def __init__(self) -> None:
        super().__init__("Payer and payee must be different accounts")


class NotEligibleError(TransferError):
    """Raised when an account may not originate a transfer of the given value."""

    def __init__(self, reason: EligibilityReason, message: str | None = None) -> None:
        super().__init__(message or f"Transfer not allowed: {reason.value}")
        self.reason = reason


class InsufficientBalanceError(NotEligibleError):
    """Raised when a debit would leave the account balance negative."""

    def __init__(self, message: str | None = None) -> None:
        from transfer_core.models.enums import EligibilityReason

        super().__init__(EligibilityReason.INSUFFICIENT_BALANCE, message)


class PersistenceError(TransferCoreError):
    """Raised when the store cannot complete a read or an atomic commit."""


class PersistenceConflictError(PersistenceError):
    """Raised when a commit loses a race against a concurrent write."""


class RetrievalError(TransferCoreError):
    """Raised when transaction history cannot be retrieved."""


class InvalidDateRangeError(TransferCoreError):
    """Raised when a query range starts after it ends."""


class AuthorizationUnavailableError(TransferCoreError):
    """Raised by an authorization gateway that cannot give a decision."""


class DeliveryError(TransferCoreError):
    """Raised by a notification gateway when a notice cannot be delivered."""
