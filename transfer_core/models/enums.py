"""Enumeration types for transfer-core entities."""

from enum import Enum


class AccountType(str, Enum):
    REGULAR = "REGULAR"
    MERCHANT = "MERCHANT"

    @property
    def can_originate_by_default(self) -> bool:
        """Whether accounts of this type may pay out unless configured otherwise."""
        return self is AccountType.REGULAR


class EligibilityReason(str, Enum):
    ACCOUNT_TYPE_FORBIDDEN = "account-type-forbidden"
    INSUFFICIENT_BALANCE = "insufficient-balance"
    EXTERNAL_AUTHORIZATION_DENIED = "external-authorization-denied"


class ParticipantRole(str, Enum):
    PAYER = "PAYER"
    PAYEE = "PAYEE"
    EITHER = "EITHER"


class LookupField(str, Enum):
    DOCUMENT = "DOCUMENT"
    EMAIL = "EMAIL"
