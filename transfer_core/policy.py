"""Eligibility rules for originating a transfer."""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal

from transfer_core.config import AuthorizationConfig
from transfer_core.exceptions import (
    AuthorizationUnavailableError,
    InsufficientBalanceError,
    NotEligibleError,
)
from transfer_core.models import Account, EligibilityReason

logger = logging.getLogger(__name__)


class AuthorizationGateway(ABC):
    """External go/no-go decision for a payer and value."""

    @abstractmethod
    def is_authorized(self, payer_id: str, value: Decimal) -> bool:
        """Return the provider's decision.

        Raises
        ------
        AuthorizationUnavailableError
            If the provider cannot be reached or gives no usable answer.
        """


class EligibilityPolicy:
    """Decide whether an account may originate a transfer of a given value.

    Checks run in order: origination capability, balance, then the optional
    external authorization. The external provider is only called when the
    local checks pass.

    Parameters
    ----------
    config : AuthorizationConfig | None
        External authorization settings (disabled by default).
    gateway : AuthorizationGateway | None
        External provider. When authorization is enabled and no gateway is
        wired, the configured fallback applies.
    """

    def __init__(
        self,
        config: AuthorizationConfig | None = None,
        gateway: AuthorizationGateway | None = None,
    ) -> None:
        self.config = config or AuthorizationConfig()
        self.gateway = gateway

    def evaluate(self, account: Account, value: Decimal) -> EligibilityReason | None:
        """Return the first failing reason, or None when the transfer may proceed."""
        if not account.can_originate:
            return EligibilityReason.ACCOUNT_TYPE_FORBIDDEN
        if not account.has_balance_for(value):
            return EligibilityReason.INSUFFICIENT_BALANCE
        if self.config.enabled and not self._externally_authorized(account, value):
            return EligibilityReason.EXTERNAL_AUTHORIZATION_DENIED
        return None

    def check(self, account: Account, value: Decimal) -> None:
        """Raise if ``account`` may not send ``value``."""
        reason = self.evaluate(account, value)
        if reason is None:
            return
        if reason is EligibilityReason.INSUFFICIENT_BALANCE:
            raise InsufficientBalanceError(
                f"Account {account.account_id} balance is insufficient for {value}"
            )
        raise NotEligibleError(reason)

    def _externally_authorized(self, account: Account, value: Decimal) -> bool:
        if self.gateway is None:
            logger.warning(
                "Authorization enabled but no gateway configured; fail_open=%s",
                self.config.fail_open,
            )
            return self.config.fail_open
        try:
            return bool(self.gateway.is_authorized(account.account_id, value))
        except AuthorizationUnavailableError as exc:
            logger.warning(
                "Authorization unavailable for %s: %s; fail_open=%s",
                account.account_id,
                exc,
                self.config.fail_open,
            )
            return self.config.fail_open
