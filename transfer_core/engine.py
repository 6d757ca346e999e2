"""Transfer engine: moves value between two accounts atomically."""

import logging
from decimal import Decimal

from transfer_core.clock import Clock
from transfer_core.config import TransferConfig
from transfer_core.exceptions import (
    NotEligibleError,
    PayeeNotFoundError,
    PersistenceConflictError,
    SameParticipantError,
    TransferError,
)
from transfer_core.logging import transfer_context
from transfer_core.models import (
    Account,
    PayeeKey,
    TransactionRecord,
    TransactionResult,
    TransferRequest,
)
from transfer_core.notifications.base import NotificationDispatcher
from transfer_core.policy import EligibilityPolicy
from transfer_core.store.base import LedgerStore

logger = logging.getLogger(__name__)


class TransferEngine:
    """Orchestrate a peer-to-peer transfer.

    Every attempt runs inside one unit of work: the payee is resolved, both
    accounts are locked and re-read, eligibility is checked against the
    fresh payer state, and the two balance updates plus the new record are
    committed together. A lost race (``PersistenceConflictError``) restarts
    the whole sequence, up to ``config.max_conflict_retries`` times.

    The payee is notified only after the commit succeeded, through the
    dispatcher, so delivery problems never affect the transfer outcome.

    Parameters
    ----------
    store : LedgerStore
        Transactional store for accounts and records.
    policy : EligibilityPolicy | None
        Origination rules; defaults to a policy without external authorization.
    dispatcher : NotificationDispatcher | None
        Post-commit notification channel. None disables notifications.
    clock : Clock | None
        Source of record timestamps.
    config : TransferConfig | None
        Retry settings.
    """

    def __init__(
        self,
        store: LedgerStore,
        policy: EligibilityPolicy | None = None,
        dispatcher: NotificationDispatcher | None = None,
        clock: Clock | None = None,
        config: TransferConfig | None = None,
    ) -> None:
        self.store = store
        self.policy = policy or EligibilityPolicy()
        self.dispatcher = dispatcher
        self.clock = clock or Clock()
        self.config = config or TransferConfig()

    def transfer(self, payer: Account, request: TransferRequest) -> TransactionResult:
        """Move ``request.value`` from ``payer`` to the account matching ``request.payee_key``.

        Raises
        ------
        PayeeNotFoundError
            No account matches the payee key.
        SameParticipantError
            The payee key resolves to the payer.
        NotEligibleError
            The payer may not originate this transfer; ``InsufficientBalanceError``
            for balance failures, whether found by the policy or at commit time.
        PersistenceConflictError
            Concurrent writes kept winning after every retry.
        PersistenceError
            The store could not commit; nothing was persisted.
        """
        attempts = self.config.max_conflict_retries + 1
        attempt = 0
        while True:
            attempt += 1
            context = transfer_context(
                payer_id=payer.account_id,
                payee_key=str(request.payee_key),
                value=request.value,
                attempt=attempt,
            )
            try:
                result = self._attempt(payer, request)
            except PersistenceConflictError as exc:
                if attempt >= attempts:
                    logger.error(
                        "Transfer from %s gave up after %d conflicting attempts",
                        payer.account_id,
                        attempt,
                        extra=context,
                    )
                    raise
                logger.warning(
                    "Transfer from %s conflicted (attempt %d/%d): %s",
                    payer.account_id,
                    attempt,
                    attempts,
                    exc,
                    extra=context,
                )
                continue
            except NotEligibleError as exc:
                context["extra"]["reason"] = exc.reason.value
                logger.warning(
                    "Transfer from %s rejected: %s", payer.account_id, exc.reason.value, extra=context
                )
                raise
            except TransferError as exc:
                logger.warning("Transfer from %s rejected: %s", payer.account_id, exc, extra=context)
                raise

            context["extra"]["transaction_id"] = result.transaction_id
            logger.info(
                "Transfer %s committed: value=%s payer=%s",
                result.transaction_id,
                result.value,
                payer.account_id,
                extra=context,
            )
            self._notify(result)
            return result

    def transfer_to(self, payer: Account, payee_key: str, value: Decimal | int | str) -> TransactionResult:
        """Convenience wrapper building the request from raw values."""
        return self.transfer(payer, TransferRequest(PayeeKey(payee_key), value))

    def _attempt(self, payer: Account, request: TransferRequest) -> TransactionResult:
        value = request.value
        with self.store.unit_of_work() as uow:
            payee = uow.accounts.find_by_key(request.payee_key)
            if payee is None:
                raise PayeeNotFoundError(str(request.payee_key))
            if payee.account_id == payer.account_id:
                raise SameParticipantError()

            locked = uow.accounts.lock(payer.account_id, payee.account_id)
            current_payer = locked.get(payer.account_id)
            current_payee = locked.get(payee.account_id)
            if current_payer is None or current_payee is None:
                # Removed between lookup and lock
                raise PersistenceConflictError("Participant disappeared before locking")

            self.policy.check(current_payer, value)

            # debit() re-validates the balance against the locked row
            debited = current_payer.debit(value)
            credited = current_payee.credit(value)
            record = TransactionRecord(
                payer_id=current_payer.account_id,
                payee_id=current_payee.account_id,
                value=value,
                timestamp=self.clock.now(),
            )

            uow.accounts.save(debited)
            uow.accounts.save(credited)
            uow.transactions.save(record)

        return TransactionResult(
            transaction_id=record.transaction_id,
            value=record.value,
            payer=debited.to_view(),
            payee=credited.to_view(),
            timestamp=record.timestamp,
        )

    def _notify(self, result: TransactionResult) -> None:
        if self.dispatcher is None:
            return
        try:
            self.dispatcher.dispatch(result)
        except RuntimeError:
            # Executor already shut down
            logger.exception("Could not queue notification for %s", result.transaction_id)
