"""Read-only transaction history queries."""

import logging
from datetime import date

from transfer_core.clock import Clock
from transfer_core.exceptions import PersistenceError, RetrievalError
from transfer_core.models import (
    Account,
    DateRange,
    ParticipantRole,
    ParticipantView,
    TransactionResult,
)
from transfer_core.store.base import LedgerStore

logger = logging.getLogger(__name__)


class QueryService:
    """List a participant's transfers within an inclusive date range.

    Results are ordered by ascending timestamp and only carry display-safe
    participant fields (full name and email).
    """

    def __init__(self, store: LedgerStore, clock: Clock | None = None) -> None:
        self.store = store
        self.clock = clock or Clock()

    def list_all(
        self, participant: Account, start: date | None = None, end: date | None = None
    ) -> list[TransactionResult]:
        """Transfers where the participant paid or received."""
        return self._list(participant, ParticipantRole.EITHER, DateRange(start, end))

    def list_as_payer(
        self, participant: Account, start: date | None = None, end: date | None = None
    ) -> list[TransactionResult]:
        """Transfers the participant sent."""
        return self._list(participant, ParticipantRole.PAYER, DateRange(start, end))

    def list_as_payee(
        self, participant: Account, start: date | None = None, end: date | None = None
    ) -> list[TransactionResult]:
        """Transfers the participant received."""
        return self._list(participant, ParticipantRole.PAYEE, DateRange(start, end))

    def _list(
        self, participant: Account, role: ParticipantRole, date_range: DateRange
    ) -> list[TransactionResult]:
        lower, upper = date_range.resolve(self.clock.now())
        try:
            with self.store.unit_of_work() as uow:
                records = uow.transactions.find_by_participant_and_range(
                    participant.account_id, role, lower, upper
                )
                views: dict[str, ParticipantView] = {}
                results = []
                for record in records:
                    results.append(
                        TransactionResult(
                            transaction_id=record.transaction_id,
                            value=record.value,
                            payer=self._view(uow, views, record.payer_id),
                            payee=self._view(uow, views, record.payee_id),
                            timestamp=record.timestamp,
                        )
                    )
        except PersistenceError as exc:
            logger.error("History query for %s failed: %s", participant.account_id, exc)
            raise RetrievalError(f"Could not retrieve transactions: {exc}") from exc

        logger.debug(
            "History query for %s role=%s returned %d records",
            participant.account_id,
            role.value,
            len(results),
        )
        return results

    @staticmethod
    def _view(uow, views: dict[str, ParticipantView], account_id: str) -> ParticipantView:
        view = views.get(account_id)
        if view is None:
            account = uow.accounts.get(account_id)
            if account is None:
                raise PersistenceError(f"Account {account_id} referenced by a record is missing")
            view = views[account_id] = account.to_view()
        return view
