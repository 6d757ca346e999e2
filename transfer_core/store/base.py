"""Persistence interfaces consumed by the transfer engine and query service."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime

from transfer_core.models import Account, ParticipantRole, PayeeKey, TransactionRecord


class AccountStore(ABC):
    """Account access scoped to one unit of work."""

    @abstractmethod
    def find_by_key(self, key: PayeeKey) -> Account | None:
        """Resolve a document-or-email key, documents first."""

    @abstractmethod
    def get(self, account_id: str) -> Account | None:
        """Read an account without locking it."""

    @abstractmethod
    def lock(self, *account_ids: str) -> dict[str, Account]:
        """Lock accounts for the rest of the unit of work and return fresh reads.

        Locks are taken in sorted id order. Unknown ids are missing from the
        returned mapping.
        """

    @abstractmethod
    def save(self, account: Account) -> None:
        """Stage a balance update.

        ``account.version`` must equal the committed version; otherwise
        :class:`~transfer_core.exceptions.PersistenceConflictError` is raised
        (at staging or at commit time, depending on the store).
        """

    @abstractmethod
    def add(self, account: Account) -> None:
        """Stage a new account."""


class TransactionStore(ABC):
    """Transaction record access scoped to one unit of work."""

    @abstractmethod
    def save(self, record: TransactionRecord) -> None:
        """Stage a new record."""

    @abstractmethod
    def find_by_participant_and_range(
        self,
        account_id: str,
        role: ParticipantRole,
        start: datetime,
        end: datetime,
    ) -> list[TransactionRecord]:
        """Return records in ``[start, end]`` ordered by ascending timestamp."""


class UnitOfWork(ABC):
    """One atomic unit: every staged write commits, or none does."""

    accounts: AccountStore
    transactions: TransactionStore


class LedgerStore(ABC):
    """Factory for units of work over accounts and transaction records."""

    @abstractmethod
    def unit_of_work(self) -> AbstractContextManager[UnitOfWork]:
        """Open a unit of work.

        Leaving the ``with`` block normally commits; leaving it through an
        exception rolls back and re-raises.
        """
