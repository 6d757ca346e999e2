"""Thread-safe in-process ledger store."""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterator

from transfer_core.exceptions import (
    InvalidEntityStateError,
    PersistenceConflictError,
    PersistenceError,
)
from transfer_core.models import (
    Account,
    LookupField,
    ParticipantRole,
    PayeeKey,
    TransactionRecord,
)
from transfer_core.models.transfer import normalize
from transfer_core.store.base import AccountStore, LedgerStore, TransactionStore, UnitOfWork

logger = logging.getLogger(__name__)


@dataclass
class InMemoryLedgerStore(LedgerStore):
    """In-memory store with per-account row locks and atomic commits.

    Units of work stage their writes and apply them under a single commit
    lock after re-checking every account version. If applying fails part
    way, accounts already written are restored before the error surfaces.
    """

    accounts: dict[str, Account] = field(default_factory=dict)
    transactions: list[TransactionRecord] = field(default_factory=list)

    # Lookup indexes
    _by_document: dict[str, str] = field(default_factory=dict)
    _by_email: dict[str, str] = field(default_factory=dict)
    _account_transactions: dict[str, list[int]] = field(default_factory=dict)

    _row_locks: dict[str, threading.Lock] = field(default_factory=dict)
    _registry_lock: threading.Lock = field(default_factory=threading.Lock)
    _commit_lock: threading.RLock = field(default_factory=threading.RLock)

    @contextmanager
    def unit_of_work(self) -> Iterator["InMemoryUnitOfWork"]:
        uow = InMemoryUnitOfWork(self)
        try:
            yield uow
            uow.commit()
        finally:
            uow.release()

    def add_account(self, account: Account) -> None:
        """Seed an account outside any transfer."""
        with self.unit_of_work() as uow:
            uow.accounts.add(account)

    def get_account(self, account_id: str) -> Account | None:
        with self._commit_lock:
            return self.accounts.get(account_id)

    def summary(self) -> dict[str, int]:
        """Return summary counts of all entities."""
        with self._commit_lock:
            return {
                "accounts": len(self.accounts),
                "transactions": len(self.transactions),
            }

    def _row_lock(self, account_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._row_locks.get(account_id)
            if lock is None:
                lock = self._row_locks[account_id] = threading.Lock()
            return lock

    def _index_account(self, account: Account) -> None:
        self._by_document[normalize(LookupField.DOCUMENT, account.document)] = account.account_id
        self._by_email[normalize(LookupField.EMAIL, account.email)] = account.account_id
        self._account_transactions.setdefault(account.account_id, [])

    def _insert_account(self, account: Account) -> None:
        if account.account_id in self.accounts:
            raise InvalidEntityStateError(f"Account {account.account_id} already exists")
        if normalize(LookupField.DOCUMENT, account.document) in self._by_document:
            raise InvalidEntityStateError(f"Document {account.document} already registered")
        if normalize(LookupField.EMAIL, account.email) in self._by_email:
            raise InvalidEntityStateError(f"Email {account.email} already registered")
        self.accounts[account.account_id] = account
        self._index_account(account)

    def _update_account(self, account: Account) -> None:
        self.accounts[account.account_id] = account

    def _insert_transaction(self, record: TransactionRecord) -> None:
        for account_id in (record.payer_id, record.payee_id):
            if account_id not in self.accounts:
                raise InvalidEntityStateError(f"Account {account_id} not found")
        idx = len(self.transactions)
        self.transactions.append(record)
        self._account_transactions[record.payer_id].append(idx)
        self._account_transactions[record.payee_id].append(idx)

    def _apply(
        self,
        new_accounts: list[Account],
        updates: dict[str, Account],
        records: list[TransactionRecord],
    ) -> None:
        """Apply staged writes atomically; caller holds the commit lock."""
        for account in updates.values():
            current = self.accounts.get(account.account_id)
            if current is None:
                raise PersistenceConflictError(f"Account {account.account_id} no longer exists")
            if current.version != account.version:
                raise PersistenceConflictError(
                    f"Account {account.account_id} changed concurrently "
                    f"(expected version {account.version}, found {current.version})"
                )

        previous = dict(self.accounts)
        previous_documents = dict(self._by_document)
        previous_emails = dict(self._by_email)
        tx_count = len(self.transactions)
        try:
            for account in new_accounts:
                self._insert_account(account)
            for account in updates.values():
                self._update_account(replace(account, version=account.version + 1))
            for record in records:
                self._insert_transaction(record)
        except Exception as exc:
            self.accounts = previous
            self._by_document = previous_documents
            self._by_email = previous_emails
            del self.transactions[tx_count:]
            for indices in self._account_transactions.values():
                indices[:] = [i for i in indices if i < tx_count]
            for account_id in list(self._account_transactions):
                if account_id not in self.accounts:
                    del self._account_transactions[account_id]
            if isinstance(exc, (PersistenceError, InvalidEntityStateError)):
                raise
            raise PersistenceError(f"Commit failed: {exc}") from exc


class InMemoryUnitOfWork(UnitOfWork):
    def __init__(self, store: InMemoryLedgerStore) -> None:
        self.store = store
        self.accounts = _InMemoryAccounts(self)
        self.transactions = _InMemoryTransactions(self)
        self.new_accounts: list[Account] = []
        self.updates: dict[str, Account] = {}
        self.records: list[TransactionRecord] = []
        self.held: list[threading.Lock] = []
        self.locked_ids: set[str] = set()

    def commit(self) -> None:
        if not (self.new_accounts or self.updates or self.records):
            return
        with self.store._commit_lock:
            self.store._apply(self.new_accounts, self.updates, self.records)
        logger.debug(
            "Committed %d new accounts, %d updates, %d records",
            len(self.new_accounts),
            len(self.updates),
            len(self.records),
        )

    def release(self) -> None:
        for lock in reversed(self.held):
            lock.release()
        self.held.clear()
        self.locked_ids.clear()


class _InMemoryAccounts(AccountStore):
    def __init__(self, uow: InMemoryUnitOfWork) -> None:
        self._uow = uow
        self._store = uow.store

    def find_by_key(self, key: PayeeKey) -> Account | None:
        with self._store._commit_lock:
            for lookup_field, value in key.candidates():
                index = (
                    self._store._by_document
                    if lookup_field is LookupField.DOCUMENT
                    else self._store._by_email
                )
                account_id = index.get(value)
                if account_id is not None:
                    return self._store.accounts[account_id]
        return None

    def get(self, account_id: str) -> Account | None:
        return self._store.get_account(account_id)

    def lock(self, *account_ids: str) -> dict[str, Account]:
        for account_id in sorted(set(account_ids) - self._uow.locked_ids):
            lock = self._store._row_lock(account_id)
            lock.acquire()
            self._uow.held.append(lock)
            self._uow.locked_ids.add(account_id)
        with self._store._commit_lock:
            return {
                account_id: self._store.accounts[account_id]
                for account_id in account_ids
                if account_id in self._store.accounts
            }

    def save(self, account: Account) -> None:
        current = self._store.get_account(account.account_id)
        if current is None or current.version != account.version:
            raise PersistenceConflictError(
                f"Account {account.account_id} changed concurrently"
            )
        self._uow.updates[account.account_id] = account

    def add(self, account: Account) -> None:
        self._uow.new_accounts.append(account)


class _InMemoryTransactions(TransactionStore):
    def __init__(self, uow: InMemoryUnitOfWork) -> None:
        self._uow = uow
        self._store = uow.store

    def save(self, record: TransactionRecord) -> None:
        self._uow.records.append(record)

    def find_by_participant_and_range(
        self,
        account_id: str,
        role: ParticipantRole,
        start: datetime,
        end: datetime,
    ) -> list[TransactionRecord]:
        with self._store._commit_lock:
            indices = self._store._account_transactions.get(account_id, [])
            records = [self._store.transactions[i] for i in indices]
        matches = [
            record
            for record in records
            if start <= record.timestamp <= end and _has_role(record, account_id, role)
        ]
        # sorted() is stable, so ties keep insertion order
        return sorted(matches, key=lambda record: record.timestamp)


def _has_role(record: TransactionRecord, account_id: str, role: ParticipantRole) -> bool:
    if role is ParticipantRole.PAYER:
        return record.payer_id == account_id
    if role is ParticipantRole.PAYEE:
        return record.payee_id == account_id
    return record.involves(account_id)
