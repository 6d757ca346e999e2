"""Ledger stores for accounts and transaction records."""

from transfer_core.store.base import AccountStore, LedgerStore, TransactionStore, UnitOfWork
from transfer_core.store.memory import InMemoryLedgerStore

__all__ = [
    "AccountStore",
    "InMemoryLedgerStore",
    "LedgerStore",
    "TransactionStore",
    "UnitOfWork",
]
