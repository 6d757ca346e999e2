"""PostgreSQL ledger store using psycopg row locks and versioned updates."""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator

import psycopg
from psycopg import errors as pg_errors
from psycopg.rows import dict_row

from transfer_core.config import PostgresConfig
from transfer_core.exceptions import (
    InvalidEntityStateError,
    PersistenceConflictError,
    PersistenceError,
)
from transfer_core.models import (
    Account,
    AccountType,
    LookupField,
    ParticipantRole,
    PayeeKey,
    TransactionRecord,
)
from transfer_core.store.base import AccountStore, LedgerStore, TransactionStore, UnitOfWork

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS accounts (
    account_id     TEXT PRIMARY KEY,
    document       TEXT NOT NULL UNIQUE,
    email          TEXT NOT NULL UNIQUE,
    full_name      TEXT NOT NULL,
    balance        NUMERIC(15, 2) NOT NULL CHECK (balance >= 0),
    account_type   TEXT NOT NULL,
    can_originate  BOOLEAN NOT NULL,
    version        INTEGER NOT NULL DEFAULT 0,
    created_at     TIMESTAMPTZ
);

CREATE TABLE IF NOT EXISTS transactions (
    transaction_id TEXT PRIMARY KEY,
    payer_id       TEXT NOT NULL REFERENCES accounts (account_id),
    payee_id       TEXT NOT NULL REFERENCES accounts (account_id),
    value          NUMERIC(15, 2) NOT NULL CHECK (value > 0),
    timestamp      TIMESTAMPTZ NOT NULL,
    seq            BIGSERIAL
);

CREATE INDEX IF NOT EXISTS idx_transactions_payer_ts ON transactions (payer_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_transactions_payee_ts ON transactions (payee_id, timestamp);
"""

ACCOUNT_COLUMNS = (
    "account_id, document, email, full_name, balance, account_type, "
    "can_originate, version, created_at"
)

# Errors that mean "another writer won", so the whole transfer may be retried
CONFLICT_ERRORS = (
    pg_errors.SerializationFailure,
    pg_errors.DeadlockDetected,
    pg_errors.LockNotAvailable,
)


class PostgresLedgerStore(LedgerStore):
    """Ledger store backed by PostgreSQL.

    Each unit of work runs in a single database transaction on its own
    connection. ``lock`` issues ``SELECT ... FOR UPDATE`` in id order and
    ``save`` is a compare-and-set on ``version``.

    Parameters
    ----------
    conninfo : str
        libpq connection string.
    lock_timeout_ms : int
        ``lock_timeout`` applied to every unit of work; a timeout surfaces
        as a conflict.
    connect : callable
        Connection factory, ``psycopg.connect`` by default.
    """

    def __init__(
        self,
        conninfo: str,
        lock_timeout_ms: int = 5000,
        connect: Any = None,
    ) -> None:
        self.conninfo = conninfo
        self.lock_timeout_ms = lock_timeout_ms
        self._connect = connect or psycopg.connect

    @classmethod
    def from_config(cls, config: PostgresConfig) -> "PostgresLedgerStore":
        return cls(config.connection_string, lock_timeout_ms=config.lock_timeout_ms)

    def create_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        try:
            with self._connect(self.conninfo) as conn:
                conn.execute(SCHEMA_SQL)
        except psycopg.Error as exc:
            raise PersistenceError(f"Schema creation failed: {exc}") from exc
        logger.info("Ledger schema ready")

    @contextmanager
    def unit_of_work(self) -> Iterator["PostgresUnitOfWork"]:
        try:
            with self._connect(self.conninfo, row_factory=dict_row) as conn:
                with conn.transaction():
                    conn.execute(f"SET LOCAL lock_timeout = {int(self.lock_timeout_ms)}")
                    yield PostgresUnitOfWork(conn)
        except CONFLICT_ERRORS as exc:
            raise PersistenceConflictError(f"Concurrent update: {exc}") from exc
        except pg_errors.UniqueViolation as exc:
            raise InvalidEntityStateError(f"Duplicate entity: {exc}") from exc
        except psycopg.Error as exc:
            raise PersistenceError(f"Database error: {exc}") from exc


class PostgresUnitOfWork(UnitOfWork):
    def __init__(self, conn: Any) -> None:
        self.conn = conn
        self.accounts = _PostgresAccounts(conn)
        self.transactions = _PostgresTransactions(conn)


class _PostgresAccounts(AccountStore):
    def __init__(self, conn: Any) -> None:
        self._conn = conn

    def find_by_key(self, key: PayeeKey) -> Account | None:
        for lookup_field, value in key.candidates():
            if lookup_field is LookupField.DOCUMENT:
                sql = f"SELECT {ACCOUNT_COLUMNS} FROM accounts WHERE document = %s"
            else:
                sql = f"SELECT {ACCOUNT_COLUMNS} FROM accounts WHERE lower(email) = %s"
            row = self._conn.execute(sql, (value,)).fetchone()
            if row is not None:
                return _row_to_account(row)
        return None

    def get(self, account_id: str) -> Account | None:
        row = self._conn.execute(
            f"SELECT {ACCOUNT_COLUMNS} FROM accounts WHERE account_id = %s",
            (account_id,),
        ).fetchone()
        return _row_to_account(row) if row is not None else None

    def lock(self, *account_ids: str) -> dict[str, Account]:
        ids = sorted(set(account_ids))
        rows = self._conn.execute(
            f"SELECT {ACCOUNT_COLUMNS} FROM accounts WHERE account_id = ANY(%s) "
            "ORDER BY account_id FOR UPDATE",
            (ids,),
        ).fetchall()
        return {row["account_id"]: _row_to_account(row) for row in rows}

    def save(self, account: Account) -> None:
        cur = self._conn.execute(
            "UPDATE accounts SET balance = %s, version = version + 1 "
            "WHERE account_id = %s AND version = %s",
            (account.balance, account.account_id, account.version),
        )
        if cur.rowcount != 1:
            raise PersistenceConflictError(
                f"Account {account.account_id} changed concurrently"
            )

    def add(self, account: Account) -> None:
        self._conn.execute(
            f"INSERT INTO accounts ({ACCOUNT_COLUMNS}) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)",
            (
                account.account_id,
                account.document,
                account.email,
                account.full_name,
                account.balance,
                account.account_type.value,
                account.can_originate,
                account.version,
                account.created_at,
            ),
        )


class _PostgresTransactions(TransactionStore):
    ROLE_FILTERS = {
        ParticipantRole.PAYER: "payer_id = %(account_id)s",
        ParticipantRole.PAYEE: "payee_id = %(account_id)s",
        ParticipantRole.EITHER: "(payer_id = %(account_id)s OR payee_id = %(account_id)s)",
    }

    def __init__(self, conn: Any) -> None:
        self._conn = conn

    def save(self, record: TransactionRecord) -> None:
        self._conn.execute(
            "INSERT INTO transactions (transaction_id, payer_id, payee_id, value, timestamp) "
            "VALUES (%s, %s, %s, %s, %s)",
            (
                record.transaction_id,
                record.payer_id,
                record.payee_id,
                record.value,
                record.timestamp,
            ),
        )

    def find_by_participant_and_range(
        self,
        account_id: str,
        role: ParticipantRole,
        start: datetime,
        end: datetime,
    ) -> list[TransactionRecord]:
        rows = self._conn.execute(
            "SELECT transaction_id, payer_id, payee_id, value, timestamp FROM transactions "
            f"WHERE {self.ROLE_FILTERS[role]} "
            "AND timestamp BETWEEN %(start)s AND %(end)s "
            "ORDER BY timestamp ASC, seq ASC",
            {"account_id": account_id, "start": start, "end": end},
        ).fetchall()
        return [
            TransactionRecord(
                transaction_id=row["transaction_id"],
                payer_id=row["payer_id"],
                payee_id=row["payee_id"],
                value=row["value"],
                timestamp=row["timestamp"],
            )
            for row in rows
        ]


def _row_to_account(row: dict[str, Any]) -> Account:
    return Account(
        account_id=row["account_id"],
        document=row["document"],
        email=row["email"],
        full_name=row["full_name"],
        balance=row["balance"],
        account_type=AccountType(row["account_type"]),
        can_originate=row["can_originate"],
        version=row["version"],
        created_at=row["created_at"],
    )
