"""Tests for InMemoryLedgerStore."""

import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from transfer_core.exceptions import (
    InvalidEntityStateError,
    PersistenceConflictError,
    PersistenceError,
)
from transfer_core.models import Account, ParticipantRole, PayeeKey, TransactionRecord
from transfer_core.store import InMemoryLedgerStore

T0 = datetime(2024, 6, 10, 9, 0, tzinfo=timezone.utc)


class TestSeeding:
    """Tests for adding accounts."""

    def test_add_account(self, store: InMemoryLedgerStore, alice: Account) -> None:
        store.add_account(alice)

        assert store.get_account(alice.account_id) == alice
        assert store.summary() == {"accounts": 1, "transactions": 0}

    @pytest.mark.parametrize(
        "changes",
        [
            {"document": "other", "email": "other@example.com"},
            {"account_id": "other", "email": "other@example.com"},
            {"account_id": "other", "document": "other"},
        ],
    )
    def test_duplicates_rejected(
        self, store: InMemoryLedgerStore, alice: Account, changes: dict
    ) -> None:
        from dataclasses import replace

        store.add_account(alice)
        with pytest.raises(InvalidEntityStateError):
            store.add_account(replace(alice, **changes))
        assert store.summary()["accounts"] == 1


class TestLookup:
    """Tests for payee key resolution."""

    def test_find_by_document(self, seeded_store: InMemoryLedgerStore, bob: Account) -> None:
        with seeded_store.unit_of_work() as uow:
            assert uow.accounts.find_by_key(PayeeKey(bob.document)) == bob

    def test_find_by_email_case_insensitive(
        self, seeded_store: InMemoryLedgerStore, bob: Account
    ) -> None:
        with seeded_store.unit_of_work() as uow:
            assert uow.accounts.find_by_key(PayeeKey("BOB@example.COM")) == bob

    def test_document_wins_over_email(self, store: InMemoryLedgerStore) -> None:
        # One account's document equals another account's email
        by_email = Account(
            account_id="e", document="111", email="x@y.com", full_name="E", balance=Decimal("0")
        )
        by_document = Account(
            account_id="d", document="x@y.com", email="d@y.com", full_name="D", balance=Decimal("0")
        )
        store.add_account(by_email)
        store.add_account(by_document)

        with store.unit_of_work() as uow:
            assert uow.accounts.find_by_key(PayeeKey("x@y.com")).account_id == "d"

    def test_unknown_key(self, seeded_store: InMemoryLedgerStore) -> None:
        with seeded_store.unit_of_work() as uow:
            assert uow.accounts.find_by_key(PayeeKey("nobody")) is None


class TestUnitOfWork:
    """Tests for commit, rollback and version checks."""

    def _transfer(self, store: InMemoryLedgerStore, payer: Account, payee: Account) -> None:
        with store.unit_of_work() as uow:
            locked = uow.accounts.lock(payer.account_id, payee.account_id)
            uow.accounts.save(locked[payer.account_id].debit(Decimal("40")))
            uow.accounts.save(locked[payee.account_id].credit(Decimal("40")))
            uow.transactions.save(
                TransactionRecord(
                    payer_id=payer.account_id, payee_id=payee.account_id, value=Decimal("40"), timestamp=T0
                )
            )

    def test_commit_applies_all_writes(
        self, seeded_store: InMemoryLedgerStore, alice: Account, bob: Account
    ) -> None:
        self._transfer(seeded_store, alice, bob)

        assert seeded_store.get_account(alice.account_id).balance == Decimal("60.00")
        assert seeded_store.get_account(bob.account_id).balance == Decimal("50.00")
        assert seeded_store.get_account(alice.account_id).version == 1
        assert len(seeded_store.transactions) == 1

    def test_exception_rolls_back(
        self, seeded_store: InMemoryLedgerStore, alice: Account, bob: Account
    ) -> None:
        with pytest.raises(RuntimeError):
            with seeded_store.unit_of_work() as uow:
                uow.accounts.save(alice.debit(Decimal("40")))
                raise RuntimeError("boom")

        assert seeded_store.get_account(alice.account_id).balance == Decimal("100.00")

    def test_failure_while_applying_restores_accounts(
        self,
        seeded_store: InMemoryLedgerStore,
        alice: Account,
        bob: Account,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def fail(record: TransactionRecord) -> None:
            raise OSError("disk full")

        monkeypatch.setattr(seeded_store, "_insert_transaction", fail)

        with pytest.raises(PersistenceError, match="disk full"):
            self._transfer(seeded_store, alice, bob)

        assert seeded_store.get_account(alice.account_id) == alice
        assert seeded_store.get_account(bob.account_id) == bob
        assert seeded_store.transactions == []

    def test_stale_version_conflicts(
        self, seeded_store: InMemoryLedgerStore, alice: Account, bob: Account
    ) -> None:
        self._transfer(seeded_store, alice, bob)

        with pytest.raises(PersistenceConflictError):
            with seeded_store.unit_of_work() as uow:
                uow.accounts.save(alice.debit(Decimal("1")))  # alice is version 0

    def test_locks_released_after_block(
        self, seeded_store: InMemoryLedgerStore, alice: Account
    ) -> None:
        with seeded_store.unit_of_work() as uow:
            uow.accounts.lock(alice.account_id)
            assert seeded_store._row_lock(alice.account_id).locked()
        assert not seeded_store._row_lock(alice.account_id).locked()

    def test_lock_blocks_other_unit_of_work(
        self, seeded_store: InMemoryLedgerStore, alice: Account
    ) -> None:
        acquired = threading.Event()

        def contender() -> None:
            with seeded_store.unit_of_work() as uow:
                uow.accounts.lock(alice.account_id)
                acquired.set()

        with seeded_store.unit_of_work() as uow:
            uow.accounts.lock(alice.account_id)
            thread = threading.Thread(target=contender)
            thread.start()
            assert not acquired.wait(0.1)
        assert acquired.wait(2)
        thread.join()

    def test_lock_skips_unknown_ids(self, seeded_store: InMemoryLedgerStore, alice: Account) -> None:
        with seeded_store.unit_of_work() as uow:
            locked = uow.accounts.lock(alice.account_id, "ghost")
        assert set(locked) == {alice.account_id}


class TestHistory:
    """Tests for find_by_participant_and_range."""

    @pytest.fixture
    def history(
        self, seeded_store: InMemoryLedgerStore, alice: Account, bob: Account
    ) -> InMemoryLedgerStore:
        with seeded_store.unit_of_work() as uow:
            # Inserted out of order on purpose
            for offset, payer, payee in ((2, alice, bob), (0, bob, alice), (1, alice, bob)):
                uow.transactions.save(
                    TransactionRecord(
                        payer_id=payer.account_id,
                        payee_id=payee.account_id,
                        value=Decimal(offset + 1),
                        timestamp=T0 + timedelta(hours=offset),
                    )
                )
        return seeded_store

    def test_roles(self, history: InMemoryLedgerStore, alice: Account) -> None:
        end = T0 + timedelta(days=1)
        with history.unit_of_work() as uow:
            either = uow.transactions.find_by_participant_and_range(
                alice.account_id, ParticipantRole.EITHER, T0, end
            )
            as_payer = uow.transactions.find_by_participant_and_range(
                alice.account_id, ParticipantRole.PAYER, T0, end
            )
            as_payee = uow.transactions.find_by_participant_and_range(
                alice.account_id, ParticipantRole.PAYEE, T0, end
            )

        assert [r.timestamp for r in either] == [T0, T0 + timedelta(hours=1), T0 + timedelta(hours=2)]
        assert len(as_payer) == 2
        assert len(as_payee) == 1

    def test_bounds_inclusive(self, history: InMemoryLedgerStore, alice: Account) -> None:
        with history.unit_of_work() as uow:
            records = uow.transactions.find_by_participant_and_range(
                alice.account_id, ParticipantRole.EITHER, T0, T0 + timedelta(hours=1)
            )
        assert len(records) == 2
