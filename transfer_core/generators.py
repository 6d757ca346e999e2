"""Synthetic account generator for demos, simulations and tests."""

from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterator

from faker import Faker

from transfer_core.models import Account, AccountType


class AccountGenerator:
    """Generate accounts with realistic names, CPFs and emails.

    Parameters
    ----------
    seed : int | None
        Random seed for reproducibility.
    locale : str
        Faker locale (default ``pt_BR``).
    merchant_rate : float
        Share of generated accounts that are merchants.
    """

    def __init__(
        self,
        seed: int | None = None,
        locale: str = "pt_BR",
        merchant_rate: float = 0.2,
    ) -> None:
        self.fake = Faker(locale)
        self.merchant_rate = merchant_rate
        self._random = random.Random(seed)
        if seed is not None:
            self.fake.seed_instance(seed)

    def generate(
        self,
        balance: Decimal | None = None,
        account_type: AccountType | None = None,
    ) -> Account:
        """Generate a single account.

        Unique documents and emails are drawn from Faker's ``unique`` proxy,
        so one generator never repeats them.
        """
        if account_type is None:
            account_type = (
                AccountType.MERCHANT
                if self._random.random() < self.merchant_rate
                else AccountType.REGULAR
            )
        if balance is None:
            balance = Decimal(self._random.randint(0, 500_000)) / 100

        days_ago = self._random.randint(0, 3 * 365)
        return Account(
            account_id=self.fake.uuid4(),
            document=self._document(account_type),
            email=self.fake.unique.email(),
            full_name=self.fake.company() if account_type is AccountType.MERCHANT else self.fake.name(),
            balance=balance,
            account_type=account_type,
            created_at=datetime.now(timezone.utc) - timedelta(days=days_ago),
        )

    def generate_batch(self, count: int, **kwargs) -> Iterator[Account]:
        """Generate multiple accounts.

        Parameters
        ----------
        count : int
            Number of accounts to generate.

        Yields
        ------
        Account
            Generated accounts.
        """
        for _ in range(count):
            yield self.generate(**kwargs)

    def _document(self, account_type: AccountType) -> str:
        # Merchants are companies (CNPJ); people have a CPF
        if account_type is AccountType.MERCHANT:
            return self.fake.unique.cnpj()
        return self.fake.unique.cpf()
