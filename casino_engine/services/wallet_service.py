import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict

import asyncpg

from casino_engine.errors import InsufficientFunds, ValidationError
from casino_engine.models import CURRENCIES, CurrencyTable

logger = logging.getLogger(__name__)


class BalanceStore(ABC):
    """Per-session balances. Only ``credit`` and ``debit`` mutate them."""

    def __init__(self, currencies: CurrencyTable = CURRENCIES):
        self.currencies = currencies

    def _check(self, currency: str, amount: Decimal = None):
        self.currencies.get(currency)
        if amount is not None and amount < 0:
            raise ValidationError(f"amount must be >= 0, got {amount}")

    @abstractmethod
    async def get_balance(self, currency: str) -> Decimal:
        ...

    @abstractmethod
    async def balances(self) -> Dict[str, Decimal]:
        ...

    @abstractmethod
    async def credit(self, currency: str, amount: Decimal) -> None:
        ...

    @abstractmethod
    async def debit(self, currency: str, amount: Decimal) -> None:
        ...


class InMemoryBalanceStore(BalanceStore):
    """Guest-session wallet, lives as long as the process."""

    def __init__(self, currencies: CurrencyTable = CURRENCIES, initial: Dict[str, Decimal] = None):
        super().__init__(currencies)
        self._balances: Dict[str, Decimal] = {}
        for cur, amount in (initial or {}).items():
            self._check(cur, amount)
            self._balances[cur] = Decimal(amount)

    async def get_balance(self, currency: str) -> Decimal:
        self._check(currency)
        return self._balances.get(currency, Decimal(0))

    async def balances(self) -> Dict[str, Decimal]:
        return {cur: self._balances.get(cur, Decimal(0)) for cur in self.currencies.symbols()}

    async def credit(self, currency: str, amount: Decimal) -> None:
        self._check(currency, amount)
        self._balances[currency] = self._balances.get(currency, Decimal(0)) + amount

    async def debit(self, currency: str, amount: Decimal) -> None:
        self._check(currency, amount)
        current = self._balances.get(currency, Decimal(0))
        if amount > current:
            logger.info("debit of %s %s refused, balance %s", amount, currency, current)
            raise InsufficientFunds(f"Balance {current} {currency} is below {amount}")
        self._balances[currency] = current - amount


class PostgresBalanceStore(BalanceStore):
    """Account wallet backed by the ``balances`` table, journaled in ``transactions``."""

    def __init__(self, pool: asyncpg.Pool, owner_id: str, currencies: CurrencyTable = CURRENCIES):
        super().__init__(currencies)
        self.pool = pool
        self.owner_id = owner_id

    async def get_balance(self, currency: str) -> Decimal:
        self._check(currency)
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT amount FROM balances WHERE owner_id=$1 AND currency=$2", self.owner_id, currency
            )
        return Decimal(row["amount"]) if row else Decimal(0)

    async def balances(self) -> Dict[str, Decimal]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("SELECT currency, amount FROM balances WHERE owner_id=$1", self.owner_id)
        found = {r["currency"]: Decimal(r["amount"]) for r in rows}
        return {cur: found.get(cur, Decimal(0)) for cur in self.currencies.symbols()}

    async def credit(self, currency: str, amount: Decimal) -> None:
        self._check(currency, amount)
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    "INSERT INTO balances(owner_id, currency, amount) VALUES($1,$2,$3) "
                    "ON CONFLICT (owner_id, currency) DO UPDATE SET amount = balances.amount + EXCLUDED.amount",
                    self.owner_id, currency, amount
                )
                await conn.execute(
                    "INSERT INTO transactions(owner_id,type,amount,currency) VALUES($1,'credit',$2,$3)",
                    self.owner_id, amount, currency
                )

    async def debit(self, currency: str, amount: Decimal) -> None:
        self._check(currency, amount)
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    "SELECT amount FROM balances WHERE owner_id=$1 AND currency=$2 FOR UPDATE",
                    self.owner_id, currency
                )
                current = Decimal(row["amount"]) if row else Decimal(0)
                if amount > current:
                    logger.info("debit of %s %s refused, balance %s", amount, currency, current)
                    raise InsufficientFunds(f"Balance {current} {currency} is below {amount}")
                await conn.execute(
                    "UPDATE balances SET amount = amount - $1 WHERE owner_id=$2 AND currency=$3",
                    amount, self.owner_id, currency
                )
                await conn.execute(
                    "INSERT INTO transactions(owner_id,type,amount,currency) VALUES($1,'debit',$2,$3)",
                    self.owner_id, -amount, currency
                )
