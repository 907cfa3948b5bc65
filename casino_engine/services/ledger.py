"""Append-only history of resolved wagers, one ledger per session."""
import json
from abc import ABC, abstractmethod
from typing import AsyncIterator, List

import asyncpg

from casino_engine.errors import ValidationError
from casino_engine.models import GameResult


class ResultLedger(ABC):
    @abstractmethod
    async def append(self, result: GameResult) -> None:
        ...

    @abstractmethod
    async def recent(self, n: int) -> List[GameResult]:
        """Up to ``n`` results, newest first."""
        ...

    def all(self) -> "LedgerView":
        """Every result in append order; iterate with ``async for``, as often as needed."""
        return LedgerView(self)

    @abstractmethod
    async def count(self) -> int:
        ...

    @abstractmethod
    def _iterate(self) -> AsyncIterator[GameResult]:
        ...


class LedgerView:
    def __init__(self, ledger: ResultLedger):
        self._ledger = ledger

    def __aiter__(self) -> AsyncIterator[GameResult]:
        return self._ledger._iterate()


class InMemoryResultLedger(ResultLedger):
    def __init__(self):
        self._results: List[GameResult] = []

    async def append(self, result: GameResult) -> None:
        if not isinstance(result, GameResult):
            raise ValidationError(f"expected GameResult, got {type(result).__name__}")
        self._results.append(result)

    async def recent(self, n: int) -> List[GameResult]:
        if n <= 0:
            return []
        return list(reversed(self._results[-n:]))

    async def count(self) -> int:
        return len(self._results)

    async def _iterate(self):
        # stops at the length seen when iteration began
        end = len(self._results)
        for i in range(end):
            yield self._results[i]


def _row_to_result(row) -> GameResult:
    data = row["game_data"]
    record = dict(row)
    record["game_data"] = json.loads(data) if isinstance(data, str) else data
    return GameResult.from_record(record)


class PostgresResultLedger(ResultLedger):
    """Ledger stored in ``bets`` using the persisted record shape."""

    COLUMNS = "id, game_type, bet_amount, win_amount, currency, multiplier, created_at, game_data"

    def __init__(self, pool: asyncpg.Pool, owner_id: str):
        self.pool = pool
        self.owner_id = owner_id

    async def append(self, result: GameResult) -> None:
        rec = result.to_record()
        async with self.pool.acquire() as conn:
            await conn.execute(
                "INSERT INTO bets(id, owner_id, game_type, bet_amount, win_amount, currency, multiplier, created_at, game_data) "
                "VALUES($1,$2,$3,$4,$5,$6,$7,$8,$9)",
                rec["id"], self.owner_id, rec["game_type"], rec["bet_amount"], rec["win_amount"],
                rec["currency"], rec["multiplier"], rec["created_at"], json.dumps(rec["game_data"], default=str)
            )

    async def recent(self, n: int) -> List[GameResult]:
        if n <= 0:
            return []
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {self.COLUMNS} FROM bets WHERE owner_id=$1 ORDER BY seq DESC LIMIT $2",
                self.owner_id, n
            )
        return [_row_to_result(r) for r in rows]

    async def count(self) -> int:
        async with self.pool.acquire() as conn:
            return await conn.fetchval("SELECT COUNT(*) FROM bets WHERE owner_id=$1", self.owner_id)

    async def _iterate(self):
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                async for row in conn.cursor(
                    f"SELECT {self.COLUMNS} FROM bets WHERE owner_id=$1 ORDER BY seq", self.owner_id
                ):
                    yield _row_to_result(row)
