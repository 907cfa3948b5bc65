import asyncio
import logging
import time
from collections import OrderedDict
from typing import Dict, List

import asyncpg

from casino_engine.config import settings
from casino_engine.games.base import GameRound
from casino_engine.models import CURRENCIES, AggregateStats, CurrencyTable, to_amount
from casino_engine.services.ledger import InMemoryResultLedger, PostgresResultLedger, ResultLedger
from casino_engine.services.wallet_service import BalanceStore, InMemoryBalanceStore, PostgresBalanceStore

logger = logging.getLogger(__name__)


class Session:
    """One user's wallet, history, running stats and open rounds, plus the lock that serialises them."""

    def __init__(self, session_id: str, balances: BalanceStore, ledger: ResultLedger,
                 stats: AggregateStats = None):
        self.session_id = session_id
        self.balances = balances
        self.ledger = ledger
        self.stats = stats or AggregateStats()
        self.rounds: Dict[str, GameRound] = {}
        self.lock = asyncio.Lock()
        self.last_used = time.monotonic()

    @property
    def busy(self) -> bool:
        return self.lock.locked() or bool(self.rounds)

    async def load_stats(self) -> AggregateStats:
        """Rebuild stats from the ledger (used when reopening a persisted account)."""
        stats = AggregateStats()
        async for result in self.ledger.all():
            stats.record(result)
        self.stats = stats
        return stats


class SessionRegistry:
    """Opens guest (in-memory) or account (Postgres) sessions by id.

    Sessions are kept least recently used first. Opening one drops sessions
    idle for longer than ``idle_ttl`` and, past ``max_sessions``, the least
    recently used ones; a session with a wager in flight or an open round is
    never dropped.
    """

    def __init__(self, backend: str = None, pool: asyncpg.Pool = None,
                 currencies: CurrencyTable = CURRENCIES, starting_balance=None,
                 default_currency: str = None, max_sessions: int = None, idle_ttl: float = None):
        self.backend = backend or settings.STORAGE_BACKEND
        if self.backend not in ("memory", "postgres"):
            raise ValueError(f"Unknown storage backend: {self.backend}")
        self.pool = pool
        self.currencies = currencies
        self.starting_balance = to_amount(
            settings.GUEST_STARTING_BALANCE if starting_balance is None else starting_balance
        )
        self.default_currency = default_currency or settings.DEFAULT_CURRENCY
        self.max_sessions = max(1, max_sessions or settings.MAX_SESSIONS)
        self.idle_ttl = settings.SESSION_IDLE_TTL if idle_ttl is None else idle_ttl
        self._sessions: "OrderedDict[str, Session]" = OrderedDict()
        self._lock = asyncio.Lock()

    async def open(self, session_id: str) -> Session:
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = await self._create(session_id)
                self._sessions[session_id] = session
            else:
                self._sessions.move_to_end(session_id)
            session.last_used = time.monotonic()
            self._evict(keep=session_id)
            return session

    def _evict(self, keep: str) -> None:
        now = time.monotonic()
        for sid, session in list(self._sessions.items()):
            over_cap = len(self._sessions) > self.max_sessions
            if not over_cap and now - session.last_used < self.idle_ttl:
                break
            if sid == keep or session.busy:
                continue
            del self._sessions[sid]
            logger.info("dropped %s session %s", "idle" if not over_cap else "least recently used", sid)

    async def _create(self, session_id: str) -> Session:
        if self.backend == "postgres":
            if self.pool is None:
                from casino_engine.database import get_pool
                self.pool = await get_pool()
            session = Session(
                session_id,
                PostgresBalanceStore(self.pool, session_id, self.currencies),
                PostgresResultLedger(self.pool, session_id),
            )
            await session.load_stats()
            logger.info("opened account session %s (%d games)", session_id, session.stats.total_games)
            return session

        initial = {}
        if self.starting_balance > 0:
            initial[self.default_currency] = self.currencies.quantize(self.starting_balance, self.default_currency)
        logger.info("opened guest session %s", session_id)
        return Session(session_id, InMemoryBalanceStore(self.currencies, initial), InMemoryResultLedger())

    def close(self, session_id: str) -> bool:
        """Forget a session unless it is busy; returns whether it was dropped."""
        session = self._sessions.get(session_id)
        if session is None or session.busy:
            return False
        del self._sessions[session_id]
        return True

    def sessions(self) -> List[Session]:
        return list(self._sessions.values())

    def __len__(self):
        return len(self._sessions)
