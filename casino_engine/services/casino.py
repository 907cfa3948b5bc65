"""In-process boundary used by the HTTP routes (and by any other front-end)."""
import logging
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from casino_engine.config import settings
from casino_engine.games.base import GameRound
from casino_engine.models import AggregateStats, GameResult, GameSettings, Wager
from casino_engine.rng import RandomSource
from casino_engine.services.engine import AutoplayReport, WagerEngine
from casino_engine.services.session import SessionRegistry
from casino_engine.services.settings_store import SettingsStore

logger = logging.getLogger(__name__)


class CasinoService:
    def __init__(self, settings_store: SettingsStore = None, engine: WagerEngine = None,
                 sessions: SessionRegistry = None, rng: RandomSource = None):
        self.settings_store = settings_store or SettingsStore()
        self.engine = engine or WagerEngine(self.settings_store, rng=rng)
        self.sessions = sessions or SessionRegistry()

    # ─── Player surface ─────────────────────────────────────────────────────

    async def place_wager(self, session_id: str, game_id: str, currency: str, stake,
                          params: Optional[dict] = None) -> GameResult:
        session = await self.sessions.open(session_id)
        return await self.engine.place_wager(session, Wager.create(game_id, currency, stake, params))

    async def autoplay(self, session_id: str, game_id: str, currency: str, stake,
                       params: Optional[dict], rounds: int) -> AutoplayReport:
        session = await self.sessions.open(session_id)
        return await self.engine.autoplay(session, Wager.create(game_id, currency, stake, params), rounds)

    def get_settings(self, game_id: str) -> GameSettings:
        return self.settings_store.get(game_id)

    def list_games(self) -> List[dict]:
        return [
            {**self.engine.rule_for(gid).get_metadata(), "enabled": s.enabled}
            for gid, s in self.settings_store.all().items()
        ]

    async def get_balance(self, session_id: str, currency: str) -> Decimal:
        session = await self.sessions.open(session_id)
        return await session.balances.get_balance(currency)

    async def get_balances(self, session_id: str) -> Dict[str, Decimal]:
        session = await self.sessions.open(session_id)
        return await session.balances.balances()

    async def deposit(self, session_id: str, currency: str, amount) -> Decimal:
        session = await self.sessions.open(session_id)
        return await self.engine.deposit(session, currency, amount)

    async def withdraw(self, session_id: str, currency: str, amount) -> Decimal:
        session = await self.sessions.open(session_id)
        return await self.engine.withdraw(session, currency, amount)

    async def recent_results(self, session_id: str, n: int = None) -> List[GameResult]:
        session = await self.sessions.open(session_id)
        return await session.ledger.recent(settings.RECENT_RESULTS_LIMIT if n is None else n)

    async def stats(self, session_id: str) -> AggregateStats:
        session = await self.sessions.open(session_id)
        return session.stats

    # ─── Rounds ─────────────────────────────────────────────────────────────

    async def start_round(self, session_id: str, game_id: str, currency: str, stake,
                          params: Optional[dict] = None) -> Tuple[GameRound, Optional[GameResult]]:
        session = await self.sessions.open(session_id)
        return await self.engine.start_round(session, Wager.create(game_id, currency, stake, params))

    async def round_action(self, session_id: str, game_id: str, round_id: str, action: str,
                           params: Optional[dict] = None) -> Tuple[GameRound, Optional[GameResult]]:
        session = await self.sessions.open(session_id)
        return await self.engine.round_action(session, round_id, action, params, game_id=game_id)

    async def get_round(self, session_id: str, game_id: str, round_id: str) -> GameRound:
        session = await self.sessions.open(session_id)
        return self.engine.get_round(session, round_id, game_id)

    def end_session(self, session_id: str) -> bool:
        return self.sessions.close(session_id)

    async def close(self) -> None:
        """Settle every open round before the process goes away."""
        for session in self.sessions.sessions():
            for result in await self.engine.settle_open_rounds(session):
                logger.info("settled abandoned %s round for %s", result.game_type, session.session_id)

    # ─── Admin surface ──────────────────────────────────────────────────────

    def authenticate_admin(self, pin: str) -> str:
        return self.settings_store.authenticate(pin)

    def revoke_admin(self, capability: Optional[str] = None) -> None:
        self.settings_store.revoke(capability)

    def all_settings(self, capability: Optional[str]) -> Dict[str, GameSettings]:
        self.settings_store.authorize(capability)
        return self.settings_store.all()

    def update_settings(self, game_id: str, partial: dict, capability: Optional[str]) -> GameSettings:
        return self.settings_store.update(game_id, partial, capability)

    def reset_settings(self, game_id: str, capability: Optional[str]) -> GameSettings:
        return self.settings_store.reset_to_default(game_id, capability)
