"""
Wager engine: validate → debit → resolve → credit → record, once per wager.

Every game goes through the same bias step: one draw against the game's
configured win rate picks the outcome class, and the game's rule samples an
outcome inside that class. The whole debit-to-record sequence runs under the
session lock, so no other balance mutation for that session can interleave,
and it is shielded from cancellation: once the stake is taken the wager
either records a result or refunds the stake, even if the caller goes away.

Mines and blackjack can also be played as rounds. Starting a round draws the
class and debits the stake; each action then advances the round under the
same lock, and the action that settles it credits the payout and records it.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from casino_engine.errors import (
    EngineError, EngineFault, GameDisabled, InsufficientFunds, RoundInProgress, RoundNotFound,
    StakeOutOfRange, ValidationError, WagerRejected,
)
from casino_engine.games import GAME_RULES, OutcomeRule, get_rule
from casino_engine.games.base import GameRound, RuleOutcome
from casino_engine.models import CURRENCIES, CurrencyTable, GameResult, Wager, WagerState, to_amount
from casino_engine.rng import RandomSource, SystemRandomSource
from casino_engine.services.session import Session
from casino_engine.services.settings_store import SettingsStore

logger = logging.getLogger(__name__)


@dataclass
class AutoplayReport:
    results: List[GameResult] = field(default_factory=list)
    stopped_by: Optional[WagerRejected] = None

    @property
    def rounds_played(self) -> int:
        return len(self.results)


class WagerEngine:
    def __init__(self, settings_store: SettingsStore, rng: RandomSource = None,
                 rules: Dict[str, OutcomeRule] = None, currencies: CurrencyTable = CURRENCIES):
        self.settings_store = settings_store
        self.rng = rng or SystemRandomSource()
        self.rules = rules or {gid: get_rule(gid) for gid in GAME_RULES}
        self.currencies = currencies

    def rule_for(self, game_id: str) -> OutcomeRule:
        rule = self.rules.get(game_id)
        if rule is None:
            return get_rule(game_id)   # raises UnknownGame
        return rule

    def _money(self, currency: str, amount) -> Decimal:
        amount = to_amount(amount)
        if self.currencies.quantize(amount, currency) != amount:
            precision = self.currencies.get(currency).precision
            raise ValidationError(f"{currency} amounts allow at most {precision} decimal places")
        return amount

    async def _exclusive(self, session: Session, step, *args):
        """Run ``step`` under the session lock; cancelling the caller does not cancel it."""
        async def locked():
            async with session.lock:
                return await step(*args)
        return await asyncio.shield(locked())

    # ─── Wagers ──────────────────────────────────────────────────────────────

    async def place_wager(self, session: Session, wager: Wager) -> GameResult:
        return await self._exclusive(session, self._place, session, wager)

    async def _validate(self, session: Session, wager: Wager, as_round: bool):
        game_settings = self.settings_store.get(wager.game_id)
        rule = self.rule_for(wager.game_id)
        if not game_settings.enabled:
            raise GameDisabled(f"{wager.game_id} is currently disabled")
        stake = self._money(wager.currency, wager.stake)
        if as_round:
            rule.validate_round(wager)
        else:
            rule.validate(wager)
        if not game_settings.min_bet <= stake <= game_settings.max_bet:
            raise StakeOutOfRange(
                f"Bet amount must be between {game_settings.min_bet} and {game_settings.max_bet}"
            )
        if as_round and any(r.game_id == wager.game_id for r in session.rounds.values()):
            raise RoundInProgress(f"Finish the open {wager.game_id} round first")
        total = rule.total_stake(wager)
        balance = await session.balances.get_balance(wager.currency)
        if balance < total:
            raise InsufficientFunds(f"Balance {balance} {wager.currency} is below {total}")
        return rule, game_settings, total

    async def _checked(self, session: Session, wager: Wager, as_round: bool = False):
        try:
            return await self._validate(session, wager, as_round)
        except EngineError as e:
            logger.warning("wager %s -> %s on %s: %s", WagerState.PENDING.value, WagerState.REJECTED.value,
                           wager.game_id, e.message)
            raise

    def _want_win(self, rule: OutcomeRule, wager: Wager, game_settings) -> bool:
        r = self.rng.next() * 100
        can_win, can_lose = rule.can_win(wager), rule.can_lose(wager)
        return (r < game_settings.win_rate and can_win) or not can_lose

    async def _roll_back(self, session: Session, wager: Wager, total: Decimal, credited: Decimal = Decimal(0)):
        logger.exception("wager on %s faulted after debit; rolling back %s %s",
                         wager.game_id, total, wager.currency)
        if credited:
            await session.balances.debit(wager.currency, credited)
        await session.balances.credit(wager.currency, total)

    async def _place(self, session: Session, wager: Wager) -> GameResult:
        rule, game_settings, total = await self._checked(session, wager)
        await session.balances.debit(wager.currency, total)
        try:
            outcome = rule.resolve(wager, self.rng, self._want_win(rule, wager, game_settings))
        except Exception as e:
            await self._roll_back(session, wager, total)
            if isinstance(e, EngineFault):
                raise
            raise EngineFault(f"{wager.game_id} could not be resolved, stake refunded") from e
        return await self._record(session, wager, outcome, total, game_settings.max_payout)

    async def _record(self, session: Session, wager: Wager, outcome: RuleOutcome,
                      total: Decimal, max_payout: Decimal) -> GameResult:
        """Clamp, quantize and credit the payout, then append the result."""
        credited = Decimal(0)
        try:
            payout = self.currencies.quantize(min(outcome.payout, max_payout), wager.currency)
            if payout > 0:
                await session.balances.credit(wager.currency, payout)
                credited = payout
            result = GameResult.new(
                game_type=wager.game_id,
                stake=total,
                payout=payout,
                currency=wager.currency,
                detail=outcome.detail,
                won=payout > total,
            )
            await session.ledger.append(result)
        except Exception as e:
            await self._roll_back(session, wager, total, credited)
            raise EngineFault(f"{wager.game_id} could not be recorded, stake refunded") from e

        session.stats.record(result)
        logger.info("wager %s on %s session=%s stake=%s payout=%s %s", WagerState.RESOLVED.value,
                    wager.game_id, session.session_id, total, payout, wager.currency)
        return result

    async def autoplay(self, session: Session, wager: Wager, rounds: int) -> AutoplayReport:
        """Repeat ``wager``; each round is validated afresh against current settings and balance."""
        if rounds < 1:
            raise ValidationError("rounds must be at least 1")
        report = AutoplayReport()
        for _ in range(rounds):
            try:
                result = await self.place_wager(session, wager)
            except WagerRejected as e:
                logger.info("autoplay on %s stopped after %d rounds: %s",
                            wager.game_id, report.rounds_played, e.code)
                report.stopped_by = e
                break
            report.results.append(result)
        return report

    # ─── Rounds ──────────────────────────────────────────────────────────────

    def get_round(self, session: Session, round_id: str, game_id: str = None) -> GameRound:
        rnd = session.rounds.get(round_id)
        if rnd is None or (game_id is not None and rnd.game_id != game_id):
            raise RoundNotFound(f"No open round {round_id}")
        return rnd

    async def start_round(self, session: Session, wager: Wager) -> Tuple[GameRound, Optional[GameResult]]:
        """Open a round; the result is set when the opening deal already settles it."""
        return await self._exclusive(session, self._start_round, session, wager)

    async def _start_round(self, session: Session, wager: Wager):
        rule, game_settings, total = await self._checked(session, wager, as_round=True)
        await session.balances.debit(wager.currency, total)
        try:
            rnd = rule.start_round(wager, self.rng, self._want_win(rule, wager, game_settings))
        except Exception as e:
            await self._roll_back(session, wager, total)
            if isinstance(e, EngineFault):
                raise
            raise EngineFault(f"{wager.game_id} round could not be dealt, stake refunded") from e
        rnd.max_payout = game_settings.max_payout
        logger.info("round %s opened on %s session=%s stake=%s %s",
                    rnd.id, wager.game_id, session.session_id, total, wager.currency)
        return rnd, await self._advance(session, rnd)

    async def round_action(self, session: Session, round_id: str, action: str, params: dict = None,
                           game_id: str = None) -> Tuple[GameRound, Optional[GameResult]]:
        return await self._exclusive(session, self._round_action, session, round_id, action,
                                     params or {}, game_id)

    async def _round_action(self, session, round_id, action, params, game_id):
        rnd = self.get_round(session, round_id, game_id)
        rnd.check(action, params)
        extra = rnd.extra_stake(action)
        if extra > 0:
            currency = rnd.wager.currency
            balance = await session.balances.get_balance(currency)
            if balance < extra:
                raise InsufficientFunds(f"Balance {balance} {currency} is below {extra}")
            await session.balances.debit(currency, extra)
            rnd.stake += extra
        return rnd, await self._step(session, rnd, rnd.apply, action, params, self.rng)

    async def finish_round(self, session: Session, round_id: str) -> GameResult:
        """Settle an abandoned round: mines cashes out, blackjack stands."""
        return await self._exclusive(session, self._finish_round, session, round_id)

    async def _finish_round(self, session, round_id):
        rnd = self.get_round(session, round_id)
        return await self._step(session, rnd, rnd.finish, self.rng)

    async def settle_open_rounds(self, session: Session) -> List[GameResult]:
        return [await self.finish_round(session, rid) for rid in list(session.rounds)]

    async def _step(self, session: Session, rnd: GameRound, apply, *args) -> Optional[GameResult]:
        try:
            apply(*args)
        except Exception as e:
            session.rounds.pop(rnd.id, None)
            await self._roll_back(session, rnd.wager, rnd.stake)
            if isinstance(e, EngineFault):
                raise
            raise EngineFault(f"{rnd.game_id} round could not be advanced, stake refunded") from e
        return await self._advance(session, rnd)

    async def _advance(self, session: Session, rnd: GameRound) -> Optional[GameResult]:
        if not rnd.finished:
            session.rounds[rnd.id] = rnd
            return None
        session.rounds.pop(rnd.id, None)
        return await self._record(session, rnd.wager, rnd.outcome, rnd.stake, rnd.max_payout)

    # ─── Wallet ──────────────────────────────────────────────────────────────

    async def deposit(self, session: Session, currency: str, amount) -> Decimal:
        amount = self._money(currency, amount)
        if amount <= 0:
            raise ValidationError("deposit amount must be positive")
        return await self._exclusive(session, self._deposit, session, currency, amount)

    async def _deposit(self, session, currency, amount):
        await session.balances.credit(currency, amount)
        logger.info("deposit session=%s %s %s", session.session_id, amount, currency)
        return await session.balances.get_balance(currency)

    async def withdraw(self, session: Session, currency: str, amount) -> Decimal:
        amount = self._money(currency, amount)
        if amount <= 0:
            raise ValidationError("withdraw amount must be positive")
        return await self._exclusive(session, self._withdraw, session, currency, amount)

    async def _withdraw(self, session, currency, amount):
        await session.balances.debit(currency, amount)
        logger.info("withdraw session=%s %s %s", session.session_id, amount, currency)
        return await session.balances.get_balance(currency)
