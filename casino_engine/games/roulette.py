"""Roulette: single European wheel spin, several even-money bets at once."""
from decimal import Decimal
from typing import Dict, List, Tuple

from casino_engine.errors import ValidationError
from casino_engine.games.base import OutcomeRule, RuleOutcome
from casino_engine.models import to_amount

RED_NUMS = {1, 3, 5, 7, 9, 12, 14, 16, 18, 19, 21, 23, 25, 27, 30, 32, 34, 36}
POCKETS = range(0, 37)
PAYOUT_MULTIPLIER = Decimal(2)

BET_TYPES = {
    "Red":   lambda n: color_of(n) == "red",
    "Black": lambda n: color_of(n) == "black",
    "Even":  lambda n: n != 0 and n % 2 == 0,
    "Odd":   lambda n: n % 2 == 1,
    "1-18":  lambda n: 1 <= n <= 18,
    "19-36": lambda n: 19 <= n <= 36,
}


def color_of(number: int) -> str:
    if number == 0:
        return "green"
    return "red" if number in RED_NUMS else "black"


def evaluate(bets: Dict[str, Decimal], spin: int) -> Tuple[Decimal, List[str]]:
    """Total payout and the winning bet types for one spin."""
    total = Decimal(0)
    winners = []
    for bet_type, amount in bets.items():
        if BET_TYPES[bet_type](spin):
            total += amount * PAYOUT_MULTIPLIER
            winners.append(bet_type)
    return total, winners


class RouletteRule(OutcomeRule):
    game_type = "roulette"
    display_name = "Roulette"

    def _bets(self, wager) -> Dict[str, Decimal]:
        raw = self.param(wager, "bets", required=True)
        if not isinstance(raw, dict) or not raw:
            raise ValidationError("bets must be a non-empty mapping of bet type to amount")
        bets = {}
        for bet_type, amount in raw.items():
            if bet_type not in BET_TYPES:
                raise ValidationError(f"Unknown roulette bet '{bet_type}'. Available: {list(BET_TYPES)}")
            amount = to_amount(amount)
            if amount <= 0:
                raise ValidationError(f"bet on {bet_type} must be positive")
            bets[bet_type] = amount
        return bets

    def validate(self, wager) -> None:
        total = sum(self._bets(wager).values())
        if total != wager.stake:
            raise ValidationError(f"stake {wager.stake} does not match the sum of bets {total}")

    def _settle(self, wager, bets, spin) -> RuleOutcome:
        payout, winners = evaluate(bets, spin)
        return RuleOutcome(
            won=payout > wager.stake,
            multiplier=payout / wager.stake,
            payout=payout,
            stake=wager.stake,
            detail={
                "spin": spin,
                "color": color_of(spin),
                "bets": {k: str(v) for k, v in bets.items()},
                "winning_bets": winners,
            },
        )

    def _spins(self, wager, winning: bool) -> List[int]:
        bets = self._bets(wager)
        return [n for n in POCKETS if (evaluate(bets, n)[0] > wager.stake) == winning]

    def can_win(self, wager) -> bool:
        return bool(self._spins(wager, True))

    def can_lose(self, wager) -> bool:
        return bool(self._spins(wager, False))

    def draw(self, wager, rng) -> RuleOutcome:
        return self._settle(wager, self._bets(wager), rng.next_int(0, 36))

    def resolve(self, wager, rng, want_win: bool) -> RuleOutcome:
        spins = self._spins(wager, want_win)
        if not spins:
            return super().resolve(wager, rng, want_win)
        spin = spins[rng.next_int(0, len(spins) - 1)]
        return self._settle(wager, self._bets(wager), spin)
