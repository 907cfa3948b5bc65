"""Plinko: binomial walk across pegs into a fixed multiplier table."""
import math
from decimal import Decimal

from casino_engine.errors import ValidationError
from casino_engine.games.base import OutcomeRule, RuleOutcome
from casino_engine.rng import sample

# Static multiplier maps by risk level and row count (rows + 1 buckets each)
PLINKO_MULTIPLIERS = {
    "low": {
        8:  [5.6, 2.1, 1.1, 1, 0.5, 1, 1.1, 2.1, 5.6],
        12: [10, 3, 1.6, 1.4, 1.1, 1, 0.5, 1, 1.1, 1.4, 1.6, 3, 10],
        16: [16, 9, 2, 1.4, 1.4, 1.2, 1.1, 1, 0.5, 1, 1.1, 1.2, 1.4, 1.4, 2, 9, 16],
    },
    "medium": {
        8:  [13, 3, 1.3, 0.7, 0.4, 0.7, 1.3, 3, 13],
        12: [33, 11, 4, 2, 1.1, 0.6, 0.3, 0.6, 1.1, 2, 4, 11, 33],
        16: [110, 41, 10, 5, 3, 1.5, 1, 0.5, 0.3, 0.5, 1, 1.5, 3, 5, 10, 41, 110],
    },
    "high": {
        8:  [29, 4, 1.5, 0.3, 0.2, 0.3, 1.5, 4, 29],
        12: [76, 18, 5, 1.9, 0.4, 0.2, 0.1, 0.2, 0.4, 1.9, 5, 18, 76],
        16: [420, 130, 26, 9, 4, 2, 0.2, 0.2, 0.1, 0.2, 0.2, 2, 4, 9, 26, 130, 420],
    },
}


def bucket_multiplier(risk: str, rows: int, bucket: int) -> Decimal:
    return Decimal(str(PLINKO_MULTIPLIERS[risk][rows][bucket]))


def compute_rtp(risk: str, rows: int) -> float:
    """Exact return-to-player of a table under fair 50/50 bounces."""
    mults = PLINKO_MULTIPLIERS[risk][rows]
    return sum(math.comb(rows, k) / 2 ** rows * m for k, m in enumerate(mults))


class PlinkoRule(OutcomeRule):
    game_type = "plinko"
    display_name = "Plinko"

    def _parse(self, wager):
        risk = self.param(wager, "risk", "medium")
        if risk not in PLINKO_MULTIPLIERS:
            raise ValidationError(f"risk must be one of {list(PLINKO_MULTIPLIERS)}, got {risk!r}")
        rows = self.as_int(self.param(wager, "rows", 12), "rows")
        if rows not in PLINKO_MULTIPLIERS[risk]:
            raise ValidationError(f"rows must be one of {sorted(PLINKO_MULTIPLIERS[risk])}, got {rows}")
        return risk, rows

    def validate(self, wager) -> None:
        self._parse(wager)

    def _buckets(self, wager, winning: bool):
        risk, rows = self._parse(wager)
        return [k for k in range(rows + 1) if (bucket_multiplier(risk, rows, k) > 1) == winning]

    def can_win(self, wager) -> bool:
        return bool(self._buckets(wager, True))

    def can_lose(self, wager) -> bool:
        return bool(self._buckets(wager, False))

    def _settle(self, wager, risk, rows, path) -> RuleOutcome:
        bucket = sum(path)
        return RuleOutcome.settle(wager.stake, bucket_multiplier(risk, rows, bucket), {
            "rows": rows,
            "risk": risk,
            "path": ["R" if step else "L" for step in path],
            "bucket": bucket,
        })

    def draw(self, wager, rng) -> RuleOutcome:
        risk, rows = self._parse(wager)
        return self._settle(wager, risk, rows, [rng.next_int(0, 1) for _ in range(rows)])

    def resolve(self, wager, rng, want_win: bool) -> RuleOutcome:
        risk, rows = self._parse(wager)
        buckets = self._buckets(wager, want_win)
        if not buckets:
            return super().resolve(wager, rng, want_win)
        # pick a bucket weighted by its binomial path count
        weights = [math.comb(rows, k) for k in buckets]
        target = rng.next_int(0, sum(weights) - 1)
        for bucket, w in zip(buckets, weights):
            if target < w:
                break
            target -= w
        rights = set(sample(range(rows), bucket, rng))
        return self._settle(wager, risk, rows, [1 if i in rights else 0 for i in range(rows)])
