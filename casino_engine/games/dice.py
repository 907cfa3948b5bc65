"""Dice: roll 1..100 against an over/under threshold."""
from decimal import Decimal

from casino_engine.errors import ValidationError
from casino_engine.games.base import OutcomeRule, RuleOutcome

ROLL_MIN, ROLL_MAX = 1, 100
RTP_UNITS = Decimal(99)


class DiceRule(OutcomeRule):
    game_type = "dice"
    display_name = "Dice"

    def _parse(self, wager):
        direction = self.param(wager, "direction", required=True)
        threshold = self.as_int(self.param(wager, "threshold", required=True), "threshold")
        if direction not in ("over", "under"):
            raise ValidationError(f"direction must be 'over' or 'under', got {direction!r}")
        if not 1 <= threshold <= 99:
            raise ValidationError(f"threshold must be within 1..99, got {threshold}")
        if direction == "under" and threshold <= ROLL_MIN:
            raise ValidationError("under 1 can never win")
        return direction, threshold

    def validate(self, wager) -> None:
        self._parse(wager)

    @staticmethod
    def win_chance(direction: str, threshold: int) -> int:
        return 100 - threshold if direction == "over" else threshold

    @classmethod
    def multiplier_for(cls, direction: str, threshold: int) -> Decimal:
        return RTP_UNITS / Decimal(cls.win_chance(direction, threshold))

    def _settle(self, wager, direction, threshold, roll) -> RuleOutcome:
        hit = roll > threshold if direction == "over" else roll < threshold
        mult = self.multiplier_for(direction, threshold) if hit else Decimal(0)
        return RuleOutcome.settle(wager.stake, mult, {
            "roll": roll,
            "direction": direction,
            "threshold": threshold,
            "win_chance": self.win_chance(direction, threshold),
            "hit": hit,
        }, won=hit)

    def draw(self, wager, rng) -> RuleOutcome:
        direction, threshold = self._parse(wager)
        return self._settle(wager, direction, threshold, rng.next_int(ROLL_MIN, ROLL_MAX))

    def resolve(self, wager, rng, want_win: bool) -> RuleOutcome:
        direction, threshold = self._parse(wager)
        if direction == "over":
            lo, hi = (threshold + 1, ROLL_MAX) if want_win else (ROLL_MIN, threshold)
        else:
            lo, hi = (ROLL_MIN, threshold - 1) if want_win else (threshold, ROLL_MAX)
        return self._settle(wager, direction, threshold, rng.next_int(lo, hi))
