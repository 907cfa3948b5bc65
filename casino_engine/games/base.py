"""
Base outcome rule.

A rule maps (wager parameters, random draws) to an outcome and multiplier.
It never decides *whether* the player wins: the engine picks the outcome
class from the configured win rate and asks the rule to sample inside it.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

from casino_engine.config import settings
from casino_engine.errors import EngineFault, ValidationError
from casino_engine.models import Wager
from casino_engine.rng import RandomSource


@dataclass
class RuleOutcome:
    won: bool
    multiplier: Decimal   # payout / staked, before the max-payout clamp
    payout: Decimal
    stake: Decimal        # total staked (blackjack doubles change this)
    detail: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def settle(cls, stake: Decimal, multiplier: Decimal, detail: dict, won: bool = None) -> "RuleOutcome":
        """``won`` defaults to payout > stake; rules whose winning class differs pass it."""
        payout = stake * multiplier
        if won is None:
            won = payout > stake
        return cls(won=won, multiplier=multiplier, payout=payout, stake=stake, detail=detail)


class OutcomeRule(ABC):
    """Abstract base for all game outcome rules."""

    game_type: str = "base"
    display_name: str = "Base Game"
    interactive: bool = False   # supports multi-step rounds

    def __init__(self, max_attempts: int = None):
        self.max_attempts = max_attempts or settings.MAX_RESAMPLE_ATTEMPTS

    @abstractmethod
    def validate(self, wager: Wager) -> None:
        """Raise ValidationError for malformed or structurally unplayable parameters."""
        ...

    @abstractmethod
    def draw(self, wager: Wager, rng: RandomSource) -> RuleOutcome:
        """Sample one outcome at the game's natural odds."""
        ...

    def total_stake(self, wager: Wager) -> Decimal:
        return wager.stake

    def can_win(self, wager: Wager) -> bool:
        return True

    def can_lose(self, wager: Wager) -> bool:
        return True

    def resolve(self, wager: Wager, rng: RandomSource, want_win: bool) -> RuleOutcome:
        """Sample an outcome restricted to the winning (or losing) class.

        Default is rejection sampling over ``draw``; rules with a cheap direct
        sampler override this.
        """
        for _ in range(self.max_attempts):
            outcome = self.draw(wager, rng)
            if outcome.won == want_win:
                return outcome
        raise EngineFault(
            f"{self.game_type}: no {'winning' if want_win else 'losing'} outcome "
            f"after {self.max_attempts} draws"
        )

    @staticmethod
    def param(wager: Wager, name: str, default=None, required: bool = False):
        if name not in wager.params:
            if required:
                raise ValidationError(f"{wager.game_id}: missing parameter '{name}'")
            return default
        return wager.params[name]

    @staticmethod
    def as_int(value, name: str) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"'{name}' must be an integer, got {value!r}")
        return value

    def validate_round(self, wager: Wager) -> None:
        raise ValidationError(f"{self.game_type} has no multi-step rounds, use a single wager")

    def start_round(self, wager: Wager, rng: RandomSource, want_win: bool) -> "GameRound":
        raise ValidationError(f"{self.game_type} has no multi-step rounds, use a single wager")

    def get_metadata(self) -> dict:
        return {"game_type": self.game_type, "display_name": self.display_name, "rounds": self.interactive}


class GameRound(ABC):
    """A multi-step round in progress.

    The stake is already debited and the outcome class already drawn when a
    round exists. Each action reveals more of the outcome; only the part the
    player has not seen yet is sampled, and it is sampled inside the class.
    ``outcome`` is set once the round has settled.
    """

    actions: tuple = ()

    def __init__(self, wager: Wager, stake: Decimal, want_win: bool):
        self.id = uuid.uuid4().hex
        self.wager = wager
        self.stake = stake
        self.want_win = want_win
        self.max_payout: Optional[Decimal] = None
        self.outcome: Optional[RuleOutcome] = None

    @property
    def game_id(self) -> str:
        return self.wager.game_id

    @property
    def finished(self) -> bool:
        return self.outcome is not None

    def check(self, action: str, params: dict) -> None:
        """Raise ValidationError if ``action`` is not legal right now. Never mutates."""
        if self.finished:
            raise ValidationError(f"{self.game_id} round {self.id} is already settled")
        if action not in self.actions:
            raise ValidationError(f"Unknown {self.game_id} action {action!r}. Available: {list(self.actions)}")

    def extra_stake(self, action: str) -> Decimal:
        """Additional stake ``action`` puts at risk (debited before it is applied)."""
        return Decimal(0)

    @abstractmethod
    def apply(self, action: str, params: dict, rng: RandomSource) -> None:
        ...

    @abstractmethod
    def finish(self, rng: RandomSource) -> None:
        """Settle an abandoned round the way a cautious player would."""
        ...

    @abstractmethod
    def view(self) -> Dict[str, Any]:
        """What the player may see of the round so far."""
        ...
