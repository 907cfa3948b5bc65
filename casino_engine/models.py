import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_DOWN, InvalidOperation
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel, Field, model_validator

from casino_engine.errors import UnknownCurrency, ValidationError


# ─── Currencies ────────────────────────────────────────────────────────────────

@dataclass
class Currency:
    symbol: str
    name: str
    precision: int
    usd_rate: Decimal

    @property
    def quantum(self) -> Decimal:
        return Decimal(1).scaleb(-self.precision)


class CurrencyTable:
    """Reference data; only the USD exchange rate is mutable."""

    def __init__(self, currencies: Iterable[Currency]):
        self._by_symbol = {c.symbol: c for c in currencies}

    def get(self, symbol: str) -> Currency:
        cur = self._by_symbol.get(symbol)
        if cur is None:
            raise UnknownCurrency(f"Unknown currency: {symbol}")
        return cur

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._by_symbol

    def symbols(self):
        return list(self._by_symbol)

    def refresh_rate(self, symbol: str, usd_rate) -> None:
        rate = to_amount(usd_rate)
        if rate <= 0:
            raise ValidationError(f"usd_rate must be positive, got {rate}")
        self.get(symbol).usd_rate = rate

    def quantize(self, amount: Decimal, symbol: str) -> Decimal:
        return amount.quantize(self.get(symbol).quantum, rounding=ROUND_DOWN)

    def convert_to_usd(self, amount, symbol: str) -> Decimal:
        return (to_amount(amount) * self.get(symbol).usd_rate).quantize(Decimal("0.01"), rounding=ROUND_DOWN)


def default_currencies() -> CurrencyTable:
    return CurrencyTable([
        Currency("USD", "US Dollar", 2, Decimal("1")),
        Currency("BTC", "Bitcoin", 8, Decimal("45000")),
        Currency("ETH", "Ethereum", 6, Decimal("2500")),
    ])


CURRENCIES = default_currencies()


def to_amount(value) -> Decimal:
    """Coerce user input to Decimal without float artefacts."""
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError(f"Not a valid amount: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Not a valid amount: {value!r}")
    return amount


# ─── Game settings ─────────────────────────────────────────────────────────────

class GameSettings(BaseModel):
    win_rate: float = Field(50, ge=0, le=100)
    house_edge: float = Field(2.5, ge=0, le=50)
    min_bet: Decimal = Field(Decimal("1"), gt=0)
    max_bet: Decimal = Field(Decimal("1000"), gt=0)
    max_payout: Decimal = Field(Decimal("10000"), gt=0)
    enabled: bool = True

    model_config = {"extra": "forbid", "validate_assignment": True}

    @model_validator(mode="after")
    def check_bet_range(self):
        if self.max_bet < self.min_bet:
            raise ValueError("max_bet must be >= min_bet")
        return self


DEFAULT_GAME_SETTINGS: Dict[str, GameSettings] = {
    "dice":      GameSettings(win_rate=50),
    "blackjack": GameSettings(win_rate=48),
    "roulette":  GameSettings(win_rate=47.4),
    "mines":     GameSettings(win_rate=45),
    "plinko":    GameSettings(win_rate=49),
}


# ─── Wagers & results ──────────────────────────────────────────────────────────

class WagerState(str, enum.Enum):
    PENDING = "pending"
    VALIDATED = "validated"
    RESOLVED = "resolved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Wager:
    game_id: str
    currency: str
    stake: Decimal
    params: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(cls, game_id: str, currency: str, stake, params: Optional[dict] = None) -> "Wager":
        return cls(game_id=game_id, currency=currency, stake=to_amount(stake), params=dict(params or {}))


MULTIPLIER_TOLERANCE = Decimal("0.0001")


@dataclass(frozen=True)
class GameResult:
    id: str
    game_type: str
    stake: Decimal
    payout: Decimal
    currency: str
    created_at: datetime
    detail: Dict[str, Any] = field(default_factory=dict)
    won: bool = False

    @classmethod
    def new(cls, game_type: str, stake: Decimal, payout: Decimal, currency: str,
            detail: dict, won: bool) -> "GameResult":
        return cls(
            id=uuid.uuid4().hex,
            game_type=game_type,
            stake=stake,
            payout=payout,
            currency=currency,
            created_at=datetime.now(timezone.utc),
            detail=detail,
            won=won,
        )

    @property
    def multiplier(self) -> Decimal:
        if self.stake == 0:
            return Decimal(0)
        return self.payout / self.stake

    @property
    def profit(self) -> Decimal:
        return self.payout - self.stake

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "game_type": self.game_type,
            "bet_amount": self.stake,
            "win_amount": self.payout,
            "currency": self.currency,
            "multiplier": self.multiplier.quantize(MULTIPLIER_TOLERANCE),
            "created_at": self.created_at,
            "game_data": self.detail,
        }

    @classmethod
    def from_record(cls, record: dict) -> "GameResult":
        try:
            stake = to_amount(record["bet_amount"])
            payout = to_amount(record["win_amount"])
            stored = to_amount(record["multiplier"])
            created_at = record["created_at"]
            if isinstance(created_at, str):
                created_at = datetime.fromisoformat(created_at)
            result = cls(
                id=str(record["id"]),
                game_type=record["game_type"],
                stake=stake,
                payout=payout,
                currency=record["currency"],
                created_at=created_at,
                detail=dict(record.get("game_data") or {}),
                won=payout > stake,
            )
        except KeyError as e:
            raise ValidationError(f"Record missing field {e.args[0]}")
        if abs(result.multiplier - stored) > MULTIPLIER_TOLERANCE:
            raise ValidationError(
                f"multiplier {stored} disagrees with win_amount/bet_amount {result.multiplier:.4f}"
            )
        return result


# ─── Aggregate stats ───────────────────────────────────────────────────────────

@dataclass
class AggregateStats:
    total_games: int = 0
    wins: int = 0
    losses: int = 0
    total_wagered: Dict[str, Decimal] = field(default_factory=dict)
    total_won: Dict[str, Decimal] = field(default_factory=dict)

    def record(self, result: GameResult) -> None:
        self.total_games += 1
        if result.won:
            self.wins += 1
        else:
            self.losses += 1
        cur = result.currency
        self.total_wagered[cur] = self.total_wagered.get(cur, Decimal(0)) + result.stake
        self.total_won[cur] = self.total_won.get(cur, Decimal(0)) + result.payout

    def net_profit(self, currency: str) -> Decimal:
        return self.total_won.get(currency, Decimal(0)) - self.total_wagered.get(currency, Decimal(0))

    @classmethod
    def from_results(cls, results: Iterable[GameResult]) -> "AggregateStats":
        stats = cls()
        for r in results:
            stats.record(r)
        return stats

    def to_dict(self) -> dict:
        return {
            "total_games": self.total_games,
            "wins": self.wins,
            "losses": self.losses,
            "total_wagered": {k: str(v) for k, v in self.total_wagered.items()},
            "total_won": {k: str(v) for k, v in self.total_won.items()},
        }
