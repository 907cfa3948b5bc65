from decimal import Decimal
from typing import Optional

from casino_engine.games.base import GameRound
from casino_engine.models import GameResult, GameSettings


def amount(value: Decimal) -> str:
    return format(value, "f")


def result_json(result: GameResult) -> dict:
    rec = result.to_record()
    return {
        "id": rec["id"],
        "game_type": rec["game_type"],
        "bet_amount": amount(rec["bet_amount"]),
        "win_amount": amount(rec["win_amount"]),
        "currency": rec["currency"],
        "multiplier": amount(rec["multiplier"]),
        "created_at": rec["created_at"].isoformat(),
        "game_data": rec["game_data"],
        "won": result.won,
    }


def settings_json(s: GameSettings) -> dict:
    return {
        "win_rate": s.win_rate,
        "house_edge": s.house_edge,
        "min_bet": amount(s.min_bet),
        "max_bet": amount(s.max_bet),
        "max_payout": amount(s.max_payout),
        "enabled": s.enabled,
    }


def round_json(rnd: GameRound, result: Optional[GameResult] = None) -> dict:
    return {
        "round_id": rnd.id,
        "game_type": rnd.game_id,
        "currency": rnd.wager.currency,
        "stake": amount(rnd.stake),
        "finished": rnd.finished,
        "state": rnd.view(),
        "result": result_json(result) if result else None,
    }
