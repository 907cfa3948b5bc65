"""
Outcome rules, one per game.

Usage:
    from casino_engine.games import get_rule
    rule = get_rule("dice")
    rule.validate(wager)
    outcome = rule.resolve(wager, rng, want_win=True)
"""

from casino_engine.errors import UnknownGame
from casino_engine.games.base import OutcomeRule, RuleOutcome
from casino_engine.games.blackjack import BlackjackRule
from casino_engine.games.dice import DiceRule
from casino_engine.games.mines import MinesRule
from casino_engine.games.plinko import PlinkoRule
from casino_engine.games.roulette import RouletteRule

GAME_RULES = {
    "dice": DiceRule,
    "roulette": RouletteRule,
    "blackjack": BlackjackRule,
    "mines": MinesRule,
    "plinko": PlinkoRule,
}

GAME_TYPES = list(GAME_RULES.keys())


def get_rule(game_id: str, **kwargs) -> OutcomeRule:
    """Get the outcome rule for a game id."""
    cls = GAME_RULES.get(game_id)
    if cls is None:
        raise UnknownGame(f"Unknown game: {game_id}. Available: {GAME_TYPES}")
    return cls(**kwargs)


__all__ = ["GAME_RULES", "GAME_TYPES", "OutcomeRule", "RuleOutcome", "get_rule"]
