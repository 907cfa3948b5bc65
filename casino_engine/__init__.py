"""Wager outcome engine for dice, roulette, blackjack, mines and plinko."""

__version__ = "1.0.0"
