"""Blackjack: single deck, hit/stand/double, dealer stands on 17.

A single wager carries its decisions up front (``actions``); a round takes
them one at a time.
"""
from decimal import Decimal
from typing import List, Optional, Tuple

from casino_engine.errors import EngineFault, ValidationError
from casino_engine.games.base import GameRound, OutcomeRule, RuleOutcome
from casino_engine.rng import shuffle

SUITS = ["♠", "♥", "♦", "♣"]
RANKS = ["A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K"]
ACTIONS = ("hit", "stand", "double")
DEALER_STANDS_ON = 17

PAYOUTS = {
    "blackjack":   Decimal("2.5"),
    "win":         Decimal(2),
    "dealer-bust": Decimal(2),
    "push":        Decimal(1),
    "lose":        Decimal(0),
    "bust":        Decimal(0),
}
WINNING = {"blackjack", "win", "dealer-bust"}

Card = Tuple[str, str]


def new_deck() -> List[Card]:
    return [(rank, suit) for suit in SUITS for rank in RANKS]


def card_value(card: Card) -> int:
    rank = card[0]
    if rank == "A":
        return 11
    if rank in ("J", "Q", "K"):
        return 10
    return int(rank)


def score(cards: List[Card]) -> int:
    total = sum(card_value(c) for c in cards)
    aces = sum(1 for c in cards if c[0] == "A")
    while total > 21 and aces:
        total -= 10
        aces -= 1
    return total


def is_natural(cards: List[Card]) -> bool:
    return len(cards) == 2 and score(cards) == 21


def natural_outcome(player: List[Card], dealer: List[Card]) -> Optional[str]:
    """Outcome settled by the opening two cards, if any."""
    if is_natural(player):
        return "push" if is_natural(dealer) else "blackjack"
    if is_natural(dealer):
        return "lose"
    return None


def compare(player: List[Card], dealer: List[Card]) -> str:
    p, d = score(player), score(dealer)
    if d > 21:
        return "dealer-bust"
    if p > d:
        return "win"
    if p < d:
        return "lose"
    return "push"


def card_names(cards: List[Card]) -> List[str]:
    return [f"{r}{s}" for r, s in cards]


def hand_detail(player: List[Card], dealer: List[Card], outcome: str, doubled: bool) -> dict:
    return {
        "player_cards": card_names(player),
        "dealer_cards": card_names(dealer),
        "player_score": score(player),
        "dealer_score": score(dealer),
        "outcome": outcome,
        "doubled": doubled,
    }


class BlackjackRule(OutcomeRule):
    game_type = "blackjack"
    display_name = "Blackjack"
    interactive = True

    def _actions(self, wager) -> List[str]:
        actions = self.param(wager, "actions", [])
        if not isinstance(actions, (list, tuple)):
            raise ValidationError("actions must be a list")
        for i, a in enumerate(actions):
            if a not in ACTIONS:
                raise ValidationError(f"Unknown blackjack action {a!r}. Available: {list(ACTIONS)}")
            if a == "double" and i != 0:
                raise ValidationError("double is only allowed as the first action")
        return list(actions)

    def validate(self, wager) -> None:
        self._actions(wager)

    def total_stake(self, wager) -> Decimal:
        actions = self._actions(wager)
        return wager.stake * 2 if actions[:1] == ["double"] else wager.stake

    def play(self, actions: List[str], deck: List[Card]) -> dict:
        """Play one hand off the top of ``deck``."""
        cards = iter(deck)
        player = [next(cards)]
        dealer = [next(cards)]
        player.append(next(cards))
        dealer.append(next(cards))
        doubled = actions[:1] == ["double"]

        outcome = natural_outcome(player, dealer)
        if outcome is None:
            for action in actions:
                if action == "stand":
                    break
                player.append(next(cards))
                if action == "double" or score(player) > 21:
                    break
            if score(player) > 21:
                outcome = "bust"
            else:
                while score(dealer) < DEALER_STANDS_ON:
                    dealer.append(next(cards))
                outcome = compare(player, dealer)

        return hand_detail(player, dealer, outcome, doubled)

    def draw(self, wager, rng) -> RuleOutcome:
        actions = self._actions(wager)
        detail = self.play(actions, shuffle(new_deck(), rng))
        return RuleOutcome.settle(self.total_stake(wager), PAYOUTS[detail["outcome"]], detail)

    # ─── Rounds ─────────────────────────────────────────────────────────────

    def validate_round(self, wager) -> None:
        if "actions" in wager.params:
            raise ValidationError("a blackjack round takes its actions one at a time")

    def start_round(self, wager, rng, want_win: bool) -> "BlackjackRound":
        return BlackjackRound(self, wager, want_win, rng)


class BlackjackRound(GameRound):
    """A hand played one decision at a time.

    Only what the player has seen is fixed: their own cards and the dealer's
    upcard. The dealer's hole card and draws are sampled when the player
    stands, inside the drawn class; a winning round also keeps the player's
    hits off bust cards while the deck has any. If the player's own moves
    rule the class out (busting a winning round), the hand plays naturally.
    """

    actions = ACTIONS

    def __init__(self, rule: BlackjackRule, wager, want_win: bool, rng):
        super().__init__(wager, wager.stake, want_win)
        self.rule = rule
        self.doubled = False
        self._deal(rng)

    def _deal(self, rng) -> None:
        for _ in range(self.rule.max_attempts):
            deck = shuffle(new_deck(), rng)
            player, dealer = [deck[0], deck[2]], [deck[1], deck[3]]
            outcome = natural_outcome(player, dealer)
            if outcome is not None and (outcome in WINNING) != self.want_win:
                continue
            self.player, self.dealer, self.deck = player, dealer, deck[4:]
            if outcome is not None:
                self._settle(outcome)
            return
        raise EngineFault(f"blackjack: no opening deal in the drawn class after {self.rule.max_attempts} shuffles")

    def check(self, action, params) -> None:
        super().check(action, params)
        if action == "double" and len(self.player) != 2:
            raise ValidationError("double is only allowed as the first action")

    def extra_stake(self, action) -> Decimal:
        return self.wager.stake if action == "double" else Decimal(0)

    def apply(self, action, params, rng) -> None:
        if action == "stand":
            self._dealer_turn(rng)
            return
        self.player.append(self._next_card(rng))
        if action == "double":
            self.doubled = True
        if score(self.player) > 21:
            self._settle("bust")
        elif action == "double" or score(self.player) == 21:
            self._dealer_turn(rng)

    def _next_card(self, rng) -> Card:
        if self.want_win:
            safe = [i for i, c in enumerate(self.deck) if score(self.player + [c]) <= 21]
            if safe:
                return self.deck.pop(safe[rng.next_int(0, len(safe) - 1)])
        return self.deck.pop(0)

    def _dealer_turn(self, rng) -> None:
        hidden = [self.dealer[1]] + self.deck
        fallback = None
        for _ in range(self.rule.max_attempts):
            order = shuffle(list(hidden), rng)
            dealer = [self.dealer[0], order[0]]
            if is_natural(dealer):
                continue   # ruled out when the hand was dealt
            rest = iter(order[1:])
            while score(dealer) < DEALER_STANDS_ON:
                dealer.append(next(rest))
            outcome = compare(self.player, dealer)
            if fallback is None:
                fallback = (dealer, outcome)
            if (outcome in WINNING) == self.want_win:
                break
        else:
            if fallback is None:
                raise EngineFault(f"blackjack: dealer could not play after {self.rule.max_attempts} shuffles")
            dealer, outcome = fallback
        self.dealer = dealer
        self._settle(outcome)

    def _settle(self, outcome: str) -> None:
        detail = hand_detail(self.player, self.dealer, outcome, self.doubled)
        self.outcome = RuleOutcome.settle(self.stake, PAYOUTS[outcome], detail)

    def finish(self, rng) -> None:
        self._dealer_turn(rng)

    def view(self) -> dict:
        return {
            "player_cards": card_names(self.player),
            "player_score": score(self.player),
            "dealer_upcard": card_names(self.dealer[:1])[0],
            "doubled": self.doubled,
            "can_double": len(self.player) == 2,
        }
