"""Mines: reveal cells on a hidden board, cash out before hitting a mine.

A single wager commits its reveal sequence up front (``picks``). A round
reveals one cell per action and cashes out on request.
"""
from decimal import ROUND_DOWN, Decimal
from typing import List, Optional

from casino_engine.config import settings
from casino_engine.errors import ValidationError
from casino_engine.games.base import GameRound, OutcomeRule, RuleOutcome
from casino_engine.rng import sample

MIN_GRID, MAX_GRID = 9, 49


def multiplier_for(grid_size: int, mine_count: int, gems_revealed: int,
                   edge_factor: float = None) -> Decimal:
    """Progressive cash-out multiplier after ``gems_revealed`` safe reveals."""
    if gems_revealed <= 0:
        return Decimal(1)
    gems = grid_size - mine_count
    mult = Decimal(1)
    for i in range(1, gems_revealed + 1):
        mult *= Decimal(grid_size - i + 1) / Decimal(gems - i + 1)
    factor = settings.MINES_EDGE_FACTOR if edge_factor is None else edge_factor
    return mult * Decimal(str(factor))


def reveals_to_profit(grid_size: int, mine_count: int, edge_factor: float = None) -> Optional[int]:
    """Fewest safe reveals whose cash-out pays more than the stake, or None."""
    for k in range(1, grid_size - mine_count + 1):
        if multiplier_for(grid_size, mine_count, k, edge_factor) > 1:
            return k
    return None


class MinesRule(OutcomeRule):
    game_type = "mines"
    display_name = "Mines"
    interactive = True

    def __init__(self, edge_factor: float = None, grid_size: int = None, **kw):
        super().__init__(**kw)
        self.edge_factor = settings.MINES_EDGE_FACTOR if edge_factor is None else edge_factor
        self.grid_size = grid_size or settings.MINES_GRID_SIZE

    def _board(self, wager):
        grid = self.as_int(self.param(wager, "grid_size", self.grid_size), "grid_size")
        if not MIN_GRID <= grid <= MAX_GRID:
            raise ValidationError(f"grid_size must be within {MIN_GRID}..{MAX_GRID}, got {grid}")
        mines = self.as_int(self.param(wager, "mines", required=True), "mines")
        if not 1 <= mines <= grid - 1:
            raise ValidationError(f"mines must be within 1..{grid - 1}, got {mines}")
        return grid, mines

    def _parse(self, wager):
        grid, mines = self._board(wager)
        picks = self.param(wager, "picks", required=True)
        if not isinstance(picks, (list, tuple)) or not picks:
            raise ValidationError("cannot cash out without revealing at least one cell")
        picks = [self.as_int(p, "picks[]") for p in picks]
        if len(set(picks)) != len(picks):
            raise ValidationError("picks must not repeat a cell")
        if any(not 0 <= p < grid for p in picks):
            raise ValidationError(f"picks must be within 0..{grid - 1}")
        if len(picks) > grid - mines:
            raise ValidationError(f"only {grid - mines} gems on the board, got {len(picks)} picks")
        return grid, mines, picks

    def validate(self, wager) -> None:
        self._parse(wager)

    def can_win(self, wager) -> bool:
        if "picks" not in wager.params:
            grid, mines = self._board(wager)
            return reveals_to_profit(grid, mines, self.edge_factor) is not None
        grid, mines, picks = self._parse(wager)
        return multiplier_for(grid, mines, len(picks), self.edge_factor) > 1

    def settle_board(self, wager, grid, mines, picks, mine_positions) -> RuleOutcome:
        board = set(mine_positions)
        revealed = []
        hit_mine = False
        for cell in picks:
            revealed.append(cell)
            if cell in board:
                hit_mine = True
                break
        mult = Decimal(0) if hit_mine else multiplier_for(grid, mines, len(revealed), self.edge_factor)
        return RuleOutcome.settle(wager.stake, mult, {
            "grid_size": grid,
            "mines": mines,
            "mine_positions": sorted(board),
            "picks": picks,
            "revealed": revealed,
            "gems_revealed": len(revealed) - (1 if hit_mine else 0),
            "hit_mine": hit_mine,
        })

    def draw(self, wager, rng) -> RuleOutcome:
        grid, mines, picks = self._parse(wager)
        return self.settle_board(wager, grid, mines, picks, sample(range(grid), mines, rng))

    def resolve(self, wager, rng, want_win: bool) -> RuleOutcome:
        grid, mines, picks = self._parse(wager)
        picked = set(picks)
        if want_win:
            positions = sample([c for c in range(grid) if c not in picked], mines, rng)
        else:
            # one mine under a random pick, the rest anywhere else
            first = picks[rng.next_int(0, len(picks) - 1)]
            positions = [first] + sample([c for c in range(grid) if c != first], mines - 1, rng)
        return self.settle_board(wager, grid, mines, picks, positions)

    # ─── Rounds ─────────────────────────────────────────────────────────────

    def validate_round(self, wager) -> None:
        self._board(wager)

    def start_round(self, wager, rng, want_win: bool) -> "MinesRound":
        grid, mines = self._board(wager)
        return MinesRound(self, wager, want_win, grid, mines, rng)


class MinesRound(GameRound):
    """One board, revealed a cell at a time.

    Until the player has made enough safe reveals to cash out at a profit,
    the drawn class decides each reveal: a winning round stays safe that long,
    a losing round hits a mine at a random reveal within it. Later reveals
    (only reachable in a winning round) face the board's natural odds.
    """

    actions = ("reveal", "cashout")

    def __init__(self, rule: MinesRule, wager, want_win: bool, grid: int, mines: int, rng):
        super().__init__(wager, wager.stake, want_win)
        self.rule = rule
        self.grid = grid
        self.mines = mines
        self.revealed: List[int] = []
        self.safe_run = reveals_to_profit(grid, mines, rule.edge_factor)
        self.bust_at = None
        if not want_win and self.safe_run is not None:
            self.bust_at = rng.next_int(1, self.safe_run)

    @property
    def multiplier(self) -> Decimal:
        return multiplier_for(self.grid, self.mines, len(self.revealed), self.rule.edge_factor)

    def check(self, action, params) -> None:
        super().check(action, params)
        if action == "cashout":
            if not self.revealed:
                raise ValidationError("cannot cash out without revealing at least one cell")
            return
        cell = self.rule.as_int(params.get("cell"), "cell")
        if not 0 <= cell < self.grid:
            raise ValidationError(f"cell must be within 0..{self.grid - 1}, got {cell}")
        if cell in self.revealed:
            raise ValidationError(f"cell {cell} is already revealed")

    def _is_mine(self, rng) -> bool:
        n = len(self.revealed) + 1
        if self.safe_run is not None and n <= self.safe_run:
            return n == self.bust_at
        hidden = self.grid - len(self.revealed)
        return rng.next_int(1, hidden) <= self.mines

    def _hidden_cells(self, exclude=()) -> List[int]:
        skip = set(self.revealed) | set(exclude)
        return [c for c in range(self.grid) if c not in skip]

    def apply(self, action, params, rng) -> None:
        if action == "cashout":
            self._settle(sample(self._hidden_cells(), self.mines, rng))
            return
        cell = params["cell"]
        if self._is_mine(rng):
            rest = sample(self._hidden_cells(exclude=(cell,)), self.mines - 1, rng)
            self.revealed.append(cell)
            self._settle([cell] + rest)
        else:
            self.revealed.append(cell)

    def _settle(self, mine_positions) -> None:
        self.outcome = self.rule.settle_board(self.wager, self.grid, self.mines,
                                              list(self.revealed), mine_positions)

    def finish(self, rng) -> None:
        # cash out what has been found; with nothing revealed the stake comes back at 1x
        self._settle(sample(self._hidden_cells(), self.mines, rng))

    def view(self) -> dict:
        return {
            "grid_size": self.grid,
            "mines": self.mines,
            "revealed": list(self.revealed),
            "gems_revealed": len(self.revealed),
            "multiplier": str(self.multiplier.quantize(Decimal("0.0001"), rounding=ROUND_DOWN)),
        }
