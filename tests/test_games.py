import unittest
from decimal import Decimal

from casino_engine.errors import UnknownGame, ValidationError
from casino_engine.games import GAME_TYPES, get_rule
from casino_engine.games.blackjack import PAYOUTS, WINNING, BlackjackRule, is_natural, score
from casino_engine.games.dice import DiceRule
from casino_engine.games.mines import MinesRule, multiplier_for, reveals_to_profit
from casino_engine.games.plinko import PLINKO_MULTIPLIERS, PlinkoRule, compute_rtp
from casino_engine.games.roulette import RouletteRule, color_of, evaluate
from casino_engine.models import Wager
from casino_engine.rng import SeededRandomSource


def wager(game_id, stake=10, **params):
    return Wager.create(game_id, "USD", stake, params)


def cards(*ranks):
    return [(r, "♠") for r in ranks]


class TestRegistry(unittest.TestCase):

    def test_every_game_has_a_rule(self):
        self.assertEqual(set(GAME_TYPES), {"dice", "roulette", "blackjack", "mines", "plinko"})
        for gid in GAME_TYPES:
            self.assertEqual(get_rule(gid).game_type, gid)

    def test_unknown_game(self):
        with self.assertRaises(UnknownGame):
            get_rule("crash")


class TestDice(unittest.TestCase):

    def setUp(self):
        self.rule = DiceRule()
        self.rng = SeededRandomSource(5)

    def test_multiplier(self):
        self.assertEqual(DiceRule.multiplier_for("over", 50), Decimal("1.98"))
        self.assertEqual(DiceRule.multiplier_for("under", 25), Decimal("3.96"))

    def test_invalid_thresholds_rejected(self):
        bad = [
            {"direction": "over", "threshold": 100},
            {"direction": "under", "threshold": 1},
            {"direction": "over", "threshold": 0},
            {"direction": "sideways", "threshold": 50},
            {"direction": "over", "threshold": "50"},
            {"direction": "over", "threshold": True},
            {"direction": "over"},
        ]
        for params in bad:
            with self.assertRaises(ValidationError, msg=str(params)):
                self.rule.validate(wager("dice", **params))

    def test_restricted_win_and_loss(self):
        w = wager("dice", direction="over", threshold=50)
        for _ in range(200):
            win = self.rule.resolve(w, self.rng, want_win=True)
            self.assertTrue(win.won)
            self.assertGreater(win.detail["roll"], 50)
            self.assertEqual(win.payout, Decimal("19.8"))
            loss = self.rule.resolve(w, self.rng, want_win=False)
            self.assertFalse(loss.won)
            self.assertLessEqual(loss.detail["roll"], 50)
            self.assertEqual(loss.payout, 0)

    def test_stake_back_thresholds_resolve(self):
        for direction, threshold, rolls in (("over", 1, range(2, 101)), ("under", 99, range(1, 99))):
            w = wager("dice", direction=direction, threshold=threshold)
            self.rule.validate(w)
            self.assertEqual(DiceRule.multiplier_for(direction, threshold), 1)
            for _ in range(50):
                hit = self.rule.resolve(w, self.rng, want_win=True)
                self.assertTrue(hit.won)
                self.assertIn(hit.detail["roll"], rolls)
                self.assertEqual(hit.payout, Decimal(10))
            miss = self.rule.resolve(w, self.rng, want_win=False)
            self.assertFalse(miss.won)
            self.assertEqual(miss.payout, 0)

    def test_under_edge_threshold(self):
        w = wager("dice", direction="under", threshold=2)
        out = self.rule.resolve(w, self.rng, want_win=True)
        self.assertEqual(out.detail["roll"], 1)
        self.assertEqual(out.multiplier, Decimal("49.5"))

    def test_natural_draw_matches_roll(self):
        w = wager("dice", direction="under", threshold=30)
        for _ in range(100):
            out = self.rule.draw(w, self.rng)
            self.assertEqual(out.won, out.detail["roll"] < 30)


class TestRoulette(unittest.TestCase):

    def setUp(self):
        self.rule = RouletteRule()

    def test_colours(self):
        self.assertEqual(color_of(0), "green")
        self.assertEqual(color_of(12), "red")
        self.assertEqual(color_of(10), "black")
        self.assertEqual(sum(1 for n in range(1, 37) if color_of(n) == "red"), 18)

    def test_red_even_on_red_even_number(self):
        bets = {"Red": Decimal(10), "Even": Decimal(5)}
        payout, winners = evaluate(bets, 12)
        self.assertEqual(payout, Decimal(30))
        self.assertEqual(winners, ["Red", "Even"])

    def test_red_even_on_ten(self):
        # 10 is black on a European wheel, so only Even pays
        payout, winners = evaluate({"Red": Decimal(10), "Even": Decimal(5)}, 10)
        self.assertEqual(payout, Decimal(10))
        self.assertEqual(winners, ["Even"])

    def test_zero_loses_everything(self):
        bets = {k: Decimal(1) for k in ("Red", "Black", "Even", "Odd", "1-18", "19-36")}
        self.assertEqual(evaluate(bets, 0), (Decimal(0), []))

    def test_stake_must_match_bets(self):
        with self.assertRaises(ValidationError):
            self.rule.validate(wager("roulette", stake=10, bets={"Red": 5}))
        with self.assertRaises(ValidationError):
            self.rule.validate(wager("roulette", stake=5, bets={"Green": 5}))
        with self.assertRaises(ValidationError):
            self.rule.validate(wager("roulette", stake=5, bets={}))
        self.rule.validate(wager("roulette", stake=15, bets={"Red": 10, "Even": 5}))

    def test_hedged_bets_cannot_win(self):
        w = wager("roulette", stake=20, bets={"Red": 10, "Black": 10})
        self.assertFalse(self.rule.can_win(w))
        self.assertTrue(self.rule.can_lose(w))

    def test_restricted_win(self):
        w = wager("roulette", stake=15, bets={"Red": 10, "Even": 5})
        rng = SeededRandomSource(9)
        for _ in range(100):
            out = self.rule.resolve(w, rng, want_win=True)
            self.assertTrue(out.won)
            self.assertEqual(out.detail["color"], "red")
            self.assertIn(out.payout, (Decimal(20), Decimal(30)))


class TestMines(unittest.TestCase):

    def setUp(self):
        self.rule = MinesRule(edge_factor=0.97)
        self.rng = SeededRandomSource(21)

    def test_multiplier_five_gems_three_mines(self):
        expected = 1.0
        for i in range(1, 6):
            expected *= (25 - i + 1) / (22 - i + 1)
        expected *= 0.97
        self.assertAlmostEqual(float(multiplier_for(25, 3, 5, 0.97)), expected, places=9)

    def test_zero_reveals_is_flat(self):
        self.assertEqual(multiplier_for(25, 3, 0, 0.97), 1)

    def test_invalid_params(self):
        bad = [
            {"mines": 3, "picks": []},
            {"mines": 3},
            {"mines": 3, "picks": [1, 1]},
            {"mines": 3, "picks": [25]},
            {"mines": 0, "picks": [1]},
            {"mines": 25, "picks": [1]},
            {"mines": 24, "picks": [0, 1]},
            {"mines": 3, "picks": [0], "grid_size": 4},
        ]
        for params in bad:
            with self.assertRaises(ValidationError, msg=str(params)):
                self.rule.validate(wager("mines", **params))

    def test_restricted_win_places_mines_off_the_picks(self):
        w = wager("mines", mines=3, picks=[0, 1, 2, 3, 4])
        for _ in range(50):
            out = self.rule.resolve(w, self.rng, want_win=True)
            self.assertTrue(out.won)
            self.assertFalse(set(out.detail["mine_positions"]) & {0, 1, 2, 3, 4})
            self.assertEqual(out.detail["gems_revealed"], 5)
            self.assertEqual(len(out.detail["mine_positions"]), 3)

    def test_restricted_loss_hits_a_mine(self):
        w = wager("mines", mines=3, picks=[7, 8, 9])
        for _ in range(50):
            out = self.rule.resolve(w, self.rng, want_win=False)
            self.assertFalse(out.won)
            self.assertTrue(out.detail["hit_mine"])
            self.assertIn(out.detail["revealed"][-1], out.detail["mine_positions"])
            self.assertEqual(out.payout, 0)
            self.assertEqual(len(set(out.detail["mine_positions"])), 3)


class TestMinesRound(unittest.TestCase):

    def setUp(self):
        # at a 0.9 edge factor one mine needs three safe reveals before cashing out pays
        self.rule = MinesRule(edge_factor=0.9)
        self.rng = SeededRandomSource(33)
        self.wager = wager("mines", mines=1)

    def test_reveals_to_profit(self):
        self.assertEqual(reveals_to_profit(25, 1, 0.9), 3)
        self.assertEqual(reveals_to_profit(25, 3, 0.97), 1)
        self.assertIsNone(reveals_to_profit(9, 1, 0.1))

    def test_winning_round_stays_safe_until_profitable(self):
        for _ in range(50):
            rnd = self.rule.start_round(self.wager, self.rng, want_win=True)
            for cell in (4, 9, 16):
                rnd.check("reveal", {"cell": cell})
                rnd.apply("reveal", {"cell": cell}, self.rng)
                self.assertFalse(rnd.finished)
            rnd.apply("cashout", {}, self.rng)
            self.assertTrue(rnd.outcome.won)
            self.assertEqual(rnd.outcome.detail["gems_revealed"], 3)
            self.assertNotIn(rnd.outcome.detail["mine_positions"][0], (4, 9, 16))

    def test_losing_round_hits_a_mine_before_a_profit(self):
        for _ in range(50):
            rnd = self.rule.start_round(self.wager, self.rng, want_win=False)
            cells = iter(range(25))
            while not rnd.finished:
                rnd.apply("reveal", {"cell": next(cells)}, self.rng)
            detail = rnd.outcome.detail
            self.assertTrue(detail["hit_mine"])
            self.assertLessEqual(len(detail["revealed"]), 3)
            self.assertEqual(detail["mine_positions"], [detail["revealed"][-1]])
            self.assertEqual(rnd.outcome.payout, 0)

    def test_illegal_actions(self):
        rnd = self.rule.start_round(self.wager, self.rng, want_win=True)
        with self.assertRaises(ValidationError):
            rnd.check("cashout", {})
        for params in ({}, {"cell": 25}, {"cell": "3"}):
            with self.assertRaises(ValidationError, msg=str(params)):
                rnd.check("reveal", params)
        with self.assertRaises(ValidationError):
            rnd.check("flag", {"cell": 3})
        rnd.apply("reveal", {"cell": 3}, self.rng)
        with self.assertRaises(ValidationError):
            rnd.check("reveal", {"cell": 3})
        rnd.apply("cashout", {}, self.rng)
        with self.assertRaises(ValidationError):
            rnd.check("reveal", {"cell": 5})

    def test_abandoned_round_returns_the_stake(self):
        rnd = self.rule.start_round(self.wager, self.rng, want_win=False)
        rnd.finish(self.rng)
        self.assertEqual(rnd.outcome.payout, Decimal(10))
        self.assertFalse(rnd.outcome.won)
        self.assertEqual(len(rnd.outcome.detail["mine_positions"]), 1)

    def test_view_shows_progress_only(self):
        rnd = self.rule.start_round(self.wager, self.rng, want_win=True)
        rnd.apply("reveal", {"cell": 0}, self.rng)
        view = rnd.view()
        self.assertEqual(view["revealed"], [0])
        self.assertEqual(view["multiplier"], "0.9375")
        self.assertNotIn("mine_positions", view)


class TestPlinko(unittest.TestCase):

    def setUp(self):
        self.rule = PlinkoRule()

    def test_tables_have_rows_plus_one_buckets(self):
        for risk, by_rows in PLINKO_MULTIPLIERS.items():
            for rows, mults in by_rows.items():
                self.assertEqual(len(mults), rows + 1, f"{risk}/{rows}")
                self.assertEqual(mults, mults[::-1], f"{risk}/{rows} not symmetric")

    def test_rtp_is_below_one(self):
        for risk, by_rows in PLINKO_MULTIPLIERS.items():
            for rows in by_rows:
                self.assertLess(compute_rtp(risk, rows), 1.0)

    def test_invalid_params(self):
        with self.assertRaises(ValidationError):
            self.rule.validate(wager("plinko", rows=10, risk="low"))
        with self.assertRaises(ValidationError):
            self.rule.validate(wager("plinko", rows=8, risk="extreme"))

    def test_restricted_outcomes(self):
        rng = SeededRandomSource(4)
        w = wager("plinko", rows=12, risk="high")
        for want in (True, False):
            for _ in range(100):
                out = self.rule.resolve(w, rng, want_win=want)
                self.assertEqual(out.won, want)
                self.assertEqual(len(out.detail["path"]), 12)
                self.assertEqual(out.detail["path"].count("R"), out.detail["bucket"])
                mult = Decimal(str(PLINKO_MULTIPLIERS["high"][12][out.detail["bucket"]]))
                self.assertEqual(out.multiplier, mult)


class TestBlackjack(unittest.TestCase):

    def setUp(self):
        self.rule = BlackjackRule()

    def test_scoring(self):
        self.assertEqual(score(cards("A", "K")), 21)
        self.assertEqual(score(cards("A", "A", "9")), 21)
        self.assertEqual(score(cards("K", "Q", "5")), 25)
        self.assertTrue(is_natural(cards("A", "J")))
        self.assertFalse(is_natural(cards("7", "7", "7")))

    def test_natural_pays_blackjack(self):
        hand = self.rule.play([], cards("A", "9", "K", "7"))
        self.assertEqual(hand["outcome"], "blackjack")
        self.assertEqual(PAYOUTS[hand["outcome"]], Decimal("2.5"))

    def test_both_naturals_push(self):
        self.assertEqual(self.rule.play([], cards("A", "A", "K", "Q"))["outcome"], "push")

    def test_dealer_natural_wins(self):
        self.assertEqual(self.rule.play(["hit"], cards("9", "A", "7", "K"))["outcome"], "lose")

    def test_player_bust(self):
        hand = self.rule.play(["hit", "hit"], cards("K", "9", "6", "7", "Q"))
        self.assertEqual(hand["outcome"], "bust")
        self.assertEqual(hand["player_score"], 26)
        self.assertEqual(len(hand["dealer_cards"]), 2)

    def test_dealer_draws_to_seventeen(self):
        hand = self.rule.play(["stand"], cards("10", "10", "8", "6", "2"))
        self.assertEqual(hand["dealer_score"], 18)
        self.assertEqual(hand["outcome"], "push")

    def test_double_draws_one_card(self):
        hand = self.rule.play(["double", "hit"], cards("5", "10", "6", "7", "10", "9"))
        self.assertTrue(hand["doubled"])
        self.assertEqual(hand["player_score"], 21)
        self.assertEqual(hand["dealer_score"], 17)
        self.assertEqual(hand["outcome"], "win")

    def test_double_doubles_the_stake(self):
        self.assertEqual(self.rule.total_stake(wager("blackjack", stake=10, actions=["double"])), Decimal(20))
        self.assertEqual(self.rule.total_stake(wager("blackjack", stake=10, actions=["hit"])), Decimal(10))

    def test_invalid_actions(self):
        with self.assertRaises(ValidationError):
            self.rule.validate(wager("blackjack", actions=["hit", "double"]))
        with self.assertRaises(ValidationError):
            self.rule.validate(wager("blackjack", actions=["split"]))
        with self.assertRaises(ValidationError):
            self.rule.validate(wager("blackjack", actions="hit"))

    def test_restricted_sampling(self):
        rng = SeededRandomSource(8)
        w = wager("blackjack", actions=["hit"])
        for want in (True, False):
            for _ in range(30):
                out = self.rule.resolve(w, rng, want_win=want)
                self.assertEqual(out.won, want)
                if want:
                    self.assertIn(out.detail["outcome"], ("win", "dealer-bust", "blackjack"))
                else:
                    self.assertIn(out.detail["outcome"], ("lose", "bust", "push"))


class TestBlackjackRound(unittest.TestCase):

    def setUp(self):
        self.rule = BlackjackRule()
        self.rng = SeededRandomSource(12)

    def hands(self, want_win, n=60):
        for _ in range(n):
            yield self.rule.start_round(wager("blackjack"), self.rng, want_win)

    def test_standing_honours_the_class(self):
        for want in (True, False):
            for rnd in self.hands(want):
                if not rnd.finished:
                    self.assertEqual(len(rnd.view()["player_cards"]), 2)
                    rnd.apply("stand", {}, self.rng)
                self.assertEqual(rnd.outcome.won, want)
                self.assertEqual(rnd.outcome.detail["outcome"] in WINNING, want)

    def test_winning_hits_avoid_bust_cards(self):
        for rnd in self.hands(True):
            while not rnd.finished:
                rnd.apply("hit", {}, self.rng)
            self.assertLessEqual(rnd.outcome.detail["player_score"], 21)
            self.assertTrue(rnd.outcome.won)

    def test_opening_deal_settles_naturals(self):
        for rnd in self.hands(False, n=200):
            if rnd.finished:
                self.assertIn(rnd.outcome.detail["outcome"], ("lose", "push"))
                self.assertEqual(len(rnd.outcome.detail["dealer_cards"]), 2)

    def test_double_only_as_first_action(self):
        rnd = next(r for r in self.hands(False) if not r.finished)
        self.assertEqual(rnd.extra_stake("double"), Decimal(10))
        self.assertEqual(rnd.extra_stake("hit"), 0)
        rnd.check("double", {})
        rnd.apply("hit", {}, self.rng)
        if not rnd.finished:
            with self.assertRaises(ValidationError):
                rnd.check("double", {})
        with self.assertRaises(ValidationError):
            rnd.check("split", {})

    def test_double_draws_one_card_and_stands(self):
        rnd = next(r for r in self.hands(True) if not r.finished)
        rnd.stake += rnd.extra_stake("double")
        rnd.apply("double", {}, self.rng)
        self.assertTrue(rnd.finished)
        self.assertTrue(rnd.outcome.detail["doubled"])
        self.assertEqual(len(rnd.outcome.detail["player_cards"]), 3)
        self.assertEqual(rnd.outcome.stake, Decimal(20))

    def test_view_hides_the_hole_card(self):
        rnd = next(r for r in self.hands(True) if not r.finished)
        view = rnd.view()
        self.assertNotIn("dealer_cards", view)
        self.assertEqual(view["dealer_upcard"], "".join(rnd.dealer[0]))
        self.assertTrue(view["can_double"])

    def test_round_wager_takes_no_committed_actions(self):
        with self.assertRaises(ValidationError):
            self.rule.validate_round(wager("blackjack", actions=["hit"]))
        self.rule.validate_round(wager("blackjack"))


if __name__ == "__main__":
    unittest.main()
