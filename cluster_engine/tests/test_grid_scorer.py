import unittest
from decimal import Decimal

from cluster_engine.utils.engine_config import load_engine_config
from cluster_engine.utils.grid_scorer import calculate_win, count_symbols, grid_multiplier
from cluster_engine.utils.paytable import Paytable


def make_grid(counts, columns=6, rows=5):
    """Lays out symbols reel by reel from an ordered {symbol: count} mapping."""
    flat = [symbol for symbol, count in counts for _ in range(count)]
    assert len(flat) == columns * rows, f"grid needs {columns * rows} cells, got {len(flat)}"
    return tuple(tuple(flat[reel * rows:(reel + 1) * rows]) for reel in range(columns))


NO_WIN = [("grape", 7), ("orange", 7), ("lemon", 7), ("watermelon", 5), ("banana", 2), ("apple", 2)]


class TestGridScorer(unittest.TestCase):

    def setUp(self):
        config = load_engine_config()
        self.paytable = Paytable(config.symbols, config.scatter_payouts, config.min_cluster_size)

    def test_no_winning_symbols(self):
        grid = make_grid(NO_WIN)
        win_info = calculate_win(grid, Decimal("100"), self.paytable)
        self.assertEqual(win_info["total_win"], Decimal("0.00"))
        self.assertEqual(win_info["winning_lines"], [])
        self.assertEqual(win_info["winning_symbol_coords"], [])
        self.assertEqual(grid_multiplier(grid, self.paytable), 0.0)

    def test_single_cluster_pays_wager_times_bucket(self):
        grid = make_grid([("grape", 8), ("orange", 7), ("lemon", 7), ("watermelon", 6), ("banana", 2)])
        win_info = calculate_win(grid, Decimal("10"), self.paytable)
        self.assertEqual(win_info["total_win"], Decimal("2.50"))
        self.assertEqual(len(win_info["winning_lines"]), 1)
        line = win_info["winning_lines"][0]
        self.assertEqual(line["symbol_id"], "grape")
        self.assertEqual(line["count"], 8)
        self.assertEqual(line["type"], "cluster")
        # Grape fills reel 0 and the first three rows of reel 1
        expected = [[0, r] for r in range(5)] + [[1, r] for r in range(3)]
        self.assertEqual(win_info["winning_symbol_coords"], expected)

    def test_adjacency_is_irrelevant(self):
        grid = make_grid([("grape", 8), ("orange", 7), ("lemon", 7), ("watermelon", 6), ("banana", 2)])
        reversed_grid = tuple(tuple(reversed(reel)) for reel in reversed(grid))
        self.assertEqual(
            calculate_win(grid, Decimal("10"), self.paytable)["total_win"],
            calculate_win(reversed_grid, Decimal("10"), self.paytable)["total_win"]
        )

    def test_bucket_selection(self):
        ten = make_grid([("grape", 10), ("orange", 7), ("lemon", 7), ("watermelon", 6)])
        thirteen = make_grid([("grape", 13), ("orange", 7), ("lemon", 7), ("watermelon", 3)])
        self.assertEqual(calculate_win(ten, Decimal("4"), self.paytable)["total_win"], Decimal("3.00"))
        self.assertEqual(calculate_win(thirteen, Decimal("4"), self.paytable)["total_win"], Decimal("8.00"))

    def test_multiple_clusters_add_up(self):
        grid = make_grid([("grape", 12), ("orange", 12), ("lemon", 6)])
        self.assertEqual(calculate_win(grid, Decimal("10"), self.paytable)["total_win"], Decimal("60.00"))
        self.assertAlmostEqual(grid_multiplier(grid, self.paytable), 6.0)

    def test_scatter_tier_is_additive_with_clusters(self):
        grid = make_grid([("grape", 8), ("star", 2), ("diamond", 1), ("orange", 7), ("lemon", 7), ("watermelon", 5)])
        win_info = calculate_win(grid, Decimal("10"), self.paytable)
        # 0.25 grape cluster + 0.5 for three scatters
        self.assertEqual(win_info["total_win"], Decimal("7.50"))
        types = sorted(line["type"] for line in win_info["winning_lines"])
        self.assertEqual(types, ["cluster", "scatter"])
        self.assertEqual(len(win_info["winning_symbol_coords"]), 11)

    def test_two_scatters_pay_nothing(self):
        grid = make_grid([("star", 1), ("diamond", 1)] + [("grape", 7), ("orange", 7), ("lemon", 7), ("watermelon", 5), ("banana", 2)])
        self.assertEqual(calculate_win(grid, Decimal("10"), self.paytable)["total_win"], Decimal("0.00"))

    def test_scatter_symbols_also_form_clusters(self):
        grid = make_grid([("star", 8), ("grape", 7), ("orange", 7), ("lemon", 7), ("watermelon", 1)])
        # 2.5 star cluster + 100 for six or more scatters
        self.assertEqual(calculate_win(grid, Decimal("1"), self.paytable)["total_win"], Decimal("102.50"))

    def test_payout_is_floored_to_cents(self):
        grid = make_grid([("grape", 8), ("orange", 7), ("lemon", 7), ("watermelon", 6), ("banana", 2)])
        self.assertEqual(calculate_win(grid, Decimal("1.11"), self.paytable)["total_win"], Decimal("0.27"))
        self.assertEqual(calculate_win(grid, Decimal("0.03"), self.paytable)["total_win"], Decimal("0.00"))

    def test_scoring_is_pure(self):
        grid = make_grid([("grape", 8), ("star", 3), ("orange", 7), ("lemon", 7), ("watermelon", 5)])
        first = calculate_win(grid, Decimal("5"), self.paytable)
        second = calculate_win(grid, Decimal("5"), self.paytable)
        self.assertEqual(first, second)

    def test_count_symbols(self):
        counts = count_symbols(make_grid(NO_WIN))
        self.assertEqual(counts["grape"], 7)
        self.assertEqual(sum(counts.values()), 30)


if __name__ == '__main__':
    unittest.main()
