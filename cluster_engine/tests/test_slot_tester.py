import os
import tempfile
import unittest
from contextlib import redirect_stdout
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from cluster_engine.exceptions import InvalidWagerException
from cluster_engine.utils import slot_tester
from cluster_engine.utils.slot_tester import SlotTester, _bucket_sort_key, _win_bucket_label


class TestSlotTester(unittest.TestCase):

    def _run(self, **kwargs):
        tester = SlotTester(**kwargs)
        with redirect_stdout(StringIO()):
            tester.run_simulation()
        return tester

    def test_outcome_only_simulation(self):
        tester = self._run(num_spins=2000, wager="1.00", seed=12, outcomes_only=True)

        self.assertEqual(tester.spins_completed, 2000)
        self.assertEqual(tester.total_bet, Decimal("2000.00"))
        self.assertEqual(sum(tester.category_counts.values()), 2000)
        self.assertEqual(tester.match_type_counts, {'target': 2000})
        self.assertGreater(tester.hit_frequency, 0)
        self.assertAlmostEqual(
            tester.overall_rtp,
            tester.base_game_rtp_contribution + tester.cascade_rtp_contribution,
            places=6
        )
        self.assertEqual(tester.rtp_over_time[-1]['spin_count'], 2000)

    def test_outcome_only_cascades_come_from_engine_orchestrator(self):
        tester = SlotTester(num_spins=300, wager="1.00", seed=12, outcomes_only=True)
        orchestrator = tester.engine.cascades
        with patch.object(orchestrator, 'target_cascades', wraps=orchestrator.target_cascades) as chained:
            with redirect_stdout(StringIO()):
                tester.run_simulation()

        self.assertEqual(chained.call_count, 300)
        self.assertTrue(all(args[0] == Decimal("1.00") for args, _ in chained.call_args_list))
        self.assertGreater(tester.cascade_spins, 0)
        self.assertLessEqual(tester.cascade_links, tester.config.cascade.max_chain * tester.cascade_spins)

    def test_full_simulation(self):
        tester = self._run(num_spins=50, wager="2.00", seed=5)

        self.assertEqual(tester.spins_completed, 50)
        self.assertEqual(sum(tester.category_counts.values()), 50)
        self.assertEqual(sum(tester.wins_by_multiplier.values()), 50)
        self.assertGreaterEqual(tester.volatility_index, 0.0)
        self.assertLessEqual(tester.cascade_links, 2 * tester.cascade_spins)
        self.assertEqual(tester.engine.variance_snapshot()['total_spins'], 50)

    def test_seeded_runs_repeat(self):
        first = self._run(num_spins=500, wager="1.00", seed=77, outcomes_only=True)
        second = self._run(num_spins=500, wager="1.00", seed=77, outcomes_only=True)
        self.assertEqual(first.total_win, second.total_win)
        self.assertEqual(first.category_counts, second.category_counts)

    def test_invalid_wager(self):
        with self.assertRaises(InvalidWagerException):
            SlotTester(num_spins=10, wager="0")

    def test_no_spins(self):
        tester = SlotTester(num_spins=0, wager="1.00", seed=1)
        out = StringIO()
        with redirect_stdout(out):
            tester.calculate_derived_statistics()
        self.assertIn("No spins were simulated", out.getvalue())
        self.assertEqual(tester.overall_rtp, 0.0)

    def test_win_bucket_labels(self):
        self.assertEqual(_win_bucket_label(0), "0x")
        self.assertEqual(_win_bucket_label(0.5), "0-1x")
        self.assertEqual(_win_bucket_label(1.0), "1-2x")
        self.assertEqual(_win_bucket_label(75), "50-100x")
        self.assertEqual(_win_bucket_label(250), "200x+")

    def test_bucket_labels_sort_by_size(self):
        labels = ["200x+", "1-2x", "0x", "50-100x", "0-1x"]
        self.assertEqual(sorted(labels, key=_bucket_sort_key), ["0x", "0-1x", "1-2x", "50-100x", "200x+"])

    def test_generate_graphs(self):
        tester = self._run(num_spins=300, wager="1.00", seed=21, outcomes_only=True)
        with tempfile.TemporaryDirectory() as graph_dir, redirect_stdout(StringIO()):
            saved = tester.generate_graphs(graph_dir)
            self.assertEqual(len(saved), 3)
            for path in saved:
                self.assertTrue(os.path.isfile(path))
                self.assertTrue(path.endswith(".png"))

    def test_main(self):
        out = StringIO()
        with redirect_stdout(out):
            tester = slot_tester.main(["--spins", "100", "--wager", "0.50", "--seed", "9", "--outcomes-only"])
        self.assertEqual(tester.spins_completed, 100)
        self.assertEqual(tester.wager, Decimal("0.50"))
        self.assertIn("--- Simulation Summary ---", out.getvalue())
        self.assertIn("Overall RTP:", out.getvalue())


if __name__ == '__main__':
    unittest.main()
