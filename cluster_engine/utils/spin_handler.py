import logging
import random
from concurrent.futures import ThreadPoolExecutor

from cluster_engine.models import SpinResult
from cluster_engine.services.variance_tracker import VarianceTracker
from cluster_engine.utils.cascade_handler import CascadeOrchestrator
from cluster_engine.utils.grid_synthesizer import GridSynthesizer
from cluster_engine.utils.money import ZERO, floor_to_cents, parse_wager
from cluster_engine.utils.outcome_selector import OutcomeSelector
from cluster_engine.utils.paytable import Paytable, SymbolWeightTable

logger = logging.getLogger(__name__)


class SpinEngine:
    """
    Runs complete spins: outcome selection, grid synthesis, cascades and the
    variance update.

    The variance tracker is the only mutable shared state, so one engine can
    serve concurrent callers. Pass a seeded `random.Random` for reproducible runs.
    """

    def __init__(self, config, variance_tracker=None, rng=None):
        self.config = config
        self.rng = rng if rng is not None else random.Random()
        self.variance_tracker = variance_tracker if variance_tracker is not None else VarianceTracker(config)

        self.weight_table = SymbolWeightTable(config.symbols)
        self.paytable = Paytable(config.symbols, config.scatter_payouts, config.min_cluster_size)
        self.outcome_selector = OutcomeSelector(config, self.variance_tracker, self.rng)
        self.synthesizer = GridSynthesizer(config, self.paytable, self.weight_table, self.rng)
        self.cascades = CascadeOrchestrator(config, self.outcome_selector, self.synthesizer, self.rng)

    def spin(self, wager):
        """
        Plays one spin.

        Args:
            wager: positive finite amount (Decimal, int, float or numeric string).

        Returns:
            SpinResult: payout is the floor-rounded sum of the floor-rounded base
            payout and the floor-rounded cascade total.

        Raises:
            InvalidWagerException: before any random draw, for an unusable wager.
        """
        wager = parse_wager(wager)

        outcome = self.outcome_selector.select_outcome(is_cascade=False)
        synthesis = self.synthesizer.synthesize(wager, outcome.target_multiplier)
        base_payout = floor_to_cents(synthesis.payout)

        cascades = []
        if outcome.is_win:
            cascades = self.cascades.maybe_cascade(wager, outcome.target_multiplier)
        cascade_payout = floor_to_cents(sum((floor_to_cents(c.payout) for c in cascades), ZERO))
        total_payout = floor_to_cents(base_payout + cascade_payout)

        self.variance_tracker.record_outcome(outcome.is_win, outcome.target_multiplier)

        logger.debug(
            f"Spin wager={wager} category={outcome.category.value} target=x{outcome.target_multiplier:.4f} "
            f"match={synthesis.match_type} base={base_payout} cascades={len(cascades)} total={total_payout}"
        )
        return SpinResult(
            wager=wager,
            grid=synthesis.grid,
            payout=total_payout,
            base_payout=base_payout,
            winning_cells=synthesis.winning_cells,
            category=outcome.category,
            target_multiplier=outcome.target_multiplier,
            match_type=synthesis.match_type,
            cascades=cascades,
            cascade_payout=cascade_payout
        )

    def spin_many(self, wager, count, workers=4):
        """Runs `count` spins on a thread pool; results keep submission order."""
        parse_wager(wager)
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(self.spin, [wager] * count))

    def probability_snapshot(self):
        return {category.value: p for category, p in self.variance_tracker.adjusted_probabilities().items()}

    def variance_snapshot(self):
        return self.variance_tracker.snapshot()
