import random
from decimal import Decimal

from cluster_engine.config_validator import expected_cascade_rtp
from cluster_engine.services.variance_tracker import VarianceTracker
from cluster_engine.utils.outcome_selector import OutcomeSelector
from cluster_engine.utils.spin_handler import SpinEngine


def test_long_run_target_multiplier_converges_to_base_rtp(engine_config):
    """Variance shaping biases streaks but leaves the long-run base-game mean at the configured return."""
    tracker = VarianceTracker(engine_config)
    selector = OutcomeSelector(engine_config, tracker, random.Random(31337))

    total = 0.0
    spins = 100_000
    for _ in range(spins):
        outcome = selector.select_outcome()
        tracker.record_outcome(outcome.is_win, outcome.target_multiplier)
        total += outcome.target_multiplier

    mean = total / spins
    expected = engine_config.expected_rtp()
    assert abs(mean - expected) / expected < 0.07


def test_hit_rate_stays_near_base_win_rate(engine_config):
    tracker = VarianceTracker(engine_config)
    selector = OutcomeSelector(engine_config, tracker, random.Random(4))

    wins = 0
    spins = 20_000
    for _ in range(spins):
        outcome = selector.select_outcome()
        tracker.record_outcome(outcome.is_win, outcome.target_multiplier)
        wins += outcome.is_win

    assert abs(wins / spins - engine_config.base_win_rate) < 0.02


def test_full_spins_return_target_rtp(engine_config):
    """Base grids plus cascades, paid from synthesized grids, converge on target_rtp."""
    engine = SpinEngine(engine_config, rng=random.Random(7))
    wager = Decimal("1.00")

    spins = 40_000
    total_wager = Decimal("0")
    total_payout = Decimal("0")
    cascade_payout = Decimal("0")
    for _ in range(spins):
        result = engine.spin(wager)
        total_wager += result.wager
        total_payout += result.payout
        cascade_payout += result.cascade_payout

    rtp = float(total_payout / total_wager)
    # Standard error is about 0.024 at this spin count.
    assert abs(rtp - engine_config.target_rtp) < 0.10
    assert float(cascade_payout / total_wager) > expected_cascade_rtp(engine_config) / 2


def test_synthesized_payouts_track_selected_targets(engine_config):
    """Per-spin synthesis error averages out: paid multipliers match the drawn targets in aggregate."""
    engine = SpinEngine(engine_config, rng=random.Random(2024))
    wager = Decimal("1.00")

    drawn = 0.0
    paid = 0.0
    for _ in range(15_000):
        result = engine.spin(wager)
        drawn += result.target_multiplier + sum(c.target_multiplier for c in result.cascades)
        paid += float(result.payout / wager)

    assert abs(paid / drawn - 1.0) < 0.05
