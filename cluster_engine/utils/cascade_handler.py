import logging

from cluster_engine.models import CascadeResult
from cluster_engine.utils.money import floor_to_cents, multiplier_amount

logger = logging.getLogger(__name__)


def cascade_trigger_probability(settings, multiplier):
    """Larger wins cascade more often: the base chance is scaled by the first matching size tier."""
    for tier in sorted(settings.tiers, key=lambda t: t.min_multiplier, reverse=True):
        if multiplier >= tier.min_multiplier:
            return min(1.0, settings.chance * tier.chance_factor)
    return settings.chance


def mean_trigger_probability(settings, low, high):
    """Trigger probability averaged over a multiplier drawn uniformly from [low, high]."""
    if high <= low:
        return cascade_trigger_probability(settings, low)
    edges = sorted({low, high} | {t.min_multiplier for t in settings.tiers if low < t.min_multiplier < high})
    weighted = sum(
        (right - left) * cascade_trigger_probability(settings, left)
        for left, right in zip(edges, edges[1:])
    )
    return weighted / (high - low)


class CascadeOrchestrator:
    """Chains up to `max_chain` bonus outcomes onto a winning spin."""

    def __init__(self, config, outcome_selector, synthesizer, rng):
        self.settings = config.cascade
        self.outcome_selector = outcome_selector
        self.synthesizer = synthesizer
        self.rng = rng

    def trigger_probability(self, multiplier):
        return cascade_trigger_probability(self.settings, multiplier)

    def maybe_cascade(self, wager, base_multiplier, allowance=None):
        """
        Args:
            wager (Decimal): validated wager of the parent spin.
            base_multiplier (float): target multiplier of the outcome being extended.
            allowance (int): remaining chain length; defaults to the configured cap.

        Returns:
            list[CascadeResult]: 0..max_chain results in chain order. Cascade
            outcomes are never recorded in the variance tracker.
        """
        return self._chain(wager, base_multiplier, allowance, self._synthesized_link)

    def target_cascades(self, wager, base_multiplier, allowance=None):
        """Same chain as maybe_cascade, but each link pays its target multiplier and carries no grid."""
        return self._chain(wager, base_multiplier, allowance, self._target_link)

    def _chain(self, wager, multiplier, allowance, build_link):
        if allowance is None:
            allowance = self.settings.max_chain
        if not self.settings.enabled or allowance <= 0 or multiplier <= 0:
            return []
        if self.rng.random() >= self.trigger_probability(multiplier):
            return []

        outcome = self.outcome_selector.select_outcome(is_cascade=True)
        result = build_link(wager, outcome)
        logger.debug(
            f"Cascade {outcome.category.value} x{outcome.target_multiplier:.4f} paid {result.payout}"
        )
        return [result] + self._chain(wager, outcome.target_multiplier, allowance - 1, build_link)

    def _synthesized_link(self, wager, outcome):
        synthesis = self.synthesizer.synthesize(wager, outcome.target_multiplier)
        return CascadeResult(
            grid=synthesis.grid,
            payout=synthesis.payout,
            winning_cells=synthesis.winning_cells,
            category=outcome.category,
            target_multiplier=outcome.target_multiplier,
            match_type=synthesis.match_type
        )

    def _target_link(self, wager, outcome):
        return CascadeResult(
            grid=(),
            payout=floor_to_cents(multiplier_amount(wager, outcome.target_multiplier)),
            winning_cells=[],
            category=outcome.category,
            target_multiplier=outcome.target_multiplier,
            match_type="target"
        )
