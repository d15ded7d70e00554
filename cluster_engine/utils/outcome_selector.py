import logging

from cluster_engine.models import CATEGORY_ORDER, PayoutCategory, SpinOutcome

logger = logging.getLogger(__name__)


class OutcomeSelector:
    """Picks a payout category and target multiplier from the tracker's adjusted distribution."""

    def __init__(self, config, variance_tracker, rng):
        self.ranges = config.ranges
        self.cascade_multiplier = config.cascade.multiplier
        self.variance_tracker = variance_tracker
        self.rng = rng

    def select_outcome(self, is_cascade=False):
        """
        Draws one uniform value and walks the categories in CATEGORY_ORDER.

        Args:
            is_cascade (bool): True for cascade continuations, whose target is
                scaled by the cascade bonus factor.

        Returns:
            SpinOutcome: loss always carries a target multiplier of 0.0.
        """
        draw = self.rng.random()
        probabilities = self.variance_tracker.adjusted_probabilities()

        # Float rounding can leave the cumulative mass a hair under 1.0; the last category absorbs it.
        selected = CATEGORY_ORDER[-1]
        cumulative = 0.0
        for category in CATEGORY_ORDER:
            cumulative += probabilities[category]
            if draw < cumulative:
                selected = category
                break

        if selected is PayoutCategory.LOSS:
            return SpinOutcome(PayoutCategory.LOSS, 0.0, is_cascade)

        category_range = self.ranges[selected]
        target = category_range.min + self.rng.random() * (category_range.max - category_range.min)
        if is_cascade:
            target *= self.cascade_multiplier

        logger.debug(f"Selected {selected.value} target {target:.4f} (draw {draw:.6f}, cascade={is_cascade})")
        return SpinOutcome(selected, target, is_cascade)
