"""
Variance Tracker Service
Process-wide rolling record of recent spin outcomes, shared by every caller.
Biases category probabilities toward natural-feeling streaks while the
long-run distribution stays anchored to the configured base table.
"""

import logging
import threading
from collections import deque
from typing import Dict

from cluster_engine.models import CATEGORY_ORDER, EngineConfig, PayoutCategory

logger = logging.getLogger(__name__)


class VarianceTracker:
    """Sliding window of (won, multiplier) pairs plus streak and deviation counters."""

    def __init__(self, config: EngineConfig):
        self.config = config
        self.settings = config.variance
        self.base_probabilities = {c: config.probabilities[c] for c in CATEGORY_ORDER}
        self.expected_win_rate = config.base_win_rate
        self.expected_multiplier = config.expected_rtp()

        self._lock = threading.Lock()
        self._window = deque(maxlen=self.settings.window_size)
        self._window_wins = 0
        self.loss_streak = 0
        self.win_streak = 0
        self.deviation = 0.0
        self.spins_since_reset = 0
        self.total_spins = 0

    def record_outcome(self, was_win: bool, multiplier: float) -> None:
        """Feed one base outcome into the window; no-op when variance is disabled."""
        if not self.settings.enabled:
            return

        with self._lock:
            if len(self._window) == self._window.maxlen and self._window[0][0]:
                self._window_wins -= 1
            self._window.append((was_win, multiplier))
            if was_win:
                self._window_wins += 1
                self.win_streak += 1
                self.loss_streak = 0
            else:
                self.loss_streak += 1
                self.win_streak = 0

            self.deviation += multiplier - self.expected_multiplier
            self.spins_since_reset += 1
            self.total_spins += 1

            if self.spins_since_reset >= self.settings.reset_threshold:
                logger.info(
                    f"Variance reset after {self.spins_since_reset} spins, deviation {self.deviation:.4f}"
                )
                self.spins_since_reset = 0
                self.deviation = 0.0

    def _recent_win_rate(self) -> float:
        if not self._window:
            return self.expected_win_rate
        return self._window_wins / len(self._window)

    def _dry_streak_bonus(self) -> float:
        s = self.settings
        past_threshold = self.loss_streak - s.dry_streak_threshold
        return max(0.0, s.dry_streak_bonus * (1 - past_threshold / s.dry_streak_decay_spins))

    def adjusted_probabilities(self) -> Dict[PayoutCategory, float]:
        """
        Category distribution biased by recent history, normalized to sum to 1.0.

        Read-only: repeated calls without an intervening record_outcome() return
        equal values.
        """
        if not self.settings.enabled:
            return _normalize(self.base_probabilities)

        s = self.settings
        with self._lock:
            recent_win_rate = self._recent_win_rate()
            in_dry_streak = self.loss_streak >= s.dry_streak_threshold
            bonus = self._dry_streak_bonus() if in_dry_streak else 0.0

        probabilities = dict(self.base_probabilities)
        delta = (recent_win_rate - self.expected_win_rate) * s.cluster_strength
        loss = probabilities[PayoutCategory.LOSS] + delta * s.nudge_fraction

        if bonus > 0:
            probabilities[PayoutCategory.LOSS] = max(s.dry_streak_loss_floor, loss - bonus)
            probabilities[PayoutCategory.LARGE_WIN] = min(
                s.large_win_cap,
                probabilities[PayoutCategory.LARGE_WIN] + bonus * s.large_win_bonus_share
            )
            probabilities[PayoutCategory.JACKPOT] = min(
                s.jackpot_cap,
                probabilities[PayoutCategory.JACKPOT] + bonus * s.jackpot_bonus_share
            )
        elif delta > 0:
            # Wins have been frequent: make losses likelier.
            probabilities[PayoutCategory.LOSS] = min(s.loss_ceiling, loss)
        else:
            probabilities[PayoutCategory.LOSS] = max(s.loss_floor, loss)

        return _normalize(probabilities)

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            return {
                'enabled': self.settings.enabled,
                'window_size': self.settings.window_size,
                'window_fill': len(self._window),
                'recent_win_rate': self._recent_win_rate(),
                'expected_win_rate': self.expected_win_rate,
                'loss_streak': self.loss_streak,
                'win_streak': self.win_streak,
                'deviation': self.deviation,
                'spins_since_reset': self.spins_since_reset,
                'total_spins': self.total_spins,
                'in_dry_streak': self.loss_streak >= self.settings.dry_streak_threshold,
            }


def _normalize(probabilities):
    total = sum(probabilities.values())
    return {category: probabilities[category] / total for category in CATEGORY_ORDER}
