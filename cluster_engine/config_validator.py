"""
Configuration validation for the outcome engine.

Runtime settings read from the environment are validated fail-fast: a bad
seed or wager limit stops the process at startup. Statistical checks of the
engine configuration (probability sum, expected RTP with cascades, paytable shape) are
advisory. They are logged as warnings and reported, never raised, so a
misconfigured table stays playable.
"""

import logging
import os
from decimal import Decimal, InvalidOperation
from typing import Dict, List

from cluster_engine.models import CATEGORY_ORDER, WIN_CATEGORIES, EngineConfig
from cluster_engine.utils.cascade_handler import mean_trigger_probability

logger = logging.getLogger(__name__)

PROBABILITY_SUM_TOLERANCE = 1e-4
RTP_WARNING_TOLERANCE = 0.01
RTP_VALIDITY_TOLERANCE = 0.05


class ConfigValidationError(Exception):
    """Raised when runtime settings are missing or invalid."""
    pass


def _parse_bool(value: str) -> bool:
    return value.lower() in ('true', '1', 't')


def validate_runtime_settings() -> dict:
    """
    Validate environment-provided settings.

    Returns:
        Dictionary of validated setting values

    Raises:
        ConfigValidationError: If a seed or wager limit cannot be parsed
    """
    errors: List[str] = []
    settings = {
        'DEBUG': _parse_bool(os.getenv('FLASK_DEBUG', 'False')),
        'ENGINE_CONFIG_PATH': os.getenv('ENGINE_CONFIG_PATH') or None,
        'LOG_LEVEL': os.getenv('LOG_LEVEL', 'INFO').upper(),
    }

    seed = os.getenv('ENGINE_RANDOM_SEED')
    settings['ENGINE_RANDOM_SEED'] = None
    if seed:
        try:
            settings['ENGINE_RANDOM_SEED'] = int(seed)
        except ValueError:
            errors.append(f"ENGINE_RANDOM_SEED must be an integer, got '{seed}'")

    for name, default in (('MIN_WAGER', '1'), ('MAX_WAGER', '1000000')):
        raw = os.getenv(name, default)
        try:
            value = Decimal(raw)
        except InvalidOperation:
            errors.append(f"{name} must be a decimal amount, got '{raw}'")
            continue
        if not value.is_finite() or value <= 0:
            errors.append(f"{name} must be a positive amount, got '{raw}'")
        settings[name] = value

    if not errors and settings['MIN_WAGER'] > settings['MAX_WAGER']:
        errors.append("MIN_WAGER must not exceed MAX_WAGER")

    if settings['LOG_LEVEL'] not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
        errors.append(f"LOG_LEVEL '{settings['LOG_LEVEL']}' is not a logging level")

    if errors:
        raise ConfigValidationError(
            "Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in errors)
        )
    return settings


def expected_cascade_rtp(config: EngineConfig) -> float:
    """
    Extra return contributed by cascades.

    Each category's target is uniform over its range (scaled by the cascade
    multiplier for cascade links), so both the mean multiplier and the mean
    trigger probability are taken over that range.
    """
    cascade = config.cascade
    if not cascade.enabled or cascade.max_chain <= 0:
        return 0.0

    def moments(factor):
        return [
            (
                config.probabilities[c],
                (config.ranges[c].min + config.ranges[c].max) / 2 * factor,
                mean_trigger_probability(cascade, config.ranges[c].min * factor, config.ranges[c].max * factor),
            )
            for c in WIN_CATEGORIES
        ]

    boosted = moments(cascade.multiplier)

    def chain_value(depth):
        if depth > cascade.max_chain:
            return 0.0
        following = chain_value(depth + 1)
        return sum(p * (m + trigger * following) for p, m, trigger in boosted)

    first_trigger = sum(p * trigger for p, _, trigger in moments(1.0))
    return first_trigger * chain_value(1)


def expected_total_rtp(config: EngineConfig) -> float:
    """Base-game return plus cascade return; this is what must match target_rtp."""
    return config.expected_rtp() + expected_cascade_rtp(config)


class ConfigValidator:
    """Advisory statistical checks over a loaded EngineConfig."""

    def __init__(self, config: EngineConfig):
        self.config = config
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate_probability_sum(self) -> float:
        total = sum(self.config.probabilities[c] for c in CATEGORY_ORDER)
        if abs(total - 1.0) > PROBABILITY_SUM_TOLERANCE:
            self.errors.append(f"Category probabilities sum to {total:.6f}, expected 1.0")
        return total

    def validate_expected_rtp(self) -> float:
        expected = expected_total_rtp(self.config)
        difference = abs(expected - self.config.target_rtp)
        if difference > RTP_VALIDITY_TOLERANCE:
            self.errors.append(
                f"Expected RTP {expected:.4f} is {difference:.4f} away from target {self.config.target_rtp:.4f}"
            )
        elif difference > RTP_WARNING_TOLERANCE:
            self.warnings.append(
                f"Expected RTP {expected:.4f} differs from target {self.config.target_rtp:.4f} by {difference:.4f}"
            )
        return expected

    def validate_category_ranges(self) -> None:
        for category in WIN_CATEGORIES:
            r = self.config.ranges[category]
            if not r.min <= r.avg <= r.max:
                self.warnings.append(
                    f"Category '{category.value}' average {r.avg} lies outside [{r.min}, {r.max}]"
                )

    def validate_paytable(self) -> None:
        for symbol in self.config.symbols:
            buckets = sorted(symbol.cluster_payouts.items())
            multipliers = [multiplier for _, multiplier in buckets]
            if any(later <= earlier for earlier, later in zip(multipliers, multipliers[1:])):
                self.warnings.append(f"Symbol '{symbol.id}' cluster payouts do not strictly increase with count")
            if buckets and buckets[0][0] < self.config.min_cluster_size:
                self.warnings.append(
                    f"Symbol '{symbol.id}' has a bucket below the minimum cluster size {self.config.min_cluster_size}"
                )
        has_scatters = any(symbol.is_scatter for symbol in self.config.symbols)
        if self.config.scatter_payouts and not has_scatters:
            self.warnings.append("Scatter tiers are configured but no symbol is flagged as scatter")
        if self.config.cell_count < self.config.min_cluster_size:
            self.errors.append("Grid is smaller than the minimum cluster size; no cluster can ever win")

    def validate_variance_settings(self) -> None:
        v = self.config.variance
        if not v.dry_streak_loss_floor <= v.loss_floor <= v.loss_ceiling:
            self.warnings.append(
                "Variance clamps should satisfy dry_streak_loss_floor <= loss_floor <= loss_ceiling"
            )
        base_loss = self.config.probabilities[CATEGORY_ORDER[0]]
        if not v.loss_floor <= base_loss <= v.loss_ceiling:
            self.warnings.append(
                f"Base loss probability {base_loss:.4f} lies outside the variance clamp [{v.loss_floor}, {v.loss_ceiling}]"
            )

    def validate_all(self) -> Dict[str, object]:
        """
        Run every check and log the findings.

        Returns:
            Report dictionary; `is_valid` is False when any error was found.
        """
        probability_sum = self.validate_probability_sum()
        expected_total = self.validate_expected_rtp()
        self.validate_category_ranges()
        self.validate_paytable()
        self.validate_variance_settings()

        for message in self.errors + self.warnings:
            logger.warning(message)

        return {
            'target_rtp': self.config.target_rtp,
            'expected_rtp': self.config.expected_rtp(),
            'expected_cascade_rtp': expected_cascade_rtp(self.config),
            'expected_total_rtp': expected_total,
            'difference': expected_total - self.config.target_rtp,
            'probability_sum': probability_sum,
            'is_valid': not self.errors,
            'errors': list(self.errors),
            'warnings': list(self.warnings),
        }


def validate_engine_config(config: EngineConfig) -> Dict[str, object]:
    return ConfigValidator(config).validate_all()
