"""
Value objects for the cluster-pay outcome engine.

Configuration objects are frozen and loaded once per process. Outcome and
result objects are created per spin and handed back to the caller.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple


class PayoutCategory(str, Enum):
    LOSS = 'loss'
    SMALL_WIN = 'small_win'
    MEDIUM_WIN = 'medium_win'
    LARGE_WIN = 'large_win'
    JACKPOT = 'jackpot'


# Draw order used by the outcome selector. Reordering changes which uniform
# draws map to which category, so seeded runs depend on it.
CATEGORY_ORDER = (
    PayoutCategory.LOSS,
    PayoutCategory.SMALL_WIN,
    PayoutCategory.MEDIUM_WIN,
    PayoutCategory.LARGE_WIN,
    PayoutCategory.JACKPOT,
)

WIN_CATEGORIES = CATEGORY_ORDER[1:]

# (reel, row) cell coordinates; a grid is a tuple of reels, each a tuple of symbol ids.
Grid = Tuple[Tuple[str, ...], ...]


@dataclass(frozen=True)
class CategoryRange:
    min: float
    max: float
    avg: float


@dataclass(frozen=True)
class SymbolDefinition:
    id: str
    name: str
    weight: float
    cluster_payouts: Dict[int, float]
    is_scatter: bool = False


@dataclass(frozen=True)
class VarianceSettings:
    enabled: bool = True
    cluster_strength: float = 0.3
    nudge_fraction: float = 0.5
    window_size: int = 100
    reset_threshold: int = 500
    dry_streak_threshold: int = 15
    dry_streak_bonus: float = 0.15
    dry_streak_decay_spins: int = 10
    loss_floor: float = 0.55
    loss_ceiling: float = 0.75
    dry_streak_loss_floor: float = 0.50
    large_win_bonus_share: float = 0.3
    jackpot_bonus_share: float = 0.1
    large_win_cap: float = 0.05
    jackpot_cap: float = 0.005


@dataclass(frozen=True)
class CascadeTier:
    min_multiplier: float
    chance_factor: float


@dataclass(frozen=True)
class CascadeSettings:
    enabled: bool = True
    chance: float = 0.25
    multiplier: float = 1.5
    max_chain: int = 2
    tiers: Tuple[CascadeTier, ...] = (CascadeTier(10.0, 1.5), CascadeTier(2.0, 1.2))


@dataclass(frozen=True)
class ToleranceBand:
    """Trial count and tolerances for targets below `below` (None means no upper bound)."""
    below: Optional[float]
    trials: int
    quick_accept: float
    accept: float


DEFAULT_TOLERANCE_BANDS = (
    ToleranceBand(2.0, 300, 0.10, 0.25),
    ToleranceBand(10.0, 300, 0.10, 0.35),
    ToleranceBand(50.0, 500, 0.15, 0.45),
    ToleranceBand(None, 800, 0.15, 0.60),
)


@dataclass(frozen=True)
class SynthesisSettings:
    bands: Tuple[ToleranceBand, ...] = DEFAULT_TOLERANCE_BANDS
    fabricate: bool = True
    loss_grid_attempts: int = 50
    symbol_rejection_attempts: int = 30
    any_win_attempts: int = 200

    def band_for(self, target_multiplier: float) -> ToleranceBand:
        for band in self.bands:
            if band.below is None or target_multiplier < band.below:
                return band
        return self.bands[-1]


@dataclass(frozen=True)
class EngineConfig:
    name: str
    target_rtp: float
    columns: int
    rows: int
    min_cluster_size: int
    symbols: Tuple[SymbolDefinition, ...]
    scatter_payouts: Dict[int, float]
    probabilities: Dict[PayoutCategory, float]
    ranges: Dict[PayoutCategory, CategoryRange]
    variance: VarianceSettings = field(default_factory=VarianceSettings)
    cascade: CascadeSettings = field(default_factory=CascadeSettings)
    synthesis: SynthesisSettings = field(default_factory=SynthesisSettings)

    @property
    def cell_count(self) -> int:
        return self.columns * self.rows

    @property
    def base_win_rate(self) -> float:
        return 1.0 - self.probabilities[PayoutCategory.LOSS]

    def expected_rtp(self) -> float:
        """Probability-weighted sum of category average multipliers."""
        return sum(
            self.probabilities[category] * self.ranges[category].avg
            for category in WIN_CATEGORIES
        )


@dataclass(frozen=True)
class SpinOutcome:
    category: PayoutCategory
    target_multiplier: float
    is_cascade: bool = False

    @property
    def is_win(self) -> bool:
        return self.category is not PayoutCategory.LOSS


@dataclass(frozen=True)
class SynthesisResult:
    grid: Grid
    payout: Decimal
    winning_cells: List[List[int]]
    match_type: str


@dataclass(frozen=True)
class CascadeResult:
    grid: Grid
    payout: Decimal
    winning_cells: List[List[int]]
    category: PayoutCategory
    target_multiplier: float
    match_type: str


@dataclass(frozen=True)
class SpinResult:
    wager: Decimal
    grid: Grid
    payout: Decimal
    base_payout: Decimal
    winning_cells: List[List[int]]
    category: PayoutCategory
    target_multiplier: float
    match_type: str
    cascades: List[CascadeResult]
    cascade_payout: Decimal

    @property
    def is_win(self) -> bool:
        return self.payout > 0
