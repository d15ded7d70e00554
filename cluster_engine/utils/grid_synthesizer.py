"""
Grid synthesis: produce a concrete symbol layout whose scored payout matches a
chosen target multiplier.

Loss targets use a constrained cell-by-cell fill that never lets a symbol reach
a winning count. Win targets run a bounded random search and then walk a
fixed ladder of acceptance rungs, so a grid is always returned:

    quick_accept -> fabricated -> best_match -> closest_win -> any_win -> unconstrained

Fabricated layouts round the target to one of the two nearest reachable payouts
at random, weighted so the expected multiplier equals the target.
"""
import logging
from bisect import bisect_left
from collections import Counter
from itertools import combinations

from cluster_engine.models import SynthesisResult
from cluster_engine.utils.grid_scorer import calculate_win, grid_multiplier

logger = logging.getLogger(__name__)


class GridSynthesizer:
    def __init__(self, config, paytable, weight_table, rng):
        self.columns = config.columns
        self.rows = config.rows
        self.cell_count = config.cell_count
        self.min_cluster_size = config.min_cluster_size
        self.settings = config.synthesis
        self.paytable = paytable
        self.weight_table = weight_table
        self.rng = rng

        self.cells = [(reel, row) for reel in range(self.columns) for row in range(self.rows)]
        self.non_scatter_ids = [s_id for s_id in weight_table.symbol_ids if not paytable.is_scatter(s_id)]
        self.scatter_ids = [s_id for s_id in weight_table.symbol_ids if paytable.is_scatter(s_id)]

        self._compositions = self._build_compositions() if self.settings.fabricate else []
        self._composition_multipliers = [multiplier for multiplier, _ in self._compositions]

    # --- Public API ---

    def synthesize(self, wager, target_multiplier):
        """
        Returns a SynthesisResult whose payout is the scored payout of its grid.

        Args:
            wager (Decimal): validated wager.
            target_multiplier (float): 0 for a loss, otherwise the multiplier to approximate.
        """
        if target_multiplier <= 0:
            return self.generate_losing_grid(wager)
        return self._search_winning_grid(wager, target_multiplier)

    def random_grid(self):
        symbols = self.weight_table.draw_many(self.rng, self.cell_count)
        return tuple(
            tuple(symbols[reel * self.rows:(reel + 1) * self.rows])
            for reel in range(self.columns)
        )

    def generate_losing_grid(self, wager):
        for _ in range(self.settings.loss_grid_attempts):
            assigned = {}
            self._fill_cells(self.cells, assigned, Counter(), self.weight_table.symbol_ids)
            grid = self._to_grid(assigned)
            result = calculate_win(grid, wager, self.paytable)
            if result["total_win"] == 0:
                return SynthesisResult(grid, result["total_win"], [], "loss")

        logger.warning(
            f"Constrained loss fill failed {self.settings.loss_grid_attempts} times, using a random grid"
        )
        return self._result(self.random_grid(), wager, "unconstrained")

    def fabricate_grid(self, target_multiplier):
        """
        Builds a grid from one of the two precomputed compositions bracketing the target.

        The upper neighbour is chosen with probability proportional to how far the
        target sits above the lower one, so the expected multiplier equals the
        target wherever it lies inside the reachable range.

        Returns:
            tuple: (grid, multiplier) or (None, 0.0) when fabrication is unavailable.
        """
        if not self._compositions:
            return None, 0.0

        multipliers = self._composition_multipliers
        idx = bisect_left(multipliers, target_multiplier)
        if idx == len(multipliers):
            chosen = idx - 1
        elif idx == 0 or multipliers[idx] == target_multiplier:
            chosen = idx
        else:
            low, high = multipliers[idx - 1], multipliers[idx]
            upper_share = (target_multiplier - low) / (high - low)
            chosen = idx if self.rng.random() < upper_share else idx - 1
        multiplier, options = self._compositions[chosen]
        plants, extra_scatters = self.rng.choice(options)

        cells = list(self.cells)
        self.rng.shuffle(cells)
        assigned = {}
        occupancy = Counter()
        position = 0
        for symbol_id, count in plants:
            for cell in cells[position:position + count]:
                assigned[cell] = symbol_id
            occupancy[symbol_id] += count
            position += count

        planted_ids = {symbol_id for symbol_id, _ in plants}
        free_scatters = [s_id for s_id in self.scatter_ids if s_id not in planted_ids]
        for cell in cells[position:position + extra_scatters]:
            eligible = [s_id for s_id in free_scatters if occupancy[s_id] < self.min_cluster_size - 1]
            symbol_id = self.rng.choice(eligible)
            assigned[cell] = symbol_id
            occupancy[symbol_id] += 1
        position += extra_scatters

        filler = [s_id for s_id in self.non_scatter_ids if s_id not in planted_ids]
        self._fill_cells(cells[position:], assigned, occupancy, filler)
        return self._to_grid(assigned), multiplier

    # --- Win path ---

    def _search_winning_grid(self, wager, target):
        band = self.settings.band_for(target)
        best_grid, best_error = None, None

        for _ in range(band.trials):
            grid = self.random_grid()
            realized = grid_multiplier(grid, self.paytable)
            if realized <= 0:
                continue
            error = abs(realized - target) / target
            if error <= band.quick_accept:
                return self._result(grid, wager, "quick_accept")
            if best_error is None or error < best_error:
                best_grid, best_error = grid, error

        # The fabricated layout outranks the best random near miss.
        fabricated, fabricated_multiplier = self.fabricate_grid(target)
        if fabricated is not None:
            fabricated_error = abs(fabricated_multiplier - target) / target
            if fabricated_error <= band.accept:
                logger.debug(f"Fabricated layout x{fabricated_multiplier} for target x{target:.4f}")
            else:
                logger.info(
                    f"Target x{target:.4f} lies between reachable payouts, fabricated x{fabricated_multiplier}"
                )
            return self._result(fabricated, wager, "fabricated")

        if best_grid is not None and best_error <= band.accept:
            return self._result(best_grid, wager, "best_match")

        if best_grid is not None:
            logger.warning(
                f"No grid within {band.accept:.0%} of target x{target:.4f}, closest error {best_error:.2%}"
            )
            return self._result(best_grid, wager, "closest_win")

        for _ in range(self.settings.any_win_attempts):
            grid = self.random_grid()
            if grid_multiplier(grid, self.paytable) > 0:
                logger.warning(f"Falling back to any winning grid for target x{target:.4f}")
                return self._result(grid, wager, "any_win")

        logger.warning(f"No winning grid found for target x{target:.4f}, returning a random grid")
        return self._result(self.random_grid(), wager, "unconstrained")

    # --- Helpers ---

    def _result(self, grid, wager, match_type):
        win_info = calculate_win(grid, wager, self.paytable)
        return SynthesisResult(grid, win_info["total_win"], win_info["winning_symbol_coords"], match_type)

    def _to_grid(self, assigned):
        return tuple(
            tuple(assigned[(reel, row)] for row in range(self.rows))
            for reel in range(self.columns)
        )

    def _can_place(self, symbol_id, occupancy):
        if occupancy[symbol_id] + 1 >= self.min_cluster_size:
            return False
        min_scatter = self.paytable.min_scatter_count
        if min_scatter is not None and self.paytable.is_scatter(symbol_id):
            scatter_total = sum(occupancy[s_id] for s_id in self.scatter_ids)
            return scatter_total + 1 < min_scatter
        return True

    def _fill_cells(self, cells, assigned, occupancy, allowed):
        """
        Fills cells one at a time so no symbol reaches a winning count.

        A drawn symbol that would complete a cluster (or a paying scatter count)
        is rejected; once the rejection attempts run out the least-used allowed symbol is
        placed instead.
        """
        allowed = set(allowed)
        allowed_ids = [s_id for s_id in self.weight_table.symbol_ids if s_id in allowed]
        unrestricted = len(allowed_ids) == len(self.weight_table.symbol_ids)

        for cell in cells:
            symbol_id = None
            for _ in range(self.settings.symbol_rejection_attempts):
                if unrestricted:
                    candidate = self.weight_table.draw(self.rng)
                else:
                    candidate = self.weight_table.draw_from(self.rng, allowed_ids)
                if self._can_place(candidate, occupancy):
                    symbol_id = candidate
                    break
            if symbol_id is None:
                placeable = [s_id for s_id in allowed_ids if self._can_place(s_id, occupancy)]
                symbol_id = min(placeable or allowed_ids, key=lambda s_id: occupancy[s_id])
            assigned[cell] = symbol_id
            occupancy[symbol_id] += 1

    def _build_compositions(self):
        """
        Enumerates payouts reachable by planting clusters at bucket minimum counts
        plus extra lone scatter cells.

        Returns:
            list: sorted (multiplier, [(plants, extra_scatters), ...]) pairs.
        """
        limit = self.min_cluster_size - 1
        cluster_options = [
            (s_id, threshold)
            for s_id in self.weight_table.symbol_ids
            for threshold in self.paytable.bucket_thresholds(s_id)
            if threshold >= self.min_cluster_size
        ]
        max_scatter_extra = max(self.paytable.scatter_tier_thresholds(), default=0)
        reachable = {}

        for cluster_count in range(self.cell_count // self.min_cluster_size + 1):
            for plants in combinations(cluster_options, cluster_count):
                planted_ids = [s_id for s_id, _ in plants]
                if len(set(planted_ids)) != len(planted_ids):
                    continue
                planted_cells = sum(count for _, count in plants)
                if planted_cells > self.cell_count:
                    continue

                cluster_multiplier = sum(self.paytable.cluster_multiplier(s_id, count) for s_id, count in plants)
                planted_scatters = sum(count for s_id, count in plants if self.paytable.is_scatter(s_id))
                free_scatters = [s_id for s_id in self.scatter_ids if s_id not in planted_ids]
                filler_capacity = limit * len([s_id for s_id in self.non_scatter_ids if s_id not in planted_ids])

                for extra in range(min(max_scatter_extra, limit * len(free_scatters)) + 1):
                    remaining = self.cell_count - planted_cells - extra
                    if remaining < 0 or remaining > filler_capacity:
                        continue
                    multiplier = cluster_multiplier + self.paytable.scatter_multiplier(planted_scatters + extra)
                    if multiplier <= 0:
                        continue
                    reachable.setdefault(round(multiplier, 6), []).append((plants, extra))

        logger.debug(f"Fabrication table holds {len(reachable)} distinct multipliers")
        return sorted(reachable.items())
