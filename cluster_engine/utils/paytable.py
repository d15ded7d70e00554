"""
Symbol weight table and paytable lookups.

The weight table only knows how likely each symbol is to land in a cell; the
paytable only knows what a symbol count is worth. Neither holds any state
beyond the configuration it was built from.
"""
from itertools import accumulate


class SymbolWeightTable:
    """Weighted draw of symbol ids. Weights are relative and normalized at draw time."""

    def __init__(self, symbols):
        if not symbols:
            raise ValueError("Symbol weight table needs at least one symbol")
        self.symbol_ids = [s.id for s in symbols]
        self.weights = {s.id: s.weight for s in symbols}
        self._cum_weights = list(accumulate(s.weight for s in symbols))

    def draw(self, rng):
        return rng.choices(self.symbol_ids, cum_weights=self._cum_weights, k=1)[0]

    def draw_many(self, rng, count):
        return rng.choices(self.symbol_ids, cum_weights=self._cum_weights, k=count)

    def draw_from(self, rng, allowed_ids):
        """Weighted draw restricted to a subset of symbol ids."""
        allowed = [s_id for s_id in self.symbol_ids if s_id in allowed_ids]
        return rng.choices(allowed, weights=[self.weights[s_id] for s_id in allowed], k=1)[0]


class Paytable:
    def __init__(self, symbols, scatter_payouts, min_cluster_size):
        self.min_cluster_size = min_cluster_size
        self.symbols = {s.id: s for s in symbols}
        self.scatter_ids = frozenset(s.id for s in symbols if s.is_scatter)
        # Bucket thresholds highest first, so the first threshold <= count wins.
        self._cluster_buckets = {
            s.id: sorted(s.cluster_payouts.items(), key=lambda item: item[0], reverse=True)
            for s in symbols
        }
        self._scatter_tiers = sorted(scatter_payouts.items(), key=lambda item: item[0], reverse=True)

    @property
    def min_scatter_count(self):
        """Smallest scatter count that pays anything, or None when no tiers are set."""
        if not self._scatter_tiers:
            return None
        return self._scatter_tiers[-1][0]

    def scatter_tier_thresholds(self):
        return sorted(threshold for threshold, _ in self._scatter_tiers)

    def bucket_thresholds(self, symbol_id):
        return sorted(threshold for threshold, _ in self._cluster_buckets.get(symbol_id, []))

    def cluster_multiplier(self, symbol_id, count):
        """Multiplier for `count` matching cells of a symbol; 0.0 below the cluster threshold."""
        if count < self.min_cluster_size:
            return 0.0
        for threshold, multiplier in self._cluster_buckets.get(symbol_id, []):
            if count >= threshold:
                return multiplier
        return 0.0

    def scatter_multiplier(self, scatter_count):
        for threshold, multiplier in self._scatter_tiers:
            if scatter_count >= threshold:
                return multiplier
        return 0.0

    def is_scatter(self, symbol_id):
        return symbol_id in self.scatter_ids
