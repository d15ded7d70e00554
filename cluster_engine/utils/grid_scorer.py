from collections import Counter

from cluster_engine.utils.money import ZERO, floor_to_cents, multiplier_amount


def count_symbols(grid):
    """Grid-wide occurrence count per symbol id; adjacency is irrelevant for cluster pays."""
    return Counter(symbol_id for reel in grid for symbol_id in reel)


def _scatter_count(counts, paytable):
    return sum(counts.get(s_id, 0) for s_id in paytable.scatter_ids)


def grid_multiplier(grid, paytable):
    """
    Total payout multiplier of a grid (cluster wins plus scatter tier), as a float.

    Used by the synthesizer's trial loop where only the size of the win matters.
    calculate_win() remains the authority for the amount actually paid.
    """
    counts = count_symbols(grid)
    total = 0.0
    for symbol_id, count in counts.items():
        total += paytable.cluster_multiplier(symbol_id, count)
    return total + paytable.scatter_multiplier(_scatter_count(counts, paytable))


def _positions_of(grid, symbol_ids):
    return [
        [reel_idx, row_idx]
        for reel_idx, reel in enumerate(grid)
        for row_idx, symbol_id in enumerate(reel)
        if symbol_id in symbol_ids
    ]


def _calculate_cluster_wins_for_grid(grid, counts, wager, paytable):
    cluster_win = ZERO
    winning_lines = []
    winning_coords = set()

    for symbol_id, count in counts.items():
        multiplier = paytable.cluster_multiplier(symbol_id, count)
        if multiplier <= 0:
            continue
        win_amount = multiplier_amount(wager, multiplier)
        positions = _positions_of(grid, {symbol_id})
        cluster_win += win_amount
        winning_lines.append({
            "line_id": f"cluster_{symbol_id}_{count}",
            "symbol_id": symbol_id,
            "count": count,
            "multiplier": multiplier,
            "positions": positions,
            "win_amount": win_amount,
            "type": "cluster"
        })
        winning_coords.update(tuple(p) for p in positions)

    return {"win": cluster_win, "winning_lines": winning_lines, "winning_coords": winning_coords}


def _calculate_scatter_wins_for_grid(grid, counts, wager, paytable):
    scatter_count = _scatter_count(counts, paytable)
    multiplier = paytable.scatter_multiplier(scatter_count)
    if multiplier <= 0:
        return {"win": ZERO, "winning_lines": [], "winning_coords": set()}

    win_amount = multiplier_amount(wager, multiplier)
    positions = _positions_of(grid, paytable.scatter_ids)
    return {
        "win": win_amount,
        "winning_lines": [{
            "line_id": f"scatter_{scatter_count}",
            "symbol_id": None,
            "count": scatter_count,
            "multiplier": multiplier,
            "positions": positions,
            "win_amount": win_amount,
            "type": "scatter"
        }],
        "winning_coords": set(tuple(p) for p in positions)
    }


def calculate_win(grid, wager, paytable):
    """
    Scores a grid for a given wager.

    Every symbol whose grid-wide count reaches the paytable's cluster threshold pays
    wager x bucket multiplier. The scatter tier is paid on top of any cluster wins.

    Args:
        grid: tuple of reels, each a sequence of symbol ids.
        wager (Decimal): amount staked on the spin.
        paytable (Paytable): multiplier lookups.

    Returns:
        dict: {"total_win": Decimal floored to cents,
               "winning_lines": list of per-cluster / scatter win dicts,
               "winning_symbol_coords": sorted list of [reel, row] pairs}
    """
    counts = count_symbols(grid)
    cluster_results = _calculate_cluster_wins_for_grid(grid, counts, wager, paytable)
    scatter_results = _calculate_scatter_wins_for_grid(grid, counts, wager, paytable)

    winning_coords = cluster_results["winning_coords"] | scatter_results["winning_coords"]
    return {
        "total_win": floor_to_cents(cluster_results["win"] + scatter_results["win"]),
        "winning_lines": cluster_results["winning_lines"] + scatter_results["winning_lines"],
        "winning_symbol_coords": [list(coord) for coord in sorted(winning_coords)]
    }
