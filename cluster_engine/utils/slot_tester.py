"""
RTP simulator for the cluster-pay outcome engine.

Runs many spins against a fresh engine and reports realized return, hit
frequency, category mix, cascade contribution and volatility.

    python -m cluster_engine.utils.slot_tester --spins 100000 --wager 1 --seed 7
"""
import argparse
import os
import random

import matplotlib
matplotlib.use('Agg')  # Non-interactive backend for saving files
import matplotlib.pyplot as plt
import numpy as np

from cluster_engine.models import CATEGORY_ORDER
from cluster_engine.services.variance_tracker import VarianceTracker
from cluster_engine.utils.engine_config import load_engine_config
from cluster_engine.utils.money import ZERO, floor_to_cents, multiplier_amount, parse_wager
from cluster_engine.utils.spin_handler import SpinEngine

# Upper bounds (exclusive) of the win-size buckets, in multiples of the wager.
WIN_SIZE_BUCKETS = (1, 2, 5, 10, 20, 50, 100, 200)


def _bucket_sort_key(label):
    lower = label.split("-")[0].rstrip("x+")
    return float(lower), label != "0x"


def _win_bucket_label(multiplier):
    if multiplier <= 0:
        return "0x"
    lower = 0
    for upper in WIN_SIZE_BUCKETS:
        if multiplier < upper:
            return f"{lower}-{upper}x"
        lower = upper
    return f"{lower}x+"


class SlotTester:
    def __init__(self, num_spins, wager, config_path=None, seed=None, outcomes_only=False):
        self.num_spins = num_spins
        self.wager = parse_wager(wager)
        self.outcomes_only = outcomes_only
        self.config = load_engine_config(config_path)
        self.rng = random.Random(seed)
        self.engine = SpinEngine(self.config, variance_tracker=VarianceTracker(self.config), rng=self.rng)
        self.initialize_simulation_state()

    def initialize_simulation_state(self):
        self.spins_completed = 0
        self.total_bet = ZERO
        self.total_win = ZERO
        self.total_cascade_win = ZERO
        self.hit_count = 0
        self.cascade_spins = 0
        self.cascade_links = 0
        self.category_counts = {category.value: 0 for category in CATEGORY_ORDER}
        self.match_type_counts = {}
        self.wins_by_multiplier = {}
        self.spin_multipliers = []
        self.rtp_over_time = []

        self.overall_rtp = 0.0
        self.hit_frequency = 0.0
        self.cascade_frequency = 0.0
        self.base_game_rtp_contribution = 0.0
        self.cascade_rtp_contribution = 0.0
        self.volatility_index = 0.0

    def run_simulation(self):
        print(f"INFO: Starting simulation of {self.num_spins} spins at {self.wager} per spin "
              f"({'outcomes only' if self.outcomes_only else 'full synthesis'}).")
        progress_interval = self.num_spins // 20 or 1
        for i in range(self.num_spins):
            spin_data = self._simulate_outcome_only() if self.outcomes_only else self._simulate_one_spin()
            self._collect_spin_statistics(spin_data)
            if (i + 1) % progress_interval == 0:
                print(f"INFO: Completed {i + 1}/{self.num_spins} spins...")
        self.calculate_derived_statistics()
        print("INFO: Simulation finished.")

    def _simulate_one_spin(self):
        result = self.engine.spin(self.wager)
        return {
            'category': result.category.value,
            'payout': result.payout,
            'cascade_payout': result.cascade_payout,
            'cascade_count': len(result.cascades),
            'match_type': result.match_type,
        }

    def _simulate_outcome_only(self):
        """Outcome selection and cascades without grid synthesis; payouts equal the target multipliers."""
        outcome = self.engine.outcome_selector.select_outcome(is_cascade=False)
        base_payout = floor_to_cents(multiplier_amount(self.wager, outcome.target_multiplier))
        links = self.engine.cascades.target_cascades(self.wager, outcome.target_multiplier)
        cascade_payout = floor_to_cents(sum((link.payout for link in links), ZERO))

        self.engine.variance_tracker.record_outcome(outcome.is_win, outcome.target_multiplier)
        return {
            'category': outcome.category.value,
            'payout': floor_to_cents(base_payout + cascade_payout),
            'cascade_payout': cascade_payout,
            'cascade_count': len(links),
            'match_type': 'target',
        }

    def _collect_spin_statistics(self, spin_data):
        self.spins_completed += 1
        self.total_bet += self.wager
        self.total_win += spin_data['payout']
        self.total_cascade_win += spin_data['cascade_payout']

        if spin_data['payout'] > 0:
            self.hit_count += 1
        if spin_data['cascade_count']:
            self.cascade_spins += 1
            self.cascade_links += spin_data['cascade_count']

        self.category_counts[spin_data['category']] += 1
        self.match_type_counts[spin_data['match_type']] = self.match_type_counts.get(spin_data['match_type'], 0) + 1

        multiplier = float(spin_data['payout'] / self.wager)
        self.spin_multipliers.append(multiplier)
        label = _win_bucket_label(multiplier)
        self.wins_by_multiplier[label] = self.wins_by_multiplier.get(label, 0) + 1

    def calculate_derived_statistics(self):
        if self.spins_completed == 0:
            print("Warning: No spins were simulated. Cannot calculate derived statistics.")
            return

        total_bet = self.total_bet
        self.overall_rtp = float(self.total_win / total_bet * 100)
        self.hit_frequency = self.hit_count / self.spins_completed * 100
        self.cascade_frequency = self.cascade_spins / self.spins_completed * 100
        self.base_game_rtp_contribution = float((self.total_win - self.total_cascade_win) / total_bet * 100)
        self.cascade_rtp_contribution = float(self.total_cascade_win / total_bet * 100)
        self.volatility_index = float(np.std(self.spin_multipliers))

        self.rtp_over_time = []
        cumulative_multiplier = 0.0
        interval = self.spins_completed // 20 or 1
        for i, multiplier in enumerate(self.spin_multipliers):
            cumulative_multiplier += multiplier
            if (i + 1) % interval == 0 or (i + 1) == self.spins_completed:
                self.rtp_over_time.append({'spin_count': i + 1, 'rtp': cumulative_multiplier / (i + 1) * 100})

    def print_summary_statistics(self):
        print("\n--- Simulation Summary ---")
        print(f"Engine: {self.config.name}")
        print(f"Total Spins Simulated: {self.spins_completed}")
        print(f"Wager Per Spin: {self.wager}")
        print(f"Total Wagered: {self.total_bet}")
        print(f"Total Won: {self.total_win}")

        print("\n--- Detailed Metrics ---")
        print(f"Overall RTP: {self.overall_rtp:.2f}% (Target base RTP: {self.config.target_rtp * 100:.2f}%)")
        print(f"Base Game RTP Contribution: {self.base_game_rtp_contribution:.2f}%")
        print(f"Cascade RTP Contribution: {self.cascade_rtp_contribution:.2f}%")
        print(f"Hit Frequency: {self.hit_frequency:.2f}% ({self.hit_count} wins out of {self.spins_completed} spins)")
        print(f"Cascade Frequency: {self.cascade_frequency:.2f}% ({self.cascade_links} cascades on {self.cascade_spins} spins)")
        print(f"Volatility Index (StdDev of win / wager): {self.volatility_index:.2f}")

        print("\nCategory Mix:")
        for category, count in self.category_counts.items():
            print(f"  {category}: {count} ({count / max(self.spins_completed, 1) * 100:.2f}%)")

        print("\nSynthesis Match Types:")
        for match_type, count in sorted(self.match_type_counts.items()):
            print(f"  {match_type}: {count}")

        print("\nWin Distribution (by Wager Multiplier):")
        for label, count in self.wins_by_multiplier.items():
            print(f"  {label}: {count} times ({count / max(self.spins_completed, 1) * 100:.2f}%)")

        snapshot = self.engine.variance_snapshot()
        print(f"\nVariance state: loss streak {snapshot['loss_streak']}, win streak {snapshot['win_streak']}, "
              f"recent win rate {snapshot['recent_win_rate']:.3f}")

    def generate_graphs(self, graph_dir="slot_tester_graphs"):
        """Saves win-distribution, RTP-convergence and contribution charts as PNG files."""
        os.makedirs(graph_dir, exist_ok=True)
        file_stem = self.config.name.lower().replace(" ", "_").replace("/", "_")
        saved = []

        # Graph 1: Win size distribution
        if self.wins_by_multiplier:
            labels = sorted(self.wins_by_multiplier.keys(), key=_bucket_sort_key)
            counts = [self.wins_by_multiplier[label] for label in labels]

            plt.figure(figsize=(12, 7))
            plt.bar(labels, counts, color='skyblue', width=0.8)
            plt.title(f"Win Multiplier Distribution for {self.config.name}", fontsize=16)
            plt.xlabel("Wager Multiplier", fontsize=12)
            plt.ylabel("Frequency", fontsize=12)
            plt.xticks(rotation=45, ha="right", fontsize=10)
            plt.grid(axis='y', linestyle='--', alpha=0.7)
            plt.tight_layout()
            saved.append(self._save_figure(os.path.join(graph_dir, f"{file_stem}_win_multipliers.png")))
        else:
            print("INFO: No win multiplier data to generate graph.")

        # Graph 2: RTP convergence
        if self.rtp_over_time:
            spin_counts = [d['spin_count'] for d in self.rtp_over_time]
            rtps = [d['rtp'] for d in self.rtp_over_time]

            plt.figure(figsize=(10, 6))
            plt.plot(spin_counts, rtps, label="Simulated RTP", marker='.', linestyle='-')
            target = self.config.target_rtp * 100
            plt.axhline(y=target, color='r', linestyle='--', label=f"Target base RTP ({target:.2f}%)")
            plt.title(f"RTP Convergence for {self.config.name}", fontsize=16)
            plt.xlabel("Number of Spins", fontsize=12)
            plt.ylabel("RTP (%)", fontsize=12)
            plt.legend(fontsize=10)
            plt.grid(True, linestyle='--', alpha=0.7)
            plt.tight_layout()
            saved.append(self._save_figure(os.path.join(graph_dir, f"{file_stem}_rtp_convergence.png")))
        else:
            print("INFO: No RTP over time data to generate graph.")

        # Graph 3: Base game vs cascade contribution
        if self.total_win > 0:
            base_wins = float(self.total_win - self.total_cascade_win)
            cascade_wins = float(self.total_cascade_win)
            explode = (0, 0.1) if cascade_wins > 0 else (0, 0)

            plt.figure(figsize=(8, 8))
            plt.pie([base_wins, cascade_wins], explode=explode, labels=('Base Game Wins', 'Cascade Wins'),
                    colors=['lightcoral', 'lightskyblue'], autopct='%1.1f%%', startangle=90)
            plt.title(f"Win Contribution (Base vs Cascade)\nfor {self.config.name}", fontsize=16)
            plt.axis('equal')
            saved.append(self._save_figure(os.path.join(graph_dir, f"{file_stem}_win_contribution.png")))
        else:
            print("INFO: No wins recorded, skipping contribution chart.")

        return saved

    def _save_figure(self, path):
        plt.savefig(path)
        plt.close()
        print(f"INFO: Saved graph to {path}")
        return path


def main(argv=None):
    parser = argparse.ArgumentParser(description="Cluster engine RTP simulator - spins the engine to measure realized RTP and volatility.")
    parser.add_argument("--spins", type=int, default=10000, help="Number of spins to simulate.")
    parser.add_argument("--wager", type=str, default="1.00", help="Wager per spin.")
    parser.add_argument("--seed", type=int, default=None, help="Seed for a reproducible run.")
    parser.add_argument("--config", type=str, default=None, help="Path to an engine configuration JSON file.")
    parser.add_argument("--outcomes-only", action="store_true", help="Skip grid synthesis.")
    parser.add_argument("--graphs", action="store_true", help="Save summary charts as PNG files.")
    parser.add_argument("--graph-dir", type=str, default="slot_tester_graphs", help="Directory for saved charts.")
    args = parser.parse_args(argv)

    if args.spins <= 0:
        parser.error("--spins must be positive")

    tester = SlotTester(
        num_spins=args.spins,
        wager=args.wager,
        config_path=args.config,
        seed=args.seed,
        outcomes_only=args.outcomes_only
    )
    tester.run_simulation()
    tester.print_summary_statistics()
    if args.graphs:
        tester.generate_graphs(args.graph_dir)
    return tester


if __name__ == "__main__":
    main()
