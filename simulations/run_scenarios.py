#!/usr/bin/env python3
"""
Run the jitter comparison scenarios and generate charts.

Inspired by: https://brooker.co.za/blog/2022/02/28/retries.html

Usage:
    python run_scenarios.py                    # Run all scenarios
    python run_scenarios.py --seed 7           # Different (reproducible) jitter
    python run_scenarios.py --width 80         # Limit charts to 80 buckets
    python run_scenarios.py --monte-carlo      # Also sample a single backoff curve
"""

import argparse
import logging
import shutil
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from backoffsim import (
    BACKOFFSIM,
    ScenarioResult,
    exponential_backoff,
    run_monte_carlo,
    run_scenario,
)
from simulations.scenarios import SCENARIOS
from simulations.src.visualize import (
    plot_monte_carlo,
    plot_scenario_comparison,
    plot_time_series,
    results_to_dataframe,
)


def create_run_directory(base_dir: Path) -> Path:
    """
    Create a timestamped directory for this run and update the 'latest' symlink.

    Args:
        base_dir: Base results directory (e.g., simulations/results/)

    Returns:
        Path to the created run directory (e.g., simulations/results/2024-02-01_12-30-45/)
    """
    base_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    run_dir = base_dir / timestamp
    run_dir.mkdir(parents=True, exist_ok=True)

    latest = base_dir / "latest"
    if latest.is_symlink() or latest.is_file():
        latest.unlink()
    latest.symlink_to(run_dir.name)

    return run_dir


def slugify(label: str) -> str:
    """Turn a scenario label into a file-name friendly slug."""
    keep = [c.lower() if c.isalnum() else "_" for c in label]
    return "_".join(part for part in "".join(keep).split("_") if part)


def run_all(seed: int | None) -> list[ScenarioResult]:
    """Run every scenario, optionally overriding its seed."""
    results = []
    total = len(SCENARIOS)
    for i, scenario in enumerate(SCENARIOS, 1):
        if seed is not None:
            scenario = replace(scenario, random_seed=seed)

        print(f"  [{i:2d}/{total}] {scenario.label}...", end=" ", flush=True)
        result = run_scenario(scenario)
        results.append(result)
        print(f"Requests: {result.requests:,}, Exhausted: {result.exhausted}")

    return results


def print_summary(results: list[ScenarioResult]) -> None:
    """Print requests and completion percentiles per scenario."""

    def fmt(value: float | None) -> str:
        return "N/A" if value is None else f"{value:,.0f}"

    print("\n" + "=" * 70)
    print("  SUMMARY")
    print("=" * 70)
    for result in results:
        lines = [
            result.label,
            f"\tRequests: {result.requests:,}",
            f"\tp95: {fmt(result.p95)}",
            f"\tp50: {fmt(result.p50)}",
            f"\tp5:  {fmt(result.p5)}",
        ]
        print("\n".join(lines) + "\n")


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Run jitter comparison scenarios for backoffsim.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for every scenario (default: scenario's own seed)",
    )
    parser.add_argument(
        "--width",
        type=int,
        default=BACKOFFSIM.config.simulation.max_buckets,
        help="Maximum buckets per chart (default: terminal width)",
    )
    parser.add_argument(
        "--monte-carlo",
        action="store_true",
        help="Also sample the full-jitter backoff curve with run_monte_carlo()",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Exhaustion warnings are expected under heavy contention
    logging.getLogger("backoffsim._client").setLevel(logging.ERROR)

    width = args.width or shutil.get_terminal_size().columns

    print("=" * 70)
    print("  JITTER COMPARISON")
    print("  Inspired by: https://brooker.co.za/blog/2022/02/28/retries.html")
    print("=" * 70)
    print(f"\n  Total scenarios: {len(SCENARIOS)}")
    print(f"  Chart width: {width} buckets")
    print()

    run_dir = create_run_directory(Path(__file__).parent / "results")
    print(f"  Output directory: {run_dir.name}/\n")

    print("Running simulations...")
    results = run_all(args.seed)

    print("\nGenerating charts...")
    for result in results:
        path = run_dir / f"{slugify(result.label)}.png"
        plot_time_series(result, path, max_buckets=width)
        print(f"  Saved: {path.name}")

    plot_scenario_comparison(results_to_dataframe(results), run_dir / "comparison.png")
    print("  Saved: comparison.png")

    if args.monte_carlo:
        mc_result = run_monte_carlo(
            lambda: exponential_backoff(start=1_000, ceiling=10_000, jitter_randomize="each"),
            sample_limit=width,
        )
        plot_monte_carlo(mc_result, run_dir / "monte_carlo.png")
        print("  Saved: monte_carlo.png")
        print(
            f"  Monte Carlo: {mc_result.requests:,.0f} retries, "
            f"p95={mc_result.p95}, p50={mc_result.p50}, p5={mc_result.p5}"
        )

    print_summary(results)
    print(f"  Charts saved to: {run_dir}")


if __name__ == "__main__":
    main()
