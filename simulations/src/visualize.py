"""
Visualization utilities for simulation results.

Generates charts of retry traffic over time and compares scenarios.
"""

from pathlib import Path
from typing import Sequence

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from backoffsim import MonteCarloResult, ScenarioResult


def setup_style() -> None:
    """Set up matplotlib/seaborn style for consistent visuals."""
    sns.set_theme(style="whitegrid", palette="husl")
    plt.rcParams["figure.figsize"] = (12, 6)
    plt.rcParams["figure.dpi"] = 100
    plt.rcParams["font.size"] = 10


def results_to_dataframe(results: Sequence[ScenarioResult]) -> pd.DataFrame:
    """Convert list of scenario results to DataFrame."""
    return pd.DataFrame([r.to_dict() for r in results])


def truncate(series: Sequence[float], max_buckets: int | None) -> list[float]:
    """Keep at most `max_buckets` leading buckets (None keeps everything)."""
    if max_buckets is None:
        return list(series)
    return list(series[:max_buckets])


def plot_time_series(
    result: ScenarioResult,
    output_path: Path,
    bucket_size: float = 1_000.0,
    max_buckets: int | None = None,
) -> None:
    """
    Plot server traffic and completions per bucket for a single scenario.

    Args:
        result: Scenario result with dense series.
        output_path: Path to save the chart.
        bucket_size: Bucket width, used to label the time axis in seconds.
        max_buckets: Display width; later buckets are dropped.
    """
    setup_style()

    fig, axes = plt.subplots(2, 1, figsize=(14, 8), sharex=True)

    traffic = truncate(result.traffic, max_buckets)
    samples = truncate(result.samples, max_buckets)
    seconds = bucket_size / 1_000.0

    ax1 = axes[0]
    ax1.step([i * seconds for i in range(len(traffic))], traffic, where="post")
    ax1.set_title("Server Traffic (attempts per bucket)")
    ax1.set_ylabel("Attempts")

    ax2 = axes[1]
    ax2.step([i * seconds for i in range(len(samples))], samples, where="post", color="#2ecc71")
    ax2.set_title("Completed Requests (successes per bucket)")
    ax2.set_xlabel("Time (seconds)")
    ax2.set_ylabel("Successes")

    fig.suptitle(f"{result.label} - Time Series", fontsize=14, fontweight="bold")
    plt.tight_layout()
    plt.savefig(output_path, bbox_inches="tight")
    plt.close()


def plot_scenario_comparison(
    df: pd.DataFrame,
    output_path: Path,
    title: str = "Jitter Strategy Comparison",
) -> None:
    """
    Create comparison chart for different scenarios.

    Args:
        df: DataFrame from results_to_dataframe().
        output_path: Path to save the chart.
        title: Chart title.
    """
    setup_style()

    fig, axes = plt.subplots(2, 2, figsize=(14, 10))

    # Server requests
    ax1 = axes[0, 0]
    sns.barplot(data=df, x="scenario", y="requests", ax=ax1)
    ax1.set_title("Server Requests (lower is better)")
    ax1.set_xlabel("")
    ax1.set_ylabel("Requests")
    ax1.tick_params(axis="x", rotation=45)

    # Amplification
    ax2 = axes[0, 1]
    sns.barplot(data=df, x="scenario", y="amplification", ax=ax2)
    ax2.set_title("Attempts per Logical Request")
    ax2.set_xlabel("")
    ax2.set_ylabel("Amplification")
    ax2.tick_params(axis="x", rotation=45)

    # Completion percentiles
    ax3 = axes[1, 0]
    melted = df.melt(
        id_vars="scenario",
        value_vars=["p95", "p50", "p5"],
        var_name="quantile",
        value_name="successes",
    )
    sns.barplot(data=melted, x="scenario", y="successes", hue="quantile", ax=ax3)
    ax3.set_title("Successes per Bucket (p95 / p50 / p5)")
    ax3.set_xlabel("")
    ax3.set_ylabel("Successes")
    ax3.tick_params(axis="x", rotation=45)

    # Simulated duration
    ax4 = axes[1, 1]
    sns.barplot(data=df, x="scenario", y="time", ax=ax4)
    ax4.set_title("Time Until Last Request Settled")
    ax4.set_xlabel("")
    ax4.set_ylabel("Time (time-units)")
    ax4.tick_params(axis="x", rotation=45)

    fig.suptitle(title, fontsize=14, fontweight="bold")
    plt.tight_layout()
    plt.savefig(output_path, bbox_inches="tight")
    plt.close()


def plot_monte_carlo(
    result: MonteCarloResult,
    output_path: Path,
    title: str = "Retry Time Distribution",
) -> None:
    """
    Plot bucketed retry times from run_monte_carlo().

    Args:
        result: Monte Carlo result.
        output_path: Path to save the chart.
        title: Chart title.
    """
    setup_style()

    series = result.as_series()
    plt.figure(figsize=(12, 5))
    plt.step([t / 1_000.0 for t in series.keys()], list(series.values()), where="post")
    plt.title(f"{title} ({result.requests:,.0f} retries)")
    plt.xlabel("Time (seconds)")
    plt.ylabel("Retries")
    plt.tight_layout()
    plt.savefig(output_path, bbox_inches="tight")
    plt.close()
