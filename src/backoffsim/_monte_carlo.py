"""
Monte Carlo sampling of a backoff generator.

Shows where retries of a population of clients land in time, with no server
and no World involved: each trial builds a fresh generator, keeps retrying
(always failing) and counts every cumulative retry time in a time bucket.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from backoffsim._backoff import RetryFn
from backoffsim._sampling import EmptyDistributionError, Sampler, distribution

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MonteCarloResult:
    """
    Bucketed retry times collected over many trials.

    Attributes:
        bucket_size: Bucket width in time-units.
        first_bucket: Index of the first bucket in `counts` (None when empty).
        counts: Dense per-bucket retry counts.
        requests: Total retries counted.
        quantiles: Quantiles used for `distribution`.
        distribution: Retries per bucket at each quantile, or None when empty.
    """

    bucket_size: float
    first_bucket: int | None
    counts: list[float]
    requests: float = 0
    quantiles: tuple[float, ...] = (0.95, 0.5, 0.05)
    distribution: list[float] | None = None

    def quantile(self, q: float) -> float | None:
        if self.distribution is None or q not in self.quantiles:
            return None
        return self.distribution[self.quantiles.index(q)]

    @property
    def p95(self) -> float | None:
        return self.quantile(0.95)

    @property
    def p50(self) -> float | None:
        return self.quantile(0.5)

    @property
    def p5(self) -> float | None:
        return self.quantile(0.05)

    def as_series(self) -> dict[float, float]:
        """Map each bucket's start time to its count."""
        if self.first_bucket is None:
            return {}
        return {
            (self.first_bucket + i) * self.bucket_size: count
            for i, count in enumerate(self.counts)
        }


def run_monte_carlo(
    make_fn: Callable[[], RetryFn],
    trials: int = 100,
    bucket_size: float = 1_000.0,
    trial_time_limit: float = 60_000.0,
    max_retries: int = 10,
    sample_limit: int | None = None,
    quantiles: Sequence[float] = (0.95, 0.5, 0.05),
) -> MonteCarloResult:
    """
    Sample the retry times produced by generators from `make_fn`.

    Each trial gets its own generator from `make_fn()` and is called as
    `fn(retries, trial)`, so "once" generators draw independently per trial.
    The elapsed time grows by `fn(retries)` on every retry; the trial stops
    once it exceeds `trial_time_limit` or more than `max_retries` retries
    were made. Retry times within the limit are counted.

    Args:
        make_fn: Factory returning a fresh delay generator per trial.
        trials: Number of independent trials.
        bucket_size: Bucket width in time-units.
        trial_time_limit: Time after which a trial stops.
        max_retries: Retry ceiling per trial.
        sample_limit: When set, the series is zero-padded to cover at least
            buckets [0, sample_limit), usually the display width.
        quantiles: Quantiles reported over the bucket counts.

    Returns:
        MonteCarloResult with the dense bucket counts and their distribution.

    Example:
        >>> result = run_monte_carlo(
        ...     lambda: exponential_backoff(ceiling=10_000, jitter_randomize="once"),
        ...     trials=1_000,
        ... )
        >>> result.requests, result.p95, result.p50, result.p5
    """
    sampler = Sampler(bucket_size)

    for trial in range(trials):
        fn = make_fn()
        retries = 0
        time = 0.0
        while True:
            time += fn(retries, trial)
            retries += 1
            if time > trial_time_limit or retries > max_retries:
                break
            sampler.push(time, 1)

    requests = sampler.total
    if sample_limit is not None and sample_limit > 0:
        sampler.push(0, 0)
        sampler.push((sample_limit - 1) * bucket_size, 0)

    counts = sampler.collect()
    try:
        dist = distribution(counts, quantiles)
    except EmptyDistributionError:
        logger.warning("Monte Carlo: no retry fell within the time limit; distribution is undefined.")
        dist = None

    logger.debug(f"Monte Carlo: {trials} trials, {requests} retries sampled.")
    return MonteCarloResult(
        bucket_size=bucket_size,
        first_bucket=sampler.min_bucket,
        counts=counts,
        requests=requests,
        quantiles=tuple(quantiles),
        distribution=dist,
    )
