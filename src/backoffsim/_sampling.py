"""
Sampling and statistics for simulation runs.

Turns raw (time, value) observations into dense, time-bucketed series and
extracts percentiles from them. The output is plain numbers so any renderer
(ASCII chart, matplotlib, SVG) can consume it.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

import numpy as np

logger = logging.getLogger(__name__)


class EmptyDistributionError(ValueError):
    """Raised when percentiles are requested over zero values."""

    def __init__(self, message: str = "Distribution is undefined for empty input."):
        super().__init__(message)


class Sampler:
    """
    Time-bucketed counter.

    Each pushed value is added to bucket `floor(time / bucket_size)`.
    `collect()` returns a dense series from the lowest to the highest bucket
    seen, with zeros for buckets that never received a value.

    Args:
        bucket_size: Bucket width in time-units (default: 1000).

    Example:
        >>> sampler = Sampler(bucket_size=1_000)
        >>> sampler.push(1_500, 1)
        >>> sampler.push(3_700, 1)
        >>> sampler.collect()
        [1, 0, 1]
    """

    def __init__(self, bucket_size: float = 1_000.0):
        assert bucket_size > 0, f"bucket_size must be > 0, got {bucket_size}"

        self.bucket_size = bucket_size
        self._samples: dict[int, float] = {}
        self._min_bucket: int | None = None
        self._max_bucket: int | None = None

    def push(self, time: float, value: float = 1) -> None:
        """Add `value` to the bucket containing `time`."""
        bucket = math.floor(time / self.bucket_size)
        self._samples[bucket] = self._samples.get(bucket, 0) + value

        if self._min_bucket is None or bucket < self._min_bucket:
            self._min_bucket = bucket
        if self._max_bucket is None or bucket > self._max_bucket:
            self._max_bucket = bucket

    @property
    def min_bucket(self) -> int | None:
        """Lowest bucket index seen, or None when empty."""
        return self._min_bucket

    @property
    def max_bucket(self) -> int | None:
        """Highest bucket index seen, or None when empty."""
        return self._max_bucket

    @property
    def is_empty(self) -> bool:
        return self._min_bucket is None

    @property
    def total(self) -> float:
        """Sum of every value pushed so far."""
        return sum(self._samples.values())

    def collect(self) -> list[float]:
        """Return the dense series over [min_bucket, max_bucket]."""
        if self._min_bucket is None or self._max_bucket is None:
            return []

        return [
            self._samples.get(bucket, 0)
            for bucket in range(self._min_bucket, self._max_bucket + 1)
        ]

    def collect_and_reset(self) -> list[float]:
        """Return the dense series and clear all state for reuse."""
        values = self.collect()
        self._samples = {}
        self._min_bucket = None
        self._max_bucket = None
        return values

    def __repr__(self) -> str:
        return (
            f"Sampler(bucket_size={self.bucket_size}, "
            f"buckets=[{self._min_bucket}, {self._max_bucket}])"
        )


def distribution(values: Sequence[float], quantiles: Sequence[float]) -> list[float]:
    """
    Return the value at each quantile of `values`.

    Uses the lower nearest-rank rule: `sorted[floor((len - 1) * q)]`. The input
    does not need to be sorted; a sorted copy is used.

    Args:
        values: Observations (e.g. a series returned by Sampler.collect()).
        quantiles: Quantiles in [0, 1], e.g. (0.95, 0.5, 0.05).

    Returns:
        One value per quantile. A quantile outside [0, 1] yields NaN.

    Raises:
        EmptyDistributionError: If `values` is empty.

    Example:
        >>> distribution([5, 1, 3, 2, 4], [1.0, 0.5, 0.0])
        [5.0, 3.0, 1.0]
    """
    if len(values) == 0:
        raise EmptyDistributionError()

    ordered = np.sort(np.asarray(values, dtype=float))
    last = len(ordered) - 1

    result: list[float] = []
    for q in quantiles:
        if not 0 <= q <= 1:  # also catches NaN
            logger.warning(f"distribution(): quantile {q} out of bounds, returning NaN")
            result.append(math.nan)
            continue
        result.append(float(ordered[math.floor(last * q)]))
    return result
