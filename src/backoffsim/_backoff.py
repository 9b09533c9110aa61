"""
Exponential backoff delay generators.

This module builds the delay functions used by simulated (and real) retrying
clients. A generator maps an attempt index to a delay, applying an exponential
growth, an optional ceiling, and a configurable amount of jitter.

Example:
    >>> from backoffsim._backoff import ExponentialBackoff
    >>> backoff = ExponentialBackoff(start=1_000, jitter_percent=0)
    >>> backoff(0), backoff(1), backoff(5)
    (1000.0, 2000.0, 32000.0)
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import math
import random
from collections.abc import Awaitable, Callable, Hashable
from typing import TYPE_CHECKING, Literal, Protocol

if TYPE_CHECKING:
    from backoffsim._config import BackoffConfig

logger = logging.getLogger(__name__)

# "once": one random draw captured at construction, reused on every call.
# "each": a fresh random draw on every call.
JitterRandomize = Literal["once", "each"]


class RetryFn(Protocol):
    """A delay generator: attempt index (and optional client id) to delay."""

    def __call__(self, attempt: int, client_id: Hashable | None = None) -> float: ...


WaitFn = Callable[[int], Awaitable[None]]


class ExponentialBackoff:
    """
    Jittered exponential backoff generator.

    The unjittered delay for attempt ``n`` is ``min(ceiling, base ** n * start)``.
    When ``jitter_percent`` is nonzero, a uniform value ``r`` in [0, 1) shifts it:

        delay = clamped - clamped * jitter_percent * r + clamped * jitter_bias

    So with ``jitter_percent=1`` and ``jitter_bias=0`` delays spread uniformly
    over ``[0, clamped]`` ("full jitter"), and with ``jitter_bias=1`` over
    ``[clamped, 2 * clamped]``. The result is not clamped to be non-negative.

    Args:
        base: Exponential growth factor (default: 2).
        start: Delay at attempt 0, in simulation time-units (default: 1000).
        ceiling: Upper clamp on the unjittered delay (default: no ceiling).
        jitter_percent: Fraction of the clamped delay subject to randomization.
        jitter_bias: Bias added as a fraction of the clamped delay.
        jitter_randomize: "each" draws a fresh random value per call,
            "once" reuses a single draw captured at construction time.
        rng: Optional RNG for dependency injection in tests and seeded runs.
    """

    def __init__(
        self,
        base: float = 2.0,
        start: float = 1_000.0,
        ceiling: float = math.inf,
        jitter_percent: float = 1.0,
        jitter_bias: float = 0.0,
        jitter_randomize: JitterRandomize = "each",
        rng: random.Random | None = None,
    ):
        self.base = base
        self.start = start
        self.ceiling = ceiling
        self.jitter_percent = jitter_percent
        self.jitter_bias = jitter_bias
        self.jitter_randomize = jitter_randomize

        self._rng = rng or random.Random()
        self._fixed_draw: float | None = (
            self._rng.random() if jitter_randomize == "once" else None
        )
        self._client_draws: dict[Hashable, float] = {}

    @classmethod
    def from_config(
        cls,
        config: BackoffConfig,
        rng: random.Random | None = None,
    ) -> ExponentialBackoff:
        """Build a generator from a BackoffConfig section."""
        return cls(
            base=config.base,
            start=config.start,
            ceiling=config.ceiling,
            jitter_percent=config.jitter_percent,
            jitter_bias=config.jitter_bias,
            jitter_randomize=config.jitter_randomize,
            rng=rng,
        )

    def delay(self, attempt: int, client_id: Hashable | None = None) -> float:
        """
        Return the delay before the retry following ``attempt``.

        Args:
            attempt: Zero-based attempt index. Negative values behave as 0.
            client_id: Optional caller identity. In "once" mode each client id
                gets its own reproducible draw.

        Returns:
            The delay in time-units. NaN and infinity propagate unchanged.
        """
        attempt = max(attempt, 0)

        try:
            wait = float(self.base) ** attempt * self.start
        except OverflowError:
            wait = math.inf
        # NaN from either operand propagates
        if math.isnan(wait) or math.isnan(self.ceiling):
            wait = math.nan
        else:
            wait = min(self.ceiling, wait)

        if self.jitter_percent:
            amount = wait * self.jitter_percent * self._draw(client_id)
            bias = wait * self.jitter_bias
            wait = wait - amount + bias

        return wait

    def __call__(self, attempt: int, client_id: Hashable | None = None) -> float:
        return self.delay(attempt, client_id)

    def _draw(self, client_id: Hashable | None) -> float:
        """Return the random value in [0, 1) used for this call."""
        if self._fixed_draw is None:
            return self._rng.random()
        if client_id is None:
            return self._fixed_draw

        draw = self._client_draws.get(client_id)
        if draw is None:
            # md5 keeps the seed stable across interpreter runs (unlike hash())
            seed_str = f"{self._fixed_draw!r}:{client_id!r}"
            seed = int(hashlib.md5(seed_str.encode()).hexdigest()[:8], 16)
            draw = random.Random(seed).random()
            self._client_draws[client_id] = draw
        return draw

    def __repr__(self) -> str:
        return (
            f"ExponentialBackoff(base={self.base}, start={self.start}, ceiling={self.ceiling}, "
            f"jitter_percent={self.jitter_percent}, jitter_bias={self.jitter_bias}, "
            f"jitter_randomize={self.jitter_randomize!r})"
        )


def exponential_backoff(**kwargs) -> ExponentialBackoff:
    """
    Build and return a backoff function.

    Accepts the same keyword arguments as ExponentialBackoff.

    Example:
        >>> backoff = exponential_backoff(jitter_percent=0.5)
        >>> 500 <= backoff(0) <= 1_000
        True
    """
    return ExponentialBackoff(**kwargs)


def retry_wait(fn: RetryFn, time_unit: float = 0.001) -> WaitFn:
    """
    Map a delay generator to an awaitable wait function.

    Used outside the simulation, by clients retrying against a real clock.
    Negative delays resolve immediately.

    Args:
        fn: The delay generator.
        time_unit: Seconds per generator time-unit (default: milliseconds).

    Example:
        >>> wait = retry_wait(exponential_backoff(start=100))
        >>> await wait(2)  # sleeps up to 400ms
    """

    async def wait(attempt: int) -> None:
        seconds = max(0.0, fn(attempt)) * time_unit
        logger.debug(f"Waiting {seconds:.3f}s before attempt {attempt + 1}...")
        await asyncio.sleep(seconds)

    return wait
