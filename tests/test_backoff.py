"""Tests for exponential backoff generators."""

import asyncio
import math
import random
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from backoffsim import BackoffConfig, ExponentialBackoff, exponential_backoff, retry_wait


def run_trials(fn, count: int = 500) -> tuple[float, float, float]:
    """Return (min, avg, max) over `count` calls of fn."""
    values = [fn() for _ in range(count)]
    return min(values), sum(values) / count, max(values)


def fixed_rng(value: float) -> MagicMock:
    rng = MagicMock(spec=random.Random)
    rng.random.return_value = value
    return rng


# =============================================================================
# Unjittered Delays
# =============================================================================


class TestUnjitteredDelays:
    """Tests for delays with jitter_percent=0."""

    def test_retries(self):
        """Negative attempts behave as attempt 0; delays double per attempt."""
        backoff = exponential_backoff(start=1_000, jitter_percent=0)

        assert backoff(-5) == 1_000
        assert backoff(0) == 1_000
        assert backoff(5) == 32_000

    def test_base(self):
        """Should grow by the configured base."""
        backoff = exponential_backoff(base=1.5, start=1_000, jitter_percent=0)

        assert backoff(0) == 1_000
        assert backoff(1) == 1_500
        assert math.floor(backoff(5)) == 7_593

    def test_start(self):
        """Should start at the configured delay."""
        backoff = exponential_backoff(start=5, jitter_percent=0)

        assert backoff(0) == 5
        assert backoff(1) == 10

    def test_ceiling_clamps_delay(self):
        """Should grow until the ceiling, then stay constant."""
        backoff = exponential_backoff(start=1_000, ceiling=10_000, jitter_percent=0)

        assert [backoff(n) for n in range(6)] == [1_000, 2_000, 4_000, 8_000, 10_000, 10_000]

    def test_matches_formula_for_all_attempts(self):
        """Should equal min(ceiling, base ** n * start) exactly."""
        backoff = ExponentialBackoff(base=3, start=250, ceiling=1e7, jitter_percent=0)

        for n in range(20):
            assert backoff(n) == min(1e7, 3.0 ** n * 250)

    def test_does_not_consume_randomness(self):
        """Should never touch the RNG when jitter is disabled."""
        rng = fixed_rng(0.5)
        backoff = ExponentialBackoff(jitter_percent=0, rng=rng)

        backoff(3)

        rng.random.assert_not_called()

    def test_overflow_becomes_infinity(self):
        """Should follow float semantics instead of raising on huge attempts."""
        backoff = exponential_backoff(jitter_percent=0)

        assert backoff(5_000) == math.inf

    def test_overflow_is_clamped_by_ceiling(self):
        """Should still honor the ceiling for huge attempts."""
        backoff = exponential_backoff(ceiling=60_000, jitter_percent=0)

        assert backoff(5_000) == 60_000

    @pytest.mark.parametrize(
        "options, attempt",
        [
            ({"start": math.nan}, 0),
            ({"base": math.nan}, 1),
            ({"ceiling": math.nan}, 0),
            ({"start": math.nan, "ceiling": 10_000}, 3),
        ],
    )
    def test_nan_propagates(self, options, attempt):
        """Should return NaN when any input is NaN, instead of the ceiling."""
        backoff = exponential_backoff(jitter_percent=0, **options)

        assert math.isnan(backoff(attempt))

    def test_nan_propagates_through_jitter(self):
        backoff = ExponentialBackoff(start=math.nan, rng=random.Random(1))

        assert math.isnan(backoff(0))

    def test_infinite_start_stays_infinite(self):
        """Should keep infinity when no ceiling applies."""
        backoff = exponential_backoff(start=math.inf, jitter_percent=0)

        assert backoff(2) == math.inf


# =============================================================================
# Jitter
# =============================================================================


class TestJitter:
    """Tests for jitter_percent and jitter_bias."""

    @pytest.mark.parametrize(
        "jitter_percent, expected_min, expected_avg, expected_max",
        [
            (0, 1_000, 1_000, 1_000),
            (0.5, 500, 750, 1_000),
            (1, 0, 500, 1_000),
        ],
    )
    def test_jitter_percent(self, jitter_percent, expected_min, expected_avg, expected_max):
        """Should spread delays over [delay * (1 - jitter_percent), delay]."""
        start = 1_000
        backoff = ExponentialBackoff(
            start=start,
            jitter_percent=jitter_percent,
            jitter_bias=0,
            rng=random.Random(1234),
        )

        actual_min, actual_avg, actual_max = run_trials(lambda: backoff(0))

        # Within 10% of the start delay (+/- half of 10%)
        tolerance = start * 0.1 / 2
        assert actual_min == pytest.approx(expected_min, abs=tolerance)
        assert actual_avg == pytest.approx(expected_avg, abs=tolerance)
        assert actual_max == pytest.approx(expected_max, abs=tolerance)

    @pytest.mark.parametrize(
        "jitter_bias, expected_min, expected_avg, expected_max",
        [
            (0, 0, 500, 1_000),
            (0.5, 500, 1_000, 1_500),
            (1, 1_000, 1_500, 2_000),
        ],
    )
    def test_jitter_bias(self, jitter_bias, expected_min, expected_avg, expected_max):
        """Should shift the jittered range by jitter_bias * delay."""
        start = 1_000
        backoff = ExponentialBackoff(
            start=start,
            jitter_percent=1,
            jitter_bias=jitter_bias,
            rng=random.Random(5678),
        )

        actual_min, actual_avg, actual_max = run_trials(lambda: backoff(0))

        tolerance = start * 0.1 / 2
        assert actual_min == pytest.approx(expected_min, abs=tolerance)
        assert actual_avg == pytest.approx(expected_avg, abs=tolerance)
        assert actual_max == pytest.approx(expected_max, abs=tolerance)

    def test_full_jitter_stays_within_bounds(self):
        """Should never leave [0, delay] with full jitter and no bias."""
        backoff = ExponentialBackoff(jitter_percent=1, jitter_bias=0, rng=random.Random(99))

        for _ in range(1_000):
            assert 0 <= backoff(0) <= 1_000

    def test_formula_with_known_draw(self):
        """Should compute clamped - clamped * percent * r + clamped * bias."""
        backoff = ExponentialBackoff(
            start=1_000, jitter_percent=0.5, jitter_bias=0.25, rng=fixed_rng(0.4)
        )

        # 2000 - 2000 * 0.5 * 0.4 + 2000 * 0.25
        assert backoff(1) == pytest.approx(2_100)

    def test_negative_result_is_not_clamped(self):
        """Should return negative delays as-is when bias pushes below zero."""
        backoff = ExponentialBackoff(jitter_percent=1, jitter_bias=-2, rng=fixed_rng(0.0))

        assert backoff(0) == -2_000


# =============================================================================
# Jitter Randomize
# =============================================================================


class TestJitterRandomize:
    """Tests for the 'once' and 'each' randomization modes."""

    def test_once_returns_same_delay(self):
        """Should reuse the construction-time draw on every call."""
        backoff = exponential_backoff(jitter_percent=1, jitter_bias=0, jitter_randomize="once")

        expected = backoff(0)
        assert backoff(0) == expected
        assert backoff(0) == expected

    def test_once_draws_at_construction(self):
        """Should draw exactly once, when the generator is built."""
        rng = fixed_rng(0.3)
        backoff = ExponentialBackoff(jitter_randomize="once", rng=rng)

        assert rng.random.call_count == 1
        backoff(0)
        backoff(1)
        assert rng.random.call_count == 1
        assert backoff(0) == pytest.approx(700)

    def test_each_returns_different_delays(self):
        """Should draw a fresh value on every call."""
        backoff = exponential_backoff(jitter_percent=1, jitter_bias=0, jitter_randomize="each")

        expected = backoff(0)
        assert backoff(0) != expected
        assert backoff(0) != expected

    def test_once_per_client_draws_are_reproducible(self):
        """Should give each client id its own stable draw."""
        first = ExponentialBackoff(jitter_randomize="once", rng=random.Random(7))
        second = ExponentialBackoff(jitter_randomize="once", rng=random.Random(7))

        assert first(0, client_id=1) == second(0, client_id=1)
        assert first(0, client_id=1) == first(0, client_id=1)
        assert first(0, client_id=1) != first(0, client_id=2)

    def test_each_ignores_client_id(self):
        """Should keep drawing fresh values regardless of client id."""
        rng = fixed_rng(0.1)
        backoff = ExponentialBackoff(jitter_randomize="each", rng=rng)

        backoff(0, client_id="a")
        backoff(0, client_id="a")

        assert rng.random.call_count == 2


# =============================================================================
# Construction
# =============================================================================


class TestFromConfig:
    """Tests for ExponentialBackoff.from_config()."""

    def test_copies_all_fields(self):
        """Should carry every BackoffConfig field over."""
        config = BackoffConfig(
            base=3.0, start=10.0, ceiling=500.0,
            jitter_percent=0.5, jitter_bias=0.1, jitter_randomize="once",
        )

        backoff = ExponentialBackoff.from_config(config)

        assert backoff.base == 3.0
        assert backoff.start == 10.0
        assert backoff.ceiling == 500.0
        assert backoff.jitter_percent == 0.5
        assert backoff.jitter_bias == 0.1
        assert backoff.jitter_randomize == "once"

    def test_no_jitter_preset(self):
        """Should produce the plain exponential sequence."""
        backoff = ExponentialBackoff.from_config(BackoffConfig.no_jitter())

        assert [backoff(n) for n in range(4)] == [1_000, 2_000, 4_000, 8_000]


# =============================================================================
# Real-time Wait Adapter
# =============================================================================


class TestRetryWait:
    """Tests for retry_wait()."""

    @patch("backoffsim._backoff.asyncio.sleep", new_callable=AsyncMock)
    def test_sleeps_for_generated_delay(self, mock_sleep: AsyncMock):
        """Should convert the generated delay into seconds."""
        wait = retry_wait(lambda attempt, client_id=None: attempt * 100)

        asyncio.run(wait(3))

        mock_sleep.assert_awaited_once()
        assert mock_sleep.await_args.args[0] == pytest.approx(0.3)

    @patch("backoffsim._backoff.asyncio.sleep", new_callable=AsyncMock)
    def test_negative_delay_resolves_immediately(self, mock_sleep: AsyncMock):
        """Should never sleep for a negative duration."""
        wait = retry_wait(lambda attempt, client_id=None: -50)

        asyncio.run(wait(0))

        assert mock_sleep.await_args.args[0] == 0.0

    @patch("backoffsim._backoff.asyncio.sleep", new_callable=AsyncMock)
    def test_custom_time_unit(self, mock_sleep: AsyncMock):
        """Should honor a custom time unit."""
        wait = retry_wait(exponential_backoff(start=2, jitter_percent=0), time_unit=1.0)

        asyncio.run(wait(1))

        assert mock_sleep.await_args.args[0] == 4.0
