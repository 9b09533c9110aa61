"""Tests for scenario composition and results."""

import logging

import pytest

from backoffsim import (
    BACKOFFSIM,
    BackoffConfig,
    Scenario,
    ScenarioResult,
    ServerConfig,
    Simulator,
    make,
    run_scenario,
)


@pytest.fixture(autouse=True)
def reset_config():
    BACKOFFSIM.reset()
    yield
    BACKOFFSIM.reset()


def small_scenario(**overrides) -> Scenario:
    values = dict(
        label="Limit 5/s; full jitter",
        backoff=BackoffConfig.full_jitter(),
        server=ServerConfig(limit=5),
        client_count=40,
        max_retries=20,
        random_seed=42,
    )
    values.update(overrides)
    return Scenario(**values)


class TestMake:
    def test_calls_factory_n_times(self):
        counter = iter(range(10))

        assert make(3, lambda: next(counter)) == [0, 1, 2]

    def test_zero(self):
        assert make(0, object) == []


class TestRunScenario:
    """Tests for run_scenario()."""

    def test_deterministic_schedule_without_jitter(self):
        """Should spread three clients over a 1/s server at 0, 1000 and 3000."""
        result = run_scenario(
            Scenario(
                label="no jitter",
                backoff=BackoffConfig.no_jitter(),
                server=ServerConfig(limit=1),
                client_count=3,
            )
        )

        assert result.samples == [1, 1, 0, 1]
        assert result.traffic == [3, 2, 0, 1]
        assert result.requests == 6
        assert result.succeeded == 3
        assert result.failed == 3
        assert result.completed == 3
        assert result.exhausted == 0
        assert result.time == 3_000

    def test_counters_are_consistent(self):
        result = run_scenario(small_scenario())

        assert result.requests == result.succeeded + result.failed
        assert result.succeeded == result.completed
        assert result.completed + result.exhausted == 40
        assert sum(result.samples) == result.completed
        assert sum(result.traffic) == result.requests

    def test_same_seed_is_reproducible(self):
        first = run_scenario(small_scenario())
        second = run_scenario(small_scenario())

        assert first.traffic == second.traffic
        assert first.samples == second.samples
        assert first.time == second.time

    def test_different_seeds_differ(self):
        first = run_scenario(small_scenario(random_seed=1))
        second = run_scenario(small_scenario(random_seed=2))

        assert first.traffic != second.traffic

    def test_fixed_random_is_reproducible(self):
        """Should give the same once-per-client draws for the same seed."""
        scenario = small_scenario(backoff=BackoffConfig.fixed_random())

        assert run_scenario(scenario).traffic == run_scenario(scenario).traffic

    def test_ample_capacity_needs_no_retries(self):
        result = run_scenario(small_scenario(server=ServerConfig(limit=1_000)))

        assert result.requests == 40
        assert result.samples == [40]
        assert result.amplification == 1.0
        assert result.time == 0

    def test_no_successes_gives_no_distribution(self, caplog):
        """Should report None percentiles when nothing ever succeeds."""
        with caplog.at_level(logging.WARNING, logger="backoffsim._scenario"):
            result = run_scenario(
                small_scenario(server=ServerConfig(limit=0), client_count=3, max_retries=2)
            )

        assert result.samples == []
        assert result.distribution is None
        assert result.p95 is None
        assert result.exhausted == 3
        assert result.requests == 3 * 4
        assert "no successful requests" in caplog.text

    def test_zero_clients(self):
        result = run_scenario(small_scenario(client_count=0))

        assert result.requests == 0
        assert result.traffic == []
        assert result.amplification == 0.0

    def test_reports_configured_quantiles(self):
        result = run_scenario(small_scenario(quantiles=(1.0, 0.0)))

        assert result.distribution == [max(result.samples), min(result.samples)]
        assert result.quantile(1.0) == max(result.samples)
        assert result.p95 is None

    def test_simulator_exposes_components(self):
        simulator = Simulator(small_scenario(client_count=4))

        simulator.run()

        assert len(simulator.clients) == 4
        assert simulator.server is not None
        assert simulator.world is not None
        assert simulator.world.pending == 0


class TestScenarioFromConfig:
    """Tests for Scenario.from_config()."""

    def test_reads_global_config(self):
        BACKOFFSIM.configure(
            server={"limit": 10},
            client={"max_retries": 7},
            simulation={"client_count": 25, "random_seed": 3},
        )

        scenario = Scenario.from_config("from config")

        assert scenario.server.limit == 10
        assert scenario.max_retries == 7
        assert scenario.client_count == 25
        assert scenario.random_seed == 3

    def test_overrides_win(self):
        scenario = Scenario.from_config("x", client_count=5, server=ServerConfig(limit=1))

        assert scenario.client_count == 5
        assert scenario.server.limit == 1


class TestScenarioResult:
    """Tests for ScenarioResult helpers."""

    def make_result(self, **overrides) -> ScenarioResult:
        values = dict(
            label="r",
            samples=[4, 2, 0],
            traffic=[10, 4, 2],
            time=2_500.0,
            requests=16,
            succeeded=6,
            failed=10,
            completed=6,
            exhausted=2,
            quantiles=(0.95, 0.5, 0.05),
            distribution=[2.0, 2.0, 0.0],
        )
        values.update(overrides)
        return ScenarioResult(**values)

    def test_percentile_properties(self):
        result = self.make_result()

        assert (result.p95, result.p50, result.p5) == (2.0, 2.0, 0.0)

    def test_amplification(self):
        assert self.make_result().amplification == 2.0

    def test_to_dict(self):
        data = self.make_result().to_dict()

        assert data["scenario"] == "r"
        assert data["requests"] == 16
        assert data["peak_traffic"] == 10
        assert data["mean_traffic"] == pytest.approx(16 / 3)
        assert data["p50"] == 2.0

    def test_to_dict_without_traffic(self):
        data = self.make_result(traffic=[], distribution=None).to_dict()

        assert data["peak_traffic"] == 0
        assert data["mean_traffic"] == 0.0
        assert data["p95"] is None
