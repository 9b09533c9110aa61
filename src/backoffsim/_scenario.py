"""
Scenario runner.

Composes N retrying clients, one rate-limited server and the samplers into a
single simulation trial on a fresh World, then reports aggregate statistics.

Example:
    >>> from backoffsim import BackoffConfig, Scenario, ServerConfig, run_scenario
    >>> result = run_scenario(Scenario(
    ...     label="Limit 10/s; full jitter",
    ...     backoff=BackoffConfig.full_jitter(),
    ...     server=ServerConfig(limit=10),
    ...     client_count=1_000,
    ...     random_seed=42,
    ... ))
    >>> result.requests > 1_000
    True
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import numpy as np

from backoffsim._backoff import ExponentialBackoff
from backoffsim._client import RetryingClient
from backoffsim._config import BACKOFFSIM, BackoffConfig, BackoffSimConfig, ServerConfig
from backoffsim._rate_limit import RateLimitedServer
from backoffsim._sampling import EmptyDistributionError, Sampler, distribution
from backoffsim._world import World

logger = logging.getLogger(__name__)

T = TypeVar("T")


def make(n: int, factory: Callable[[], T]) -> list[T]:
    """Call `factory` n times and return the results."""
    return [factory() for _ in range(n)]


@dataclass(frozen=True)
class Scenario:
    """
    One simulation trial: who retries, how, and against which server.

    Attributes:
        label: Human-readable name, e.g. "Limit 10/s; full jitter".
        backoff: Backoff configuration shared by every client.
        server: Server configuration.
        client_count: Number of clients, each issuing one logical request at t=0.
        max_retries: Attempt ceiling per client.
        bucket_size: Sampler bucket width in time-units.
        quantiles: Quantiles reported over the completion series.
        random_seed: Seed for reproducible jitter (None = random).
    """

    label: str
    backoff: BackoffConfig = field(default_factory=BackoffConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    client_count: int = 1_000
    max_retries: int = RetryingClient.MAX_RETRIES
    bucket_size: float = 1_000.0
    quantiles: tuple[float, ...] = (0.95, 0.5, 0.05)
    random_seed: int | None = None

    @classmethod
    def from_config(
        cls,
        label: str,
        config: BackoffSimConfig | None = None,
        **overrides: Any,
    ) -> Scenario:
        """
        Build a scenario from the global (or a given) configuration.

        Args:
            label: Scenario name.
            config: Configuration to read; defaults to `BACKOFFSIM.config`.
            **overrides: Scenario fields that take precedence over the config.
        """
        config = config or BACKOFFSIM.config
        values: dict[str, Any] = {
            "backoff": config.backoff,
            "server": config.server,
            "client_count": config.simulation.client_count,
            "max_retries": config.client.max_retries,
            "bucket_size": config.simulation.bucket_size,
            "quantiles": config.simulation.quantiles,
            "random_seed": config.simulation.random_seed,
        }
        values.update(overrides)
        return cls(label=label, **values)


@dataclass
class ScenarioResult:
    """
    Aggregated outcome of a scenario run.

    Attributes:
        label: Scenario name.
        samples: Dense per-bucket count of successful requests.
        traffic: Dense per-bucket count of attempts (server load).
        time: Virtual time at which the last event ran.
        requests: Attempts received by the server.
        succeeded: Attempts the server accepted.
        failed: Attempts the server rejected.
        completed: Logical requests that eventually succeeded.
        exhausted: Logical requests abandoned at the attempt ceiling.
        quantiles: Quantiles used for `distribution`.
        distribution: Values of `samples` at each quantile, or None when
            no request succeeded.
    """

    label: str
    samples: list[float]
    traffic: list[float]
    time: float
    requests: int
    succeeded: int
    failed: int
    completed: int
    exhausted: int
    quantiles: tuple[float, ...]
    distribution: list[float] | None

    def quantile(self, q: float) -> float | None:
        """Return the reported value for quantile `q`, if it was computed."""
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

    @property
    def amplification(self) -> float:
        """Server attempts per logical request (1.0 = no retries)."""
        logical = self.completed + self.exhausted
        if logical == 0:
            return 0.0
        return self.requests / logical

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for DataFrame creation."""
        return {
            "scenario": self.label,
            "time": self.time,
            "requests": self.requests,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "completed": self.completed,
            "exhausted": self.exhausted,
            "p95": self.p95,
            "p50": self.p50,
            "p5": self.p5,
            "amplification": self.amplification,
            "peak_traffic": max(self.traffic, default=0),
            "mean_traffic": float(np.mean(self.traffic)) if self.traffic else 0.0,
        }


class Simulator:
    """
    Runs one Scenario on a fresh World.

    Every client gets its own ExponentialBackoff, seeded from the scenario
    seed so that runs with the same seed are reproducible.
    """

    def __init__(self, scenario: Scenario):
        self.scenario = scenario
        self.world: World | None = None
        self.server: RateLimitedServer | None = None
        self.clients: list[RetryingClient] = []

    def run(self) -> ScenarioResult:
        """
        Execute the scenario and return aggregated results.

        Returns:
            ScenarioResult with the completion and traffic series.
        """
        scenario = self.scenario
        master_rng = random.Random(scenario.random_seed)

        self.world = World()
        self.server = RateLimitedServer.from_config(self.world, scenario.server)
        self.clients = [
            RetryingClient(
                backoff=ExponentialBackoff.from_config(
                    scenario.backoff, rng=random.Random(master_rng.getrandbits(64))
                ),
                world=self.world,
                client_id=client_id,
                max_retries=scenario.max_retries,
                logger_prefix=f"{scenario.label} | Client({client_id})",
            )
            for client_id in range(scenario.client_count)
        ]

        sampler = Sampler(scenario.bucket_size)
        traffic = Sampler(scenario.bucket_size)
        world = self.world
        server = self.server

        def server_admit() -> bool:
            traffic.push(world.now(), 1)
            return server.admit()

        def start_clients() -> None:
            for client in self.clients:
                client.make_request(sampler, server_admit)

        logger.info(f"Running scenario '{scenario.label}' with {scenario.client_count} clients...")
        world.run(start_clients)

        samples = sampler.collect()
        result = ScenarioResult(
            label=scenario.label,
            samples=samples,
            traffic=traffic.collect(),
            time=world.now(),
            requests=server.requests,
            succeeded=server.succeeded,
            failed=server.failed,
            completed=sum(c.completed for c in self.clients),
            exhausted=sum(c.exhausted for c in self.clients),
            quantiles=tuple(scenario.quantiles),
            distribution=self._distribution(samples),
        )
        logger.info(
            f"Scenario '{scenario.label}' finished at t={result.time} "
            f"({result.requests} requests, {result.exhausted} exhausted)."
        )
        return result

    def _distribution(self, samples: list[float]) -> list[float] | None:
        try:
            return distribution(samples, self.scenario.quantiles)
        except EmptyDistributionError:
            logger.warning(
                f"Scenario '{self.scenario.label}' produced no successful requests; "
                f"distribution is undefined."
            )
            return None


def run_scenario(scenario: Scenario) -> ScenarioResult:
    """
    Convenience function to run a single scenario.

    Args:
        scenario: Scenario definition.

    Returns:
        Aggregated scenario results.
    """
    simulator = Simulator(scenario)
    return simulator.run()
