"""
backoffsim: evaluate retry/backoff strategies under rate limiting.

A discrete-event simulator in which a population of retrying clients issues
requests against a fixed-window rate-limited server, with retry delays drawn
from a jittered exponential backoff generator.

Quick Start:
    >>> from backoffsim import BackoffConfig, Scenario, ServerConfig, run_scenario
    >>> result = run_scenario(Scenario(
    ...     label="Limit 10/s; full jitter",
    ...     backoff=BackoffConfig.full_jitter(),
    ...     server=ServerConfig(limit=10),
    ... ))
    >>> result.requests, result.p95, result.p50, result.p5

Global Configuration:
    >>> from backoffsim import BACKOFFSIM
    >>> BACKOFFSIM.configure(
    ...     backoff={"jitter_percent": 0.5},
    ...     server={"limit": 10},
    ...     simulation={"random_seed": 42},
    ... )
    >>> scenario = Scenario.from_config("Limit 10/s; half jitter")

Main Classes:
    - ExponentialBackoff: Jittered exponential backoff generator.
    - World: Virtual clock and event queue.
    - RateLimitedServer: Fixed-window rate-limited simulated server.
    - RetryingClient: Client that retries rejected requests with backoff.
    - Sampler: Time-bucketed counter.
    - Scenario / Simulator: Compose and run one simulation trial.

Functions:
    - exponential_backoff: Build a backoff function from keyword options.
    - retry_wait: Turn a backoff function into an awaitable real-time wait.
    - distribution: Percentiles over a series.
    - run_scenario: Run one scenario.
    - run_monte_carlo: Sample retry times of freshly built backoff functions.
"""

from importlib.metadata import version as _get_version

__version__ = _get_version("backoffsim")

from backoffsim._backoff import (
    ExponentialBackoff,
    JitterRandomize,
    RetryFn,
    WaitFn,
    exponential_backoff,
    retry_wait,
)
from backoffsim._client import (
    RequestOutcome,
    RequestRecord,
    RetryingClient,
)
from backoffsim._config import (
    BACKOFFSIM,
    BackoffConfig,
    BackoffSimConfig,
    ClientConfig,
    ConfigEnvVarError,
    ConfigValidationError,
    ServerConfig,
    SimulationConfig,
)
from backoffsim._monte_carlo import (
    MonteCarloResult,
    run_monte_carlo,
)
from backoffsim._rate_limit import (
    Clock,
    FixedWindowRateLimiter,
    RateLimitedServer,
    Server,
)
from backoffsim._sampling import (
    EmptyDistributionError,
    Sampler,
    distribution,
)
from backoffsim._scenario import (
    Scenario,
    ScenarioResult,
    Simulator,
    make,
    run_scenario,
)
from backoffsim._world import (
    ScheduledEvent,
    SchedulingError,
    World,
    WorldBusyError,
)

__all__ = [
    "__version__",
    # Configuration
    "BACKOFFSIM",
    "BackoffSimConfig",
    "BackoffConfig",
    "ServerConfig",
    "ClientConfig",
    "SimulationConfig",
    "ConfigEnvVarError",
    "ConfigValidationError",
    # Backoff
    "ExponentialBackoff",
    "JitterRandomize",
    "RetryFn",
    "WaitFn",
    "exponential_backoff",
    "retry_wait",
    # Engine
    "World",
    "ScheduledEvent",
    "WorldBusyError",
    "SchedulingError",
    # Server
    "Clock",
    "Server",
    "FixedWindowRateLimiter",
    "RateLimitedServer",
    # Client
    "RetryingClient",
    "RequestRecord",
    "RequestOutcome",
    # Sampling
    "Sampler",
    "distribution",
    "EmptyDistributionError",
    # Scenarios
    "Scenario",
    "ScenarioResult",
    "Simulator",
    "make",
    "run_scenario",
    "run_monte_carlo",
    "MonteCarloResult",
]
