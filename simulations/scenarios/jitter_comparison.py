"""
Jitter comparison scenarios.

Inspired by: https://brooker.co.za/blog/2022/02/28/retries.html

1000 clients all send their first request at t=0 against a server that
accepts 10 or 100 requests per second. Each scenario changes only the jitter
strategy, to show how it spreads retry traffic over time.
"""

from backoffsim import BackoffConfig, Scenario, ServerConfig

CLIENTS = 1_000
RANDOM_SEED = 42

# =============================================================================
# Jitter strategies to compare
# =============================================================================

STRATEGIES = {
    "half jitter": BackoffConfig(jitter_percent=0.5, jitter_randomize="each"),
    "full jitter": BackoffConfig.full_jitter(),
    "full jitter; fixed random": BackoffConfig.fixed_random(),
}

# =============================================================================
# Scenarios
# =============================================================================

SCENARIOS = [
    Scenario(
        label="Limit 10/s; half jitter; center bias",
        backoff=BackoffConfig(jitter_percent=0.5, jitter_randomize="each"),
        server=ServerConfig(limit=10),
        client_count=CLIENTS,
        random_seed=RANDOM_SEED,
    ),
    Scenario(
        label="Limit 10/s; full jitter",
        backoff=STRATEGIES["full jitter"],
        server=ServerConfig(limit=10),
        client_count=CLIENTS,
        random_seed=RANDOM_SEED,
    ),
    Scenario(
        label="Limit 10/s; full jitter; fixed random",
        backoff=STRATEGIES["full jitter; fixed random"],
        server=ServerConfig(limit=10),
        client_count=CLIENTS,
        random_seed=RANDOM_SEED,
    ),
    Scenario(
        label="Limit 100/s; half jitter",
        backoff=STRATEGIES["half jitter"],
        server=ServerConfig(limit=100),
        client_count=CLIENTS,
        random_seed=RANDOM_SEED,
    ),
    Scenario(
        label="Limit 100/s; full jitter; center bias",
        backoff=BackoffConfig(jitter_percent=1.0, jitter_randomize="each"),
        server=ServerConfig(limit=100),
        client_count=CLIENTS,
        random_seed=RANDOM_SEED,
    ),
    Scenario(
        label="Limit 100/s; full jitter",
        backoff=STRATEGIES["full jitter"],
        server=ServerConfig(limit=100),
        client_count=CLIENTS,
        random_seed=RANDOM_SEED,
    ),
    Scenario(
        label="Limit 100/s; full jitter; fixed random",
        backoff=STRATEGIES["full jitter; fixed random"],
        server=ServerConfig(limit=100),
        client_count=CLIENTS,
        random_seed=RANDOM_SEED,
    ),
]
