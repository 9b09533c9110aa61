"""
Simulated client that retries with backoff.

A RetryingClient issues one logical request against a server and, while the
server rejects it, schedules the next attempt on the World after a delay drawn
from its backoff generator. Each attempt is an explicit continuation on the
event queue, so long retry chains never grow the call stack.

Example:
    >>> from backoffsim import ExponentialBackoff, RateLimitedServer, Sampler, World
    >>> world = World()
    >>> server = RateLimitedServer(world, limit=1)
    >>> client = RetryingClient(backoff=ExponentialBackoff(), world=world)
    >>> world.run(lambda: client.make_request(Sampler(), server.admit))
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from enum import StrEnum

from backoffsim._backoff import RetryFn
from backoffsim._sampling import Sampler
from backoffsim._world import World

logger = logging.getLogger(__name__)


class RequestOutcome(StrEnum):
    """Lifecycle state of a logical request."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


@dataclass
class RequestRecord:
    """
    History of one logical request.

    Attributes:
        client_id: Identity of the issuing client (may be None).
        started_at: Virtual time of the first attempt.
        attempt_times: Virtual time of every attempt, in order.
        outcome: Current lifecycle state.
        completed_at: Virtual time of the terminal attempt (None while pending).
    """

    client_id: Hashable | None
    started_at: float
    attempt_times: list[float] = field(default_factory=list)
    outcome: RequestOutcome = RequestOutcome.PENDING
    completed_at: float | None = None

    @property
    def attempts(self) -> int:
        return len(self.attempt_times)

    @property
    def latency(self) -> float | None:
        """Time from first attempt to completion, or None while pending."""
        if self.completed_at is None:
            return None
        return self.completed_at - self.started_at


class RetryingClient:
    """
    Client that retries rejected requests with backoff.

    Per logical request, attempt `n`:
    - accepted: push a sample at the current time, done;
    - rejected and `n > max_retries`: log and give up (no exception);
    - rejected otherwise: schedule attempt `n + 1` after `backoff(n, client_id)`.

    Clients are independent of each other; they interact only through the
    server and sampler they share.

    Args:
        backoff: Delay generator, called as `backoff(attempt, client_id)`.
        world: The World whose clock and queue drive the retries.
        client_id: Optional identity, forwarded to the backoff generator.
        max_retries: Attempt ceiling (default: 100).
        logger_prefix: Prefix for log messages (e.g., "Client(42)").
    """

    MAX_RETRIES = 100

    def __init__(
        self,
        backoff: RetryFn,
        world: World,
        client_id: Hashable | None = None,
        max_retries: int = MAX_RETRIES,
        logger_prefix: str = "",
    ):
        assert max_retries >= 0, f"max_retries must be >= 0, got {max_retries}"

        self.backoff = backoff
        self.world = world
        self.client_id = client_id
        self.max_retries = max_retries
        self.logger_prefix = logger_prefix

        self.records: list[RequestRecord] = []

    def make_request(self, sampler: Sampler, server_admit: Callable[[], bool]) -> RequestRecord:
        """
        Start one logical request.

        The first attempt runs synchronously; retries run later, when the
        World processes them.

        Args:
            sampler: Receives one sample at the time the request succeeds.
            server_admit: Simulated network call; True means accepted.

        Returns:
            The request record, updated in place as attempts happen.
        """
        record = RequestRecord(client_id=self.client_id, started_at=self.world.now())
        self.records.append(record)
        self._attempt(record, sampler, server_admit, 0)
        return record

    def _attempt(
        self,
        record: RequestRecord,
        sampler: Sampler,
        server_admit: Callable[[], bool],
        attempt: int,
    ) -> None:
        now = self.world.now()
        record.attempt_times.append(now)

        if server_admit():
            sampler.push(now, 1)
            record.outcome = RequestOutcome.SUCCEEDED
            record.completed_at = now
            return

        if attempt > self.max_retries:
            prefix = f"{self.logger_prefix} | " if self.logger_prefix else ""
            logger.warning(
                f"{prefix}Too many retries: giving up after {record.attempts} attempts at t={now}."
            )
            record.outcome = RequestOutcome.EXHAUSTED
            record.completed_at = now
            return

        delay = self.backoff(attempt, self.client_id)
        if not delay >= 0:
            prefix = f"{self.logger_prefix} | " if self.logger_prefix else ""
            logger.warning(f"{prefix}Backoff returned invalid delay {delay!r}; retrying immediately.")
            delay = 0.0

        self.world.schedule(
            delay,
            functools.partial(self._attempt, record, sampler, server_admit, attempt + 1),
        )

    @property
    def completed(self) -> int:
        """Number of requests that eventually succeeded."""
        return sum(1 for r in self.records if r.outcome is RequestOutcome.SUCCEEDED)

    @property
    def exhausted(self) -> int:
        """Number of requests this client gave up on."""
        return sum(1 for r in self.records if r.outcome is RequestOutcome.EXHAUSTED)

    def __repr__(self) -> str:
        return f"RetryingClient(client_id={self.client_id!r}, backoff={self.backoff!r})"
