"""
Fixed-window rate limiting for the simulated server.

Available implementations:
    - FixedWindowRateLimiter: Admission control that resets a counter at fixed
      intervals and rejects requests once the per-window quota is exhausted.
    - RateLimitedServer: Simulated server guarded by a FixedWindowRateLimiter,
      keeping running totals of requests, failures and successes.

Example:
    >>> from backoffsim._world import World
    >>> world = World()
    >>> server = RateLimitedServer(world, limit=2)
    >>> [server.admit() for _ in range(3)]
    [True, True, False]
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Protocol, override

if TYPE_CHECKING:
    from backoffsim._config import ServerConfig

logger = logging.getLogger(__name__)


class Clock(Protocol):
    """Anything exposing the current virtual time (usually a World)."""

    def now(self) -> float: ...


# =============================================================================
# Rate Limiter
# =============================================================================


class FixedWindowRateLimiter:
    """
    Fixed-window admission control.

    Each window admits at most `limit` requests. A window starts at the first
    query made at or after the previous window's end and lasts `window_length`
    time-units; rejected requests do not count against the window.

    Args:
        clock: Source of virtual time.
        limit: Requests admitted per window (default: 100).
        window_length: Window duration in time-units (default: 1000).
    """

    def __init__(self, clock: Clock, limit: int = 100, window_length: float = 1_000.0):
        self.clock = clock
        self.limit = limit
        self.window_length = window_length

        self._window_end = 0.0
        self._window_count = 0

    @property
    def window_end(self) -> float:
        """Time at which the current window closes."""
        return self._window_end

    @property
    def window_count(self) -> int:
        """Requests admitted in the current window."""
        return self._window_count

    def try_acquire(self) -> bool:
        """
        Ask for admission at the clock's current time.

        Returns:
            True if the request fits in the current window, False otherwise.
        """
        now = self.clock.now()
        if now >= self._window_end:
            self._window_count = 0
            self._window_end = now + self.window_length

        if self._window_count >= self.limit:
            return False

        self._window_count += 1
        return True


# =============================================================================
# Servers
# =============================================================================


class Server(ABC):
    """
    Abstract simulated server.

    Subclasses decide admission; the base class keeps the running totals,
    which only ever grow over the lifetime of the instance.
    """

    def __init__(self) -> None:
        self.requests = 0
        self.failed = 0
        self.succeeded = 0

    @abstractmethod
    def _accepts(self) -> bool:
        """Return True if the current request is accepted."""
        pass

    def admit(self) -> bool:
        """
        Handle one simulated request.

        Returns:
            True if the request was accepted, False if it was rejected.
        """
        self.requests += 1

        if not self._accepts():
            self.failed += 1
            return False

        self.succeeded += 1
        return True

    def handle_request(self) -> bool:
        """Alias of `admit()`, matching the client-facing server protocol."""
        return self.admit()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(requests={self.requests}, "
            f"succeeded={self.succeeded}, failed={self.failed})"
        )


class RateLimitedServer(Server):
    """
    Server that accepts at most `limit` requests per fixed window.

    Args:
        clock: Source of virtual time, shared with the clients.
        limit: Requests accepted per window (default: 100).
        window_length: Window duration in time-units (default: 1000).
    """

    def __init__(self, clock: Clock, limit: int = 100, window_length: float = 1_000.0):
        super().__init__()
        self.rate_limiter = FixedWindowRateLimiter(
            clock=clock,
            limit=limit,
            window_length=window_length,
        )

    @classmethod
    def from_config(cls, clock: Clock, config: ServerConfig) -> RateLimitedServer:
        """Build a server from a ServerConfig section."""
        return cls(clock=clock, limit=config.limit, window_length=config.window_length)

    @property
    def limit(self) -> int:
        return self.rate_limiter.limit

    @override
    def _accepts(self) -> bool:
        return self.rate_limiter.try_acquire()
