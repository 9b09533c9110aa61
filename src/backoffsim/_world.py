"""
Virtual clock and event queue.

The World owns the simulation time. Components never wait on a real clock:
they schedule a callback to run after a virtual delay, and `World.run()`
drains the queue in time order, advancing the clock to each event as it goes.

Example:
    >>> world = World()
    >>> seen = []
    >>> world.run(lambda: world.schedule(500, lambda: seen.append(world.now())))
    >>> seen
    [500.0]
"""

from __future__ import annotations

import heapq
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class WorldBusyError(RuntimeError):
    """
    Raised when `World.run()` is called while the world is in use.

    Either events from a previous run are still queued or a run is in
    progress (a re-entrant call from inside an event action).
    """

    pass


class SchedulingError(ValueError):
    """Raised when an event would run before the current virtual time."""

    def __init__(self, delay: float):
        self.delay = delay
        super().__init__(f"Cannot schedule an event with delay {delay!r}. Delay must be >= 0.")


# =============================================================================
# Events
# =============================================================================


@dataclass(order=True, frozen=True)
class ScheduledEvent:
    """
    A callback scheduled to run at a virtual time.

    Events are ordered by `run_at`, then by `sequence` (insertion order),
    so events sharing a timestamp run first-in, first-out.

    Attributes:
        run_at: Virtual time at which the action runs.
        sequence: Insertion counter, unique per World.
        action: Zero-argument callable invoked when the event is processed.
    """

    run_at: float
    sequence: int
    action: Callable[[], None] = field(compare=False)


# =============================================================================
# World
# =============================================================================


class World:
    """
    Single-threaded discrete-event engine with a virtual clock.

    One World drives one simulation run: construct it, hand it to every
    component that needs virtual time, call `run()`, then discard it.
    """

    def __init__(self) -> None:
        self._time = 0.0
        self._queue: list[ScheduledEvent] = []
        self._sequence = itertools.count()
        self._running = False
        self._events_processed = 0

    def now(self) -> float:
        """Return the current virtual time."""
        return self._time

    @property
    def pending(self) -> int:
        """Number of events waiting in the queue."""
        return len(self._queue)

    @property
    def events_processed(self) -> int:
        """Number of events processed by the last (or current) run."""
        return self._events_processed

    def schedule(self, delay: float, action: Callable[[], None]) -> ScheduledEvent:
        """
        Schedule `action` to run `delay` time-units from now.

        Args:
            delay: Non-negative virtual delay.
            action: Zero-argument callable. It may schedule further events.

        Returns:
            The queued event.

        Raises:
            SchedulingError: If delay is negative or NaN.
        """
        if not delay >= 0:  # also rejects NaN
            raise SchedulingError(delay)

        event = ScheduledEvent(
            run_at=self._time + delay,
            sequence=next(self._sequence),
            action=action,
        )
        heapq.heappush(self._queue, event)
        return event

    def run(self, entry_action: Callable[[], None]) -> None:
        """
        Run a simulation until no events remain.

        Resets the clock to 0, calls `entry_action` (where clients issue their
        first requests), then processes queued events in time order.
        If `entry_action` or an event raises, the events still queued are
        dropped and the exception propagates; the World can be run again.

        Args:
            entry_action: Zero-argument callable that seeds the simulation.

        Raises:
            WorldBusyError: If events are still queued or a run is in progress.
        """
        if self._running:
            raise WorldBusyError("World is already running. Nested run() calls are not allowed.")
        if self._queue:
            raise WorldBusyError(f"Queue is not empty ({len(self._queue)} pending events).")

        self._running = True
        self._time = 0.0
        self._events_processed = 0
        try:
            entry_action()
            self._process_queue()
        except BaseException:
            logger.debug(f"World run failed at t={self._time}; dropping {len(self._queue)} pending events.")
            self._queue.clear()
            raise
        finally:
            self._running = False

        logger.debug(
            f"World run finished at t={self._time} after {self._events_processed} events."
        )

    def _process_queue(self) -> None:
        while self._queue:
            event = heapq.heappop(self._queue)
            self._time = event.run_at
            self._events_processed += 1
            event.action()

    def __repr__(self) -> str:
        return f"World(now={self._time}, pending={len(self._queue)})"
