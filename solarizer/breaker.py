"""Failure-rate circuit breaker guarding Solar.web calls.

Counters cover the window since the last state change, not a fixed number of
trailing calls: every transition resets them, so the breaker reacts to the
burst of results seen since it last closed.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .errors import BreakerOpenError

logger = logging.getLogger(__name__)


class BreakerState(str, Enum):
    """Circuit breaker state values."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


@dataclass(frozen=True)
class BreakerSnapshot:
    """Point-in-time view of the breaker, for health output and logging."""

    name: str
    state: BreakerState
    requests: int
    failures: int
    retry_in: Optional[float]


class CircuitBreaker:
    """Three-state circuit breaker.

    closed -> open once at least ``min_requests`` calls completed and the
    failure ratio reached ``failure_ratio``. open -> half-open after
    ``cooldown`` seconds. In half-open up to ``half_open_max_calls`` trial
    calls go through; the first success closes, the first failure re-opens.
    """

    def __init__(
        self,
        name: str = "solarweb",
        min_requests: int = 3,
        failure_ratio: float = 0.6,
        cooldown: float = 60.0,
        half_open_max_calls: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.min_requests = min_requests
        self.failure_ratio = failure_ratio
        self.cooldown = cooldown
        self.half_open_max_calls = max(1, half_open_max_calls)
        self._clock = clock
        self._lock = threading.Lock()

        self._state = BreakerState.CLOSED
        self._requests = 0
        self._failures = 0
        self._trials_in_flight = 0
        self._opened_at = 0.0
        # Bumped on every transition so late results from an older window are ignored
        self._generation = 0

    @property
    def state(self) -> BreakerState:
        with self._lock:
            return self._current_state()

    @property
    def requests(self) -> int:
        with self._lock:
            return self._requests

    @property
    def failures(self) -> int:
        with self._lock:
            return self._failures

    def snapshot(self) -> BreakerSnapshot:
        with self._lock:
            state = self._current_state()
            return BreakerSnapshot(
                name=self.name,
                state=state,
                requests=self._requests,
                failures=self._failures,
                retry_in=self._retry_in() if state is BreakerState.OPEN else None,
            )

    def before_call(self) -> int:
        """Admit a call or refuse it.

        Returns:
            Window generation to pass back with the outcome

        Raises:
            BreakerOpenError: If the breaker is open, or half-open with all
                trial slots taken
        """
        with self._lock:
            state = self._current_state()
            if state is BreakerState.OPEN:
                raise BreakerOpenError(retry_in=self._retry_in())
            if state is BreakerState.HALF_OPEN:
                if self._trials_in_flight >= self.half_open_max_calls:
                    raise BreakerOpenError()
                self._trials_in_flight += 1
            return self._generation

    def on_success(self, generation: int):
        with self._lock:
            if generation != self._generation:
                return
            if self._state is BreakerState.HALF_OPEN:
                self._transition(BreakerState.CLOSED)
            else:
                self._requests += 1

    def on_failure(self, generation: int):
        with self._lock:
            if generation != self._generation:
                return
            if self._state is BreakerState.HALF_OPEN:
                self._transition(BreakerState.OPEN)
                return
            self._requests += 1
            self._failures += 1
            if self._ready_to_trip():
                self._transition(BreakerState.OPEN)

    def on_release(self, generation: int):
        """Give back an admitted call that finished without an outcome."""
        with self._lock:
            if generation != self._generation:
                return
            if self._state is BreakerState.HALF_OPEN and self._trials_in_flight > 0:
                self._trials_in_flight -= 1

    def guard(self) -> "BreakerCall":
        """Admit one call; see BreakerCall."""
        return BreakerCall(self, self.before_call())

    def _ready_to_trip(self) -> bool:
        if self._requests < self.min_requests:
            return False
        return self._failures / self._requests >= self.failure_ratio

    def _retry_in(self) -> float:
        return max(0.0, self._opened_at + self.cooldown - self._clock())

    def _current_state(self) -> BreakerState:
        if self._state is BreakerState.OPEN and self._retry_in() <= 0:
            self._transition(BreakerState.HALF_OPEN)
        return self._state

    def _transition(self, new_state: BreakerState):
        old_state = self._state
        self._state = new_state
        self._requests = 0
        self._failures = 0
        self._trials_in_flight = 0
        self._generation += 1
        if new_state is BreakerState.OPEN:
            self._opened_at = self._clock()
            logger.warning(
                f"Circuit '{self.name}' {old_state.value} -> open, "
                f"refusing calls for {self.cooldown:.0f}s"
            )
        else:
            logger.info(f"Circuit '{self.name}' {old_state.value} -> {new_state.value}")


class BreakerCall:
    """Outcome recorder for one admitted call.

    Used as a context manager. Leaving the block without calling
    ``success()`` or ``failure()`` releases the slot without counting it,
    e.g. when the calling task is cancelled.
    """

    def __init__(self, breaker: CircuitBreaker, generation: int):
        self._breaker = breaker
        self._generation = generation
        self._done = False

    def success(self):
        if not self._done:
            self._done = True
            self._breaker.on_success(self._generation)

    def failure(self):
        if not self._done:
            self._done = True
            self._breaker.on_failure(self._generation)

    def __enter__(self) -> "BreakerCall":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self._done:
            self._done = True
            self._breaker.on_release(self._generation)
        return False
