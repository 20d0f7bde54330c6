"""Failure-rate circuit breaker gating workflow runs."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

import structlog

from riskmind.config.settings import CircuitBreakerConfig
from riskmind.errors import CircuitOpenError


class BreakerMode(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass(frozen=True)
class CircuitBreakerState:
    mode: BreakerMode
    failures: int
    successes: int
    failure_rate: float
    last_failure_time: float | None
    window_start: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.mode.value,
            "failures": self.failures,
            "successes": self.successes,
            "failure_rate": self.failure_rate,
        }


class CircuitBreaker:
    """Track the rolling failure ratio of workflow runs.

    CLOSED lets everything through. Once more than ``min_samples`` runs were
    observed in the current window and the failure ratio reaches
    ``threshold``, the breaker opens and rejects runs until ``cooldown_ms``
    has elapsed since the last failure. The first caller after the cooldown
    is admitted as the single HALF_OPEN trial run; everyone else is rejected
    until that run reports. A successful trial closes the breaker, a failed
    one reopens it and restarts the cooldown.

    The window resets its counters purely on elapsed time, whatever the mode.
    An OPEN breaker therefore keeps its mode across a window boundary but
    loses the failures that opened it.
    """

    def __init__(
        self,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._mode = BreakerMode.CLOSED
        self._failures = 0
        self._successes = 0
        self._last_failure_time: float | None = None
        self._trial_in_flight = False
        self._window_start = clock()
        self._log = structlog.get_logger(__name__)

    @property
    def mode(self) -> BreakerMode:
        with self._lock:
            return self._mode

    def is_allowed(self) -> bool:
        with self._lock:
            if self._mode == BreakerMode.CLOSED:
                return True
            if self._mode == BreakerMode.OPEN:
                elapsed_ms = (self._clock() - (self._last_failure_time or 0.0)) * 1000
                if elapsed_ms >= self.config.cooldown_ms:
                    self._log.info("circuit_breaker_half_open")
                    self._mode = BreakerMode.HALF_OPEN
                    self._trial_in_flight = True
                    return True
                self._log.debug("circuit_breaker_blocked")
                return False
            if self._trial_in_flight:
                self._log.debug("circuit_breaker_blocked", reason="trial_in_flight")
                return False
            self._trial_in_flight = True
            return True

    def ensure_allowed(self) -> None:
        if not self.is_allowed():
            raise CircuitOpenError("Circuit breaker is OPEN - workflow temporarily disabled")

    def record_success(self) -> None:
        with self._lock:
            self._reset_window_if_needed()
            self._successes += 1
            if self._mode == BreakerMode.HALF_OPEN:
                self._log.info("circuit_breaker_closed", reason="trial_succeeded")
                self._mode = BreakerMode.CLOSED
                self._trial_in_flight = False
                self._failures = 0
                self._successes = 0

    def record_failure(self) -> None:
        with self._lock:
            self._reset_window_if_needed()
            self._failures += 1
            self._last_failure_time = self._clock()
            if self._mode == BreakerMode.HALF_OPEN:
                self._log.warning("circuit_breaker_reopened", reason="trial_failed")
                self._mode = BreakerMode.OPEN
                self._trial_in_flight = False
                return
            total = self._failures + self._successes
            if total > self.config.min_samples:
                failure_rate = self._failures / total
                if failure_rate >= self.config.threshold and self._mode == BreakerMode.CLOSED:
                    self._log.warning(
                        "circuit_breaker_opened",
                        failure_rate=round(failure_rate, 3),
                        failures=self._failures,
                        successes=self._successes,
                    )
                    self._mode = BreakerMode.OPEN

    def reset(self) -> None:
        with self._lock:
            self._mode = BreakerMode.CLOSED
            self._trial_in_flight = False
            self._failures = 0
            self._successes = 0
            self._window_start = self._clock()
        self._log.info("circuit_breaker_reset")

    def snapshot(self) -> CircuitBreakerState:
        with self._lock:
            total = self._failures + self._successes
            return CircuitBreakerState(
                mode=self._mode,
                failures=self._failures,
                successes=self._successes,
                failure_rate=self._failures / total if total else 0.0,
                last_failure_time=self._last_failure_time,
                window_start=self._window_start,
            )

    def _reset_window_if_needed(self) -> None:
        now = self._clock()
        if (now - self._window_start) * 1000 >= self.config.window_ms:
            self._failures = 0
            self._successes = 0
            self._window_start = now
