# vectorkit/resilience/circuit_breaker.py
# SPDX-License-Identifier: Apache-2.0
"""
Circuit breaker with closed / open / half-open states.

- closed -> open after `failure_threshold` consecutive monitored failures.
- open -> half_open once `recovery_timeout` seconds have passed since the
  circuit opened; the transition happens on the next call, before it runs.
- half_open -> closed after `success_threshold` consecutive successes.
- half_open -> open on any monitored failure.

Only monitored errors (by default the transient provider errors) count as
failures; anything else propagates without touching the counters.

Breakers are shared by name through a `CircuitBreakerRegistry`, which is an
ordinary object owned by the runtime rather than module state.
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, Type

from vectorkit.errors import RETRYABLE_ERRORS, CircuitOpenError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Counter-based circuit breaker.

    Example:
        breaker = CircuitBreaker("pinecone", failure_threshold=5, recovery_timeout=30)
        result = breaker.call(lambda: client.query(...), fallback=lambda: cached)
    """

    def __init__(
        self,
        name: str = "default",
        *,
        failure_threshold: int = 5,
        success_threshold: int = 3,
        recovery_timeout: float = 30.0,
        monitored_errors: Tuple[Type[BaseException], ...] = RETRYABLE_ERRORS,
        clock: Clock = time.monotonic,
    ) -> None:
        self.name = name
        self.failure_threshold = max(1, int(failure_threshold))
        self.success_threshold = max(1, int(success_threshold))
        self.recovery_timeout = float(recovery_timeout)
        self.monitored_errors = tuple(monitored_errors)
        self._clock = clock
        self._lock = threading.RLock()

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_at: Optional[float] = None
        self._opened_at: Optional[float] = None

    # ------------------------------------------------------------------ #
    # State inspection
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    @property
    def closed(self) -> bool:
        return self.state is CircuitState.CLOSED

    @property
    def open(self) -> bool:
        return self.state is CircuitState.OPEN

    @property
    def half_open(self) -> bool:
        return self.state is CircuitState.HALF_OPEN

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    @property
    def success_count(self) -> int:
        with self._lock:
            return self._success_count

    # ------------------------------------------------------------------ #
    # Call path
    # ------------------------------------------------------------------ #

    def allow(self) -> bool:
        """
        Return True if a call may proceed, moving open -> half_open when the
        recovery timeout has elapsed.
        """
        with self._lock:
            if self._state is CircuitState.OPEN:
                if self._recovery_elapsed():
                    self._transition(CircuitState.HALF_OPEN)
                    return True
                return False
            return True

    def call(self, fn: Callable[[], Any], fallback: Optional[Callable[[], Any]] = None) -> Any:
        """
        Invoke `fn` under breaker protection.

        When the circuit is open and the recovery timeout has not elapsed,
        `fallback` is returned if given, otherwise `CircuitOpenError` is
        raised. `fn` is not invoked in that case.
        """
        if not self.allow():
            if fallback is not None:
                return fallback()
            raise self.open_error()

        try:
            result = fn()
        except self.monitored_errors as exc:
            self.record_failure(exc)
            raise
        self.record_success()
        return result

    def record_success(self) -> None:
        with self._lock:
            if self._state is CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.success_threshold:
                    self._transition(CircuitState.CLOSED)
            elif self._state is CircuitState.CLOSED:
                self._failure_count = 0

    def record_failure(self, error: Optional[BaseException] = None) -> None:
        with self._lock:
            self._last_failure_at = self._clock()
            if self._state is CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN)
                return
            if self._state is CircuitState.CLOSED:
                self._failure_count += 1
                if self._failure_count >= self.failure_threshold:
                    failures = self._failure_count
                    self._transition(CircuitState.OPEN)
                    logger.error(
                        "circuit %s opened after %d failures (last error: %s)",
                        self.name,
                        failures,
                        type(error).__name__ if error is not None else "unknown",
                    )

    def is_monitored(self, error: BaseException) -> bool:
        return isinstance(error, self.monitored_errors)

    def open_error(self) -> CircuitOpenError:
        with self._lock:
            retry_after_ms = None
            if self._opened_at is not None:
                remaining = self.recovery_timeout - (self._clock() - self._opened_at)
                retry_after_ms = max(0, int(remaining * 1000))
            return CircuitOpenError(
                circuit_name=self.name,
                failures=self._failure_count,
                opened_at=self._opened_at,
                retry_after_ms=retry_after_ms,
            )

    # ------------------------------------------------------------------ #
    # Manual control
    # ------------------------------------------------------------------ #

    def reset(self) -> None:
        """Force the circuit closed and clear all counters."""
        with self._lock:
            self._transition(CircuitState.CLOSED)
            self._last_failure_at = None

    def trip(self) -> None:
        """Force the circuit open."""
        with self._lock:
            self._last_failure_at = self._clock()
            self._transition(CircuitState.OPEN)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "name": self.name,
                "state": self._state.value,
                "failure_count": self._failure_count,
                "success_count": self._success_count,
                "failure_threshold": self.failure_threshold,
                "success_threshold": self.success_threshold,
                "recovery_timeout": self.recovery_timeout,
                "last_failure_at": self._last_failure_at,
                "opened_at": self._opened_at,
            }

    # ------------------------------------------------------------------ #
    # Internals (lock held)
    # ------------------------------------------------------------------ #

    def _recovery_elapsed(self) -> bool:
        if self._opened_at is None:
            return True
        return self._clock() - self._opened_at >= self.recovery_timeout

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        self._failure_count = 0
        self._success_count = 0
        self._opened_at = self._clock() if new_state is CircuitState.OPEN else None

        if old_state is new_state:
            return
        if new_state is CircuitState.HALF_OPEN:
            logger.warning("circuit %s half-open, probing backend", self.name)
        elif new_state is CircuitState.CLOSED:
            logger.info("circuit %s closed, backend recovered", self.name)
        elif old_state is CircuitState.HALF_OPEN:
            logger.error("circuit %s reopened after failed probe", self.name)

    def __repr__(self) -> str:
        return f"<CircuitBreaker name={self.name!r} state={self.state.value}>"


class CircuitBreakerRegistry:
    """
    Named, lazily-constructed circuit breakers.

    `get(name)` returns the same instance for the same name; the keyword
    arguments given on first lookup (merged over the registry defaults)
    configure it.
    """

    def __init__(self, *, clock: Clock = time.monotonic, **defaults: Any) -> None:
        self._clock = clock
        self._defaults = defaults
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get(self, name: str, **options: Any) -> CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                kwargs = {**self._defaults, **options}
                kwargs.setdefault("clock", self._clock)
                breaker = CircuitBreaker(name, **kwargs)
                self._breakers[name] = breaker
            return breaker

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._breakers

    def names(self) -> list:
        with self._lock:
            return sorted(self._breakers)

    def stats(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            breakers = list(self._breakers.values())
        return {b.name: b.stats() for b in breakers}

    def reset_all(self) -> None:
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()

    def clear(self) -> None:
        with self._lock:
            self._breakers.clear()


__all__ = ["CircuitState", "CircuitBreaker", "CircuitBreakerRegistry"]
