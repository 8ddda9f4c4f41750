# vectorkit/resilience/rate_limiter.py
# SPDX-License-Identifier: Apache-2.0
"""
Token-bucket rate limiter.

Tokens refill continuously at `requests_per_second` up to `burst_size`.
The token count is recomputed from elapsed time while holding the lock,
immediately before each admission decision.

This is an admission-control primitive, not a queue: blocked callers are
served in whatever order the scheduler wakes them.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from vectorkit.errors import ConfigurationError, RateLimitExceededError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], None]


class TokenBucketRateLimiter:
    """
    Example:
        limiter = TokenBucketRateLimiter(requests_per_second=5, burst_size=10)
        result = limiter.acquire(lambda: provider.query(...))
    """

    def __init__(
        self,
        requests_per_second: float,
        burst_size: Optional[float] = None,
        *,
        name: str = "default",
        clock: Clock = time.monotonic,
        sleep: Sleep = time.sleep,
    ) -> None:
        if requests_per_second <= 0:
            raise ConfigurationError("requests_per_second must be positive")
        self.name = name
        self.rate = float(requests_per_second)
        self.capacity = float(burst_size) if burst_size is not None else self.rate * 2
        if self.capacity < 1:
            raise ConfigurationError("burst_size must be at least 1")

        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._tokens = self.capacity
        self._last_refill = clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._last_refill = now

    def _reserve(self) -> float:
        """Consume a token and return 0.0, or return the seconds until one accrues."""
        with self._lock:
            self._refill()
            if self._tokens >= 1:
                self._tokens -= 1
                return 0.0
            return (1 - self._tokens) / self.rate

    def try_acquire(self) -> bool:
        """Consume a token if one is available right now."""
        return self._reserve() == 0.0

    def acquire(
        self,
        fn: Optional[Callable[[], Any]] = None,
        *,
        wait: bool = True,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Take a token (blocking until one accrues) and then invoke `fn`.

        Raises:
            RateLimitExceededError: when `wait` is False and no token is
                available, or when `timeout` would be exceeded.
        """
        deadline = None if timeout is None else self._clock() + timeout
        while True:
            wait_time = self._reserve()
            if wait_time == 0.0:
                break
            if not wait:
                raise RateLimitExceededError(wait_time=wait_time)
            if deadline is not None and self._clock() + wait_time > deadline:
                raise RateLimitExceededError(wait_time=wait_time)
            logger.debug("rate limiter %s waiting %.3fs for a token", self.name, wait_time)
            self._sleep(wait_time)
        return fn() if fn is not None else None

    async def acquire_async(
        self,
        fn: Optional[Callable[[], Any]] = None,
        *,
        wait: bool = True,
        timeout: Optional[float] = None,
    ) -> Any:
        """Awaitable variant of `acquire`; `fn` may return an awaitable."""
        deadline = None if timeout is None else self._clock() + timeout
        while True:
            wait_time = self._reserve()
            if wait_time == 0.0:
                break
            if not wait:
                raise RateLimitExceededError(wait_time=wait_time)
            if deadline is not None and self._clock() + wait_time > deadline:
                raise RateLimitExceededError(wait_time=wait_time)
            await asyncio.sleep(wait_time)
        if fn is None:
            return None
        result = fn()
        if inspect.isawaitable(result):
            return await result
        return result

    @property
    def available_tokens(self) -> float:
        with self._lock:
            self._refill()
            return self._tokens

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            self._refill()
            tokens = self._tokens
        time_until_token = 0.0 if tokens >= 1 else (1 - tokens) / self.rate
        return {
            "name": self.name,
            "requests_per_second": self.rate,
            "burst_size": self.capacity,
            "available_tokens": tokens,
            "time_until_token": time_until_token,
        }

    def reset(self) -> None:
        """Refill the bucket to capacity."""
        with self._lock:
            self._tokens = self.capacity
            self._last_refill = self._clock()

    def __repr__(self) -> str:
        return (
            f"<TokenBucketRateLimiter name={self.name!r} "
            f"rps={self.rate} burst={self.capacity}>"
        )


class RateLimiterRegistry:
    """Named, lazily-constructed rate limiters (typically one per provider)."""

    def __init__(
        self,
        *,
        requests_per_second: float = 10.0,
        burst_size: Optional[float] = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = time.sleep,
    ) -> None:
        self._defaults: Dict[str, Any] = {
            "requests_per_second": requests_per_second,
            "burst_size": burst_size,
        }
        self._clock = clock
        self._sleep = sleep
        self._limiters: Dict[str, TokenBucketRateLimiter] = {}
        self._lock = threading.Lock()

    def get(self, name: str, **options: Any) -> TokenBucketRateLimiter:
        with self._lock:
            limiter = self._limiters.get(name)
            if limiter is None:
                kwargs = {**self._defaults, **options}
                kwargs.setdefault("clock", self._clock)
                kwargs.setdefault("sleep", self._sleep)
                limiter = TokenBucketRateLimiter(name=name, **kwargs)
                self._limiters[name] = limiter
            return limiter

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._limiters

    def stats(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            limiters = list(self._limiters.values())
        return {limiter.name: limiter.stats() for limiter in limiters}

    def reset_all(self) -> None:
        with self._lock:
            limiters = list(self._limiters.values())
        for limiter in limiters:
            limiter.reset()

    def clear(self) -> None:
        with self._lock:
            self._limiters.clear()


__all__ = ["TokenBucketRateLimiter", "RateLimiterRegistry"]
