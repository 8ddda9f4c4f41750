# vectorkit/middleware/retry.py
# SPDX-License-Identifier: Apache-2.0
"""
Retry middleware for transient provider failures.

Only `RateLimitError`, `BackendConnectionError`, `BackendTimeoutError` and
`ServerError` are retried. Backoff is one of:

- "exponential": base * 2 ** (attempt - 1)   (0.2s, 0.4s, 0.8s, ...)
- "linear":      attempt * step              (0.5s, 1.0s, 1.5s, ...)
- a number:      fixed delay in seconds

`retry_count` is always written to the Response metadata.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Union

from vectorkit.errors import ConfigurationError, is_retryable
from vectorkit.middleware.base import Middleware, NextCall
from vectorkit.middleware.envelope import Request, Response

logger = logging.getLogger(__name__)

Backoff = Union[str, float, int]


class RetryMiddleware(Middleware):
    name = "retry"

    def __init__(
        self,
        *,
        max_attempts: int = 3,
        backoff: Backoff = "exponential",
        base: float = 0.2,
        step: float = 0.5,
        max_delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")
        if isinstance(backoff, str) and backoff not in ("exponential", "linear"):
            raise ConfigurationError(f"unknown backoff strategy: {backoff!r}")
        self.max_attempts = int(max_attempts)
        self.backoff = backoff
        self.base = float(base)
        self.step = float(step)
        self.max_delay = max_delay
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number `attempt` (1-based)."""
        if self.backoff == "exponential":
            delay = self.base * 2 ** (attempt - 1)
        elif self.backoff == "linear":
            delay = attempt * self.step
        else:
            delay = float(self.backoff)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay

    def call(self, request: Request, call_next: NextCall) -> Response:
        attempt = 0
        while True:
            attempt += 1
            try:
                response = call_next(request)
            except Exception as exc:
                response = Response(error=exc)

            error = response.error
            if error is None or not is_retryable(error) or attempt >= self.max_attempts:
                response.metadata["retry_count"] = attempt - 1
                if error is not None and attempt > 1 and is_retryable(error):
                    logger.warning(
                        "%s gave up after %d attempts: %s",
                        request.operation.value,
                        attempt,
                        type(error).__name__,
                    )
                return response

            delay = self.delay_for(attempt)
            logger.warning(
                "%s attempt %d/%d failed with %s, retrying in %.2fs",
                request.operation.value,
                attempt,
                self.max_attempts,
                type(error).__name__,
                delay,
            )
            self._sleep(delay)


__all__ = ["RetryMiddleware"]
