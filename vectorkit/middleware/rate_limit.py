# vectorkit/middleware/rate_limit.py
# SPDX-License-Identifier: Apache-2.0
"""
Rate limiting middleware backed by the runtime's `RateLimiterRegistry`.

By default callers block until a token accrues. With `wait=False` or a
`timeout`, a refused admission short-circuits the chain with a
`RateLimitExceededError` Response; the provider is never called.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from vectorkit.errors import RateLimitExceededError
from vectorkit.middleware.base import Middleware, NextCall
from vectorkit.middleware.envelope import Request, Response
from vectorkit.resilience.rate_limiter import RateLimiterRegistry, TokenBucketRateLimiter

if TYPE_CHECKING:
    from vectorkit.runtime import Runtime


class RateLimitMiddleware(Middleware):
    name = "rate_limit"

    def __init__(
        self,
        *,
        requests_per_second: Optional[float] = None,
        burst_size: Optional[float] = None,
        limiter: Optional[str] = None,
        wait: bool = True,
        timeout: Optional[float] = None,
        registry: Optional[RateLimiterRegistry] = None,
    ) -> None:
        self.limiter_name = limiter
        self.wait = wait
        self.timeout = timeout
        self._registry = registry
        self._options: dict = {}
        if requests_per_second is not None:
            self._options["requests_per_second"] = requests_per_second
        if burst_size is not None:
            self._options["burst_size"] = burst_size

    def bind(self, runtime: "Runtime") -> None:
        if self._registry is None:
            self._registry = runtime.limiters

    @property
    def registry(self) -> RateLimiterRegistry:
        if self._registry is None:
            self._registry = RateLimiterRegistry()
        return self._registry

    def limiter_for(self, request: Request) -> TokenBucketRateLimiter:
        name = self.limiter_name or request.provider or "default"
        return self.registry.get(name, **self._options)

    def call(self, request: Request, call_next: NextCall) -> Response:
        limiter = self.limiter_for(request)
        try:
            limiter.acquire(wait=self.wait, timeout=self.timeout)
        except RateLimitExceededError as exc:
            return Response(error=exc)
        return call_next(request)


__all__ = ["RateLimitMiddleware"]
