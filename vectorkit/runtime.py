# vectorkit/runtime.py
# SPDX-License-Identifier: Apache-2.0
"""
Application-scoped state shared by clients.

A `Runtime` owns the configuration, the global middleware list, the
circuit breaker and rate limiter registries, the shared read cache and the
instrumentation hub. Create one at application startup and build clients
from it; nothing in vectorkit is module-global.

    runtime = Runtime(VectorKitConfig.from_env())
    runtime.use(RetryMiddleware, max_attempts=3)
    runtime.use(CircuitBreakerMiddleware(failure_threshold=5))

    client = runtime.client()
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Sequence, Union

from vectorkit.config import VectorKitConfig
from vectorkit.middleware.base import Middleware
from vectorkit.middleware.pipeline import MiddlewareSpec
from vectorkit.observability import EventHandler, Instrumentation, OperationEvent
from vectorkit.providers.base import ProviderAdapter
from vectorkit.resilience.cache import Cache
from vectorkit.resilience.circuit_breaker import CircuitBreakerRegistry
from vectorkit.resilience.rate_limiter import RateLimiterRegistry

if TYPE_CHECKING:
    from vectorkit.client import Client

logger = logging.getLogger(__name__)
events_logger = logging.getLogger("vectorkit.events")


def _log_event(event: OperationEvent) -> None:
    events_logger.info(
        "op=%s provider=%s index=%s ok=%s duration_ms=%.2f error=%s",
        event.operation,
        event.provider,
        event.index,
        event.success,
        event.duration_ms,
        event.error_class,
    )


class Runtime:
    def __init__(
        self,
        config: Optional[VectorKitConfig] = None,
        *,
        middleware: Sequence[MiddlewareSpec] = (),
        breakers: Optional[CircuitBreakerRegistry] = None,
        limiters: Optional[RateLimiterRegistry] = None,
        cache: Optional[Cache] = None,
        instrumentation: Optional[Instrumentation] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or VectorKitConfig()
        self.middleware: List[MiddlewareSpec] = list(middleware)
        self.breakers = breakers or CircuitBreakerRegistry(clock=clock)
        self.limiters = limiters or RateLimiterRegistry(clock=clock)
        self.cache = cache or Cache(
            ttl=self.config.cache_ttl,
            max_size=self.config.cache_max_size,
            clock=clock,
        )
        self.instrumentation = instrumentation or Instrumentation()
        if self.config.instrumentation:
            self.instrumentation.on_operation(_log_event)

    def use(self, entry: Union[MiddlewareSpec, type], **kwargs: Any) -> None:
        """
        Register global middleware, applied outermost on clients created afterwards.

        `runtime.use(RetryMiddleware, max_attempts=5)` is shorthand for
        `runtime.use((RetryMiddleware, {"max_attempts": 5}))`.
        """
        if kwargs:
            if not (isinstance(entry, type) and issubclass(entry, Middleware)):
                raise TypeError("keyword options require a Middleware class")
            entry = (entry, kwargs)
        self.middleware.append(entry)

    def clear_middleware(self) -> None:
        self.middleware = []

    def on_operation(self, handler: EventHandler) -> EventHandler:
        return self.instrumentation.on_operation(handler)

    def client(
        self,
        provider: Union[str, ProviderAdapter, None] = None,
        *,
        middleware: Sequence[MiddlewareSpec] = (),
        **config_overrides: Any,
    ) -> "Client":
        from vectorkit.client import Client

        config = self.config.replace(**config_overrides) if config_overrides else self.config
        return Client(provider, config=config, runtime=self, middleware=middleware)

    def stats(self) -> dict:
        return {
            "breakers": self.breakers.stats(),
            "limiters": self.limiters.stats(),
            "cache": self.cache.stats(),
        }


__all__ = ["Runtime"]
