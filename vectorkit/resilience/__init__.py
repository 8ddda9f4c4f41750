# vectorkit/resilience/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""
Resilience primitives: circuit breaker, token-bucket rate limiter,
TTL/LRU cache and bounded connection pool.
"""

from vectorkit.resilience.circuit_breaker import (
    CircuitState,
    CircuitBreaker,
    CircuitBreakerRegistry,
)
from vectorkit.resilience.rate_limiter import (
    TokenBucketRateLimiter,
    RateLimiterRegistry,
)
from vectorkit.resilience.cache import (
    Cache,
    cache_key,
    cache_prefix,
)
from vectorkit.resilience.pool import (
    PooledConnection,
    ConnectionPool,
)

__all__ = [
    "CircuitState",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "TokenBucketRateLimiter",
    "RateLimiterRegistry",
    "Cache",
    "cache_key",
    "cache_prefix",
    "PooledConnection",
    "ConnectionPool",
]
