# vectorkit/middleware/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""
Middleware pipeline and the built-in middleware variants.
"""

from vectorkit.middleware.envelope import (
    Operation,
    CACHEABLE_OPERATIONS,
    Request,
    Response,
)
from vectorkit.middleware.base import (
    Middleware,
    CallbackMiddleware,
    NextCall,
)
from vectorkit.middleware.pipeline import (
    Pipeline,
    MiddlewareSpec,
    resolve_middleware,
)
from vectorkit.middleware.retry import RetryMiddleware
from vectorkit.middleware.logging_middleware import LoggingMiddleware
from vectorkit.middleware.circuit_break import CircuitBreakerMiddleware
from vectorkit.middleware.rate_limit import RateLimitMiddleware
from vectorkit.middleware.redaction import RedactionMiddleware
from vectorkit.middleware.cost import CostTrackingMiddleware, CostEvent
from vectorkit.middleware.request_id import RequestIdMiddleware
from vectorkit.middleware.cache import CacheMiddleware
from vectorkit.middleware.dry_run import DryRunMiddleware

__all__ = [
    "Operation",
    "CACHEABLE_OPERATIONS",
    "Request",
    "Response",
    "Middleware",
    "CallbackMiddleware",
    "NextCall",
    "Pipeline",
    "MiddlewareSpec",
    "resolve_middleware",
    "RetryMiddleware",
    "LoggingMiddleware",
    "CircuitBreakerMiddleware",
    "RateLimitMiddleware",
    "RedactionMiddleware",
    "CostTrackingMiddleware",
    "CostEvent",
    "RequestIdMiddleware",
    "CacheMiddleware",
    "DryRunMiddleware",
]
