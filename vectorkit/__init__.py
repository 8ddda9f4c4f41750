# vectorkit/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""
vectorkit: a provider-agnostic client for vector databases.

One client API over Pinecone, pgvector and an in-memory store, with a
composable middleware pipeline (retry, circuit breaking, rate limiting,
caching, redaction, cost tracking, request IDs, logging), concurrent
batch operations and streamed query pagination.

    from vectorkit import Client, Runtime, VectorKitConfig, RetryMiddleware

    runtime = Runtime(VectorKitConfig(provider="memory"))
    runtime.use(RetryMiddleware, max_attempts=3)
    client = runtime.client()
"""

from vectorkit.errors import (
    VectorKitError,
    ConfigurationError,
    UnsupportedProviderError,
    ProviderError,
    ValidationError,
    AuthenticationError,
    NotFoundError,
    RateLimitError,
    BackendConnectionError,
    BackendTimeoutError,
    ServerError,
    LocalError,
    CircuitOpenError,
    PoolTimeoutError,
    PoolShutdownError,
    RateLimitExceededError,
    RETRYABLE_ERRORS,
    is_retryable,
)
from vectorkit.types import Vector, Match, QueryResult
from vectorkit.config import VectorKitConfig, SUPPORTED_PROVIDERS
from vectorkit.observability import (
    OperationEvent,
    Instrumentation,
    MetricsSink,
    NoopMetrics,
    MetricsEventHandler,
)
from vectorkit.middleware import (
    Operation,
    Request,
    Response,
    Middleware,
    CallbackMiddleware,
    Pipeline,
    RetryMiddleware,
    LoggingMiddleware,
    CircuitBreakerMiddleware,
    RateLimitMiddleware,
    RedactionMiddleware,
    CostTrackingMiddleware,
    CostEvent,
    RequestIdMiddleware,
    CacheMiddleware,
    DryRunMiddleware,
)
from vectorkit.resilience import (
    CircuitState,
    CircuitBreaker,
    CircuitBreakerRegistry,
    TokenBucketRateLimiter,
    RateLimiterRegistry,
    Cache,
    ConnectionPool,
)
from vectorkit.providers import ProviderAdapter, MemoryProvider
from vectorkit.runtime import Runtime
from vectorkit.client import Client, build_provider
from vectorkit.batch import BatchProcessor, BatchResult, BatchProgress, ChunkError
from vectorkit.streaming import Streamer

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # errors
    "VectorKitError",
    "ConfigurationError",
    "UnsupportedProviderError",
    "ProviderError",
    "ValidationError",
    "AuthenticationError",
    "NotFoundError",
    "RateLimitError",
    "BackendConnectionError",
    "BackendTimeoutError",
    "ServerError",
    "LocalError",
    "CircuitOpenError",
    "PoolTimeoutError",
    "PoolShutdownError",
    "RateLimitExceededError",
    "RETRYABLE_ERRORS",
    "is_retryable",
    # data
    "Vector",
    "Match",
    "QueryResult",
    # config and runtime
    "VectorKitConfig",
    "SUPPORTED_PROVIDERS",
    "Runtime",
    "Client",
    "build_provider",
    # observability
    "OperationEvent",
    "Instrumentation",
    "MetricsSink",
    "NoopMetrics",
    "MetricsEventHandler",
    # middleware
    "Operation",
    "Request",
    "Response",
    "Middleware",
    "CallbackMiddleware",
    "Pipeline",
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
    # resilience
    "CircuitState",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "TokenBucketRateLimiter",
    "RateLimiterRegistry",
    "Cache",
    "ConnectionPool",
    # providers
    "ProviderAdapter",
    "MemoryProvider",
    # bulk
    "BatchProcessor",
    "BatchResult",
    "BatchProgress",
    "ChunkError",
    "Streamer",
]
