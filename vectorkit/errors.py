# vectorkit/errors.py
# SPDX-License-Identifier: Apache-2.0
"""
Normalized error taxonomy for vectorkit.

Two families share the `VectorKitError` base:

- `ProviderError` subclasses are raised by provider adapters when the
  backend rejects or fails a call. Four of them (`RateLimitError`,
  `BackendConnectionError`, `BackendTimeoutError`, `ServerError`) are
  transient: the retry middleware retries them and circuit breakers count
  them as failures.

- `LocalError` subclasses are synthesized inside the client (open circuit,
  exhausted pool, rate limiter refusal) and never reach a backend. Callers
  can catch `LocalError` to apply capacity remediation instead of backoff.

The Python builtins `ConnectionError` and `TimeoutError` are deliberately not
shadowed; the backend variants carry a `Backend` prefix.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple, Type


class VectorKitError(Exception):
    """
    Base exception for all vectorkit errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (UPPER_SNAKE_CASE)
        retry_after_ms: Suggested delay before retry (None if not retryable)
        details: Additional JSON-serializable context
    """

    default_code = "ERROR"
    retryable = False

    def __init__(
        self,
        message: str = "",
        *,
        code: Optional[str] = None,
        retry_after_ms: Optional[int] = None,
        details: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.retry_after_ms = retry_after_ms
        self.details = dict(details or {})

    def asdict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization and logging."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "code": self.code,
            "retry_after_ms": self.retry_after_ms,
            "details": {k: self.details[k] for k in sorted(self.details)},
        }


class ConfigurationError(VectorKitError):
    """Configuration is missing or invalid."""
    default_code = "BAD_CONFIG"


class UnsupportedProviderError(ConfigurationError):
    """The configured provider name is not known."""
    default_code = "UNSUPPORTED_PROVIDER"


# =============================================================================
# Provider-raised errors
# =============================================================================

class ProviderError(VectorKitError):
    """Error raised by a provider adapter on behalf of the backend."""


class ValidationError(ProviderError):
    """Invalid input (malformed vectors, bad parameters). Never retried."""
    default_code = "BAD_REQUEST"

    def __init__(self, message: str = "", *, errors: Optional[list] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.errors = list(errors or [])


class AuthenticationError(ProviderError):
    """Authentication or authorization failed. Never retried."""
    default_code = "AUTH_ERROR"


class NotFoundError(ProviderError):
    """Index, namespace or vector does not exist. Never retried."""
    default_code = "NOT_FOUND"


class RateLimitError(ProviderError):
    """Backend quota or rate limit exceeded."""
    default_code = "RATE_LIMITED"
    retryable = True


class BackendConnectionError(ProviderError):
    """Backend could not be reached."""
    default_code = "CONNECTION_ERROR"
    retryable = True


class BackendTimeoutError(ProviderError):
    """Backend did not answer in time."""
    default_code = "TIMEOUT"
    retryable = True


class ServerError(ProviderError):
    """Backend answered with a server-side failure."""
    default_code = "SERVER_ERROR"
    retryable = True

    def __init__(self, message: str = "", *, status_code: Optional[int] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.status_code = status_code


# =============================================================================
# Locally synthesized errors
# =============================================================================

class LocalError(VectorKitError):
    """Error synthesized by vectorkit itself; the backend was never called."""


class CircuitOpenError(LocalError):
    """Circuit breaker is open; the call was short-circuited."""
    default_code = "CIRCUIT_OPEN"

    def __init__(
        self,
        *,
        circuit_name: str,
        failures: int = 0,
        opened_at: Optional[float] = None,
        retry_after_ms: Optional[int] = None,
    ):
        super().__init__(
            f"circuit '{circuit_name}' is open",
            retry_after_ms=retry_after_ms,
            details={"circuit": circuit_name, "failures": failures},
        )
        self.circuit_name = circuit_name
        self.failures = failures
        self.opened_at = opened_at


class PoolTimeoutError(LocalError):
    """No pooled connection became available before the checkout timeout."""
    default_code = "POOL_TIMEOUT"


class PoolShutdownError(LocalError):
    """The connection pool has been shut down."""
    default_code = "POOL_SHUTDOWN"


class RateLimitExceededError(LocalError):
    """Local token bucket refused admission (non-waiting acquire or timeout)."""
    default_code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, *, wait_time: float):
        super().__init__(
            f"rate limit exceeded, retry after {wait_time:.2f}s",
            retry_after_ms=int(wait_time * 1000),
        )
        self.wait_time = wait_time


RETRYABLE_ERRORS: Tuple[Type[VectorKitError], ...] = (
    RateLimitError,
    BackendConnectionError,
    BackendTimeoutError,
    ServerError,
)


def is_retryable(err: BaseException) -> bool:
    """True for the transient provider errors retried by the retry middleware."""
    return isinstance(err, RETRYABLE_ERRORS)


__all__ = [
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
]
