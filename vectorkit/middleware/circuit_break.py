# vectorkit/middleware/circuit_break.py
# SPDX-License-Identifier: Apache-2.0
"""
Circuit breaker middleware.

Breakers are looked up by name (default: the request's provider) in the
runtime's `CircuitBreakerRegistry`, so every client talking to the same
provider shares state. While the circuit is open the chain below is not
invoked: the optional fallback supplies a result, otherwise the Response
carries a `CircuitOpenError`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Optional

from vectorkit.middleware.base import Middleware, NextCall
from vectorkit.middleware.envelope import Request, Response
from vectorkit.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerRegistry

if TYPE_CHECKING:
    from vectorkit.runtime import Runtime

logger = logging.getLogger(__name__)


class CircuitBreakerMiddleware(Middleware):
    name = "circuit_breaker"

    def __init__(
        self,
        *,
        circuit: Optional[str] = None,
        fallback: Optional[Callable[[Request], Any]] = None,
        registry: Optional[CircuitBreakerRegistry] = None,
        **breaker_options: Any,
    ) -> None:
        self.circuit = circuit
        self.fallback = fallback
        self._registry = registry
        self._options = breaker_options

    def bind(self, runtime: "Runtime") -> None:
        if self._registry is None:
            self._registry = runtime.breakers

    @property
    def registry(self) -> CircuitBreakerRegistry:
        if self._registry is None:
            self._registry = CircuitBreakerRegistry()
        return self._registry

    def breaker_for(self, request: Request) -> CircuitBreaker:
        name = self.circuit or request.provider or "default"
        return self.registry.get(name, **self._options)

    def call(self, request: Request, call_next: NextCall) -> Response:
        breaker = self.breaker_for(request)
        if not breaker.allow():
            if self.fallback is not None:
                logger.info("circuit %s open, serving fallback for %s", breaker.name, request.operation.value)
                return Response(
                    result=self.fallback(request),
                    metadata={"circuit_state": breaker.state.value, "fallback": True},
                )
            return Response(
                error=breaker.open_error(),
                metadata={"circuit_state": breaker.state.value},
            )

        try:
            response = call_next(request)
        except Exception as exc:
            if breaker.is_monitored(exc):
                breaker.record_failure(exc)
            raise

        if response.error is None:
            breaker.record_success()
        elif breaker.is_monitored(response.error):
            breaker.record_failure(response.error)
        response.metadata["circuit_state"] = breaker.state.value
        return response


__all__ = ["CircuitBreakerMiddleware"]
