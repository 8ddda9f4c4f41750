# vectorkit/middleware/pipeline.py
# SPDX-License-Identifier: Apache-2.0
"""
Middleware pipeline.

`Pipeline.call(operation, **params)` builds a `Request`, folds the
middleware list around a terminal step that invokes the provider adapter,
and returns the result or raises the error of the final `Response`.

Ordering:

- global middleware run outermost, then client middleware, then any
  per-call middleware;
- `before` hooks run in list order on the way in;
- `after` hooks run in reverse order on the way out and always see the
  Response, including failed ones.

The pipeline itself never retries; retry is a middleware. Exactly one
`OperationEvent` is emitted per `call`/`execute`, after the chain unwinds.
"""

from __future__ import annotations

import functools
import logging
import time
from typing import TYPE_CHECKING, Any, Iterable, List, Optional, Sequence, Tuple, Type, Union

from vectorkit.core.error_context import attach_context
from vectorkit.errors import ConfigurationError, ValidationError
from vectorkit.middleware.base import Middleware, NextCall
from vectorkit.middleware.envelope import Operation, Request, Response
from vectorkit.observability import Instrumentation, OperationEvent

if TYPE_CHECKING:
    from vectorkit.runtime import Runtime

logger = logging.getLogger(__name__)

MiddlewareSpec = Union[Middleware, Type[Middleware], Tuple[Type[Middleware], dict]]


def resolve_middleware(entry: MiddlewareSpec, runtime: Optional["Runtime"] = None) -> Middleware:
    """
    Turn a registration entry into a bound middleware instance.

    Accepted forms: an instance, a `Middleware` subclass (constructed with no
    arguments), or a `(subclass, kwargs)` pair.
    """
    if isinstance(entry, Middleware):
        instance = entry
    elif isinstance(entry, type) and issubclass(entry, Middleware):
        instance = entry()
    elif (
        isinstance(entry, tuple)
        and len(entry) == 2
        and isinstance(entry[0], type)
        and issubclass(entry[0], Middleware)
    ):
        cls, kwargs = entry
        instance = cls(**dict(kwargs or {}))
    else:
        raise ConfigurationError(f"invalid middleware entry: {entry!r}")
    if runtime is not None:
        instance.bind(runtime)
    return instance


def resolve_all(entries: Iterable[MiddlewareSpec], runtime: Optional["Runtime"] = None) -> List[Middleware]:
    return [resolve_middleware(e, runtime) for e in entries]


class Pipeline:
    """
    Example:
        pipeline = Pipeline(MemoryProvider(), provider_name="memory",
                            middleware=[RetryMiddleware(max_attempts=3)])
        result = pipeline.call("query", index="docs", vector=[0.1, 0.2], top_k=5)
    """

    def __init__(
        self,
        provider: Any,
        *,
        provider_name: Optional[str] = None,
        middleware: Sequence[MiddlewareSpec] = (),
        runtime: Optional["Runtime"] = None,
        instrumentation: Optional[Instrumentation] = None,
    ) -> None:
        self.provider = provider
        self.provider_name = provider_name or getattr(provider, "name", None)
        self.runtime = runtime
        self.middleware: List[Middleware] = resolve_all(middleware, runtime)
        if instrumentation is None and runtime is not None:
            instrumentation = runtime.instrumentation
        self.instrumentation = instrumentation

    def use(self, entry: MiddlewareSpec) -> Middleware:
        """Append a middleware to this pipeline's chain."""
        instance = resolve_middleware(entry, self.runtime)
        self.middleware.append(instance)
        return instance

    # ------------------------------------------------------------------ #
    # Dispatch
    # ------------------------------------------------------------------ #

    def call(
        self,
        operation: Union[Operation, str],
        *,
        middleware: Sequence[MiddlewareSpec] = (),
        metadata: Optional[dict] = None,
        **params: Any,
    ) -> Any:
        """Run `operation` through the chain; return its result or raise its error."""
        request = Request(
            operation=operation,
            params=params,
            provider=self.provider_name,
            metadata=dict(metadata or {}),
        )
        response = self.execute(request, middleware=middleware)
        if response.error is not None:
            error = response.error
            attach_context(
                error,
                origin="pipeline",
                operation=request.operation.value,
                provider=request.provider,
                index=request.index,
                namespace=request.namespace,
                request_id=response.metadata.get("request_id") or request.metadata.get("request_id"),
            )
            raise error
        return response.result

    def execute(self, request: Request, *, middleware: Sequence[MiddlewareSpec] = ()) -> Response:
        """Run a prepared request through the chain and return the final Response."""
        chain = self.middleware + resolve_all(middleware, self.runtime)
        handler: NextCall = self._terminal
        for mw in reversed(chain):
            handler = functools.partial(mw.call, call_next=handler)

        t0 = time.monotonic()
        try:
            response = handler(request)
        except Exception as exc:
            response = Response(error=exc)
        if not isinstance(response, Response):
            response = Response(
                error=ConfigurationError(
                    f"middleware chain returned {type(response).__name__}, expected Response"
                )
            )
        duration_ms = (time.monotonic() - t0) * 1000.0
        response.metadata.setdefault("duration_ms", round(duration_ms, 3))
        if "request_id" in request.metadata:
            response.metadata.setdefault("request_id", request.metadata["request_id"])

        self._emit(request, response, duration_ms)
        return response

    def _terminal(self, request: Request) -> Response:
        method = getattr(self.provider, request.operation.value, None)
        if method is None:
            return Response(
                error=ValidationError(
                    f"provider {self.provider_name!r} does not support {request.operation.value}"
                )
            )
        try:
            result = method(**request.to_provider_kwargs())
        except Exception as exc:
            logger.debug(
                "provider %s raised %s during %s",
                self.provider_name,
                type(exc).__name__,
                request.operation.value,
            )
            return Response(error=exc)
        return Response(result=result)

    def _emit(self, request: Request, response: Response, duration_ms: float) -> None:
        if self.instrumentation is None:
            return
        self.instrumentation.emit(
            OperationEvent(
                operation=request.operation.value,
                provider=request.provider,
                index=request.index,
                namespace=request.namespace,
                duration_ms=duration_ms,
                success=response.success,
                error_class=type(response.error).__name__ if response.error is not None else None,
                metadata=dict(response.metadata),
            )
        )


__all__ = ["Pipeline", "MiddlewareSpec", "resolve_middleware", "resolve_all"]
