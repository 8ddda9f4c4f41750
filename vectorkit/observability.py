# vectorkit/observability.py
# SPDX-License-Identifier: Apache-2.0
"""
Operation events and metrics hooks.

The pipeline emits exactly one `OperationEvent` per top-level call through
an `Instrumentation` hub. Handlers are plain callables; a handler that raises
is logged and skipped so observability can never break an operation.

`MetricsSink` is the low-cardinality metrics interface (`observe` for
timings, `counter` for counts). `MetricsEventHandler` adapts a sink into an
event handler.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationEvent:
    """
    Summary of one pipeline call.

    Attributes:
        operation: Operation name ("query", "upsert", ...)
        provider: Provider identifier
        index: Target index, when the operation has one
        namespace: Target namespace, when given
        duration_ms: Wall-clock time spent in the pipeline
        success: Whether the call produced a result
        error_class: Exception class name on failure
        metadata: Response metadata (retry_count, cache_hit, cost_usd, ...)
    """
    operation: str
    provider: Optional[str]
    index: Optional[str]
    namespace: Optional[str]
    duration_ms: float
    success: bool
    error_class: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def asdict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "provider": self.provider,
            "index": self.index,
            "namespace": self.namespace,
            "duration_ms": self.duration_ms,
            "success": self.success,
            "error_class": self.error_class,
            "metadata": dict(self.metadata),
        }


EventHandler = Callable[[OperationEvent], None]


class Instrumentation:
    """Thread-safe registry of operation event handlers."""

    def __init__(self, *, enabled: bool = True) -> None:
        self.enabled = enabled
        self._handlers: List[EventHandler] = []
        self._lock = threading.Lock()

    def on_operation(self, handler: EventHandler) -> EventHandler:
        """Register a handler. Usable as a decorator."""
        with self._lock:
            self._handlers.append(handler)
        return handler

    def remove(self, handler: EventHandler) -> None:
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    def clear(self) -> None:
        with self._lock:
            self._handlers = []

    def emit(self, event: OperationEvent) -> None:
        if not self.enabled:
            return
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler(event)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "instrumentation handler %r failed for %s: %s",
                    handler,
                    event.operation,
                    exc,
                )


class MetricsSink(Protocol):
    """
    Protocol for metrics collection implementations.

    Metrics must be low-cardinality: never put vector ids, raw filters or
    tenant identifiers in `extra`.
    """
    def observe(
        self,
        *,
        component: str,
        op: str,
        ms: float,
        ok: bool,
        code: str = "OK",
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None: ...

    def counter(
        self,
        *,
        component: str,
        name: str,
        value: int = 1,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None: ...


class NoopMetrics:
    """No-operation metrics sink for testing or when metrics are disabled."""
    def observe(self, **_: Any) -> None: ...
    def counter(self, **_: Any) -> None: ...


class MetricsEventHandler:
    """Forward operation events to a `MetricsSink`."""

    def __init__(self, sink: MetricsSink, *, component: str = "vectorkit") -> None:
        self._sink = sink
        self._component = component

    def __call__(self, event: OperationEvent) -> None:
        extra: Dict[str, Any] = {"provider": event.provider}
        if event.metadata.get("retry_count"):
            extra["retries"] = event.metadata["retry_count"]
        self._sink.observe(
            component=self._component,
            op=event.operation,
            ms=event.duration_ms,
            ok=event.success,
            code="OK" if event.success else (event.error_class or "ERROR"),
            extra=extra,
        )
        if event.metadata.get("cache_hit"):
            self._sink.counter(
                component=self._component,
                name="cache_hits",
                extra={"op": event.operation},
            )


__all__ = [
    "OperationEvent",
    "EventHandler",
    "Instrumentation",
    "MetricsSink",
    "NoopMetrics",
    "MetricsEventHandler",
]
