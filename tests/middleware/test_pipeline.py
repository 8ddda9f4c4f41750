# SPDX-License-Identifier: Apache-2.0
"""
Middleware — Pipeline ordering, error propagation and instrumentation.
"""

import pytest

from vectorkit.core.error_context import get_context
from vectorkit.errors import ConfigurationError, NotFoundError, ServerError, ValidationError
from vectorkit.middleware import (
    CallbackMiddleware,
    Middleware,
    Operation,
    Pipeline,
    Request,
    Response,
    RetryMiddleware,
    resolve_middleware,
)
from vectorkit.observability import Instrumentation
from vectorkit.types import Vector


def _recorder(name, trace):
    return CallbackMiddleware(
        before=lambda req: trace.append(f"before:{name}"),
        after=lambda req, resp: trace.append(f"after:{name}"),
    )


class Tagging(Middleware):
    name = "tagging"

    def __init__(self, tag="default"):
        self.tag = tag
        self.bound_to = None

    def bind(self, runtime):
        self.bound_to = runtime

    def after(self, request, response):
        response.metadata.setdefault("tags", []).append(self.tag)


def test_before_in_order_after_in_reverse(memory):
    """Verify before hooks run outermost-first and after hooks unwind in reverse."""
    trace = []
    pipeline = Pipeline(
        memory,
        middleware=[_recorder("a", trace), _recorder("b", trace), _recorder("c", trace)],
    )
    pipeline.call("list_indexes")
    assert trace == [
        "before:a",
        "before:b",
        "before:c",
        "after:c",
        "after:b",
        "after:a",
    ]


def test_per_call_middleware_runs_innermost(memory):
    """Verify per-call middleware is appended after the configured chain."""
    trace = []
    pipeline = Pipeline(memory, middleware=[_recorder("global", trace)])
    pipeline.call(Operation.LIST_INDEXES, middleware=[_recorder("call", trace)])
    assert trace[:2] == ["before:global", "before:call"]


def test_after_hooks_see_failed_responses(memory):
    """Verify every after hook observes inner failures."""
    seen = []
    pipeline = Pipeline(
        memory,
        middleware=[CallbackMiddleware(after=lambda req, resp: seen.append(type(resp.error)))],
    )
    with pytest.raises(NotFoundError):
        pipeline.call("describe_index", index="missing")
    assert seen == [NotFoundError]


def test_on_error_may_substitute_a_response(memory):
    """Verify a middleware can replace an error with a fallback Response."""
    pipeline = Pipeline(
        memory,
        middleware=[
            CallbackMiddleware(on_error=lambda req, err: Response(result={"fallback": True}))
        ],
    )
    assert pipeline.call("describe_index", index="missing") == {"fallback": True}


def test_errors_carry_pipeline_context(memory):
    """Verify errors leaving the pipeline carry operation, provider and index context."""
    pipeline = Pipeline(memory)
    with pytest.raises(NotFoundError) as exc_info:
        pipeline.call("stats", index="missing", namespace="ns", metadata={"request_id": "r-1"})
    ctx = get_context(exc_info.value)
    assert ctx["origin"] == "pipeline"
    assert ctx["operation"] == "stats"
    assert ctx["provider"] == "memory"
    assert ctx["index"] == "missing"
    assert ctx["namespace"] == "ns"
    assert ctx["request_id"] == "r-1"


def test_unsupported_operation_is_a_validation_error():
    """Verify a provider without the operation yields ValidationError."""
    class Minimal:
        name = "minimal"

    with pytest.raises(ValidationError):
        Pipeline(Minimal()).call("stats", index="docs")


def test_chain_returning_non_response_is_reported(memory):
    """Verify a broken middleware cannot make the pipeline return garbage."""
    class Broken(Middleware):
        def call(self, request, call_next):
            return "not a response"

    with pytest.raises(ConfigurationError):
        Pipeline(memory, middleware=[Broken()]).call("list_indexes")


def test_exactly_one_event_per_call_even_with_retries(flaky):
    """Verify instrumentation receives one event per top-level call."""
    events = []
    instrumentation = Instrumentation()
    instrumentation.on_operation(events.append)
    flaky.failures["upsert"] = 2
    pipeline = Pipeline(
        flaky,
        middleware=[RetryMiddleware(max_attempts=3, sleep=lambda s: None)],
        instrumentation=instrumentation,
    )
    pipeline.call("upsert", index="docs", vectors=[Vector(id="a", values=[1.0, 0.0])])

    assert flaky.calls["upsert"] == 3
    assert len(events) == 1
    event = events[0]
    assert event.operation == "upsert"
    assert event.provider == "flaky"
    assert event.index == "docs"
    assert event.success
    assert event.metadata["retry_count"] == 2
    assert "duration_ms" in event.metadata


def test_failed_call_emits_event_with_error_class(flaky):
    """Verify failure events name the error class."""
    events = []
    instrumentation = Instrumentation()
    instrumentation.on_operation(events.append)
    flaky.failures["query"] = 1
    with pytest.raises(ServerError):
        Pipeline(flaky, instrumentation=instrumentation).call(
            "query", index="docs", vector=[1.0, 0.0], top_k=1
        )
    assert len(events) == 1
    assert events[0].success is False
    assert events[0].error_class == "ServerError"


def test_execute_returns_response_without_raising(memory):
    """Verify execute exposes the raw Response envelope."""
    pipeline = Pipeline(memory)
    response = pipeline.execute(Request(operation="describe_index", params={"index": "missing"}))
    assert response.failure
    assert isinstance(response.error, NotFoundError)
    with pytest.raises(NotFoundError):
        response.value()


def test_middleware_entry_forms(runtime):
    """Verify instance, class and (class, kwargs) entries resolve and bind."""
    instance = Tagging("inst")
    assert resolve_middleware(instance, runtime) is instance
    assert instance.bound_to is runtime

    from_class = resolve_middleware(Tagging, runtime)
    assert isinstance(from_class, Tagging)
    assert from_class.tag == "default"

    from_pair = resolve_middleware((Tagging, {"tag": "pair"}), runtime)
    assert from_pair.tag == "pair"
    assert from_pair.bound_to is runtime


@pytest.mark.parametrize("entry", ["retry", 42, (Tagging,), (dict, {})])
def test_invalid_middleware_entry_rejected(entry):
    """Verify malformed registrations raise ConfigurationError."""
    with pytest.raises(ConfigurationError):
        resolve_middleware(entry)


def test_use_appends_to_chain(memory):
    """Verify Pipeline.use extends the chain for later calls."""
    pipeline = Pipeline(memory)
    pipeline.use((Tagging, {"tag": "late"}))
    response = pipeline.execute(Request(operation="list_indexes"))
    assert response.metadata["tags"] == ["late"]
