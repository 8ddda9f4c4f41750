# SPDX-License-Identifier: Apache-2.0
"""
Core — Error taxonomy, retryability and error context.
"""

import pytest

from vectorkit.core.error_context import attach_context, clear_context, get_context, has_context
from vectorkit.errors import (
    RETRYABLE_ERRORS,
    AuthenticationError,
    BackendConnectionError,
    BackendTimeoutError,
    CircuitOpenError,
    ConfigurationError,
    LocalError,
    NotFoundError,
    PoolShutdownError,
    PoolTimeoutError,
    ProviderError,
    RateLimitError,
    RateLimitExceededError,
    ServerError,
    UnsupportedProviderError,
    ValidationError,
    VectorKitError,
    is_retryable,
)


@pytest.mark.parametrize(
    "cls",
    [RateLimitError, BackendConnectionError, BackendTimeoutError, ServerError],
)
def test_transient_provider_errors_are_retryable(cls):
    """Verify the four transient provider errors are retryable."""
    err = cls("boom")
    assert is_retryable(err)
    assert cls.retryable is True
    assert isinstance(err, ProviderError)
    assert cls in RETRYABLE_ERRORS


@pytest.mark.parametrize(
    "err",
    [
        ValidationError("bad"),
        AuthenticationError("denied"),
        NotFoundError("missing"),
        ConfigurationError("config"),
        CircuitOpenError(circuit_name="c"),
        PoolTimeoutError("slow"),
        RateLimitExceededError(wait_time=0.5),
    ],
)
def test_other_errors_are_not_retryable(err):
    """Verify permanent and locally synthesized errors are never retried."""
    assert not is_retryable(err)


def test_builtin_exceptions_are_not_shadowed():
    """Verify backend errors do not subclass or replace the Python builtins."""
    assert not issubclass(BackendConnectionError, ConnectionError)
    assert not issubclass(BackendTimeoutError, TimeoutError)
    assert not is_retryable(ConnectionError("socket closed"))


def test_local_errors_are_distinguishable_from_provider_errors():
    """Verify LocalError and ProviderError are disjoint families."""
    for err in (
        CircuitOpenError(circuit_name="x"),
        PoolTimeoutError("t"),
        PoolShutdownError("s"),
        RateLimitExceededError(wait_time=1.0),
    ):
        assert isinstance(err, LocalError)
        assert not isinstance(err, ProviderError)
        assert isinstance(err, VectorKitError)


def test_error_codes_and_asdict_shape():
    """Verify default codes and the serialized error shape."""
    err = ServerError("down", status_code=503, retry_after_ms=1000, details={"b": 2, "a": 1})
    assert err.code == "SERVER_ERROR"
    assert err.status_code == 503
    data = err.asdict()
    assert data["error"] == "ServerError"
    assert data["message"] == "down"
    assert data["retry_after_ms"] == 1000
    assert list(data["details"]) == ["a", "b"]

    assert ValidationError("x").code == "BAD_REQUEST"
    assert ValidationError("x", code="DIMENSION_MISMATCH").code == "DIMENSION_MISMATCH"
    assert UnsupportedProviderError("nope").code == "UNSUPPORTED_PROVIDER"
    assert isinstance(UnsupportedProviderError("nope"), ConfigurationError)


def test_circuit_open_error_carries_circuit_details():
    """Verify CircuitOpenError exposes the circuit name and retry hint."""
    err = CircuitOpenError(circuit_name="pinecone", failures=5, opened_at=10.0, retry_after_ms=2500)
    assert err.circuit_name == "pinecone"
    assert err.failures == 5
    assert err.retry_after_ms == 2500
    assert "pinecone" in str(err)
    assert err.details["circuit"] == "pinecone"


def test_rate_limit_exceeded_reports_wait_time():
    """Verify RateLimitExceededError converts the wait time into a retry hint."""
    err = RateLimitExceededError(wait_time=0.25)
    assert err.wait_time == 0.25
    assert err.retry_after_ms == 250


def test_attach_context_sets_canonical_and_origin_attributes():
    """Verify context attachment, merging and None-skipping."""
    err = ValueError("boom")
    attach_context(err, origin="pipeline", operation="query", index="docs", namespace=None)
    ctx = get_context(err)
    assert ctx["origin"] == "pipeline"
    assert ctx["operation"] == "query"
    assert ctx["index"] == "docs"
    assert "namespace" not in ctx
    assert get_context(err, origin="pipeline") == ctx

    attach_context(err, origin="batch", chunk=2)
    merged = get_context(err)
    assert merged["origin"] == "pipeline"
    assert merged["chunk"] == 2
    assert merged["operation"] == "query"


def test_clear_context_removes_all_context():
    """Verify clear_context strips every context attribute."""
    err = RuntimeError("x")
    attach_context(err, origin="pipeline", operation="fetch")
    assert has_context(err)
    clear_context(err)
    assert not has_context(err)
    assert get_context(err, origin="pipeline") == {}
