# SPDX-License-Identifier: Apache-2.0
"""
Middleware — Retry of transient provider failures.
"""

import pytest

from vectorkit.errors import (
    BackendTimeoutError,
    ConfigurationError,
    NotFoundError,
    RateLimitError,
    ServerError,
)
from vectorkit.middleware import CallbackMiddleware, Pipeline, Request, RetryMiddleware


@pytest.fixture
def sleeps():
    return []


def _pipeline(provider, sleeps, **kwargs):
    return Pipeline(provider, middleware=[RetryMiddleware(sleep=sleeps.append, **kwargs)])


def test_transient_failures_are_retried_until_success(flaky, sleeps):
    """Verify retryable errors are retried with exponential backoff."""
    flaky.failures["query"] = 2
    result = _pipeline(flaky, sleeps, max_attempts=3).call(
        "query", index="docs", vector=[1.0], top_k=1
    )
    assert len(result) == 0
    assert flaky.calls["query"] == 3
    assert sleeps == [pytest.approx(0.2), pytest.approx(0.4)]


def test_gives_up_after_max_attempts(flaky, sleeps):
    """Verify the last error is raised once attempts are exhausted."""
    flaky.failures["query"] = 10
    with pytest.raises(ServerError):
        _pipeline(flaky, sleeps, max_attempts=3).call("query", index="docs", vector=[1.0], top_k=1)
    assert flaky.calls["query"] == 3
    assert len(sleeps) == 2


def test_non_retryable_errors_fail_fast(flaky, sleeps):
    """Verify validation-class errors are never retried."""
    flaky.error_factory = lambda: NotFoundError("gone")
    flaky.failures["fetch"] = 5
    with pytest.raises(NotFoundError):
        _pipeline(flaky, sleeps).call("fetch", index="docs", ids=["a"])
    assert flaky.calls["fetch"] == 1
    assert sleeps == []


@pytest.mark.parametrize("factory", [lambda: RateLimitError("slow down"), lambda: BackendTimeoutError("late")])
def test_all_transient_kinds_are_retried(flaky, sleeps, factory):
    """Verify rate limit and timeout errors are retried too."""
    flaky.error_factory = factory
    flaky.failures["fetch"] = 1
    assert _pipeline(flaky, sleeps).call("fetch", index="docs", ids=["a"]) == {}
    assert flaky.calls["fetch"] == 2


def test_retry_count_is_recorded(flaky, sleeps):
    """Verify retry_count lands in the response metadata."""
    flaky.failures["fetch"] = 1
    pipeline = _pipeline(flaky, sleeps)
    response = pipeline.execute(Request(operation="fetch", params={"index": "docs", "ids": ["a"]}))
    assert response.success
    assert response.metadata["retry_count"] == 1


def test_retry_count_is_recorded_when_inner_layer_raises(memory, sleeps):
    """Verify a non-retryable error raised inside the chain still carries retry_count."""
    def reject(request):
        raise ValueError("tenant missing")

    pipeline = Pipeline(
        memory,
        middleware=[RetryMiddleware(sleep=sleeps.append), CallbackMiddleware(before=reject)],
    )
    response = pipeline.execute(Request(operation="fetch", params={"index": "docs", "ids": ["a"]}))
    assert isinstance(response.error, ValueError)
    assert response.metadata["retry_count"] == 0
    assert sleeps == []


@pytest.mark.parametrize(
    "kwargs,expected",
    [
        ({"backoff": "exponential", "base": 0.2}, [0.2, 0.4, 0.8]),
        ({"backoff": "linear", "step": 0.5}, [0.5, 1.0, 1.5]),
        ({"backoff": 0.3}, [0.3, 0.3, 0.3]),
        ({"backoff": "exponential", "base": 1.0, "max_delay": 1.5}, [1.0, 1.5, 1.5]),
    ],
)
def test_backoff_strategies(kwargs, expected):
    """Verify delay_for across the backoff strategies."""
    retry = RetryMiddleware(**kwargs)
    assert [retry.delay_for(n) for n in (1, 2, 3)] == [pytest.approx(d) for d in expected]


@pytest.mark.parametrize("kwargs", [{"max_attempts": 0}, {"backoff": "fibonacci"}])
def test_invalid_settings_rejected(kwargs):
    """Verify bad retry settings raise ConfigurationError."""
    with pytest.raises(ConfigurationError):
        RetryMiddleware(**kwargs)
