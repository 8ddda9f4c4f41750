# SPDX-License-Identifier: Apache-2.0
"""
Providers — Pinecone adapter mapping and error translation.

Runs against a fake SDK client; no network access is needed.
"""

import pytest

from vectorkit.errors import (
    AuthenticationError,
    ConfigurationError,
    BackendConnectionError,
    BackendTimeoutError,
    NotFoundError,
    RateLimitError,
    ServerError,
    ValidationError,
)
from vectorkit.providers.pinecone import PineconeProvider, translate_error
from vectorkit.types import Vector


class StatusError(Exception):
    def __init__(self, message, status):
        super().__init__(message)
        self.status = status


class FakeIndex:
    def __init__(self, name):
        self.name = name
        self.calls = []
        self.fail_with = None

    def _record(self, op, kwargs):
        self.calls.append((op, kwargs))
        if self.fail_with is not None:
            raise self.fail_with

    def upsert(self, **kwargs):
        self._record("upsert", kwargs)
        return {"upserted_count": len(kwargs["vectors"])}

    def query(self, **kwargs):
        self._record("query", kwargs)
        matches = [
            {"id": f"m{i}", "score": 1.0 - i / 10, "metadata": {"rank": i}, "values": [float(i)]}
            for i in range(kwargs["top_k"])
        ]
        return {"matches": matches, "usage": {"read_units": 5}}

    def fetch(self, **kwargs):
        self._record("fetch", kwargs)
        return {"vectors": {i: {"values": [0.1, 0.2], "metadata": {"id": i}} for i in kwargs["ids"]}}

    def update(self, **kwargs):
        self._record("update", kwargs)
        return {}

    def delete(self, **kwargs):
        self._record("delete", kwargs)
        return {}

    def describe_index_stats(self, **kwargs):
        self._record("describe_index_stats", kwargs)
        return {
            "dimension": 2,
            "total_vector_count": 7,
            "namespaces": {"": {"vector_count": 4}, "tenant": {"vector_count": 3}},
        }


class FakePinecone:
    def __init__(self):
        self.indexes = {}
        self.index_hosts = []

    def Index(self, name, host=None):
        self.index_hosts.append(host)
        return self.indexes.setdefault(name, FakeIndex(name))

    def list_indexes(self):
        return {"indexes": [{"name": "docs", "dimension": 2, "metric": "cosine", "status": {"ready": True}}]}

    def describe_index(self, name):
        if name != "docs":
            raise StatusError(f"index {name} not found", 404)
        return {"name": name, "dimension": 2, "metric": "cosine", "host": "docs.svc", "status": {"state": "Ready"}}


@pytest.fixture
def sdk():
    return FakePinecone()


@pytest.fixture
def provider(sdk):
    return PineconeProvider(client=sdk)


def test_upsert_sends_plain_dicts(provider, sdk):
    """Verify vectors are serialized and None kwargs are dropped."""
    out = provider.upsert(index="docs", vectors=[Vector(id="a", values=[1.0, 2.0], metadata={"k": 1})])
    assert out == {"upserted_count": 1}
    op, kwargs = sdk.indexes["docs"].calls[0]
    assert op == "upsert"
    assert kwargs == {"vectors": [{"id": "a", "values": [1.0, 2.0], "metadata": {"k": 1}}]}


def test_query_maps_matches_and_usage(provider):
    """Verify matches become Match objects honoring include flags."""
    result = provider.query(index="docs", vector=[1, 0], top_k=2, namespace="ns")
    assert result.ids == ["m0", "m1"]
    assert result[0].metadata == {"rank": 0}
    assert result[0].values is None
    assert result.namespace == "ns"
    assert result.usage == {"read_units": 5}


def test_query_offset_over_fetches_and_slices(provider, sdk):
    """Verify offset paging requests top_k + offset and drops the head."""
    result = provider.query(index="docs", vector=[1, 0], top_k=3, offset=2, filter={"a": 1})
    _, kwargs = sdk.indexes["docs"].calls[-1]
    assert kwargs["top_k"] == 5
    assert kwargs["filter"] == {"a": 1}
    assert result.ids == ["m2", "m3", "m4"]


def test_fetch_update_delete(provider, sdk):
    """Verify fetch, update and delete argument mapping."""
    fetched = provider.fetch(index="docs", ids=["x", "y"])
    assert set(fetched) == {"x", "y"}
    assert fetched["x"].values == [0.1, 0.2]

    provider.update(index="docs", id="x", metadata={"tag": "new"})
    _, kwargs = sdk.indexes["docs"].calls[-1]
    assert kwargs == {"id": "x", "set_metadata": {"tag": "new"}}

    provider.delete(index="docs", namespace="ns", delete_all=True)
    _, kwargs = sdk.indexes["docs"].calls[-1]
    assert kwargs == {"delete_all": True, "namespace": "ns"}

    with pytest.raises(ValidationError):
        provider.delete(index="docs")


def test_index_handles_are_cached_and_use_host(sdk):
    """Verify Index() is called once per name with the configured host."""
    provider = PineconeProvider(client=sdk, host="https://docs.svc")
    provider.fetch(index="docs", ids=["a"])
    provider.fetch(index="docs", ids=["b"])
    assert sdk.index_hosts == ["https://docs.svc"]


def test_describe_list_and_stats(provider):
    """Verify control-plane responses are normalized."""
    assert provider.describe_index(index="docs")["status"] == "Ready"
    assert provider.list_indexes()[0]["status"] == "ready"
    stats = provider.stats(index="docs")
    assert stats["total_vector_count"] == 7
    assert stats["namespaces"]["tenant"] == {"vector_count": 3}
    assert provider.stats(index="docs", namespace="tenant")["total_vector_count"] == 3
    with pytest.raises(NotFoundError):
        provider.describe_index(index="missing")


def test_sdk_errors_are_translated(provider, sdk):
    """Verify SDK exceptions surface as vectorkit errors with the cause chained."""
    provider.fetch(index="docs", ids=["warm"])
    sdk.indexes["docs"].fail_with = StatusError("Too Many Requests", 429)
    with pytest.raises(RateLimitError) as exc_info:
        provider.query(index="docs", vector=[1, 0], top_k=1)
    assert isinstance(exc_info.value.__cause__, StatusError)
    assert exc_info.value.details["op"] == "query"


@pytest.mark.parametrize(
    "err,expected",
    [
        (StatusError("slow down", 429), RateLimitError),
        (StatusError("nope", 401), AuthenticationError),
        (StatusError("nope", 403), AuthenticationError),
        (StatusError("gone", 404), NotFoundError),
        (StatusError("bad", 400), ValidationError),
        (StatusError("late", 504), BackendTimeoutError),
        (StatusError("oops", 503), ServerError),
        (ConnectionError("reset by peer"), BackendConnectionError),
        (RuntimeError("request timed out"), BackendTimeoutError),
        (RuntimeError("something odd"), ServerError),
    ],
)
def test_translate_error(err, expected):
    """Verify the status/message mapping into the taxonomy."""
    assert type(translate_error(err, op="query", index="docs")) is expected


def test_translate_error_passes_through_vectorkit_errors():
    """Verify already-normalized errors are returned unchanged."""
    err = NotFoundError("x")
    assert translate_error(err, op="fetch") is err


def test_missing_api_key_is_a_configuration_error(monkeypatch):
    """Verify construction without credentials fails clearly."""
    from vectorkit.providers import pinecone as pinecone_module

    monkeypatch.delenv("PINECONE_API_KEY", raising=False)
    monkeypatch.setattr(pinecone_module, "Pinecone", lambda **kw: object())
    with pytest.raises(ConfigurationError):
        PineconeProvider()
