# SPDX-License-Identifier: Apache-2.0
"""
Streaming — Lazy paginated queries with de-duplication across pages.
"""

import pytest

from vectorkit.client import Client
from vectorkit.errors import ServerError, ValidationError
from vectorkit.providers.memory import MemoryProvider
from vectorkit.streaming import Streamer, _SeenWindow

QUERY = [1.0, 0.0, 0.0]


class OverlappingProvider(MemoryProvider):
    """Serves every page after the first starting one result early."""

    name = "overlapping"

    def __init__(self):
        super().__init__()
        self.offsets = []

    def query(self, *, index, vector, top_k, offset=0, **kwargs):
        self.offsets.append(offset)
        return super().query(
            index=index, vector=vector, top_k=top_k, offset=max(0, offset - 1), **kwargs
        )


@pytest.fixture
def counted(runtime, flaky, make_vectors):
    client = Client(flaky, runtime=runtime)
    client.upsert("docs", make_vectors(25))
    return client


def test_seen_window_is_bounded():
    """Verify the dedup window forgets the oldest IDs."""
    window = _SeenWindow(2)
    for vid in ("a", "b", "c"):
        window.add(vid)
    assert "a" not in window
    assert "b" in window and "c" in window
    assert len(window) == 2


def test_stream_yields_all_matches_in_pages(counted, flaky):
    """Verify 25 matches at page size 10 take three fetches."""
    ids = [m.id for m in counted.query_stream("docs", QUERY, page_size=10)]
    assert len(ids) == 25
    assert len(set(ids)) == 25
    assert ids[:3] == ["v0", "v1", "v2"]
    assert flaky.calls["query"] == 3


def test_stream_is_lazy(counted, flaky):
    """Verify no query is issued until the stream is consumed."""
    stream = counted.query_stream("docs", QUERY, page_size=10)
    assert flaky.calls.get("query", 0) == 0
    assert next(stream).id == "v0"
    assert flaky.calls["query"] == 1


def test_overlapping_pages_are_deduplicated(runtime, make_vectors):
    """Verify results repeated across page boundaries are yielded once."""
    provider = OverlappingProvider()
    client = Client(provider, runtime=runtime)
    client.upsert("docs", make_vectors(25))

    ids = [m.id for m in client.query_stream("docs", QUERY, page_size=10)]
    assert len(ids) == 25
    assert len(set(ids)) == 25
    assert provider.offsets == [0, 10, 20]


def test_total_limits_results(counted, flaky):
    """Verify the stream stops once total matches are yielded."""
    ids = [m.id for m in counted.query_stream("docs", QUERY, page_size=10, total=15)]
    assert len(ids) == 15
    assert flaky.calls["query"] == 2


def test_query_each_delivers_pages(counted):
    """Verify query_each calls the consumer per page and returns the count."""
    sizes = []
    count = counted.query_each("docs", QUERY, lambda page: sizes.append(len(page)), page_size=10)
    assert count == 25
    assert sizes == [10, 10, 5]


def test_stream_forwards_filter(counted):
    """Verify the metadata filter applies to every page."""
    wanted = list(range(0, 25, 2))
    ids = [m.id for m in counted.query_stream("docs", QUERY, page_size=4, filter={"i": wanted})]
    assert ids == [f"v{i}" for i in wanted]


def test_page_errors_propagate(counted, flaky):
    """Verify a failing page fetch ends the stream with the error."""
    stream = counted.query_stream("docs", QUERY, page_size=10)
    first_page = [next(stream) for _ in range(10)]
    assert len(first_page) == 10

    flaky.failures["query"] = 1
    with pytest.raises(ServerError):
        next(stream)


def test_empty_index_yields_nothing(client):
    """Verify a stream over an unknown index is empty."""
    assert list(client.query_stream("missing", QUERY)) == []


@pytest.mark.parametrize("kwargs", [{"page_size": 0}, {"page_size": "10"}, {"total": 0}])
def test_invalid_paging_rejected(client, kwargs):
    """Verify paging arguments are checked when the stream is created."""
    with pytest.raises(ValidationError):
        Streamer(client).query_stream("docs", QUERY, **kwargs)
