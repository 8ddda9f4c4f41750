# SPDX-License-Identifier: Apache-2.0
"""
Resilience — TTL/LRU cache and cache keys.
"""

import pytest

from vectorkit.resilience.cache import Cache, cache_key, cache_prefix


@pytest.fixture
def cache(clock):
    return Cache(ttl=0.1, max_size=3, clock=clock)


def test_entry_expires_after_ttl(cache, clock):
    """Verify an entry with a 100ms TTL is served before expiry and missed after."""
    cache.set("k", "v")
    clock.advance(0.05)
    assert cache.get("k") == "v"
    clock.advance(0.2)
    assert cache.get("k") is None
    assert "k" not in cache
    assert len(cache) == 0


def test_entry_is_served_at_exactly_its_ttl(clock):
    """Verify an entry read exactly at its TTL is still fresh and expires just after."""
    cache = Cache(ttl=10, clock=clock)
    cache.set("k", "v")
    clock.advance(10)
    assert cache.get("k") == "v"
    assert cache.fetch("k", lambda: "recomputed") == "v"
    clock.advance(1)
    assert cache.get("k") is None


def test_per_entry_ttl_overrides_default(cache, clock):
    """Verify set(ttl=...) overrides the default TTL."""
    cache.set("long", 1, ttl=10)
    clock.advance(5)
    assert cache.get("long") == 1


def test_lru_eviction_prefers_least_recently_accessed(cache):
    """Verify the least recently accessed entry is evicted at capacity."""
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)
    assert cache.get("a") == 1
    cache.set("d", 4)
    assert "b" not in cache
    assert "a" in cache
    assert len(cache) == 3
    assert cache.stats()["evictions"] == 1


def test_fetch_populates_on_miss_only(cache):
    """Verify fetch calls the producer only on a miss."""
    calls = []

    def produce():
        calls.append(1)
        return "fresh"

    assert cache.fetch("k", produce) == "fresh"
    assert cache.fetch("k", produce) == "fresh"
    assert calls == [1]


def test_get_default_distinguishes_cached_none(cache):
    """Verify a cached None is distinguishable from a miss via the default."""
    missing = object()
    cache.set("none", None)
    assert cache.get("none", missing) is None
    assert cache.get("absent", missing) is missing


def test_stats_track_hits_and_misses(cache):
    """Verify hit/miss accounting and hit rate."""
    cache.set("a", 1)
    cache.get("a")
    cache.get("zzz")
    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["hit_rate"] == 0.5
    assert stats["size"] == 1
    assert stats["max_size"] == 3


def test_cache_key_is_canonical_and_scoped():
    """Verify equal params map to the same key regardless of order."""
    k1 = cache_key("query", "docs", "ns", {"top_k": 5, "vector": [0.1, 0.2], "index": "docs"})
    k2 = cache_key("query", "docs", "ns", {"vector": [0.1, 0.2], "top_k": 5})
    k3 = cache_key("query", "docs", "ns", {"vector": [0.1, 0.2], "top_k": 6})
    assert k1 == k2
    assert k1 != k3
    assert k1.startswith(cache_prefix("docs", "ns"))
    assert k1.startswith("docs:ns:query:")


def test_invalidate_index_is_scoped_and_idempotent(clock):
    """Verify invalidation drops only the targeted index/namespace and can repeat."""
    cache = Cache(clock=clock)
    cache.set(cache_key("query", "docs", "a", {"x": 1}), 1)
    cache.set(cache_key("query", "docs", "b", {"x": 1}), 2)
    cache.set(cache_key("query", "other", "a", {"x": 1}), 3)

    assert cache.invalidate_index("docs", "a") == 1
    assert cache.invalidate_index("docs", "a") == 0
    assert len(cache) == 2

    assert cache.invalidate_index("docs") == 1
    assert len(cache) == 1
    cache.clear()
    assert len(cache) == 0


def test_invalidate_index_does_not_touch_indexes_sharing_a_prefix(clock):
    """Verify writes to index `a` leave entries for index `a:b` cached."""
    cache = Cache(clock=clock)
    cache.set(cache_key("query", "a", None, {"x": 1}), 1)
    cache.set(cache_key("query", "a:b", None, {"x": 1}), 2)
    cache.set(cache_key("query", "a", "b:c", {"x": 1}), 3)

    assert cache.invalidate_index("a", "b") == 0
    assert cache.invalidate_index("a") == 2
    assert cache.get(cache_key("query", "a:b", None, {"x": 1})) == 2


def test_delete_removes_single_key(cache):
    """Verify delete reports whether the key existed."""
    cache.set("a", 1)
    assert cache.delete("a") is True
    assert cache.delete("a") is False


def test_max_size_must_be_positive():
    """Verify a zero-capacity cache is rejected."""
    with pytest.raises(ValueError):
        Cache(max_size=0)
