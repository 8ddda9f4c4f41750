# vectorkit/resilience/cache.py
# SPDX-License-Identifier: Apache-2.0
"""
In-memory TTL cache with LRU eviction.

Entries expire after their own TTL (falling back to the cache default) and
the least-recently-accessed entry is evicted when `max_size` is exceeded.
A single lock guards every mutation so size and LRU order stay consistent
under concurrent access.

Keys produced by `cache_key` start with `index:namespace:` so that all
entries for an index/namespace pair can be dropped with `invalidate`.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

_MISSING = object()


@dataclass
class _Entry:
    value: Any
    stored_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl


def _canonical(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), default=repr)


def _escape(part: Optional[str]) -> str:
    return (part or "").replace("\\", "\\\\").replace(":", "\\:")


def cache_prefix(index: Optional[str], namespace: Optional[str] = None) -> str:
    """
    Key prefix shared by every entry for an index/namespace pair.

    Separators inside names are escaped, so index `a` never prefixes `a:b`.
    """
    return f"{_escape(index)}:{_escape(namespace)}:"


def cache_key(
    operation: str,
    index: Optional[str],
    namespace: Optional[str] = None,
    params: Optional[Mapping[str, Any]] = None,
) -> str:
    """
    Deterministic cache key: `index:namespace:operation:<sha256 of params>`.

    Params are canonicalized (sorted keys, compact separators) so that equal
    requests map to the same key regardless of argument order.
    """
    payload = {k: v for k, v in (params or {}).items() if k not in ("index", "namespace")}
    digest = hashlib.sha256(_canonical(payload).encode("utf-8")).hexdigest()
    return f"{cache_prefix(index, namespace)}{operation}:{digest}"


class Cache:
    """
    Example:
        cache = Cache(ttl=300, max_size=1000)
        result = cache.fetch(key, lambda: provider.query(...))
    """

    def __init__(
        self,
        *,
        ttl: float = 300.0,
        max_size: int = 1000,
        clock: Clock = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.default_ttl = float(ttl)
        self.max_size = int(max_size)
        self._clock = clock
        self._entries: "OrderedDict[str, _Entry]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def _lookup(self, key: str) -> Any:
        """Return the live value or _MISSING. Lock must be held."""
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING
        if entry.expired(self._clock()):
            del self._entries[key]
            return _MISSING
        self._entries.move_to_end(key)
        return entry.value

    def _store(self, key: str, value: Any, ttl: Optional[float]) -> None:
        """Insert and evict down to max_size. Lock must be held."""
        self._entries[key] = _Entry(
            value=value,
            stored_at=self._clock(),
            ttl=self.default_ttl if ttl is None else float(ttl),
        )
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            self._evictions += 1
            logger.debug("cache evicted %s", evicted)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            value = self._lookup(key)
            if value is _MISSING:
                self._misses += 1
                return default
            self._hits += 1
            return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        with self._lock:
            self._store(key, value, ttl)

    def fetch(self, key: str, producer: Callable[[], Any], ttl: Optional[float] = None) -> Any:
        """
        Return the cached value for `key`, or call `producer` and cache its result.

        The producer runs outside the lock; concurrent misses for the same
        key may each call it, and the last writer wins.
        """
        with self._lock:
            value = self._lookup(key)
            if value is not _MISSING:
                self._hits += 1
                return value
            self._misses += 1

        value = producer()
        with self._lock:
            self._store(key, value, ttl)
        return value

    def contains(self, key: str) -> bool:
        with self._lock:
            return self._lookup(key) is not _MISSING

    __contains__ = contains

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate(self, prefix: str) -> int:
        """Remove every key starting with `prefix`; returns the count removed."""
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for k in doomed:
                del self._entries[k]
        if doomed:
            logger.debug("cache invalidated %d entries for prefix %s", len(doomed), prefix)
        return len(doomed)

    def invalidate_index(self, index: str, namespace: Optional[str] = None) -> int:
        """Invalidate one namespace of an index, or the whole index when namespace is None."""
        if namespace is None:
            return self.invalidate(f"{_escape(index)}:")
        return self.invalidate(cache_prefix(index, namespace))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "default_ttl": self.default_ttl,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "hit_rate": (self._hits / lookups) if lookups else 0.0,
            }


__all__ = ["Cache", "cache_key", "cache_prefix"]
