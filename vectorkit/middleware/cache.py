# vectorkit/middleware/cache.py
# SPDX-License-Identifier: Apache-2.0
"""
Read-through caching middleware.

Query and fetch results are served from a `Cache` keyed by operation,
index, namespace and canonicalized parameters. Successful writes
invalidate the cached entries for the written index/namespace. Failed
responses are never cached.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from vectorkit.middleware.base import Middleware, NextCall
from vectorkit.middleware.envelope import CACHEABLE_OPERATIONS, Request, Response
from vectorkit.resilience.cache import Cache, cache_key

if TYPE_CHECKING:
    from vectorkit.runtime import Runtime

logger = logging.getLogger(__name__)

_MISS = object()


class CacheMiddleware(Middleware):
    name = "cache"

    def __init__(
        self,
        *,
        cache: Optional[Cache] = None,
        ttl: Optional[float] = None,
    ) -> None:
        self._cache = cache
        self.ttl = ttl

    def bind(self, runtime: "Runtime") -> None:
        if self._cache is None:
            self._cache = runtime.cache

    @property
    def cache(self) -> Cache:
        if self._cache is None:
            self._cache = Cache()
        return self._cache

    def call(self, request: Request, call_next: NextCall) -> Response:
        if request.operation in CACHEABLE_OPERATIONS:
            return self._read_through(request, call_next)

        response = call_next(request)
        if request.is_write and response.success and request.index:
            removed = self.cache.invalidate_index(request.index, request.namespace)
            if removed:
                logger.debug(
                    "invalidated %d cached reads after %s on %s",
                    removed,
                    request.operation.value,
                    request.index,
                )
        return response

    def _read_through(self, request: Request, call_next: NextCall) -> Response:
        key = cache_key(
            request.operation.value,
            request.index,
            request.namespace,
            request.params,
        )
        cached = self.cache.get(key, _MISS)
        if cached is not _MISS:
            return Response(result=cached, metadata={"cache_hit": True})

        response = call_next(request)
        if response.success:
            self.cache.set(key, response.result, self.ttl)
        response.metadata["cache_hit"] = False
        return response


__all__ = ["CacheMiddleware"]
