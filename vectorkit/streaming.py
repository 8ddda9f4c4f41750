# vectorkit/streaming.py
# SPDX-License-Identifier: Apache-2.0
"""
Lazy paginated query results.

`query_stream` returns a generator that issues `top_k=page_size` queries
with an advancing `offset` until `total` matches have been yielded or a
page comes back short. Rankings can shift between page fetches, so IDs
seen in the last `2 * page_size` results are skipped.

`query_each` is the eager counterpart: it calls a consumer once per page.
Errors from any page fetch propagate immediately and end the stream.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING, Any, Callable, Deque, Iterator, List, Mapping, Optional, Sequence, Set

from vectorkit.errors import ValidationError
from vectorkit.types import Match

if TYPE_CHECKING:
    from vectorkit.client import Client

logger = logging.getLogger(__name__)


class _SeenWindow:
    """Set of recently yielded IDs bounded to `capacity` entries."""

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        self._order: Deque[str] = deque()
        self._ids: Set[str] = set()

    def __contains__(self, vid: str) -> bool:
        return vid in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, vid: str) -> None:
        self._order.append(vid)
        self._ids.add(vid)
        while len(self._order) > self.capacity:
            self._ids.discard(self._order.popleft())


class Streamer:
    def __init__(self, client: "Client", *, page_size: int = 100) -> None:
        self.client = client
        self.page_size = page_size

    def pages(
        self,
        index: str,
        vector: Sequence[float],
        *,
        total: Optional[int] = None,
        page_size: Optional[int] = None,
        namespace: Optional[str] = None,
        filter: Optional[Mapping[str, Any]] = None,
        include_values: bool = False,
        include_metadata: bool = True,
    ) -> Iterator[List[Match]]:
        """Yield de-duplicated pages of matches."""
        page_size = self.page_size if page_size is None else page_size
        if not isinstance(page_size, int) or page_size < 1:
            raise ValidationError("page_size must be a positive integer")
        if total is not None and (not isinstance(total, int) or total < 1):
            raise ValidationError("total must be a positive integer")
        return self._pages(
            index,
            vector,
            total=total,
            page_size=page_size,
            namespace=namespace,
            filter=filter,
            include_values=include_values,
            include_metadata=include_metadata,
        )

    def _pages(self, index, vector, *, total, page_size, namespace, filter, include_values, include_metadata):
        seen = _SeenWindow(2 * page_size)
        offset = 0
        yielded = 0
        fetches = 0

        while total is None or yielded < total:
            result = self.client.query(
                index,
                vector,
                top_k=page_size,
                offset=offset,
                namespace=namespace,
                filter=filter,
                include_values=include_values,
                include_metadata=include_metadata,
            )
            fetches += 1
            raw = list(result.matches)
            offset += page_size

            page: List[Match] = []
            for match in raw:
                if match.id in seen:
                    continue
                seen.add(match.id)
                page.append(match)
                if total is not None and yielded + len(page) >= total:
                    break
            yielded += len(page)
            if page:
                yield page
            if len(raw) < page_size:
                break

        logger.debug("stream over %s finished: %d matches in %d fetches", index, yielded, fetches)

    def query_stream(self, index: str, vector: Sequence[float], **kwargs: Any) -> Iterator[Match]:
        """Lazily yield matches across pages."""
        pages = self.pages(index, vector, **kwargs)

        def _flatten() -> Iterator[Match]:
            for page in pages:
                yield from page

        return _flatten()

    def query_each(
        self,
        index: str,
        vector: Sequence[float],
        consumer: Callable[[List[Match]], Any],
        **kwargs: Any,
    ) -> int:
        """Call `consumer` with each page; returns the number of matches delivered."""
        count = 0
        for page in self.pages(index, vector, **kwargs):
            consumer(page)
            count += len(page)
        return count


__all__ = ["Streamer"]
