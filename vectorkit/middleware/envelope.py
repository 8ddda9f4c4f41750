# vectorkit/middleware/envelope.py
# SPDX-License-Identifier: Apache-2.0
"""
Request/Response envelope carried through the middleware chain.

A `Request` is created once per logical call and may be mutated by each
middleware (parameters rewritten, bookkeeping stored in `metadata`). A
`Response` is created by the innermost step (provider adapter or cache) and
enriched by outer middleware as the chain unwinds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class Operation(str, Enum):
    UPSERT = "upsert"
    QUERY = "query"
    FETCH = "fetch"
    UPDATE = "update"
    DELETE = "delete"
    LIST_INDEXES = "list_indexes"
    DESCRIBE_INDEX = "describe_index"
    STATS = "stats"

    @property
    def is_write(self) -> bool:
        return self in _WRITE_OPERATIONS

    @property
    def is_read(self) -> bool:
        return not self.is_write


_WRITE_OPERATIONS = frozenset({Operation.UPSERT, Operation.UPDATE, Operation.DELETE})

# Read operations whose results may be served from a cache.
CACHEABLE_OPERATIONS = frozenset({Operation.QUERY, Operation.FETCH})


@dataclass
class Request:
    """
    Operation intent.

    Attributes:
        operation: Which provider operation to invoke
        params: Keyword arguments for the provider call (includes index/namespace)
        provider: Provider identifier (e.g. "memory", "pinecone")
        metadata: Cross-middleware bookkeeping (request_id, cost_usd, ...)
    """
    operation: Operation
    params: Dict[str, Any] = field(default_factory=dict)
    provider: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.operation = Operation(self.operation)

    @property
    def index(self) -> Optional[str]:
        return self.params.get("index")

    @property
    def namespace(self) -> Optional[str]:
        return self.params.get("namespace")

    @property
    def is_write(self) -> bool:
        return self.operation.is_write

    @property
    def is_read(self) -> bool:
        return self.operation.is_read

    def to_provider_kwargs(self) -> Dict[str, Any]:
        return dict(self.params)


@dataclass
class Response:
    """
    Operation outcome: exactly one of `result` or `error` is meaningful.

    `metadata` collects duration_ms, retry_count, cache_hit, cost_usd and
    similar values contributed by middleware.
    """
    result: Any = None
    error: Optional[BaseException] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def failure(self) -> bool:
        return self.error is not None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error

    def value(self) -> Any:
        """Return the result or raise the stored error."""
        self.raise_for_error()
        return self.result


__all__ = ["Operation", "CACHEABLE_OPERATIONS", "Request", "Response"]
