# vectorkit/client.py
# SPDX-License-Identifier: Apache-2.0
"""
Provider-agnostic vector store client.

The client validates input, builds the provider adapter from
configuration, and dispatches every operation through the middleware
pipeline (global runtime middleware first, then the client's own).

Usage
-----
    from vectorkit import Client, Vector

    client = Client("memory")
    client.upsert("docs", [Vector(id="a", values=[0.1, 0.2, 0.3], metadata={"lang": "en"})])
    result = client.query("docs", [0.1, 0.2, 0.3], top_k=5, filter={"lang": "en"})
    for match in result:
        print(match.id, match.score)
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from vectorkit.config import VectorKitConfig
from vectorkit.errors import ConfigurationError, UnsupportedProviderError, ValidationError
from vectorkit.middleware.cache import CacheMiddleware
from vectorkit.middleware.envelope import Operation
from vectorkit.middleware.pipeline import MiddlewareSpec, Pipeline
from vectorkit.providers.base import ProviderAdapter
from vectorkit.runtime import Runtime
from vectorkit.types import Match, QueryResult, Vector

if TYPE_CHECKING:
    from vectorkit.batch import BatchProcessor

logger = logging.getLogger(__name__)

VectorLike = Union[Vector, Mapping[str, Any]]


def build_provider(name: str, config: VectorKitConfig) -> ProviderAdapter:
    """Construct the adapter for `name` from configuration."""
    if name == "memory":
        from vectorkit.providers.memory import MemoryProvider

        return MemoryProvider()
    if name == "pinecone":
        from vectorkit.providers.pinecone import PineconeProvider

        return PineconeProvider(
            api_key=config.api_key,
            environment=config.environment,
            host=config.host,
        )
    if name == "pgvector":
        from vectorkit.providers.pgvector import PgvectorProvider

        return PgvectorProvider(
            dsn=config.host,
            pool_size=config.pool_size,
            pool_timeout=config.pool_timeout,
            connect_timeout=config.timeout,
        )
    raise UnsupportedProviderError(f"provider '{name}' is not supported")


def _require_index(index: Any) -> str:
    if not isinstance(index, str) or not index.strip():
        raise ValidationError("index must be a non-empty string")
    return index


def _require_query_vector(vector: Any) -> List[float]:
    if not isinstance(vector, (list, tuple)) or not vector:
        raise ValidationError("query vector must be a non-empty list of numbers")
    if not all(isinstance(x, (int, float)) and not isinstance(x, bool) for x in vector):
        raise ValidationError("query vector must contain only numbers")
    return [float(x) for x in vector]


def _require_ids(ids: Any) -> List[str]:
    if isinstance(ids, (str, bytes)) or not isinstance(ids, (list, tuple, set)) or not ids:
        raise ValidationError("ids must be a non-empty list")
    return [str(i) for i in ids]


def _coerce_vectors(vectors: Any) -> List[Vector]:
    if not isinstance(vectors, (list, tuple)) or not vectors:
        raise ValidationError("vectors must be a non-empty list")
    items = [Vector.coerce(v) for v in vectors]
    dimensions = {v.dimension for v in items}
    if 0 in dimensions:
        raise ValidationError("vectors must not be empty")
    if len(dimensions) > 1:
        raise ValidationError(
            "all vectors must have the same dimension",
            details={"dimensions": sorted(dimensions)},
        )
    return items


class Client:
    def __init__(
        self,
        provider: Union[str, ProviderAdapter, None] = None,
        *,
        config: Optional[VectorKitConfig] = None,
        runtime: Optional[Runtime] = None,
        middleware: Sequence[MiddlewareSpec] = (),
    ) -> None:
        self.runtime = runtime or Runtime(config)
        config = config or self.runtime.config

        if isinstance(provider, ProviderAdapter) or (
            provider is not None and not isinstance(provider, str)
        ):
            adapter = provider
            provider_name = getattr(provider, "name", None) or type(provider).__name__.lower()
        else:
            provider_name = provider or config.provider
            if provider_name is None:
                raise ConfigurationError("provider must be configured")
            config = config.replace(provider=provider_name).validate()
            adapter = build_provider(config.provider, config)
            provider_name = config.provider

        self.config = config
        self.provider = adapter
        self.provider_name = provider_name

        chain: List[MiddlewareSpec] = [*self.runtime.middleware, *middleware]
        if config.cache_enabled and not any(_is_cache_entry(e) for e in chain):
            chain.append(CacheMiddleware())
        self.pipeline = Pipeline(
            adapter,
            provider_name=provider_name,
            middleware=chain,
            runtime=self.runtime,
        )

    def __repr__(self) -> str:
        return f"<Client provider={self.provider_name!r}>"

    # ------------------------------------------------------------------ #
    # Generic dispatch
    # ------------------------------------------------------------------ #

    def call(self, operation: Union[Operation, str], **params: Any) -> Any:
        """Run any operation through the pipeline without client-side validation."""
        return self.pipeline.call(operation, **params)

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #

    def upsert(
        self,
        index: str,
        vectors: Sequence[VectorLike],
        *,
        namespace: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self.pipeline.call(
            Operation.UPSERT,
            index=_require_index(index),
            vectors=_coerce_vectors(vectors),
            namespace=namespace,
        )

    def query(
        self,
        index: str,
        vector: Sequence[float],
        *,
        top_k: int = 10,
        namespace: Optional[str] = None,
        filter: Optional[Mapping[str, Any]] = None,
        include_values: bool = False,
        include_metadata: bool = True,
        offset: int = 0,
    ) -> QueryResult:
        if not isinstance(top_k, int) or top_k < 1:
            raise ValidationError("top_k must be a positive integer")
        if offset < 0:
            raise ValidationError("offset must not be negative")
        params: Dict[str, Any] = {
            "index": _require_index(index),
            "vector": _require_query_vector(vector),
            "top_k": top_k,
            "namespace": namespace,
            "filter": dict(filter) if filter else None,
            "include_values": include_values,
            "include_metadata": include_metadata,
        }
        if offset:
            params["offset"] = offset
        return self.pipeline.call(Operation.QUERY, **params)

    def fetch(
        self,
        index: str,
        ids: Sequence[str],
        *,
        namespace: Optional[str] = None,
    ) -> Dict[str, Vector]:
        return self.pipeline.call(
            Operation.FETCH,
            index=_require_index(index),
            ids=_require_ids(ids),
            namespace=namespace,
        )

    def update(
        self,
        index: str,
        id: str,
        *,
        metadata: Optional[Mapping[str, Any]] = None,
        values: Optional[Sequence[float]] = None,
        namespace: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not id:
            raise ValidationError("id must be provided")
        if metadata is None and values is None:
            raise ValidationError("update requires metadata or values")
        return self.pipeline.call(
            Operation.UPDATE,
            index=_require_index(index),
            id=str(id),
            metadata=dict(metadata) if metadata is not None else None,
            values=_require_query_vector(values) if values is not None else None,
            namespace=namespace,
        )

    def delete(
        self,
        index: str,
        *,
        ids: Optional[Sequence[str]] = None,
        namespace: Optional[str] = None,
        filter: Optional[Mapping[str, Any]] = None,
        delete_all: bool = False,
    ) -> Dict[str, Any]:
        if not ids and not filter and not delete_all:
            raise ValidationError("delete requires ids, filter or delete_all")
        return self.pipeline.call(
            Operation.DELETE,
            index=_require_index(index),
            ids=_require_ids(ids) if ids else None,
            namespace=namespace,
            filter=dict(filter) if filter else None,
            delete_all=bool(delete_all),
        )

    def list_indexes(self) -> List[Dict[str, Any]]:
        return self.pipeline.call(Operation.LIST_INDEXES)

    def describe_index(self, index: str) -> Dict[str, Any]:
        return self.pipeline.call(Operation.DESCRIBE_INDEX, index=_require_index(index))

    def stats(self, index: str, *, namespace: Optional[str] = None) -> Dict[str, Any]:
        return self.pipeline.call(Operation.STATS, index=_require_index(index), namespace=namespace)

    # ------------------------------------------------------------------ #
    # Bulk and streaming helpers
    # ------------------------------------------------------------------ #

    @property
    def batch(self) -> "BatchProcessor":
        from vectorkit.batch import BatchProcessor

        return BatchProcessor(
            self,
            chunk_size=self.config.batch_size,
            concurrency=self.config.async_concurrency,
        )

    def query_stream(self, index: str, vector: Sequence[float], **kwargs: Any) -> Iterator[Match]:
        from vectorkit.streaming import Streamer

        return Streamer(self).query_stream(index, vector, **kwargs)

    def query_each(
        self,
        index: str,
        vector: Sequence[float],
        consumer: Callable[[List[Match]], Any],
        **kwargs: Any,
    ) -> int:
        from vectorkit.streaming import Streamer

        return Streamer(self).query_each(index, vector, consumer, **kwargs)

    # ------------------------------------------------------------------ #
    # Health
    # ------------------------------------------------------------------ #

    def ping(self) -> Dict[str, Any]:
        """
        Probe the provider with a cheap call (list_indexes), bypassing middleware.

        Never raises; failures are reported in the returned mapping.
        """
        t0 = time.monotonic()
        try:
            self.provider.list_indexes()
        except Exception as exc:  # noqa: BLE001
            latency_ms = round((time.monotonic() - t0) * 1000.0, 2)
            logger.warning("health check for %s failed: %s", self.provider_name, exc)
            return {
                "healthy": False,
                "provider": self.provider_name,
                "latency_ms": latency_ms,
                "error": type(exc).__name__,
                "error_message": str(exc),
            }
        return {
            "healthy": True,
            "provider": self.provider_name,
            "latency_ms": round((time.monotonic() - t0) * 1000.0, 2),
        }

    def healthy(self) -> bool:
        return bool(self.ping()["healthy"])

    def close(self) -> None:
        close = getattr(self.provider, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def _is_cache_entry(entry: Any) -> bool:
    if isinstance(entry, CacheMiddleware):
        return True
    if isinstance(entry, type):
        return issubclass(entry, CacheMiddleware)
    if isinstance(entry, tuple) and entry and isinstance(entry[0], type):
        return issubclass(entry[0], CacheMiddleware)
    return False


__all__ = ["Client", "build_provider"]
