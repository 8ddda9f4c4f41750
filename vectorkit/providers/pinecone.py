# vectorkit/providers/pinecone.py
# SPDX-License-Identifier: Apache-2.0
"""
Pinecone provider.

Maps the provider contract onto the Pinecone SDK and normalizes Pinecone
exceptions into the vectorkit error taxonomy. The SDK is blocking, and so
is this adapter; the pipeline and batch helpers provide concurrency.

Usage
-----
    from vectorkit.providers.pinecone import PineconeProvider

    provider = PineconeProvider(api_key="...")           # or PINECONE_API_KEY
    provider.upsert(index="docs", vectors=[Vector(id="a", values=[...])])

Pinecone has no native offset, so `query(offset=n)` over-fetches
`top_k + n` matches and drops the first `n`.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

from vectorkit.errors import (
    AuthenticationError,
    BackendConnectionError,
    BackendTimeoutError,
    ConfigurationError,
    NotFoundError,
    RateLimitError,
    ServerError,
    ValidationError,
    VectorKitError,
)
from vectorkit.providers.base import ProviderAdapter
from vectorkit.types import Match, QueryResult, Vector, VectorID

logger = logging.getLogger(__name__)

T = TypeVar("T")

try:  # pragma: no cover - import surface only
    from pinecone import Pinecone  # type: ignore[attr-defined]
except Exception:  # pragma: no cover
    Pinecone = None  # type: ignore[assignment,misc]


def _safe_get(obj: Any, key: str, default: Any = None) -> Any:
    """Support both dict-style and attribute-style access."""
    if isinstance(obj, Mapping):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _status_of(err: BaseException) -> Optional[int]:
    status = (
        getattr(err, "status", None)
        or getattr(err, "status_code", None)
        or getattr(getattr(err, "response", None), "status_code", None)
    )
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def translate_error(err: Exception, *, op: str, index: Optional[str] = None) -> VectorKitError:
    """Map a Pinecone (or transport) exception into the vectorkit taxonomy."""
    if isinstance(err, VectorKitError):
        return err

    msg = str(err) or f"Pinecone error during {op}"
    lowered = msg.lower()
    status = _status_of(err)
    details = {"op": op, "index": index, "status": status}
    details = {k: v for k, v in details.items() if v is not None}
    logger.debug("Pinecone error in %s: %r", op, err)

    if status == 429 or "rate limit" in lowered or "too many requests" in lowered or "quota" in lowered:
        return RateLimitError("Pinecone rate limit exceeded", retry_after_ms=500, details=details)
    if status in (401, 403) or "unauthorized" in lowered or "forbidden" in lowered:
        return AuthenticationError("Pinecone authentication/authorization error", details=details)
    if status == 404 or "not found" in lowered or "no such index" in lowered:
        return NotFoundError(msg, details=details)
    if status in (400, 422) or "invalid" in lowered or "bad request" in lowered:
        return ValidationError(msg, details=details)
    if status in (408, 504) or "timeout" in lowered or "timed out" in lowered:
        return BackendTimeoutError("Pinecone request timed out", retry_after_ms=500, details=details)
    if status is not None and status >= 500:
        return ServerError("Pinecone service error", status_code=status, retry_after_ms=1000, details=details)
    if isinstance(err, (ConnectionError, OSError)) or "connection" in lowered:
        return BackendConnectionError("Pinecone connection error", retry_after_ms=500, details=details)
    return ServerError(msg, status_code=status, details=details)


class PineconeProvider(ProviderAdapter):
    name = "pinecone"

    def __init__(
        self,
        *,
        client: Optional[Any] = None,
        api_key: Optional[str] = None,
        environment: Optional[str] = None,
        host: Optional[str] = None,
    ) -> None:
        if client is None:
            if Pinecone is None:
                raise ConfigurationError(
                    "PineconeProvider requires the `pinecone` package. "
                    "Install via `pip install vectorkit[pinecone]`."
                )
            api_key = api_key or os.getenv("PINECONE_API_KEY") or ""
            if not api_key:
                raise ConfigurationError(
                    "PineconeProvider requires an API key "
                    "(pass api_key=... or set PINECONE_API_KEY)."
                )
            client_kwargs: Dict[str, Any] = {"api_key": api_key}
            if environment:
                client_kwargs["environment"] = environment
            client = Pinecone(**client_kwargs)

        self._client = client
        self._host = host
        self._indexes: Dict[str, Any] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _index(self, name: str) -> Any:
        """Lazily create and cache the Pinecone index handle."""
        with self._lock:
            handle = self._indexes.get(name)
            if handle is not None:
                return handle
        try:
            if self._host:
                handle = self._client.Index(name, host=self._host)
            else:
                handle = self._client.Index(name)
        except Exception as exc:  # noqa: BLE001
            raise translate_error(exc, op="init_index", index=name) from exc
        with self._lock:
            return self._indexes.setdefault(name, handle)

    def _call(self, op: str, index: Optional[str], func: Callable[..., T], **kwargs: Any) -> T:
        kwargs = {k: v for k, v in kwargs.items() if v is not None}
        try:
            return func(**kwargs)
        except Exception as exc:  # noqa: BLE001
            raise translate_error(exc, op=op, index=index) from exc

    # ------------------------------------------------------------------ #
    # Provider contract
    # ------------------------------------------------------------------ #

    def upsert(self, *, index, vectors, namespace=None):
        items = [Vector.coerce(v) for v in vectors]
        payload: List[Dict[str, Any]] = [v.to_dict() for v in items]
        resp = self._call(
            "upsert", index, self._index(index).upsert, vectors=payload, namespace=namespace
        )
        upserted = _safe_get(resp, "upserted_count", None)
        return {"upserted_count": int(upserted) if upserted else len(items)}

    def query(
        self,
        *,
        index,
        vector,
        top_k=10,
        namespace=None,
        filter=None,
        include_values=False,
        include_metadata=True,
        offset=0,
    ):
        resp = self._call(
            "query",
            index,
            self._index(index).query,
            vector=[float(x) for x in vector],
            top_k=top_k + offset,
            namespace=namespace,
            filter=dict(filter) if filter else None,
            include_values=include_values,
            include_metadata=include_metadata,
        )
        raw_matches: Sequence[Any] = _safe_get(resp, "matches", None) or []
        matches: List[Match] = []
        for m in list(raw_matches)[offset:]:
            vid = str(_safe_get(m, "id", "") or "")
            if not vid:
                continue
            values = _safe_get(m, "values", None) if include_values else None
            meta = _safe_get(m, "metadata", None) if include_metadata else None
            matches.append(
                Match(
                    id=VectorID(vid),
                    score=float(_safe_get(m, "score", 0.0) or 0.0),
                    values=list(values) if values else None,
                    metadata=dict(meta) if isinstance(meta, Mapping) else None,
                )
            )
        return QueryResult(
            matches=matches,
            namespace=namespace,
            usage=dict(_safe_get(resp, "usage", None) or {}) or None,
        )

    def fetch(self, *, index, ids, namespace=None):
        resp = self._call(
            "fetch", index, self._index(index).fetch, ids=[str(i) for i in ids], namespace=namespace
        )
        raw = _safe_get(resp, "vectors", None) or {}
        out: Dict[str, Vector] = {}
        for vid, data in raw.items():
            meta = _safe_get(data, "metadata", None)
            out[str(vid)] = Vector(
                id=VectorID(str(vid)),
                values=[float(x) for x in (_safe_get(data, "values", None) or [])],
                metadata=dict(meta) if isinstance(meta, Mapping) else None,
            )
        return out

    def update(self, *, index, id, metadata=None, values=None, namespace=None):
        self._call(
            "update",
            index,
            self._index(index).update,
            id=id,
            values=[float(x) for x in values] if values is not None else None,
            set_metadata=dict(metadata) if metadata else None,
            namespace=namespace,
        )
        return {"updated": True}

    def delete(self, *, index, ids=None, namespace=None, filter=None, delete_all=False):
        if not (ids or filter or delete_all):
            raise ValidationError("delete requires ids, filter or delete_all")
        self._call(
            "delete",
            index,
            self._index(index).delete,
            ids=[str(i) for i in ids] if ids else None,
            filter=dict(filter) if filter else None,
            delete_all=True if delete_all else None,
            namespace=namespace,
        )
        return {"deleted": True}

    def list_indexes(self):
        resp = self._call("list_indexes", None, self._client.list_indexes)
        items = _safe_get(resp, "indexes", None)
        if items is None:
            items = list(resp or [])
        return [self._describe(item) for item in items]

    def describe_index(self, *, index):
        resp = self._call("describe_index", index, self._client.describe_index, name=index)
        return self._describe(resp)

    @staticmethod
    def _describe(raw: Any) -> Dict[str, Any]:
        status = _safe_get(raw, "status", None)
        ready = _safe_get(status, "ready", None) if status is not None else None
        state = _safe_get(status, "state", None) if status is not None else None
        return {
            "name": _safe_get(raw, "name", None),
            "dimension": _safe_get(raw, "dimension", None),
            "metric": _safe_get(raw, "metric", None),
            "host": _safe_get(raw, "host", None),
            "status": state or ("ready" if ready else "unknown"),
        }

    def stats(self, *, index, namespace=None):
        resp = self._call("stats", index, self._index(index).describe_index_stats)
        raw_ns = _safe_get(resp, "namespaces", None) or {}
        namespaces = {
            str(ns): {"vector_count": int(_safe_get(info, "vector_count", 0) or 0)}
            for ns, info in raw_ns.items()
        }
        if namespace is not None:
            namespaces = {namespace: namespaces.get(namespace, {"vector_count": 0})}
            total = namespaces[namespace]["vector_count"]
        else:
            total = int(_safe_get(resp, "total_vector_count", 0) or 0)
        return {
            "total_vector_count": total,
            "dimension": _safe_get(resp, "dimension", None),
            "namespaces": namespaces,
        }


__all__ = ["PineconeProvider", "translate_error"]
