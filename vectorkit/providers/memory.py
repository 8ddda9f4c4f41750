# vectorkit/providers/memory.py
# SPDX-License-Identifier: Apache-2.0
"""
In-process vector store.

Useful in tests and local development: no network, no credentials.
Indexes are created implicitly on first upsert (dimension inferred from
the first vector, metric taken from the provider default) or explicitly
via `create_index`.

Supported metrics: cosine (default), euclidean (scored as
1 / (1 + distance)) and dot product.

Metadata filters are mappings of field -> expected value, where the
expected value may be a literal, a list (membership) or an operator
mapping using `$eq $ne $gt $gte $lt $lte $in`.
"""

from __future__ import annotations

import logging
import math
import threading
from typing import Any, Dict, List, Mapping, Optional, Sequence

from vectorkit.errors import NotFoundError, ValidationError
from vectorkit.providers.base import ProviderAdapter
from vectorkit.types import Match, QueryResult, Vector, VectorID

logger = logging.getLogger(__name__)

_METRIC_ALIASES = {
    "cosine": "cosine",
    "euclidean": "euclidean",
    "l2": "euclidean",
    "dot": "dotproduct",
    "dotproduct": "dotproduct",
    "dot_product": "dotproduct",
    "inner_product": "dotproduct",
}


def _normalize_metric(metric: str) -> str:
    key = (metric or "cosine").strip().lower()
    if key not in _METRIC_ALIASES:
        raise ValidationError(
            f"unknown metric {metric!r}; expected cosine, euclidean or dotproduct",
            code="BAD_CONFIG",
        )
    return _METRIC_ALIASES[key]


def _dot(a: Sequence[float], b: Sequence[float]) -> float:
    return sum(x * y for x, y in zip(a, b))


def similarity(metric: str, a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise ValidationError(
            f"dimension mismatch: query has {len(a)}, stored vector has {len(b)}",
            code="DIMENSION_MISMATCH",
            details={"expected": len(b), "actual": len(a)},
        )
    if metric == "euclidean":
        distance = math.sqrt(sum((x - y) ** 2 for x, y in zip(a, b)))
        return 1.0 / (1.0 + distance)
    if metric == "dotproduct":
        return _dot(a, b)
    norm_a = math.sqrt(_dot(a, a))
    norm_b = math.sqrt(_dot(b, b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return _dot(a, b) / (norm_a * norm_b)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _match_value(actual: Any, expected: Any) -> bool:
    if isinstance(expected, Mapping):
        for op, val in expected.items():
            if op == "$eq":
                ok = actual == val
            elif op == "$ne":
                ok = actual != val
            elif op in ("$gt", "$gte", "$lt", "$lte"):
                if not (_is_number(actual) and _is_number(val)):
                    return False
                ok = {
                    "$gt": actual > val,
                    "$gte": actual >= val,
                    "$lt": actual < val,
                    "$lte": actual <= val,
                }[op]
            elif op == "$in":
                ok = isinstance(val, (list, tuple, set)) and actual in val
            else:
                raise ValidationError(f"unsupported filter operator {op!r}")
            if not ok:
                return False
        return True
    if isinstance(expected, (list, tuple, set)):
        return actual in expected
    return actual == expected


def matches_filter(metadata: Optional[Mapping[str, Any]], filter: Mapping[str, Any]) -> bool:
    metadata = metadata or {}
    return all(_match_value(metadata.get(key), expected) for key, expected in filter.items())


class MemoryProvider(ProviderAdapter):
    """Thread-safe in-memory provider."""

    name = "memory"

    def __init__(self, *, metric: str = "cosine") -> None:
        self.default_metric = _normalize_metric(metric)
        self._lock = threading.RLock()
        # index -> namespace -> id -> Vector (insertion ordered)
        self._storage: Dict[str, Dict[str, Dict[str, Vector]]] = {}
        self._indexes: Dict[str, Dict[str, Any]] = {}

    # ------------------------------------------------------------------ #
    # Index management
    # ------------------------------------------------------------------ #

    def create_index(self, *, index: str, dimension: int, metric: Optional[str] = None) -> Dict[str, Any]:
        if dimension < 1:
            raise ValidationError("dimension must be positive")
        with self._lock:
            self._indexes[index] = {
                "dimension": int(dimension),
                "metric": _normalize_metric(metric or self.default_metric),
            }
            self._storage.setdefault(index, {})
        return self.describe_index(index=index)

    def delete_index(self, *, index: str) -> Dict[str, Any]:
        with self._lock:
            if index not in self._indexes:
                raise NotFoundError(f"index '{index}' not found")
            del self._indexes[index]
            self._storage.pop(index, None)
        return {"deleted": True}

    def clear(self) -> None:
        with self._lock:
            self._storage.clear()
            self._indexes.clear()

    def _namespace(self, index: str, namespace: Optional[str]) -> Dict[str, Vector]:
        return self._storage.setdefault(index, {}).setdefault(namespace or "", {})

    # ------------------------------------------------------------------ #
    # Data operations
    # ------------------------------------------------------------------ #

    def upsert(self, *, index, vectors, namespace=None):
        items = [Vector.coerce(v) for v in vectors]
        with self._lock:
            config = self._indexes.get(index)
            if config is None and items:
                config = {"dimension": items[0].dimension, "metric": self.default_metric}
                self._indexes[index] = config
            for v in items:
                if v.dimension != config["dimension"]:
                    raise ValidationError(
                        f"vector '{v.id}' has dimension {v.dimension}, "
                        f"index '{index}' expects {config['dimension']}",
                        code="DIMENSION_MISMATCH",
                    )
            bucket = self._namespace(index, namespace)
            for v in items:
                bucket[v.id] = Vector(id=v.id, values=list(v.values), metadata=dict(v.metadata or {}))
        logger.debug("upserted %d vectors into %s", len(items), index)
        return {"upserted_count": len(items)}

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
        with self._lock:
            metric = self._indexes.get(index, {}).get("metric", self.default_metric)
            candidates = list(self._storage.get(index, {}).get(namespace or "", {}).values())

        if filter:
            candidates = [v for v in candidates if matches_filter(v.metadata, filter)]

        scored = [(similarity(metric, vector, v.values), v) for v in candidates]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        window = scored[offset:offset + top_k]

        matches = [
            Match(
                id=VectorID(v.id),
                score=score,
                values=list(v.values) if include_values else None,
                metadata=dict(v.metadata or {}) if include_metadata else None,
            )
            for score, v in window
        ]
        return QueryResult(matches=matches, namespace=namespace)

    def fetch(self, *, index, ids, namespace=None):
        with self._lock:
            bucket = self._storage.get(index, {}).get(namespace or "", {})
            return {i: bucket[i] for i in ids if i in bucket}

    def update(self, *, index, id, metadata=None, values=None, namespace=None):
        with self._lock:
            bucket = self._storage.get(index, {}).get(namespace or "", {})
            current = bucket.get(id)
            if current is None:
                raise NotFoundError(f"vector '{id}' not found in index '{index}'")
            new_values = list(current.values)
            if values is not None:
                dimension = self._indexes[index]["dimension"]
                if len(values) != dimension:
                    raise ValidationError(
                        f"values have dimension {len(values)}, index '{index}' expects {dimension}",
                        code="DIMENSION_MISMATCH",
                    )
                new_values = [float(x) for x in values]
            new_metadata = dict(current.metadata or {})
            if metadata:
                new_metadata.update({str(k): v for k, v in metadata.items()})
            bucket[id] = Vector(id=current.id, values=new_values, metadata=new_metadata)
        return {"updated": True}

    def delete(self, *, index, ids=None, namespace=None, filter=None, delete_all=False):
        with self._lock:
            spaces = self._storage.get(index, {})
            if delete_all:
                if namespace is None:
                    spaces.clear()
                else:
                    spaces.pop(namespace, None)
            elif ids:
                bucket = spaces.get(namespace or "", {})
                for i in ids:
                    bucket.pop(i, None)
            elif filter:
                bucket = spaces.get(namespace or "", {})
                for i in [i for i, v in bucket.items() if matches_filter(v.metadata, filter)]:
                    del bucket[i]
            else:
                raise ValidationError("delete requires ids, filter or delete_all")
        return {"deleted": True}

    def list_indexes(self):
        with self._lock:
            names = list(self._indexes)
        return [self.describe_index(index=name) for name in names]

    def describe_index(self, *, index):
        with self._lock:
            config = self._indexes.get(index)
        if config is None:
            raise NotFoundError(f"index '{index}' not found")
        return {
            "name": index,
            "dimension": config["dimension"],
            "metric": config["metric"],
            "status": "ready",
        }

    def stats(self, *, index, namespace=None):
        with self._lock:
            config = self._indexes.get(index)
            if config is None:
                raise NotFoundError(f"index '{index}' not found")
            spaces = self._storage.get(index, {})
            if namespace is not None:
                namespaces = {namespace: {"vector_count": len(spaces.get(namespace, {}))}}
            else:
                namespaces = {ns: {"vector_count": len(b)} for ns, b in spaces.items()}
        return {
            "total_vector_count": sum(n["vector_count"] for n in namespaces.values()),
            "dimension": config["dimension"],
            "namespaces": namespaces,
        }


__all__ = ["MemoryProvider", "similarity", "matches_filter"]
