# vectorkit/providers/base.py
# SPDX-License-Identifier: Apache-2.0
"""
Provider adapter contract.

Every adapter exposes the same blocking operations, takes keyword
arguments only, and either returns a value or raises one of the errors in
`vectorkit.errors`. The pipeline calls these methods by operation name, so
the method names here are the operation names.

Implementing an adapter:

    class MyProvider(ProviderAdapter):
        name = "mystore"

        def upsert(self, *, index, vectors, namespace=None):
            ...
            return {"upserted_count": len(vectors)}
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from vectorkit.types import QueryResult, Vector

logger = logging.getLogger(__name__)


class ProviderAdapter:
    """Base class for vector store adapters."""

    name = "base"

    def upsert(
        self,
        *,
        index: str,
        vectors: Sequence[Vector],
        namespace: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Insert or replace vectors. Returns `{"upserted_count": n}`."""
        raise NotImplementedError

    def query(
        self,
        *,
        index: str,
        vector: Sequence[float],
        top_k: int = 10,
        namespace: Optional[str] = None,
        filter: Optional[Mapping[str, Any]] = None,
        include_values: bool = False,
        include_metadata: bool = True,
        offset: int = 0,
    ) -> QueryResult:
        """Return up to `top_k` matches, best first, skipping the first `offset`."""
        raise NotImplementedError

    def fetch(
        self,
        *,
        index: str,
        ids: Sequence[str],
        namespace: Optional[str] = None,
    ) -> Dict[str, Vector]:
        """Return the stored vectors keyed by id; missing ids are omitted."""
        raise NotImplementedError

    def update(
        self,
        *,
        index: str,
        id: str,
        metadata: Optional[Mapping[str, Any]] = None,
        values: Optional[Sequence[float]] = None,
        namespace: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Merge metadata and/or replace values. Returns `{"updated": True}`."""
        raise NotImplementedError

    def delete(
        self,
        *,
        index: str,
        ids: Optional[Sequence[str]] = None,
        namespace: Optional[str] = None,
        filter: Optional[Mapping[str, Any]] = None,
        delete_all: bool = False,
    ) -> Dict[str, Any]:
        """Delete by ids, by filter, or everything. Returns `{"deleted": True}`."""
        raise NotImplementedError

    def list_indexes(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def describe_index(self, *, index: str) -> Dict[str, Any]:
        """Return `{"name", "dimension", "metric", "status"}`."""
        raise NotImplementedError

    def stats(self, *, index: str, namespace: Optional[str] = None) -> Dict[str, Any]:
        """Return `{"total_vector_count", "dimension", "namespaces"}`."""
        raise NotImplementedError

    def close(self) -> None:
        """Release any held resources."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"


__all__ = ["ProviderAdapter"]
