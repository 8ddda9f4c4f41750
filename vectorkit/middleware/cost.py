# vectorkit/middleware/cost.py
# SPDX-License-Identifier: Apache-2.0
"""
Estimated per-operation cost accounting.

Rates are USD per unit. The unit count is the number of vectors for
upserts, the number of ids for fetch/delete, 100 for a delete_all and 1
otherwise. Successful responses get `cost_usd` in their metadata, and the
optional `on_cost` callback receives a `CostEvent`.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from vectorkit.middleware.base import Middleware
from vectorkit.middleware.envelope import Operation, Request, Response

logger = logging.getLogger(__name__)

DEFAULT_PRICING: Dict[str, Dict[str, float]] = {
    "pinecone": {"read": 0.0001, "write": 0.0002},
    "qdrant": {"read": 0.00005, "write": 0.0001},
    "weaviate": {"read": 0.00008, "write": 0.00015},
    "pgvector": {"read": 0.0, "write": 0.0},
    "memory": {"read": 0.0, "write": 0.0},
}

DELETE_ALL_MULTIPLIER = 100


@dataclass(frozen=True)
class CostEvent:
    operation: str
    provider: Optional[str]
    index: Optional[str]
    cost_usd: float
    timestamp: float


class CostTrackingMiddleware(Middleware):
    """
    Example:
        totals = []
        client = runtime.client(middleware=[
            CostTrackingMiddleware(on_cost=lambda e: totals.append(e.cost_usd)),
        ])
    """

    name = "cost_tracker"

    def __init__(
        self,
        *,
        pricing: Optional[Mapping[str, Mapping[str, float]]] = None,
        on_cost: Optional[Callable[[CostEvent], Any]] = None,
    ) -> None:
        self.pricing = {k: dict(v) for k, v in (pricing or DEFAULT_PRICING).items()}
        self.on_cost = on_cost
        self._lock = threading.Lock()
        self._total_usd = 0.0

    @property
    def total_usd(self) -> float:
        with self._lock:
            return self._total_usd

    def multiplier(self, request: Request) -> int:
        params = request.params
        if request.operation is Operation.DELETE and params.get("delete_all"):
            return DELETE_ALL_MULTIPLIER
        if request.operation is Operation.UPSERT:
            return _size(params.get("vectors"))
        if request.operation in (Operation.FETCH, Operation.DELETE):
            return _size(params.get("ids"))
        return 1

    def cost_of(self, request: Request) -> float:
        kind = "write" if request.is_write else "read"
        rate = self.pricing.get(request.provider or "", {}).get(kind, 0.0)
        return rate * self.multiplier(request)

    def after(self, request: Request, response: Response) -> None:
        if not response.success:
            return
        cost = self.cost_of(request)
        response.metadata["cost_usd"] = cost
        with self._lock:
            self._total_usd += cost
        if self.on_cost is not None:
            self.on_cost(
                CostEvent(
                    operation=request.operation.value,
                    provider=request.provider,
                    index=request.index,
                    cost_usd=cost,
                    timestamp=time.time(),
                )
            )


def _size(collection: Any) -> int:
    if not collection:
        return 1
    try:
        return len(collection)
    except TypeError:
        return 1


__all__ = ["CostTrackingMiddleware", "CostEvent", "DEFAULT_PRICING"]
