# vectorkit/middleware/dry_run.py
# SPDX-License-Identifier: Apache-2.0
"""
Dry-run (explain) mode.

Write operations are described instead of executed: the middleware logs a
one-line explanation, hands a plan to `on_dry_run` and answers with a
synthetic Response carrying `dry_run=True` and the plan in its metadata.
Reads pass through untouched, so a dry-run client still sees real data.

    client = Client("pinecone", middleware=[DryRunMiddleware(on_dry_run=plans.append)])
    client.upsert("docs", vectors)   # logged, provider never called
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from vectorkit.middleware.base import Middleware, NextCall
from vectorkit.middleware.envelope import Operation, Request, Response

logger = logging.getLogger(__name__)


def _vector_id(vector: Any) -> Optional[str]:
    if isinstance(vector, dict):
        return vector.get("id")
    return getattr(vector, "id", None)


def build_plan(request: Request) -> Dict[str, Any]:
    """Describe what `request` would change."""
    params = request.params
    plan: Dict[str, Any] = {
        "operation": request.operation.value,
        "index": request.index,
        "namespace": request.namespace,
    }
    if request.operation is Operation.UPSERT:
        vectors = params.get("vectors") or []
        plan["vector_count"] = len(vectors)
        plan["vector_ids"] = [vid for vid in map(_vector_id, vectors) if vid is not None]
    elif request.operation is Operation.DELETE:
        if params.get("delete_all"):
            plan["delete_all"] = True
        elif params.get("ids"):
            plan["id_count"] = len(params["ids"])
        if params.get("filter"):
            plan["filter"] = params["filter"]
    elif request.operation is Operation.UPDATE:
        plan["id"] = params.get("id")
        plan["has_metadata"] = params.get("metadata") is not None
        plan["has_values"] = params.get("values") is not None
    return plan


def explain(request: Request) -> str:
    params = request.params
    namespace = request.namespace or "default"
    if request.operation is Operation.UPSERT:
        return (
            f"UPSERT index={request.index} namespace={namespace} "
            f"vectors={len(params.get('vectors') or [])}"
        )
    if request.operation is Operation.DELETE:
        if params.get("delete_all"):
            return f"DELETE ALL index={request.index} namespace={namespace}"
        return (
            f"DELETE index={request.index} namespace={namespace} "
            f"ids={len(params.get('ids') or [])}"
        )
    if request.operation is Operation.UPDATE:
        return f"UPDATE index={request.index} id={params.get('id')} namespace={namespace}"
    return f"{request.operation.value.upper()} index={request.index}"


def _mock_result(request: Request) -> Dict[str, Any]:
    if request.operation is Operation.UPSERT:
        return {"dry_run": True, "upserted_count": len(request.params.get("vectors") or [])}
    if request.operation is Operation.UPDATE:
        return {"dry_run": True, "updated": True}
    return {"dry_run": True, "deleted": True}


class DryRunMiddleware(Middleware):
    """
    Intercept writes and report them instead of sending them to the provider.

    Args:
        enabled: When False the middleware is a pass-through
        formatter: Builds the log line from a Request (default: `explain`)
        on_dry_run: Called with the plan dict for every intercepted write
    """

    name = "dry_run"

    def __init__(
        self,
        *,
        enabled: bool = True,
        formatter: Optional[Callable[[Request], str]] = None,
        on_dry_run: Optional[Callable[[Dict[str, Any]], Any]] = None,
    ) -> None:
        self.enabled = enabled
        self._formatter = formatter or explain
        self._on_dry_run = on_dry_run

    def call(self, request: Request, call_next: NextCall) -> Response:
        if not (self.enabled and request.is_write):
            return call_next(request)

        logger.info("[DRY RUN] %s", self._formatter(request))
        plan = build_plan(request)
        if self._on_dry_run is not None:
            self._on_dry_run(plan)
        return Response(result=_mock_result(request), metadata={"dry_run": True, "plan": plan})


__all__ = ["DryRunMiddleware", "build_plan", "explain"]
