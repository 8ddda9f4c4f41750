# vectorkit/core/error_context.py
# SPDX-License-Identifier: Apache-2.0

"""
Error context utilities for the request pipeline.

The pipeline attaches debugging context (operation, index, namespace,
provider, request id) to exceptions as they leave the middleware chain.
The context lives in exception attributes so the original exception type,
message and traceback propagate unchanged.

Typical usage
-------------

    from vectorkit.core.error_context import attach_context

    try:
        result = provider.query(index="docs", vector=vec, top_k=10)
    except Exception as exc:
        attach_context(exc, origin="pipeline", operation="query", index="docs")
        raise

Later, in error handlers or observability systems:

    except Exception as exc:
        ctx = get_context(exc)
        logger.error("vector call failed op=%s index=%s", ctx.get("operation"), ctx.get("index"))

Two attributes are set:

* `__vectorkit_context__` (canonical), merged across calls.
* `__<origin>_context__` (origin-specific, e.g. `__pipeline_context__`).

Multiple layers may contribute; later calls merge into earlier context and
the first `origin` recorded is preserved.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping, Optional

logger = logging.getLogger(__name__)

_CANONICAL_ATTR = "__vectorkit_context__"


def _origin_attr(origin: str) -> str:
    return f"__{origin}_context__"


def attach_context(
    exc: BaseException,
    origin: str,
    **context: Any,
) -> None:
    """
    Attach debugging context to an exception.

    Context attachment is best-effort: failures are logged at DEBUG and never
    mask the original exception. Keys whose value is None are skipped so that
    later layers do not erase information recorded by earlier ones.
    """
    try:
        merged: MutableMapping[str, Any] = {}
        existing = getattr(exc, _CANONICAL_ATTR, None)
        if isinstance(existing, Mapping):
            merged.update(existing)

        merged.setdefault("origin", origin)
        merged.update({k: v for k, v in context.items() if v is not None})

        setattr(exc, _CANONICAL_ATTR, merged)
        setattr(exc, _origin_attr(origin), merged)
    except Exception as attachment_error:  # noqa: BLE001
        logger.debug(
            "Failed to attach error context to %s: %s",
            type(exc).__name__,
            attachment_error,
        )


def get_context(
    exc: BaseException,
    *,
    origin: Optional[str] = None,
) -> Mapping[str, Any]:
    """
    Retrieve attached context from an exception, or an empty dict.

    When `origin` is given, the origin-specific attribute is tried first.
    """
    if origin:
        ctx = getattr(exc, _origin_attr(origin), None)
        if isinstance(ctx, Mapping):
            return ctx
    ctx = getattr(exc, _CANONICAL_ATTR, None)
    if isinstance(ctx, Mapping):
        return ctx
    return {}


def has_context(exc: BaseException, *, origin: Optional[str] = None) -> bool:
    """True if the exception carries non-empty context."""
    return len(get_context(exc, origin=origin)) > 0


def clear_context(exc: BaseException, *, origin: Optional[str] = None) -> None:
    """
    Remove attached context from an exception.

    With `origin`, only that origin's attribute and the canonical attribute
    are removed; otherwise every `__<name>_context__` attribute is removed.
    """
    names = [_CANONICAL_ATTR]
    if origin:
        names.append(_origin_attr(origin))
    else:
        names.extend(
            attr for attr in vars(exc)
            if attr.startswith("__") and attr.endswith("_context__")
        )
    for name in names:
        try:
            if name in vars(exc):
                delattr(exc, name)
        except Exception as clear_error:  # noqa: BLE001
            logger.debug(
                "Failed to delete %s from %s: %s",
                name,
                type(exc).__name__,
                clear_error,
            )


__all__ = [
    "attach_context",
    "get_context",
    "has_context",
    "clear_context",
]
