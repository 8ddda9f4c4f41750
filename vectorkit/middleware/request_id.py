# vectorkit/middleware/request_id.py
# SPDX-License-Identifier: Apache-2.0
"""Request id assignment for tracing a call through logs and events."""

from __future__ import annotations

import logging
import secrets
from typing import Any, Callable, Optional

from vectorkit.middleware.base import Middleware
from vectorkit.middleware.envelope import Request, Response

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "vk"
DEFAULT_ID_BYTES = 16


def generate_request_id(prefix: str = DEFAULT_PREFIX) -> str:
    return f"{prefix}_{secrets.token_hex(DEFAULT_ID_BYTES)}"


class RequestIdMiddleware(Middleware):
    """
    Assign `request_id` to the request metadata and copy it to the response.

    An id already present on the request (set by the caller) is kept.
    """

    name = "request_id"

    def __init__(
        self,
        *,
        prefix: str = DEFAULT_PREFIX,
        generator: Optional[Callable[[str], str]] = None,
        on_assign: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self.prefix = prefix
        self._generator = generator or generate_request_id
        self._on_assign = on_assign

    def before(self, request: Request) -> None:
        if request.metadata.get("request_id"):
            return
        request_id = self._generator(self.prefix)
        request.metadata["request_id"] = request_id
        if self._on_assign is not None:
            self._on_assign(request_id)
        logger.debug(
            "request_id=%s operation=%s index=%s",
            request_id,
            request.operation.value,
            request.index,
        )

    def after(self, request: Request, response: Response) -> None:
        request_id = request.metadata.get("request_id")
        if request_id:
            response.metadata["request_id"] = request_id

    def on_error(self, request: Request, error: BaseException) -> Optional[Response]:
        logger.debug(
            "request_id=%s error=%s",
            request.metadata.get("request_id"),
            type(error).__name__,
        )
        return None


__all__ = ["RequestIdMiddleware", "generate_request_id", "DEFAULT_PREFIX"]
