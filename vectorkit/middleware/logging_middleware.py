# vectorkit/middleware/logging_middleware.py
# SPDX-License-Identifier: Apache-2.0
"""Operation logging with timing."""

from __future__ import annotations

import logging
import time
from typing import Optional

from vectorkit.middleware.base import Middleware
from vectorkit.middleware.envelope import Request, Response

LOG = logging.getLogger(__name__)

_STARTED_KEY = "_log_started_at"


class LoggingMiddleware(Middleware):
    """
    Log each operation on the way in and its outcome on the way out.

    Start times are kept on the request, so one instance can serve
    concurrent calls. `duration_ms` is written to the Response metadata.
    """

    name = "logging"

    def __init__(self, *, logger: Optional[logging.Logger] = None, level: int = logging.INFO) -> None:
        self._logger = logger or LOG
        self._level = level

    def before(self, request: Request) -> None:
        request.metadata[_STARTED_KEY] = time.monotonic()
        self._logger.log(
            self._level,
            "%s index=%s namespace=%s provider=%s",
            request.operation.value.upper(),
            request.index,
            request.namespace or "default",
            request.provider,
        )

    def after(self, request: Request, response: Response) -> None:
        started = request.metadata.pop(_STARTED_KEY, None)
        if started is None:
            return
        duration_ms = round((time.monotonic() - started) * 1000.0, 2)
        response.metadata["duration_ms"] = duration_ms
        if response.success:
            self._logger.log(
                self._level, "%s completed in %sms", request.operation.value, duration_ms
            )
        else:
            self._logger.error(
                "%s failed after %sms: %s: %s",
                request.operation.value,
                duration_ms,
                type(response.error).__name__,
                response.error,
            )


__all__ = ["LoggingMiddleware"]
