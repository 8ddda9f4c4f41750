# vectorkit/middleware/base.py
# SPDX-License-Identifier: Apache-2.0
"""
Base class for pipeline middleware.

Every middleware exposes three hooks:

- `before(request)`: runs on the way in, in configured order.
- `after(request, response)`: runs on the way out, in reverse order, and
  always receives the Response (including failed ones) so outer layers can
  observe errors from every inner layer.
- `on_error(request, error)`: runs once per error on the way out. Returning
  None lets the error continue outward; returning a `Response` substitutes
  it (for example a fallback result). A middleware must never drop an error
  without substituting a valid Response.

Middleware that need to wrap the downstream call itself (retry, caching)
override `call` instead of the hooks.

Example:

    class AuditMiddleware(Middleware):
        def after(self, request, response):
            audit.record(request.operation, ok=response.success)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Optional

from vectorkit.middleware.envelope import Request, Response

if TYPE_CHECKING:
    from vectorkit.runtime import Runtime

NextCall = Callable[[Request], Response]


class Middleware:
    """Common interface implemented by every middleware variant."""

    name = "middleware"

    def bind(self, runtime: "Runtime") -> None:
        """Called once when attached to a client; gives access to shared registries."""

    def call(self, request: Request, call_next: NextCall) -> Response:
        self.before(request)
        try:
            response = call_next(request)
        except Exception as exc:
            substitute = self.on_error(request, exc)
            if substitute is None:
                raise
            response = substitute
        else:
            if response.error is not None:
                substitute = self.on_error(request, response.error)
                if substitute is not None:
                    response = substitute
        self.after(request, response)
        return response

    def before(self, request: Request) -> None:
        pass

    def after(self, request: Request, response: Response) -> None:
        pass

    def on_error(self, request: Request, error: BaseException) -> Optional[Response]:
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__}>"


class CallbackMiddleware(Middleware):
    """
    Ad-hoc middleware built from plain callables.

        CallbackMiddleware(
            before=lambda req: req.metadata.setdefault("tenant", "acme"),
            after=lambda req, resp: seen.append(resp.success),
        )
    """

    name = "custom"

    def __init__(
        self,
        *,
        before: Optional[Callable[[Request], Any]] = None,
        after: Optional[Callable[[Request, Response], Any]] = None,
        on_error: Optional[Callable[[Request, BaseException], Optional[Response]]] = None,
    ) -> None:
        self._before = before
        self._after = after
        self._on_error = on_error

    def before(self, request: Request) -> None:
        if self._before is not None:
            self._before(request)

    def after(self, request: Request, response: Response) -> None:
        if self._after is not None:
            self._after(request, response)

    def on_error(self, request: Request, error: BaseException) -> Optional[Response]:
        if self._on_error is None:
            return None
        return self._on_error(request, error)


__all__ = ["Middleware", "CallbackMiddleware", "NextCall"]
