"""Request-scoped context via ContextVar.

Provides:
- ``request_var``: The current ``Request`` for this task/thread.
- ``route_var``: The current ``RouteMatch`` (readable and settable params).
- ``screen_var``: The screen handling the current request.

All are set by the handler pipeline and reset after each request.
Accessing them outside a request raises ``LookupError``.

Thread safety:
    ``ContextVar`` is task-local under asyncio and thread-local under
    free-threading. No locks needed.
"""

from __future__ import annotations

from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from perch.http.request import Request
    from perch.routing.route import RouteMatch

request_var: ContextVar[Request] = ContextVar("perch_request")
"""The current request. Set by the ASGI handler before dispatch."""

route_var: ContextVar[RouteMatch | None] = ContextVar("perch_route", default=None)
"""The matched route. ``None`` when a screen is driven without routing."""

screen_var: ContextVar[Any] = ContextVar("perch_screen", default=None)
"""The screen instance currently dispatching."""


def get_request() -> Request:
    """Return the current request.

    Raises ``LookupError`` if called outside a request context.
    """
    return request_var.get()


def current_route() -> RouteMatch | None:
    """Return the current route match, or ``None`` outside routing."""
    return route_var.get()


def current_screen() -> Any:
    """Return the screen dispatching the current request, or ``None``."""
    return screen_var.get()
