"""ASGI handler: translates ASGI scope/messages to perch types.

The only component that touches raw ASGI directly. Converts scope dicts
to typed Request objects, dispatches through middleware and routing,
and sends the Response back through ASGI send().
"""

from collections.abc import Callable
from typing import Any

from perch._internal.asgi import Receive, Scope, Send
from perch._internal.invoke import invoke
from perch.context import request_var, route_var
from perch.errors import HTTPError
from perch.http.request import Request
from perch.http.response import Response
from perch.middleware.protocol import Next
from perch.routing.router import Router
from perch.server.errors import handle_http_error, handle_internal_error
from perch.server.negotiation import negotiate
from perch.server.sender import send_response


async def dispatch(request: Request, router: Router) -> Response:
    """Match *request* and call the route endpoint as ``endpoint(request, match)``."""
    match = router.match(request.method, request.path)
    request = request.with_path_params(match.path_params)
    request_token = request_var.set(request)
    route_token = route_var.set(match)
    try:
        result = await invoke(match.route.endpoint, request, match)
    finally:
        route_var.reset(route_token)
        request_var.reset(request_token)
    return negotiate(result)


def build_pipeline(
    router: Router,
    middleware: tuple[Callable[..., Any], ...],
) -> Next:
    """Wrap router dispatch in the middleware chain (first added runs first)."""

    async def innermost(req: Request) -> Response:
        return await dispatch(req, router)

    handler: Next = innermost
    for mw in reversed(middleware):

        async def make_next(req: Request, _mw: Any = mw, _next: Next = handler) -> Response:
            return await _mw(req, _next)

        handler = make_next
    return handler


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    pipeline: Next,
    error_handlers: dict[int | type, Callable[..., Any]],
    debug: bool,
) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive)
    token = request_var.set(request)
    try:
        response = await pipeline(request)
    except HTTPError as exc:
        response = await handle_http_error(exc, request, error_handlers, debug)
    except Exception as exc:
        response = await handle_internal_error(exc, request, error_handlers, debug)
    finally:
        request_var.reset(token)

    await send_response(response, send, head=request.method == "HEAD")
