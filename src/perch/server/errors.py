"""Turn exceptions raised while serving a request into responses.

``HTTPError`` subclasses (``Forbidden``, ``NotFound``, ``EntityNotFound``
and friends) become their status code. Anything else, including a
``BindingFailure`` from a broken screen definition, is logged and
becomes a 500. Handlers registered with ``@app.error(...)`` take over
for their exception type or status code.
"""

import html
import inspect
import logging
from collections.abc import Callable
from typing import Any

from perch.errors import HTTPError
from perch.http.request import Request
from perch.http.response import Response
from perch.server.negotiation import negotiate

logger = logging.getLogger("perch.server")

type ErrorHandlers = dict[int | type, Callable[..., Any]]


def default_fragment_error(status: int, detail: str) -> str:
    """Error markup for htmx requests, swapped into the page in place."""
    return f'<div class="perch-error" data-status="{status}">{html.escape(detail)}</div>'


def _lookup(exc: Exception, handlers: ErrorHandlers, status: int) -> Callable[..., Any] | None:
    for cls in type(exc).__mro__:
        if cls in handlers:
            return handlers[cls]
        if cls in (HTTPError, Exception):
            break
    return handlers.get(status)


async def call_error_handler(handler: Callable[..., Any], request: Request, exc: Exception) -> Response:
    """Call *handler* with as many of ``(request, exc)`` as it accepts."""
    arity = len(inspect.signature(handler).parameters)
    result = handler(*(request, exc)[: min(arity, 2)])
    if inspect.isawaitable(result):
        result = await result
    return negotiate(result)


async def _custom(handler: Callable[..., Any], request: Request, exc: Exception, status: int) -> Response:
    response = await call_error_handler(handler, request, exc)
    # A handler returning plain content keeps the error status
    return response.with_status(status) if response.status == 200 else response


def _plain(request: Request, status: int, detail: str) -> Response:
    if request.is_fragment:
        return Response(body=default_fragment_error(status, detail), status=status)
    return Response(body=html.escape(detail), status=status)


async def handle_http_error(
    exc: HTTPError,
    request: Request,
    error_handlers: ErrorHandlers,
    debug: bool,
) -> Response:
    logger.debug("%d on %s %s: %s", exc.status, request.method, request.path, exc.detail)

    handler = _lookup(exc, error_handlers, exc.status)
    if handler is not None:
        return await _custom(handler, request, exc, exc.status)

    detail = exc.detail or f"Error {exc.status}"
    if debug and exc.detail:
        detail = f"{exc.status}: {exc.detail}"
    return _plain(request, exc.status, detail).with_headers(dict(exc.headers))


async def handle_internal_error(
    exc: Exception,
    request: Request,
    error_handlers: ErrorHandlers,
    debug: bool,
) -> Response:
    logger.exception("Unhandled error on %s %s", request.method, request.path)

    handler = _lookup(exc, error_handlers, 500)
    if handler is not None:
        return await _custom(handler, request, exc, 500)

    detail = f"{type(exc).__name__}: {exc}" if debug else "Internal Server Error"
    return _plain(request, 500, detail)
