"""Perch exception hierarchy.

Shared across Router, App, dispatcher, and middleware so every module
raises and catches the same types.
"""

from dataclasses import dataclass
from typing import Any


class PerchError(Exception):
    """Base for all perch-specific errors."""


class ConfigurationError(PerchError):
    """Raised when app or screen configuration is invalid.

    Typically caught during ``App._freeze()`` at startup.
    """


class BindingFailure(PerchError):  # noqa: N818
    """The container could not build an instance for a handler parameter.

    Points at a broken screen definition, not at bad request input, so
    it is never mapped to a 4xx response.
    """

    def __init__(self, annotation: Any, reason: str = "") -> None:
        self.annotation = annotation
        name = getattr(annotation, "__qualname__", repr(annotation))
        msg = f"Unable to resolve {name}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


@dataclass(frozen=True, slots=True)
class HTTPError(PerchError):
    """An error that maps directly to an HTTP status code.

    Raised by the router, dispatcher, or handlers. The ASGI handler
    catches these and dispatches to the matching ``@app.error()`` handler.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818
    """404: no route, handler method, fragment, or entity matched."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class Forbidden(HTTPError):  # noqa: N818
    """403: the current user holds none of the required permissions."""

    def __init__(self, detail: str = "Forbidden") -> None:
        super().__init__(status=403, detail=detail)


class EntityNotFound(NotFound):
    """404: a route-bound parameter key resolved to nothing.

    Carries the declared parameter type and the raw key(s) so error
    handlers can render a specific message.
    """

    __slots__ = ("keys", "model")

    def __init__(self, model: type, keys: tuple[Any, ...]) -> None:
        name = getattr(model, "__name__", repr(model))
        shown = ", ".join(str(k) for k in keys)
        super().__init__(detail=f"No query results for {name} [{shown}]")
        object.__setattr__(self, "model", model)
        object.__setattr__(self, "keys", keys)


class MethodNotAllowed(HTTPError):  # noqa: N818
    """405: route exists but not for this HTTP method.

    Includes an ``Allow`` header listing the valid methods.
    """

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        default_detail = f"Method not allowed. Allowed methods: {allow_value}"
        super().__init__(
            status=405,
            detail=detail or default_detail,
            headers=(("Allow", allow_value),),
        )
